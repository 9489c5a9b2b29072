# Copyright 2025 Ant Group Co., Ltd.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
JSON-based wire encoding for protocol messages.

The protocol core is serialization agnostic. This module is the encoding the
bundled transports use, and integrators may reuse it for their own channels.
Each message type is responsible for its own serialization via the
`@register_class` decorator pattern.

Usage:
    from ecdh_psi import serde

    @serde.register_class
    class MyType:
        _serde_kind = "mymodule.MyType"

        def to_json(self) -> dict:
            return {"field": self.field}

        @classmethod
        def from_json(cls, data: dict) -> "MyType":
            return cls(data["field"])

    payload = serde.dumps_b64(MyType(...))
    obj = serde.loads_b64(payload)

Security:
    JSON deserialization only reconstructs data structures. It cannot execute
    arbitrary code, and registered `from_json` methods rerun the same
    validation as the regular constructors.
    Compressed payloads are inflated incrementally and refused once they
    exceed MAX_PAYLOAD_SIZE bytes.
"""

from __future__ import annotations

import base64
import gzip
import json
import zlib
from typing import Any, ClassVar, Protocol, TypeVar, runtime_checkable

# Upper bound on an inflated payload. A 100k-point message is about 5 MB of JSON.
MAX_PAYLOAD_SIZE = 64 * 1024 * 1024

# kind string -> class
_CLASS_REGISTRY: dict[str, type] = {}

T = TypeVar("T")


def register_class(cls: type[T]) -> type[T]:
    """Decorator to register a class for JSON serialization.

    The class must define:
    - `_serde_kind: ClassVar[str]` - unique identifier for this type
    - `to_json(self) -> dict` - serialize instance to JSON-compatible dict
    - `from_json(cls, data: dict) -> Self` - deserialize from dict
    """
    kind = getattr(cls, "_serde_kind", None)
    if kind is None:
        raise ValueError(
            f"{cls.__name__} must define `_serde_kind` class variable "
            "for serialization registration"
        )
    if kind in _CLASS_REGISTRY:
        existing = _CLASS_REGISTRY[kind]
        if existing is not cls:
            raise ValueError(
                f"Duplicate _serde_kind '{kind}': "
                f"already registered by {existing.__name__}"
            )
    _CLASS_REGISTRY[kind] = cls
    return cls


def get_registered_class(kind: str) -> type | None:
    """Get the class registered for a given kind string."""
    return _CLASS_REGISTRY.get(kind)


def list_registered_kinds() -> list[str]:
    return list(_CLASS_REGISTRY.keys())


@runtime_checkable
class JsonSerializable(Protocol):
    """Protocol for types that can be serialized to JSON."""

    _serde_kind: ClassVar[str]

    def to_json(self) -> dict[str, Any]: ...

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> JsonSerializable: ...


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    return base64.b64decode(data, validate=True)


def to_json(obj: Any) -> dict[str, Any]:
    """Serialize an object to a JSON-compatible dict.

    Supported: registered classes, None, bool, int, float, str, bytes, and
    list/tuple/dict containers of those.

    Raises:
        TypeError: If object cannot be serialized
    """
    if hasattr(obj, "_serde_kind") and hasattr(obj, "to_json"):
        data: dict[str, Any] = obj.to_json()
        data["_kind"] = obj._serde_kind
        return data

    if obj is None:
        return {"_kind": "_null"}
    if isinstance(obj, bool):  # Must check before int (bool is subclass of int)
        return {"_kind": "_bool", "v": obj}
    if isinstance(obj, int):
        return {"_kind": "_int", "v": obj}
    if isinstance(obj, float):
        return {"_kind": "_float", "v": obj}
    if isinstance(obj, str):
        return {"_kind": "_str", "v": obj}

    if isinstance(obj, (list, tuple)):
        return {
            "_kind": "_list" if isinstance(obj, list) else "_tuple",
            "items": [to_json(item) for item in obj],
        }
    if isinstance(obj, dict):
        # Non-string keys (e.g. digests) are kept as a list of pairs
        has_non_string_keys = any(not isinstance(k, str) for k in obj.keys())
        if has_non_string_keys:
            return {
                "_kind": "_dict_pairs",
                "pairs": [[to_json(k), to_json(v)] for k, v in obj.items()],
            }
        return {
            "_kind": "_dict",
            "items": {k: to_json(v) for k, v in obj.items()},
        }

    if isinstance(obj, (bytes, bytearray)):
        return {"_kind": "_bytes", "data": b64encode(bytes(obj))}

    raise TypeError(
        f"Cannot serialize object of type {type(obj).__name__}. "
        "Ensure the class is decorated with @serde.register_class "
        "and implements to_json()/from_json()."
    )


def from_json(data: dict[str, Any]) -> Any:
    """Deserialize an object from a JSON-compatible dict.

    Raises:
        ValueError: If `_kind` is missing or unknown
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected dict, got {type(data).__name__}")

    kind = data.get("_kind")
    if kind is None:
        raise ValueError("Missing '_kind' field in JSON data")

    if kind == "_null":
        return None
    if kind == "_bool":
        return bool(data["v"])
    if kind == "_int":
        return int(data["v"])
    if kind == "_float":
        return float(data["v"])
    if kind == "_str":
        return str(data["v"])

    if kind == "_list":
        return [from_json(item) for item in data["items"]]
    if kind == "_tuple":
        return tuple(from_json(item) for item in data["items"])
    if kind == "_dict":
        return {k: from_json(v) for k, v in data["items"].items()}
    if kind == "_dict_pairs":
        return {from_json(pair[0]): from_json(pair[1]) for pair in data["pairs"]}

    if kind == "_bytes":
        return b64decode(data["data"])

    if kind in _CLASS_REGISTRY:
        cls = _CLASS_REGISTRY[kind]
        data_copy = {k: v for k, v in data.items() if k != "_kind"}
        return cls.from_json(data_copy)  # type: ignore[attr-defined]

    raise ValueError(
        f"Unknown type kind: '{kind}'. "
        "Ensure the class is registered with @serde.register_class "
        "and the module is imported."
    )


def dumps(obj: Any, *, compress: bool = True) -> bytes:
    """Serialize object to bytes (JSON + optional gzip)."""
    json_str = json.dumps(to_json(obj), separators=(",", ":"))
    data = json_str.encode("utf-8")
    if compress:
        data = gzip.compress(data)
    return data


def _inflate(data: bytes, max_size: int) -> bytes:
    # 16 + MAX_WBITS selects the gzip container
    inflater = zlib.decompressobj(16 + zlib.MAX_WBITS)
    try:
        out = inflater.decompress(data, max_size + 1)
    except zlib.error as e:
        raise ValueError(f"Malformed gzip payload: {e}") from e
    if len(out) > max_size:
        raise ValueError(f"Decompressed payload exceeds {max_size} bytes")
    if not inflater.eof:
        raise ValueError("Truncated gzip payload")
    return out


def loads(
    data: bytes, *, compressed: bool = True, max_size: int | None = None
) -> Any:
    """Deserialize object from bytes produced by :func:`dumps`.

    Args:
        data: Serialized bytes.
        compressed: Whether ``data`` is gzip-compressed.
        max_size: Largest accepted inflated size. Defaults to MAX_PAYLOAD_SIZE.

    Raises:
        ValueError: If the payload is oversized, truncated or not valid serde.
    """
    limit = MAX_PAYLOAD_SIZE if max_size is None else max_size
    if compressed:
        data = _inflate(data, limit)
    elif len(data) > limit:
        raise ValueError(f"Payload exceeds {limit} bytes")
    json_data = json.loads(data.decode("utf-8"))
    return from_json(json_data)


def dumps_b64(obj: Any, *, compress: bool = True) -> str:
    """Serialize object to a base64 string (for JSON transport)."""
    return b64encode(dumps(obj, compress=compress))


def loads_b64(
    data: str, *, compressed: bool = True, max_size: int | None = None
) -> Any:
    """Deserialize object from a base64 string produced by :func:`dumps_b64`."""
    return loads(b64decode(data), compressed=compressed, max_size=max_size)
