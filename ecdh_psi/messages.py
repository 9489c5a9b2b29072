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

"""Messages exchanged between the two PSI parties, and the final result.

Messages are immutable value types. Construction only checks structure (each
entry is a 32-byte string); whether an entry is a valid group element is
decided by the protocol when it consumes the message.

The first-round message carries blinded points only. Which digest sits behind
a position is known to the sender alone.
"""

from __future__ import annotations

import binascii
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from ecdh_psi import serde
from ecdh_psi.crypto import DIGEST_SIZE, POINT_SIZE, hash_item
from ecdh_psi.errors import InvalidBlindedPointsError


def _as_point_tuple(points: Iterable[bytes], name: str) -> tuple[bytes, ...]:
    if isinstance(points, (bytes, bytearray, str)):
        raise InvalidBlindedPointsError(f"{name} must be a sequence of points")
    result = []
    for i, point in enumerate(points):
        if not isinstance(point, (bytes, bytearray)) or len(point) != POINT_SIZE:
            raise InvalidBlindedPointsError(
                f"{name}[{i}] is not a {POINT_SIZE}-byte compressed point"
            )
        result.append(bytes(point))
    return tuple(result)


def _decode_points(data: dict[str, Any], name: str) -> list[bytes]:
    try:
        return [serde.b64decode(p) for p in data[name]]
    except (KeyError, TypeError, binascii.Error) as e:
        raise InvalidBlindedPointsError(f"malformed {name} encoding: {e}") from e


@serde.register_class
@dataclass(frozen=True)
class BlindedPointsMessage:
    """First-round message: the sender's items as singly-blinded points."""

    _serde_kind: ClassVar[str] = "ecdh_psi.BlindedPointsMessage"

    blinded_points: tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "blinded_points",
            _as_point_tuple(self.blinded_points, "blinded_points"),
        )

    @classmethod
    def validated(cls, blinded_points: Sequence[bytes]) -> BlindedPointsMessage:
        """Build a message, rejecting an empty point sequence."""
        msg = cls(tuple(blinded_points))
        if msg.is_empty():
            raise InvalidBlindedPointsError("Blinded points vector cannot be empty")
        return msg

    def __len__(self) -> int:
        return len(self.blinded_points)

    def is_empty(self) -> bool:
        return not self.blinded_points

    def to_json(self) -> dict[str, Any]:
        return {"blinded_points": [serde.b64encode(p) for p in self.blinded_points]}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> BlindedPointsMessage:
        return cls(tuple(_decode_points(data, "blinded_points")))


@serde.register_class
@dataclass(frozen=True)
class DoubleBlindedPointsMessage:
    """Second-round message.

    Entry ``i`` is the receiver's secret applied to entry ``i`` of the
    first-round message it received, so the order matches that message.
    """

    _serde_kind: ClassVar[str] = "ecdh_psi.DoubleBlindedPointsMessage"

    double_blinded_points: tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "double_blinded_points",
            _as_point_tuple(self.double_blinded_points, "double_blinded_points"),
        )

    @classmethod
    def validated(
        cls, double_blinded_points: Sequence[bytes]
    ) -> DoubleBlindedPointsMessage:
        msg = cls(tuple(double_blinded_points))
        if msg.is_empty():
            raise InvalidBlindedPointsError(
                "Double-blinded points vector cannot be empty"
            )
        return msg

    def __len__(self) -> int:
        return len(self.double_blinded_points)

    def is_empty(self) -> bool:
        return not self.double_blinded_points

    def to_json(self) -> dict[str, Any]:
        return {
            "double_blinded_points": [
                serde.b64encode(p) for p in self.double_blinded_points
            ]
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> DoubleBlindedPointsMessage:
        return cls(tuple(_decode_points(data, "double_blinded_points")))


@serde.register_class
@dataclass(frozen=True)
class IntersectionResult:
    """Outcome of a PSI run on one side.

    Attributes:
        intersection_digests: Digests of the common items, in the order the
            peer's second-round message presented them. The two parties may
            see different orders; compare with :meth:`digest_set`.
        double_blinded_map: digest -> double-blinded point. Both parties hold
            the same point for the same common item.
    """

    _serde_kind: ClassVar[str] = "ecdh_psi.IntersectionResult"

    intersection_digests: tuple[bytes, ...] = ()
    double_blinded_map: Mapping[bytes, bytes] = field(default_factory=dict)

    def __post_init__(self) -> None:
        digests = tuple(bytes(d) for d in self.intersection_digests)
        for d in digests:
            if len(d) != DIGEST_SIZE:
                raise ValueError(f"digest must be {DIGEST_SIZE} bytes")
        object.__setattr__(self, "intersection_digests", digests)
        object.__setattr__(
            self,
            "double_blinded_map",
            {bytes(k): bytes(v) for k, v in self.double_blinded_map.items()},
        )

    def __len__(self) -> int:
        return len(self.intersection_digests)

    def is_empty(self) -> bool:
        return not self.intersection_digests

    def digest_set(self) -> frozenset[bytes]:
        return frozenset(self.intersection_digests)

    def resolve(self, items: Iterable[bytes]) -> list[bytes]:
        """Return the caller's own items whose digest is in the intersection.

        Items come back in intersection order, one per matched digest.
        """
        by_digest: dict[bytes, bytes] = {}
        for item in items:
            by_digest.setdefault(hash_item(item), bytes(item))
        return [by_digest[d] for d in self.intersection_digests if d in by_digest]

    def to_json(self) -> dict[str, Any]:
        return {
            "intersection_digests": [
                serde.b64encode(d) for d in self.intersection_digests
            ],
            "double_blinded_map": {
                serde.b64encode(k): serde.b64encode(v)
                for k, v in self.double_blinded_map.items()
            },
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> IntersectionResult:
        return cls(
            tuple(serde.b64decode(d) for d in data["intersection_digests"]),
            {
                serde.b64decode(k): serde.b64decode(v)
                for k, v in data["double_blinded_map"].items()
            },
        )
