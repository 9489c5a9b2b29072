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

"""Group primitives for ECDH-PSI on Ristretto255 (libsodium via rbcl).

Group elements are carried as their canonical 32-byte encodings, which is the
form libsodium operates on. Every encoding that arrives from a peer must pass
through :func:`decompress` before it is used in a computation.

Item pipeline:
    item --sha512[:32]--> digest --sha512 + from_hash--> point --x secret--> blinded
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable, Iterable, Sequence

import rbcl

from ecdh_psi.errors import CryptoError

DIGEST_SIZE = 32
POINT_SIZE = 32
SCALAR_SIZE = 32
# Uniform input width for scalar reduction and hash-to-group
WIDE_SIZE = 64

IDENTITY_ENCODING = bytes(POINT_SIZE)

# Returns exactly n bytes of entropy.
EntropySource = Callable[[int], bytes]


def os_entropy(n: int) -> bytes:
    """Default entropy source backed by the operating system CSPRNG."""
    return secrets.token_bytes(n)


def hash_item(item: bytes) -> bytes:
    """Digest of a raw item: the first 32 bytes of SHA-512."""
    if not isinstance(item, (bytes, bytearray, memoryview)):
        raise TypeError(f"item must be bytes-like, got {type(item).__name__}")
    return hashlib.sha512(item).digest()[:DIGEST_SIZE]


def hash_items(items: Iterable[bytes]) -> list[bytes]:
    return [hash_item(item) for item in items]


def hash_to_curve(digest: bytes) -> bytes:
    """Map a digest to a Ristretto255 element whose discrete log is unknown.

    The digest is expanded with SHA-512 and fed to libsodium's
    ``crypto_core_ristretto255_from_hash`` (the Elligator-based map applied to
    two field elements), so the mapping is deterministic across parties.
    """
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_SIZE:
        raise CryptoError(f"digest must be {DIGEST_SIZE} bytes")
    uniform = hashlib.sha512(bytes(digest)).digest()
    return bytes(rbcl.crypto_core_ristretto255_from_hash(uniform))


def random_secret(entropy: EntropySource | None = None) -> bytearray:
    """Draw a uniformly random non-zero scalar.

    64 bytes are taken from ``entropy`` and reduced modulo the group order, so
    the bias is negligible. The scalar is returned in a ``bytearray`` so the
    owner can wipe it in place once it is no longer needed.

    Raises:
        CryptoError: If the entropy source fails or returns a short read, or
            the reduced scalar is zero.
    """
    source = entropy or os_entropy
    try:
        wide = source(WIDE_SIZE)
    except Exception as e:
        raise CryptoError(f"entropy source failed: {e}") from e
    if not isinstance(wide, (bytes, bytearray)) or len(wide) != WIDE_SIZE:
        raise CryptoError(f"entropy source must return {WIDE_SIZE} bytes")

    scalar = bytearray(rbcl.crypto_core_ristretto255_scalar_reduce(bytes(wide)))
    if not any(scalar):
        raise CryptoError("entropy source produced a zero scalar")
    return scalar


def wipe(buf: bytearray) -> None:
    """Overwrite a secret buffer with zeros in place."""
    buf[:] = bytes(len(buf))


def decompress(data: bytes) -> bytes:
    """Validate a peer-supplied encoding and return it as a group element.

    Raises:
        CryptoError: If ``data`` is not 32 bytes, is the identity, or does not
            decode to a canonical Ristretto255 element.
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != POINT_SIZE:
        raise CryptoError(f"point encoding must be {POINT_SIZE} bytes")
    point = bytes(data)
    if point == IDENTITY_ENCODING:
        raise CryptoError("point is the identity element")
    if not rbcl.crypto_core_ristretto255_is_valid_point(point):
        raise CryptoError("failed to decompress Ristretto point")
    return point


def blind(point: bytes, secret: bytes | bytearray) -> bytes:
    """Multiply ``point`` by ``secret`` and return the canonical encoding."""
    if len(secret) != SCALAR_SIZE:
        raise CryptoError(f"secret must be {SCALAR_SIZE} bytes")
    try:
        return bytes(rbcl.crypto_scalarmult_ristretto255(bytes(secret), point))
    except RuntimeError as e:
        # libsodium refuses invalid inputs and identity results
        raise CryptoError(f"scalar multiplication failed: {e}") from e


def blind_all(points: Sequence[bytes], secret: bytes | bytearray) -> list[bytes]:
    return [blind(point, secret) for point in points]
