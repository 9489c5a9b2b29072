# Copyright 2025 Ant Group Co., Ltd.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for message value types and the intersection result."""

import dataclasses

import pytest

from ecdh_psi import crypto, serde
from ecdh_psi.errors import InvalidBlindedPointsError
from ecdh_psi.messages import (
    BlindedPointsMessage,
    DoubleBlindedPointsMessage,
    IntersectionResult,
)


def _points(*labels: bytes) -> tuple:
    return tuple(crypto.hash_to_curve(crypto.hash_item(label)) for label in labels)


class TestBlindedPointsMessage:
    def test_validated_rejects_empty(self):
        with pytest.raises(
            InvalidBlindedPointsError, match="Blinded points vector cannot be empty"
        ):
            BlindedPointsMessage.validated([])

    def test_validated_accepts_points(self):
        msg = BlindedPointsMessage.validated(list(_points(b"a", b"b")))
        assert len(msg) == 2
        assert not msg.is_empty()

    def test_plain_construction_allows_empty(self):
        msg = BlindedPointsMessage(())
        assert msg.is_empty()
        assert len(msg) == 0

    def test_rejects_wrong_width_entry(self):
        with pytest.raises(InvalidBlindedPointsError, match=r"blinded_points\[1\]"):
            BlindedPointsMessage((bytes(32), b"\x01" * 31))

    def test_rejects_bytes_as_sequence(self):
        with pytest.raises(InvalidBlindedPointsError):
            BlindedPointsMessage(b"\x01" * 32)  # type: ignore[arg-type]

    def test_list_and_bytearray_normalized(self):
        point = _points(b"a")[0]
        msg = BlindedPointsMessage([bytearray(point)])  # type: ignore[arg-type]
        assert msg.blinded_points == (point,)
        assert isinstance(msg.blinded_points[0], bytes)

    def test_immutable(self):
        msg = BlindedPointsMessage(_points(b"a"))
        with pytest.raises(dataclasses.FrozenInstanceError):
            msg.blinded_points = ()  # type: ignore[misc]

    def test_serde_roundtrip(self):
        msg = BlindedPointsMessage(_points(b"a", b"b", b"c"))
        assert serde.loads(serde.dumps(msg)) == msg

    def test_from_json_malformed(self):
        with pytest.raises(InvalidBlindedPointsError, match="malformed"):
            BlindedPointsMessage.from_json({"blinded_points": ["!!not base64!!"]})
        with pytest.raises(InvalidBlindedPointsError, match="malformed"):
            BlindedPointsMessage.from_json({})


class TestDoubleBlindedPointsMessage:
    def test_validated_rejects_empty(self):
        with pytest.raises(
            InvalidBlindedPointsError,
            match="Double-blinded points vector cannot be empty",
        ):
            DoubleBlindedPointsMessage.validated([])

    def test_rejects_wrong_width_entry(self):
        with pytest.raises(InvalidBlindedPointsError):
            DoubleBlindedPointsMessage((b"short",))

    def test_serde_roundtrip_b64(self):
        msg = DoubleBlindedPointsMessage(_points(b"x", b"y"))
        restored = serde.loads_b64(serde.dumps_b64(msg))
        assert isinstance(restored, DoubleBlindedPointsMessage)
        assert restored == msg


class TestIntersectionResult:
    def test_empty(self):
        result = IntersectionResult()
        assert result.is_empty()
        assert len(result) == 0
        assert result.digest_set() == frozenset()

    def test_digest_set(self):
        digests = crypto.hash_items([b"apple", b"banana"])
        result = IntersectionResult(tuple(digests), {})
        assert result.digest_set() == frozenset(digests)
        assert len(result) == 2

    def test_rejects_bad_digest(self):
        with pytest.raises(ValueError):
            IntersectionResult((b"short",), {})

    def test_resolve_returns_items_in_intersection_order(self):
        digests = crypto.hash_items([b"cherry", b"apple"])
        result = IntersectionResult(tuple(digests), {})
        items = [b"apple", b"banana", b"cherry"]
        assert result.resolve(items) == [b"cherry", b"apple"]

    def test_resolve_ignores_unknown_digests(self):
        result = IntersectionResult(tuple(crypto.hash_items([b"zebra"])), {})
        assert result.resolve([b"apple"]) == []

    def test_serde_roundtrip(self):
        digests = tuple(crypto.hash_items([b"apple"]))
        point = _points(b"p")[0]
        result = IntersectionResult(digests, {digests[0]: point})
        restored = serde.loads(serde.dumps(result))
        assert restored == result
        assert restored.double_blinded_map[digests[0]] == point
