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

"""Tests for driving full runs over a communicator."""

import random

import pytest

from ecdh_psi import crypto
from ecdh_psi.errors import EmptyInputError, InvalidBlindedPointsError
from ecdh_psi.runtime import LocalMesh, RecvTimeoutError, run_local, run_psi
from ecdh_psi.runtime.session import KEY_BLINDED


class TestRunLocal:
    def test_intersection(self):
        res_a, res_b = run_local(
            [b"a", b"s1", b"a2", b"s2"], [b"b1", b"s1", b"b2", b"s2"]
        )
        expected = frozenset(crypto.hash_items([b"s1", b"s2"]))
        assert res_a.digest_set() == expected
        assert res_b.digest_set() == expected

    def test_random_items_without_serde(self):
        rng = random.Random(7)
        shared = [rng.randbytes(32) for _ in range(10)]
        items_a = [rng.randbytes(32) for _ in range(90)] + shared
        items_b = [rng.randbytes(32) for _ in range(90)] + shared

        res_a, res_b = run_local(items_a, items_b, use_serde=False)
        assert len(res_a) == len(res_b) == 10
        assert sorted(res_a.resolve(items_a)) == sorted(shared)

    def test_empty_side_raises(self):
        with pytest.raises(EmptyInputError):
            run_local([], [b"x"], timeout=5.0)


class TestRunPsi:
    def test_peer_stalls(self):
        mesh = LocalMesh(2)
        try:
            with pytest.raises(RecvTimeoutError):
                run_psi([b"a"], mesh.comms[0], 1, timeout=0.1)
        finally:
            mesh.shutdown()

    def test_wrong_message_type_from_peer(self):
        mesh = LocalMesh(2)
        try:
            mesh.comms[1].send(0, KEY_BLINDED, {"not": "a message"})
            with pytest.raises(InvalidBlindedPointsError, match=KEY_BLINDED):
                run_psi([b"a"], mesh.comms[0], 1, timeout=1.0)
        finally:
            mesh.shutdown()

    def test_injected_entropy(self, make_entropy):
        mesh = LocalMesh(2)
        try:
            fut_a = mesh.executor.submit(
                run_psi,
                [b"x", b"y"],
                mesh.comms[0],
                1,
                entropy=make_entropy(1),
                timeout=5.0,
            )
            fut_b = mesh.executor.submit(
                run_psi,
                [b"y", b"z"],
                mesh.comms[1],
                0,
                entropy=make_entropy(2),
                timeout=5.0,
            )
            assert fut_a.result().digest_set() == fut_b.result().digest_set()
            assert len(fut_a.result()) == 1
        finally:
            mesh.shutdown()
