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

import hashlib
import itertools
import socket

import pytest

import ecdh_psi


def get_free_port() -> int:
    """Return an ephemeral free TCP port bound on localhost.

    Each call binds to port 0 then closes immediately; a tiny race is still
    possible if something else grabs it before use, but acceptable for tests.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def free_port():
    return get_free_port()


def seeded_entropy(seed: int):
    """Deterministic entropy source: SHAKE-256 over (seed, call counter)."""
    counter = itertools.count()

    def source(n: int) -> bytes:
        return hashlib.shake_256(f"{seed}:{next(counter)}".encode()).digest(n)

    return source


@pytest.fixture
def make_entropy():
    return seeded_entropy


@pytest.fixture
def entropy():
    return seeded_entropy(7)


def exchange(items_a, items_b, *, entropy_a=None, entropy_b=None):
    """Run both sides of the protocol by direct hand-off.

    Returns (result_a, result_b).
    """
    alice = ecdh_psi.begin(items_a, entropy=entropy_a)
    bob = ecdh_psi.begin(items_b, entropy=entropy_b)

    alice_msg = alice.outgoing_message()
    bob_msg = bob.outgoing_message()

    alice_next, alice_reply = alice.advance(bob_msg)
    bob_next, bob_reply = bob.advance(alice_msg)

    _, alice_result = alice_next.finalize(bob_reply)
    _, bob_result = bob_next.finalize(alice_reply)
    return alice_result, bob_result


@pytest.fixture
def run_exchange():
    return exchange
