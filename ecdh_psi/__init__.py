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

"""Two-party Private Set Intersection with ECDH over Ristretto255.

Both parties run the same code; message exchange is left to the caller:

    import ecdh_psi

    alice = ecdh_psi.begin([b"apple", b"banana"])
    bob = ecdh_psi.begin([b"banana", b"cherry"])

    alice_msg, bob_msg = alice.outgoing_message(), bob.outgoing_message()
    alice_next, alice_reply = alice.advance(bob_msg)
    bob_next, bob_reply = bob.advance(alice_msg)

    _, alice_result = alice_next.finalize(bob_reply)
    _, bob_result = bob_next.finalize(alice_reply)
    assert alice_result.digest_set() == bob_result.digest_set()

Messages must travel over an authenticated, confidential channel (e.g. TLS).
"""

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("ecdh-psi")
except PackageNotFoundError:
    # Development checkout without an installed distribution
    __version__ = "0.0.0-dev"

from ecdh_psi.crypto import hash_item, hash_to_curve
from ecdh_psi.errors import (
    CryptoError,
    EmptyInputError,
    InvalidBlindedPointsError,
    PsiError,
    StateConsumedError,
)
from ecdh_psi.logging_config import disable_logging, get_logger, setup_logging
from ecdh_psi.messages import (
    BlindedPointsMessage,
    DoubleBlindedPointsMessage,
    IntersectionResult,
)
from ecdh_psi.protocol import DoubleBlindedState, FinalState, PreparedState, begin

__all__ = [
    "BlindedPointsMessage",
    "CryptoError",
    "DoubleBlindedPointsMessage",
    "DoubleBlindedState",
    "EmptyInputError",
    "FinalState",
    "IntersectionResult",
    "InvalidBlindedPointsError",
    "PreparedState",
    "PsiError",
    "StateConsumedError",
    "__version__",
    "begin",
    "disable_logging",
    "get_logger",
    "hash_item",
    "hash_to_curve",
    "setup_logging",
]
