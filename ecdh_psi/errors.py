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

"""Error types raised by the PSI protocol.

All errors stem from malformed input or protocol misuse, never from transient
conditions, so none of them is worth retrying with the same input.
"""

from __future__ import annotations


class PsiError(Exception):
    """Base class for every error raised by ecdh_psi."""


class EmptyInputError(PsiError):
    """A run was started with an empty item set."""

    def __init__(self) -> None:
        super().__init__("Input data cannot be empty")


class InvalidBlindedPointsError(PsiError):
    """A message from the peer is empty or structurally malformed."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Invalid blinded points: {detail}")


class CryptoError(PsiError):
    """A group element failed to decode or a secret could not be drawn."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Cryptographic error: {detail}")


class StateConsumedError(PsiError):
    """A phase value was used after a transition consumed it."""

    def __init__(self, phase: str):
        self.phase = phase
        super().__init__(
            f"{phase} has already been consumed by a transition and cannot be reused"
        )
