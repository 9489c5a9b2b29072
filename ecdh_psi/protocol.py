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

"""Two-party ECDH-PSI as a sequence of single-use phase values.

Protocol Overview:
──────────────────────────────────────────────────────────────────────────
Both parties run the same steps; there is no client/server distinction.

    a = random scalar (Alice)             b = random scalar (Bob)
    A_i = a · H(x_i)                      B_j = b · H(y_j)
            ── BlindedPointsMessage ──>  <── BlindedPointsMessage ──
    b · A_i  (sent back, same order)      a · B_j  (sent back, same order)
            <── DoubleBlindedPointsMessage ──>
    match   b·a·H(x_i)  against { a·b·H(y_j) }

Since scalar multiplication commutes, ``a·b·H(v) == b·a·H(v)`` exactly when
both parties hold ``v``. Only opaque double-blinded points are compared, so
the digest of a non-common item never leaves its owner.

Phase values:
──────────────────────────────────────────────────────────────────────────
    begin(items)            -> PreparedState
    PreparedState.advance   -> (DoubleBlindedState, DoubleBlindedPointsMessage)
    DoubleBlindedState.finalize -> (FinalState, IntersectionResult)

Each transition consumes the value it is called on. A consumed value rejects
every further call with StateConsumedError, and the secret scalar is wiped in
place when the run reaches FinalState or aborts on bad peer input.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import ClassVar

from ecdh_psi import crypto
from ecdh_psi.crypto import EntropySource
from ecdh_psi.errors import EmptyInputError, PsiError, StateConsumedError
from ecdh_psi.logging_config import get_logger
from ecdh_psi.messages import (
    BlindedPointsMessage,
    DoubleBlindedPointsMessage,
    IntersectionResult,
)

logger = get_logger(__name__)


class _SingleUse:
    """Consumption bookkeeping shared by the secret-holding phases."""

    phase: ClassVar[str]

    def __init__(self, secret: bytearray):
        self._secret: bytearray | None = secret
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    def _ensure_live(self) -> bytearray:
        if self._consumed or self._secret is None:
            raise StateConsumedError(self.phase)
        return self._secret

    def _hand_over(self) -> bytearray:
        """Give the secret buffer to the next phase and retire this value."""
        secret = self._ensure_live()
        self._secret = None
        self._consumed = True
        return secret

    def _abort(self) -> None:
        """Wipe the secret and retire this value after a failed transition."""
        if self._secret is not None:
            crypto.wipe(self._secret)
        self._secret = None
        self._consumed = True


def begin(
    items: Iterable[bytes], *, entropy: EntropySource | None = None
) -> PreparedState:
    """Start a PSI run over ``items``.

    Draws a fresh secret and blinds every distinct item. Items with the same
    digest collapse into one entry.

    Args:
        items: The private set, as raw byte strings.
        entropy: Source for the secret scalar. Defaults to the OS CSPRNG;
            substitute a deterministic source only in tests.

    Raises:
        EmptyInputError: If ``items`` is empty.
        CryptoError: If no valid secret can be drawn.
    """
    item_list = list(items)
    if not item_list:
        raise EmptyInputError()

    # dict keeps first-occurrence order and drops duplicate digests
    digests = list(dict.fromkeys(crypto.hash_items(item_list)))
    secret = crypto.random_secret(entropy)
    try:
        blinded_map = {
            digest: crypto.blind(crypto.hash_to_curve(digest), secret)
            for digest in digests
        }
    except PsiError:
        crypto.wipe(secret)
        raise

    # Sorting by blinded encoding gives an order unrelated to the caller's
    blinded_to_digest = {point: digest for digest, point in blinded_map.items()}
    blinded_order = sorted(blinded_to_digest)

    logger.debug(
        f"PSI run prepared: {len(item_list)} items, {len(blinded_order)} distinct"
    )
    return PreparedState(secret, blinded_map, blinded_to_digest, blinded_order)


class PreparedState(_SingleUse):
    """Phase 1: own items blinded, waiting for the peer's first-round message."""

    phase = "PreparedState"

    def __init__(
        self,
        secret: bytearray,
        blinded_map: dict[bytes, bytes],
        blinded_to_digest: dict[bytes, bytes],
        blinded_order: list[bytes],
    ):
        super().__init__(secret)
        self._blinded_map = blinded_map
        self._blinded_to_digest = blinded_to_digest
        self._blinded_order = blinded_order

    def __len__(self) -> int:
        return len(self._blinded_map)

    def outgoing_message(self) -> BlindedPointsMessage:
        """Blinded points in index order. Does not consume the state."""
        self._ensure_live()
        return BlindedPointsMessage(tuple(self._blinded_order))

    def advance(
        self, peer_msg: BlindedPointsMessage
    ) -> tuple[DoubleBlindedState, DoubleBlindedPointsMessage]:
        """Apply the local secret to every point of the peer's first message.

        Returns:
            The next phase value and the second-round message for the peer,
            ordered like ``peer_msg``.

        Raises:
            StateConsumedError: If this value was already advanced.
            CryptoError: If a peer point is not a valid group element. The
                run is aborted and the secret wiped.
        """
        secret = self._ensure_live()
        if not isinstance(peer_msg, BlindedPointsMessage):
            raise TypeError(
                f"expected BlindedPointsMessage, got {type(peer_msg).__name__}"
            )
        if peer_msg.is_empty():
            logger.warning("Peer sent an empty first-round message")

        try:
            double_blinded = tuple(
                crypto.blind(crypto.decompress(point), secret)
                for point in peer_msg.blinded_points
            )
        except PsiError:
            logger.error("Aborting PSI run: invalid point in peer first-round message")
            self._abort()
            raise

        next_state = DoubleBlindedState(
            self._hand_over(),
            self._blinded_map,
            self._blinded_to_digest,
            self._blinded_order,
            double_blinded,
        )
        self._blinded_map = {}
        self._blinded_to_digest = {}
        self._blinded_order = []
        logger.debug(f"PSI run double-blinded {len(double_blinded)} peer points")
        return next_state, DoubleBlindedPointsMessage(double_blinded)


class DoubleBlindedState(_SingleUse):
    """Phase 2: peer points double-blinded, waiting for the peer's reply."""

    phase = "DoubleBlindedState"

    def __init__(
        self,
        secret: bytearray,
        blinded_map: dict[bytes, bytes],
        blinded_to_digest: dict[bytes, bytes],
        blinded_order: list[bytes],
        double_blinded_from_peer: tuple[bytes, ...],
    ):
        super().__init__(secret)
        self._blinded_map = blinded_map
        self._blinded_to_digest = blinded_to_digest
        self._blinded_order = blinded_order
        self._double_blinded_from_peer = double_blinded_from_peer

    def __len__(self) -> int:
        return len(self._blinded_map)

    def outgoing_message(self) -> DoubleBlindedPointsMessage:
        """The second-round message again, e.g. for a resend. Non-consuming."""
        self._ensure_live()
        return DoubleBlindedPointsMessage(self._double_blinded_from_peer)

    def finalize(
        self, peer_msg: DoubleBlindedPointsMessage
    ) -> tuple[FinalState, IntersectionResult]:
        """Match the peer's reply against the locally double-blinded points.

        Entry ``i`` of ``peer_msg`` is the peer's secret applied to our
        blinded point ``i``. It belongs to a common item exactly when it is
        among the points we computed from the peer's own blinded items.
        Positions past our own item count never match.
        A hit at position ``i`` is mapped back to its digest through our own
        blinded point ``i``.

        Raises:
            StateConsumedError: If this value was already finalized.
            CryptoError: If a peer point is not a valid group element. The
                run is aborted and the secret wiped.
        """
        self._ensure_live()
        if not isinstance(peer_msg, DoubleBlindedPointsMessage):
            raise TypeError(
                f"expected DoubleBlindedPointsMessage, got {type(peer_msg).__name__}"
            )

        try:
            for point in peer_msg.double_blinded_points:
                crypto.decompress(point)
        except PsiError:
            logger.error(
                "Aborting PSI run: invalid point in peer second-round message"
            )
            self._abort()
            raise

        if len(peer_msg) != len(self._blinded_order):
            logger.warning(
                f"Peer reply has {len(peer_msg)} points, "
                f"expected {len(self._blinded_order)}"
            )

        computed = set(self._double_blinded_from_peer)
        intersection: list[bytes] = []
        double_blinded_map: dict[bytes, bytes] = {}
        for index, point in enumerate(peer_msg.double_blinded_points):
            if index >= len(self._blinded_order):
                break
            if point in computed:
                digest = self._blinded_to_digest[self._blinded_order[index]]
                intersection.append(digest)
                double_blinded_map[digest] = point

        secret = self._hand_over()
        crypto.wipe(secret)
        self._blinded_map = {}
        self._blinded_to_digest = {}
        self._blinded_order = []
        self._double_blinded_from_peer = ()

        logger.info(f"PSI run finished: intersection size {len(intersection)}")
        result = IntersectionResult(tuple(intersection), double_blinded_map)
        return FinalState(double_blinded_map), result


class FinalState:
    """Phase 3: terminal value. Holds no secret and offers no transition."""

    __slots__ = ("_double_blinded_map",)

    phase = "FinalState"

    def __init__(self, double_blinded_map: dict[bytes, bytes]):
        self._double_blinded_map = dict(double_blinded_map)

    def __len__(self) -> int:
        return len(self._double_blinded_map)

    @property
    def double_blinded_map(self) -> dict[bytes, bytes]:
        return dict(self._double_blinded_map)
