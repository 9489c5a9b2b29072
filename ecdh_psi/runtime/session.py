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

"""Drive one party through a full PSI run over a communicator."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from ecdh_psi.crypto import EntropySource
from ecdh_psi.errors import InvalidBlindedPointsError
from ecdh_psi.logging_config import get_logger
from ecdh_psi.messages import (
    BlindedPointsMessage,
    DoubleBlindedPointsMessage,
    IntersectionResult,
)
from ecdh_psi.protocol import begin
from ecdh_psi.runtime.mem import LocalMesh

logger = get_logger(__name__)

KEY_BLINDED = "psi/blinded"
KEY_DOUBLE_BLINDED = "psi/double_blinded"


class Communicator(Protocol):
    """What run_psi needs from a transport."""

    rank: int

    def send(self, to: int, key: str, data: Any) -> None: ...

    def recv(self, frm: int, key: str, *, timeout: float | None = None) -> Any: ...


def _expect(data: Any, cls: type, key: str) -> Any:
    if not isinstance(data, cls):
        raise InvalidBlindedPointsError(
            f"expected {cls.__name__} under {key}, got {type(data).__name__}"
        )
    return data


def run_psi(
    items: Iterable[bytes],
    comm: Communicator,
    peer: int,
    *,
    entropy: EntropySource | None = None,
    timeout: float | None = None,
) -> IntersectionResult:
    """Run the full protocol for one party.

    Both parties call this with their own items; the call returns once the
    intersection is known on this side.

    Args:
        items: This party's private set.
        comm: Transport to the peer.
        peer: The peer's rank on ``comm``.
        entropy: Optional entropy source for the secret scalar.
        timeout: Per-message receive timeout; None waits indefinitely.

    Raises:
        PsiError: On empty input or a malformed peer message.
        RecvTimeoutError: If the peer stalls.
    """
    prepared = begin(items, entropy=entropy)
    logger.info(f"Rank {comm.rank}: sending {len(prepared)} blinded points")
    comm.send(peer, KEY_BLINDED, prepared.outgoing_message())

    peer_blinded = _expect(
        comm.recv(peer, KEY_BLINDED, timeout=timeout), BlindedPointsMessage, KEY_BLINDED
    )
    logger.info(f"Rank {comm.rank}: received {len(peer_blinded)} blinded points")
    double_blinded, reply = prepared.advance(peer_blinded)
    comm.send(peer, KEY_DOUBLE_BLINDED, reply)

    peer_reply = _expect(
        comm.recv(peer, KEY_DOUBLE_BLINDED, timeout=timeout),
        DoubleBlindedPointsMessage,
        KEY_DOUBLE_BLINDED,
    )
    _, result = double_blinded.finalize(peer_reply)
    return result


def run_local(
    items_a: Sequence[bytes],
    items_b: Sequence[bytes],
    *,
    use_serde: bool = True,
    timeout: float | None = 60.0,
) -> tuple[IntersectionResult, IntersectionResult]:
    """Run both parties in this process, each on its own thread.

    Returns:
        The results seen by party 0 (``items_a``) and party 1 (``items_b``).
    """
    mesh = LocalMesh(2, use_serde=use_serde)
    try:
        fut_a = mesh.executor.submit(
            run_psi, items_a, mesh.comms[0], 1, timeout=timeout
        )
        fut_b = mesh.executor.submit(
            run_psi, items_b, mesh.comms[1], 0, timeout=timeout
        )
        return fut_a.result(), fut_b.result()
    finally:
        mesh.shutdown()
