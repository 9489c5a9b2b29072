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

"""In-memory transport (LocalMesh, ThreadCommunicator)."""

from __future__ import annotations

import concurrent.futures
import threading
import time
from typing import Any

from ecdh_psi.runtime.errors import RecvTimeoutError


class ThreadCommunicator:
    """Thread-based communicator for in-process message hand-off.

    Args:
        rank: This communicator's rank.
        world_size: Total number of parties.
        use_serde: If True, round-trip data through serde on send, so tests
            exercise the same encoding a network transport would use.
    """

    def __init__(self, rank: int, world_size: int = 2, *, use_serde: bool = False):
        self.rank = rank
        self.world_size = world_size
        self.use_serde = use_serde
        self.peers: list[ThreadCommunicator] = []
        self._mailbox: dict[tuple[int, str], Any] = {}
        self._cond = threading.Condition()
        self._shutdown = False

    def set_peers(self, peers: list[ThreadCommunicator]) -> None:
        assert len(peers) == self.world_size
        self.peers = peers

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()

    def send(self, to: int, key: str, data: Any) -> None:
        assert 0 <= to < self.world_size
        if self.use_serde:
            from ecdh_psi import serde

            data = serde.loads(serde.dumps(data))
        self.peers[to]._on_receive(self.rank, key, data)

    def recv(self, frm: int, key: str, *, timeout: float | None = None) -> Any:
        mailbox_key = (frm, key)
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while mailbox_key not in self._mailbox and not self._shutdown:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise RecvTimeoutError(frm, key, timeout)  # type: ignore[arg-type]
                self._cond.wait(timeout=remaining)
            if mailbox_key not in self._mailbox:
                raise RuntimeError("Communicator shut down")
            return self._mailbox.pop(mailbox_key)

    def _on_receive(self, frm: int, key: str, data: Any) -> None:
        mailbox_key = (frm, key)
        with self._cond:
            if mailbox_key in self._mailbox:
                raise RuntimeError(
                    f"Mailbox overflow for key {key} at rank {self.rank}"
                )
            self._mailbox[mailbox_key] = data
            self._cond.notify_all()


class LocalMesh:
    """Two (or more) ThreadCommunicators wired together, plus an executor
    to run each party's side in its own thread.
    """

    def __init__(self, world_size: int = 2, *, use_serde: bool = False):
        self.world_size = world_size
        self.use_serde = use_serde
        self.comms = [
            ThreadCommunicator(i, world_size, use_serde=use_serde)
            for i in range(world_size)
        ]
        for comm in self.comms:
            comm.set_peers(self.comms)
        self.executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=world_size, thread_name_prefix="psi_party"
        )

    def shutdown(self, wait: bool = True) -> None:
        for comm in self.comms:
            comm.shutdown()
        self.executor.shutdown(wait=wait)
