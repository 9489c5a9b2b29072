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

"""HTTP transport for running the two PSI parties in separate processes.

This module contains:
- HttpCommunicator: send via httpx PUT, receive into a local mailbox
- create_party_app: FastAPI app that feeds the mailbox
- serve_in_background: run the app with uvicorn on a daemon thread

Usage:
    comm = HttpCommunicator(rank=0, endpoints=["http://a:8100", "http://b:8101"])
    server, thread = serve_in_background(create_party_app(comm), "0.0.0.0", 8100)
    comm.wait_ready(1)
    result = run_psi(items, comm, peer=1)

Security:
    Payloads are encoded with serde (JSON + base64), which cannot execute
    code on decode. The channel itself is plain HTTP; put it behind TLS
    (e.g. https endpoints or a terminating proxy) on untrusted networks.
"""

from __future__ import annotations

import concurrent.futures
import threading
import time
from dataclasses import dataclass
from typing import Any

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ecdh_psi import serde
from ecdh_psi.logging_config import get_logger
from ecdh_psi.runtime.errors import (
    PeerUnavailableError,
    RecvTimeoutError,
    SendTimeoutError,
)

logger = get_logger(__name__)


@dataclass
class CommConfig:
    """Configuration for HttpCommunicator.

    Attributes:
        send_timeout: Seconds to wait for one send to be acknowledged.
        recv_timeout: Seconds to wait for a message. None waits indefinitely.
        http_timeout: Timeout for individual HTTP requests (None = no timeout).
        ready_timeout: Seconds wait_ready() polls the peer's health endpoint.
        ready_interval: Delay between two health polls.
        max_payload_size: Largest inflated message accepted from the peer.
    """

    send_timeout: float = 60.0
    recv_timeout: float | None = None
    http_timeout: float | None = 30.0
    ready_timeout: float = 30.0
    ready_interval: float = 0.2
    max_payload_size: int = serde.MAX_PAYLOAD_SIZE


class HttpCommunicator:
    """Communicator using HTTP requests between the two parties.

    Attributes:
        rank: This party's rank (0 or 1)
        endpoints: HTTP endpoints of both parties, indexed by rank
        config: Communication configuration
    """

    def __init__(
        self,
        rank: int,
        endpoints: list[str],
        config: CommConfig | None = None,
        client: httpx.Client | None = None,
    ):
        if len(endpoints) != 2:
            raise ValueError(f"expected 2 endpoints, got {len(endpoints)}")
        if rank not in (0, 1):
            raise ValueError(f"rank must be 0 or 1, got {rank}")
        self.rank = rank
        self.world_size = len(endpoints)
        self.endpoints = [ep.rstrip("/") for ep in endpoints]
        self.config = config or CommConfig()
        self._mailbox: dict[tuple[int, str], Any] = {}
        self._cond = threading.Condition()
        self._send_executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"psi_send_{rank}"
        )
        self.client = client or httpx.Client(timeout=self.config.http_timeout)

    def send(self, to: int, key: str, data: Any, *, timeout: float | None = None) -> None:
        """Send data to the peer and wait for the acknowledgement.

        Raises:
            SendTimeoutError: If the send is not acknowledged in time.
            RuntimeError: If the peer rejects the message or is unreachable.
        """
        effective_timeout = (
            timeout if timeout is not None else self.config.send_timeout
        )
        future = self._send_executor.submit(self._do_send, to, key, data)
        try:
            future.result(timeout=effective_timeout)
        except concurrent.futures.TimeoutError as e:
            future.cancel()
            raise SendTimeoutError(to, key, effective_timeout) from e

    def _do_send(self, to: int, key: str, data: Any) -> None:
        url = f"{self.endpoints[to]}/comm/{key}"
        payload = serde.dumps_b64(data)
        logger.debug(
            f"Rank {self.rank} sending to {to} key={key}, bytes={len(payload)}"
        )
        try:
            resp = self.client.put(url, json={"data": payload, "from_rank": self.rank})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Rank {self.rank} failed to send to {to}: {e}")
            raise RuntimeError(f"Failed to send to {to} ({url}): {e}") from e

    def recv(self, frm: int, key: str, *, timeout: float | None = None) -> Any:
        """Receive data from the peer (blocking).

        Raises:
            RecvTimeoutError: If timeout is reached before the message arrives.
        """
        logger.debug(f"Rank {self.rank} waiting recv from {frm} key={key}")
        mailbox_key = (frm, key)
        effective_timeout = (
            timeout if timeout is not None else self.config.recv_timeout
        )

        t0 = time.monotonic()
        with self._cond:
            while mailbox_key not in self._mailbox:
                if effective_timeout is not None:
                    remaining = effective_timeout - (time.monotonic() - t0)
                    if remaining <= 0:
                        raise RecvTimeoutError(frm, key, effective_timeout)
                    wait_time = min(1.0, remaining)
                else:
                    wait_time = 1.0
                self._cond.wait(timeout=wait_time)
            return self._mailbox.pop(mailbox_key)

    def on_receive(self, from_rank: int, key: str, data: Any) -> None:
        """Called when data is received from the HTTP endpoint."""
        mailbox_key = (from_rank, key)
        with self._cond:
            if mailbox_key in self._mailbox:
                raise RuntimeError(f"Mailbox overflow: key {mailbox_key} already exists")
            self._mailbox[mailbox_key] = data
            self._cond.notify_all()

    def wait_ready(self, to: int, *, timeout: float | None = None) -> None:
        """Poll the peer's /health endpoint until it answers.

        Raises:
            PeerUnavailableError: If the peer does not answer in time.
        """
        effective_timeout = (
            timeout if timeout is not None else self.config.ready_timeout
        )
        url = f"{self.endpoints[to]}/health"
        deadline = time.monotonic() + effective_timeout
        while True:
            try:
                resp = self.client.get(url)
                if resp.status_code == 200:
                    logger.info(f"Rank {self.rank}: peer {to} is ready")
                    return
            except httpx.HTTPError as e:
                logger.debug(f"Rank {self.rank}: peer {to} not ready yet: {e}")
            if time.monotonic() >= deadline:
                raise PeerUnavailableError(self.endpoints[to], effective_timeout)
            time.sleep(self.config.ready_interval)

    def shutdown(self) -> None:
        self._send_executor.shutdown(wait=True)
        self.client.close()


class CommRequest(BaseModel):
    """Request model for /comm endpoint."""

    data: str
    from_rank: int


def create_party_app(comm: HttpCommunicator) -> FastAPI:
    """Create the FastAPI app through which the peer delivers messages.

    Args:
        comm: The communicator whose mailbox receives the messages.

    Returns:
        FastAPI application instance
    """
    app = FastAPI(title=f"PSI Party {comm.rank}")

    @app.put("/comm/{key:path}")
    async def receive_comm(key: str, req: CommRequest) -> dict[str, str]:
        """Receive a protocol message from the peer."""
        logger.debug(f"Party {comm.rank} received comm key={key} from {req.from_rank}")
        if req.from_rank == comm.rank or not 0 <= req.from_rank < comm.world_size:
            raise HTTPException(status_code=400, detail="invalid from_rank")
        try:
            data = serde.loads_b64(req.data, max_size=comm.config.max_payload_size)
        except Exception as e:
            logger.error(f"Party {comm.rank} could not decode key={key}: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e
        try:
            comm.on_receive(req.from_rank, key, data)
        except RuntimeError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        return {"status": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "rank": str(comm.rank)}

    return app


def serve_in_background(
    app: FastAPI, host: str, port: int, *, startup_timeout: float = 10.0
) -> tuple[uvicorn.Server, threading.Thread]:
    """Run ``app`` with uvicorn on a daemon thread and wait until it listens.

    Stop it with ``server.should_exit = True`` followed by ``thread.join()``.
    """
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(
        target=server.run, name=f"psi_http_{port}", daemon=True
    )
    thread.start()

    deadline = time.monotonic() + startup_timeout
    while not server.started:
        if not thread.is_alive() or time.monotonic() >= deadline:
            server.should_exit = True
            raise RuntimeError(f"HTTP server on {host}:{port} failed to start")
        time.sleep(0.05)
    logger.info(f"Serving PSI endpoint on {host}:{port}")
    return server, thread
