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

"""
Deployment configuration for a two-party PSI run.

A party file lists both endpoints (index = rank) and transport timeouts:

    nodes:
      - endpoint: 127.0.0.1:8100
      - endpoint: 127.0.0.1:8101
    recv_timeout: 300
    send_timeout: 60
    log_level: INFO

Both parties normally share the same file and pick their side with --rank.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import yaml

LOG_LEVEL_ENV = "ECDH_PSI_LOG_LEVEL"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def normalize_endpoint(ep: str) -> str:
    return ep if ep.startswith(("http://", "https://")) else f"http://{ep}"


def default_log_level() -> str:
    return os.environ.get(LOG_LEVEL_ENV, "INFO").upper()


@dataclass(frozen=True)
class PartyConfig:
    """Validated party file contents."""

    endpoints: tuple[str, str]
    recv_timeout: float | None = 300.0
    send_timeout: float = 60.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if len(self.endpoints) != 2:
            raise ValueError(f"PSI needs exactly 2 nodes, got {len(self.endpoints)}")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log_level '{self.log_level}'")
        if self.recv_timeout is not None and self.recv_timeout <= 0:
            raise ValueError("recv_timeout must be positive")
        if self.send_timeout <= 0:
            raise ValueError("send_timeout must be positive")

    def port_of(self, rank: int) -> int:
        """Port the given rank listens on, taken from its endpoint."""
        parsed = urlparse(self.endpoints[rank])
        if parsed.port is None:
            return 443 if parsed.scheme == "https" else 80
        return parsed.port

    @classmethod
    def from_dict(cls, conf: dict[str, Any]) -> PartyConfig:
        nodes = conf.get("nodes", [])
        if not nodes:
            raise ValueError("Config must contain nodes")
        endpoints = tuple(normalize_endpoint(str(node["endpoint"])) for node in nodes)
        recv_timeout = conf.get("recv_timeout", 300.0)
        return cls(
            endpoints=endpoints,  # type: ignore[arg-type]
            recv_timeout=None if recv_timeout is None else float(recv_timeout),
            send_timeout=float(conf.get("send_timeout", 60.0)),
            log_level=str(conf.get("log_level", default_log_level())).upper(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [{"endpoint": ep} for ep in self.endpoints],
            "recv_timeout": self.recv_timeout,
            "send_timeout": self.send_timeout,
            "log_level": self.log_level,
        }


def load_config(path: str) -> PartyConfig:
    with open(path, encoding="utf-8") as f:
        conf = yaml.safe_load(f) or {}
    if not isinstance(conf, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return PartyConfig.from_dict(conf)


def generate_config(host: str = "127.0.0.1", base_port: int = 8100) -> PartyConfig:
    """Config for two parties on ``host`` using consecutive ports."""
    return PartyConfig(
        endpoints=(f"http://{host}:{base_port}", f"http://{host}:{base_port + 1}"),
        log_level=default_log_level(),
    )


def dump_config(config: PartyConfig) -> str:
    return yaml.safe_dump(config.to_dict(), sort_keys=False)
