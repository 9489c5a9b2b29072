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

"""Transport errors. The protocol core has no notion of time; these belong
to the communicators that move its messages.
"""

from __future__ import annotations


class RecvTimeoutError(TimeoutError):
    """Raised when recv() times out waiting for a message."""

    def __init__(self, frm: int, key: str, timeout: float):
        self.frm = frm
        self.key = key
        self.timeout = timeout
        super().__init__(
            f"Timeout after {timeout}s waiting for message from rank {frm} key={key}"
        )


class SendTimeoutError(TimeoutError):
    """Raised when send() does not complete in time."""

    def __init__(self, to: int, key: str, timeout: float):
        self.to = to
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timeout after {timeout}s sending to rank {to} key={key}")


class PeerUnavailableError(ConnectionError):
    """Raised when the peer endpoint never reports healthy."""

    def __init__(self, endpoint: str, timeout: float):
        self.endpoint = endpoint
        self.timeout = timeout
        super().__init__(f"Peer at {endpoint} not reachable within {timeout}s")
