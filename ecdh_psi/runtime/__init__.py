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

"""Transports and drivers around the protocol core.

The HTTP transport lives in ``ecdh_psi.runtime.http`` and is imported
explicitly, so the core and in-memory runs do not load the web stack.
"""

from ecdh_psi.runtime.errors import (
    PeerUnavailableError,
    RecvTimeoutError,
    SendTimeoutError,
)
from ecdh_psi.runtime.mem import LocalMesh, ThreadCommunicator
from ecdh_psi.runtime.session import run_local, run_psi

__all__ = [
    "LocalMesh",
    "PeerUnavailableError",
    "RecvTimeoutError",
    "SendTimeoutError",
    "ThreadCommunicator",
    "run_local",
    "run_psi",
]
