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

"""Tests for ecdh_psi logging functionality."""

import base64
import io
import logging
import os
import tempfile

import pytest

import ecdh_psi
from ecdh_psi import crypto
from ecdh_psi.errors import CryptoError
from ecdh_psi.logging_config import get_logger
from ecdh_psi.messages import BlindedPointsMessage
from ecdh_psi.runtime import run_local


def test_logging_disabled_by_default():
    """Library mode: the package logger carries a NullHandler."""
    logger = logging.getLogger("ecdh_psi")
    assert len(logger.handlers) > 0
    assert any(isinstance(h, logging.NullHandler) for h in logger.handlers)


def test_setup_logging_basic():
    log_stream = io.StringIO()
    ecdh_psi.setup_logging(level="INFO", stream=log_stream, force=True)

    logger = logging.getLogger("ecdh_psi.test")
    logger.info("Test message")

    log_output = log_stream.getvalue()
    assert "Test message" in log_output
    assert "INFO" in log_output

    ecdh_psi.disable_logging()


def test_setup_logging_levels():
    """Only records at or above the configured level are emitted."""
    log_stream = io.StringIO()
    ecdh_psi.setup_logging(level="WARNING", stream=log_stream, force=True)

    logger = logging.getLogger("ecdh_psi.test")
    logger.debug("Debug message")
    logger.info("Info message")
    logger.warning("Warning message")
    logger.error("Error message")

    log_output = log_stream.getvalue()
    assert "Debug message" not in log_output
    assert "Info message" not in log_output
    assert "Warning message" in log_output
    assert "Error message" in log_output

    ecdh_psi.disable_logging()


def test_disable_logging():
    log_stream = io.StringIO()
    ecdh_psi.setup_logging(level="DEBUG", stream=log_stream, force=True)
    ecdh_psi.disable_logging()

    logging.getLogger("ecdh_psi.test").error("This should not appear")
    assert "This should not appear" not in log_stream.getvalue()


def test_get_logger_places_name_under_package():
    assert get_logger("ecdh_psi.protocol").name == "ecdh_psi.protocol"
    assert get_logger("my_driver").name == "ecdh_psi.my_driver"
    assert get_logger("ecdh_psi").name == "ecdh_psi"


def _renderings(value: bytes) -> list[str]:
    """Forms a byte string could take when interpolated into a log message."""
    return [value.hex(), base64.b64encode(value).decode("ascii"), repr(value)]


@pytest.fixture
def debug_stream():
    stream = io.StringIO()
    ecdh_psi.setup_logging(level="DEBUG", stream=stream, force=True)
    yield stream
    ecdh_psi.disable_logging()


def test_exchange_logs_no_items_digests_or_points(debug_stream):
    """Even at DEBUG, a full run logs counts and phase names only."""
    alice_items = [b"secret-apple", b"secret-banana", b"secret-kiwi"]
    bob_items = [b"secret-banana", b"secret-cherry"]

    alice = ecdh_psi.begin(alice_items)
    bob = ecdh_psi.begin(bob_items)
    alice_msg, bob_msg = alice.outgoing_message(), bob.outgoing_message()
    alice_next, alice_reply = alice.advance(bob_msg)
    bob_next, bob_reply = bob.advance(alice_msg)
    _, alice_result = alice_next.finalize(bob_reply)
    _, bob_result = bob_next.finalize(alice_reply)

    sensitive = list(alice_items + bob_items)
    sensitive += crypto.hash_items(alice_items + bob_items)
    sensitive += alice_msg.blinded_points + bob_msg.blinded_points
    sensitive += alice_reply.double_blinded_points + bob_reply.double_blinded_points
    sensitive += list(alice_result.double_blinded_map.values())

    log_output = debug_stream.getvalue()
    assert "intersection size 1" in log_output
    assert "ecdh_psi.protocol" in log_output
    for value in sensitive:
        for text in _renderings(value):
            assert text not in log_output
    assert "secret-" not in log_output


def test_driver_run_logs_no_points(debug_stream):
    items_a = [b"alpha", b"shared"]
    items_b = [b"shared", b"omega"]
    result_a, _ = run_local(items_a, items_b)

    log_output = debug_stream.getvalue()
    assert "blinded points" in log_output
    for value in crypto.hash_items(items_a + items_b):
        for text in _renderings(value):
            assert text not in log_output
    for value in result_a.double_blinded_map.values():
        for text in _renderings(value):
            assert text not in log_output


def test_aborted_run_logs_no_peer_point(debug_stream):
    bad_point = b"\xff" * 32
    alice = ecdh_psi.begin([b"a"])
    with pytest.raises(CryptoError):
        alice.advance(BlindedPointsMessage((bad_point,)))

    log_output = debug_stream.getvalue()
    assert "Aborting PSI run" in log_output
    for text in _renderings(bad_point):
        assert text not in log_output



def test_propagate_to_root_logger():
    """propagate=True hands records to the application's root configuration."""
    with tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".log") as f:
        temp_log = f.name

    try:
        logging.basicConfig(
            level=logging.INFO,
            filename=temp_log,
            format="%(levelname)s:%(name)s:%(message)s",
            force=True,
        )
        ecdh_psi.setup_logging(level="INFO", propagate=True, force=True)

        logging.getLogger("test_app").info("App message")
        logging.getLogger("ecdh_psi.test").info("PSI message")

        with open(temp_log) as f:
            log_content = f.read()
        assert "App message" in log_content
        assert "PSI message" in log_content
    finally:
        ecdh_psi.disable_logging()
        logging.basicConfig(force=True)
        if os.path.exists(temp_log):
            os.remove(temp_log)


def test_stream_false_only_file():
    with tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".log") as f:
        temp_log = f.name

    try:
        ecdh_psi.setup_logging(
            level="INFO", filename=temp_log, stream=False, force=True
        )
        logger = logging.getLogger("ecdh_psi")
        logging.getLogger("ecdh_psi.test").info("File only message")
        for handler in logger.handlers:
            handler.flush()

        with open(temp_log) as f:
            assert "File only message" in f.read()
    finally:
        ecdh_psi.disable_logging()
        if os.path.exists(temp_log):
            os.remove(temp_log)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
