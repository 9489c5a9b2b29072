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
Logging configuration for ecdh_psi.

When ecdh_psi is used as a library, logging is disabled by default
(NullHandler), allowing applications to configure logging as needed.

Protocol modules only ever log phase names and counts. Digests, points and
secret scalars are never passed to a logger.

Example usage:
    >>> import ecdh_psi
    >>> ecdh_psi.setup_logging(level="INFO")
    >>> ecdh_psi.setup_logging(level="DEBUG", filename="psi.log")
"""

import logging
import sys
from typing import Any, Literal

# Root logger for all ecdh_psi components
PSI_LOGGER_NAME = "ecdh_psi"

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO",
    format: str | None = None,
    date_format: str | None = None,
    filename: str | None = None,
    stream: Any = None,  # type: ignore[type-arg]
    force: bool = False,
    propagate: bool = False,
) -> None:
    """
    Configure logging for ecdh_psi.

    By default the package logger carries a NullHandler so nothing is printed
    when the package is embedded in another application. Call this function to
    enable output.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Default is INFO.
        format: Custom log format string. If None, uses default format.
        date_format: Custom date format string. If None, uses default format.
        filename: If provided, log to this file in addition to stream output.
        stream: Stream to log to. Default is sys.stderr. Set to False to
                disable stream output (only use file or propagation).
        force: If True, remove existing handlers before adding new ones.
        propagate: If True, allow logs to propagate to the root logger so the
                   application's own logging configuration applies.

    Example:
        >>> import logging, ecdh_psi
        >>> logging.basicConfig(level=logging.INFO, filename="app.log")
        >>> ecdh_psi.setup_logging(level="INFO", propagate=True)
    """
    logger = logging.getLogger(PSI_LOGGER_NAME)

    log_level = getattr(logging, level.upper())
    logger.setLevel(log_level)

    # A lone NullHandler only confuses propagation setups
    if propagate and not force:
        if len(logger.handlers) == 1 and isinstance(
            logger.handlers[0], logging.NullHandler
        ):
            force = True

    if force:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

    logger.propagate = propagate

    if propagate and not filename and stream is None:
        return

    log_format = format or DEFAULT_FORMAT
    log_date_format = date_format or DEFAULT_DATE_FORMAT
    formatter = logging.Formatter(log_format, datefmt=log_date_format)

    if stream is not False:
        if stream is None:
            stream = sys.stderr
        stream_handler = logging.StreamHandler(stream)
        stream_handler.setLevel(log_level)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    if filename:
        file_handler = logging.FileHandler(filename)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def disable_logging() -> None:
    """
    Disable all ecdh_psi logging by installing a NullHandler.

    Example:
        >>> import ecdh_psi
        >>> ecdh_psi.disable_logging()
    """
    logger = logging.getLogger(PSI_LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for an ecdh_psi module.

    The name is placed under the ``ecdh_psi`` hierarchy if it is not there
    already, so handlers installed by setup_logging() apply to it.

    Args:
        name: Module name, typically __name__ from the calling module.

    Returns:
        A logger instance for the specified module.
    """
    if name != PSI_LOGGER_NAME and not name.startswith(PSI_LOGGER_NAME + "."):
        name = f"{PSI_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


# Library mode: silent until the application opts in
_root_logger = logging.getLogger(PSI_LOGGER_NAME)
if not _root_logger.handlers:
    _root_logger.addHandler(logging.NullHandler())
    _root_logger.propagate = False
