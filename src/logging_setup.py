"""Centralized logging configuration for the reconciler.

- ``configure_logging(...)`` attaches a single ``StreamHandler`` to the
  ``recon`` root logger. Entry points (the CLI, ``create_app``) call it once.
- ``get_logger(name)`` returns a logger and makes sure the ``recon`` logger
  has at least a ``NullHandler`` when nothing has been configured.

Library modules never attach handlers of their own.
"""

import logging
import os
import sys
from typing import IO, Optional, Union

_ROOT_LOGGER_NAME = "recon"
_CONFIGURED = False


def _level_from_name(name: str) -> Optional[int]:
    name = name.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: Union[int, str, None]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        numeric = _level_from_name(level)
        if numeric is not None:
            return numeric
    # Env override when no usable explicit level was given
    env_val = os.getenv("RECON_LOG_LEVEL")
    if env_val:
        numeric = _level_from_name(env_val)
        if numeric is not None:
            return numeric
    return logging.INFO


def configure_logging(
    level: Union[int, str, None] = None,
    fmt: Optional[str] = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """
    Configure the ``recon`` logger exactly once.

    Args:
        level: Level as int or name; defaults to RECON_LOG_LEVEL, then INFO
        fmt: Optional format string
        stream: Output stream for the handler
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s"))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger, attaching a NullHandler to ``recon`` if unconfigured."""
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if not _CONFIGURED and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)
