"""Logging for the ``recurring_ledger`` package.

The engine runs unattended (a scheduler fires ``refresh``) as often as it runs
interactively, so output is one line per event on a single handler:

- ``configure_logging(level=None, stream=sys.stderr)``: called once by the CLI
  root callback (or whatever host drives the refresh). The level comes from
  ``--log-level``, then ``RECURRING_LEDGER_LOG_LEVEL``, then ``INFO``.
- ``get_logger(name)``: used by ``reconcile``, ``repair`` and ``generator``.
  Until a host configures output the package logger only carries a
  ``NullHandler``, so embedding the engine in another process stays silent.

Event lines are ``<operation>:<phase> key=value ...`` (for example
``refresh:template_failed template_id=... error=StoreError: ...``).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "recurring_ledger"
_LEVEL_ENV = "RECURRING_LEDGER_LOG_LEVEL"
_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv(_LEVEL_ENV)
        if not level:
            return logging.INFO
    # Numeric strings or level names; anything unrecognized means INFO
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(level: int | str | None = None, *, stream: IO[str] = sys.stderr) -> None:
    """Attach the package's single ``StreamHandler``; later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    # Remove any existing NullHandlers to avoid swallowing logs after config.
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    # Avoid double emission via the root logger.
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
