"""
===============================================================================
 Module: log_utils.py
 Project: SIP Rebalancer
 Location: ProjectRoot/utils/
 Description:
   Shared logging and audit helpers.  Every module obtains its logger via
   ``get_logger`` so that console and file handlers are attached exactly
   once per process, and records audit events through ``audit``.

 Environment:
   DEBUG    "true" switches all project loggers to DEBUG level.
   LOG_DIR  Directory for the rotating-per-run log file (default "logs").
   AUDIT    "false" disables the in-memory audit trail.
===============================================================================
"""

from __future__ import annotations

import datetime as _dt
import logging
import os
from typing import List, Tuple

__all__ = [
    "get_logger",
    "audit",
    "get_audit_log",
    "clear_audit_log",
]

_FORMAT = "[%(asctime)s] %(levelname)s %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Parent logger for the whole project; module loggers are its children so
# handlers are attached in a single place.
_ROOT_NAME = "sip_rebalancer"

# Global audit log capturing events as tuples of (timestamp, message).
_audit_log: List[Tuple[str, str]] = []


def _debug_enabled() -> bool:
    return os.getenv("DEBUG", "false").lower() == "true"


def _setup_file_logging(root: logging.Logger, formatter: logging.Formatter) -> None:
    log_dir = os.getenv("LOG_DIR", "logs")
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError:
        # If directory creation fails, skip file logging
        return
    log_file = os.path.join(log_dir, "app.log")
    try:
        if os.path.exists(log_file):
            ts = _dt.datetime.now().strftime("%Y%m%d_%H%M%S")
            os.rename(log_file, os.path.join(log_dir, f"app_{ts}.log"))
    except OSError:
        # Archiving is best effort; keep appending to the existing file
        pass
    try:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    except OSError:
        return
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT_NAME)
    if root.handlers:
        return root
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)
    _setup_file_logging(root, formatter)
    root.setLevel(logging.DEBUG if _debug_enabled() else logging.INFO)
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a project logger for ``name``.

    The first call configures the shared ``sip_rebalancer`` parent logger
    with a console handler and a per-run log file.  Later calls reuse that
    configuration, so reloading a module in an interactive session does not
    duplicate log lines.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A child logger of the project logger.
    """
    root = _configure_root()
    # Runners may flip DEBUG after import (e.g. ``--debug``)
    root.setLevel(logging.DEBUG if _debug_enabled() else logging.INFO)
    return root.getChild(name)


_logger = get_logger(__name__)


def audit(message: str) -> None:
    """Record an audit event with the current timestamp.

    The message is appended to the in-memory audit log and forwarded to the
    logger at INFO level.  Auditing can be disabled by setting the
    environment variable ``AUDIT`` to ``false``.

    Args:
        message: Human-readable description of the event to record.
    """
    if os.getenv("AUDIT", "true").lower() != "true":
        return
    timestamp = _dt.datetime.now().isoformat(timespec="seconds")
    _audit_log.append((timestamp, message))
    _logger.info(f"AUDIT: {message}")


def get_audit_log() -> List[Tuple[str, str]]:
    """Return a copy of the audit log as (timestamp, message) tuples."""
    return list(_audit_log)


def clear_audit_log() -> None:
    _audit_log.clear()
