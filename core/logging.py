# core/logging.py
from __future__ import annotations

import logging
import sys

APP_LOGGER = "leave_ledger"

_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the process-wide application logger once.
    Calling again only updates the level.
    """
    root = logging.getLogger(APP_LOGGER)
    root.setLevel((level or "INFO").upper())
    if not any(getattr(h, "_leave_ledger", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._leave_ledger = True
        root.addHandler(handler)
        root.propagate = False
    return root


def get_logger(component: str) -> logging.Logger:
    """Child logger tagged with its component, e.g. leave_ledger.LeaveManagement"""
    return logging.getLogger(APP_LOGGER).getChild(component)
