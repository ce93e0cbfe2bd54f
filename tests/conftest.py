import logging
import os
import sys
from datetime import datetime, timezone

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
SRC_DIR = os.path.join(PROJECT_ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from fiftyshades.log import log
from fiftyshades.models import LogEntry


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


def ts(text):
    return datetime.fromisoformat(text.replace("Z", "+00:00")).astimezone(timezone.utc)


def make_entry(entry_id, timestamp, **fields):
    fields.setdefault("message", f"message {entry_id}")
    return LogEntry(timestamp=ts(timestamp), id=entry_id, fields=fields, raw_source=dict(fields))


@pytest.fixture
def clock():
    return FixedClock(ts("2024-03-15T10:00:00Z"))


@pytest.fixture(autouse=True)
def reset_logger():
    """Undo CLI logging setup so caplog sees records in every test."""
    yield
    log.handlers.clear()
    log.propagate = True
    log.setLevel(logging.NOTSET)
