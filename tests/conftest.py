"""Shared fixtures.

Every test gets a fresh temp-file SQLite DatabaseManager, a FixedClock
pinned to 2024-01-28 10:00 Asia/Tashkent and a RecordingNotifier that
delivers synchronously so assertions can inspect sent texts.
"""
import os
import shutil
import tempfile
from concurrent.futures import Future
from datetime import datetime

import pytest

from billing.archive import ArchiveManager
from billing.clock import FixedClock
from billing.errors import NotificationError
from billing.lifecycle import OrderLifecycleManager
from billing.messages import MessageFormatter
from database import DatabaseManager
from interface.base import Notifier

PRICE_PER_HOUR = 15000
T0 = datetime(2024, 1, 28, 10, 0, 0)


class RecordingNotifier(Notifier):
    """Notifier that records texts instead of delivering them."""

    def __init__(self, fail: bool = False):
        super().__init__("recording", max_workers=1)
        self.sent = []
        self.fail = fail

    def _deliver(self, text):
        if self.fail:
            raise NotificationError("channel down")
        self.sent.append(text)
        return {"ok": True}

    def dispatch(self, text):
        future = Future()
        future.set_result(self.send(text))
        return future


@pytest.fixture
def temp_db():
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    temp_dir = tempfile.mkdtemp(prefix="db-tests-")
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(database_url=f"sqlite:///{db_path}")
    manager.create_tables()

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def notifier():
    n = RecordingNotifier()
    yield n
    n.close()


@pytest.fixture
def formatter(clock):
    return MessageFormatter(clock, "so'm")


@pytest.fixture
def lifecycle(temp_db, notifier, clock, formatter):
    return OrderLifecycleManager(
        temp_db, notifier, clock,
        price_per_hour=PRICE_PER_HOUR,
        default_station="PS1",
        formatter=formatter,
    )


@pytest.fixture
def archive_manager(temp_db, notifier, clock, formatter):
    return ArchiveManager(
        temp_db, notifier, clock,
        price_per_hour=PRICE_PER_HOUR,
        formatter=formatter,
    )
