import logging
from datetime import datetime

import pytest
import pytz

from src.application_tracker.email_client import MailboxError, Message
from src.application_tracker.models import HEADERS
from src.application_tracker.settings import ScanConfig
from src.application_tracker.status import row_color


def make_message(subject, body="", sender="Acme Careers <careers@acme.com>", when=None, msg_id="m"):
    return Message(
        id=msg_id,
        subject=subject,
        body=body,
        sender=sender,
        date=when or datetime(2026, 10, 1, 14, 30, tzinfo=pytz.utc),
    )


class FakeThread:
    def __init__(self, thread_id, messages, broken=False):
        self.id = thread_id
        self.messages = list(messages)
        self.broken = broken

    def get_messages(self):
        if self.broken:
            raise MailboxError(f"thread {self.id} was deleted")
        return list(self.messages)


class FakeMailbox:
    """Threads keyed by id; `search` returns whatever was marked searchable."""

    def __init__(self):
        self.threads = {}
        self.searchable = []
        self.queries = []
        self.fetched = []

    def add(self, thread_id, *messages, searchable=True, broken=False):
        self.threads[thread_id] = FakeThread(thread_id, messages, broken=broken)
        if searchable:
            self.searchable.append(thread_id)
        return self.threads[thread_id]

    def search(self, query):
        self.queries.append(query)
        return [self.threads[t] for t in self.searchable]

    def get_thread(self, thread_id):
        self.fetched.append(thread_id)
        if thread_id not in self.threads:
            return FakeThread(thread_id, [], broken=True)
        return self.threads[thread_id]


class FakeStore:
    """In-memory sheet; `rows[0]` is the header, sheet row N is rows[N - 1]."""

    def __init__(self, rows=()):
        self.rows = [list(HEADERS)] + [list(r) for r in rows]
        self.colors = {}

    def read_rows(self):
        return [(i, list(r)) for i, r in enumerate(self.rows[1:], start=2)]

    def append(self, record):
        self.rows.append(record.to_row())
        return len(self.rows)

    def update_status(self, row, record):
        values = record.to_row()
        self.rows[row - 1][3] = values[3]
        self.rows[row - 1][5] = values[5]

    def color_row(self, row, status):
        self.colors[row] = row_color(status)


class Clock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def config():
    return ScanConfig(lookback_days=30, timezone="UTC")


@pytest.fixture
def clock():
    return Clock(datetime(2026, 10, 18, 12, 0, tzinfo=pytz.utc))


@pytest.fixture
def root_logging():
    """Put the root logger's handlers and level back after the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
