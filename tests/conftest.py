import re
from collections import defaultdict
from datetime import date, datetime
from typing import Optional
from unittest.mock import Mock
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from deskflow.config import Settings
from deskflow.database import build_engine, init_db
from deskflow.engine import ConversationEngine
from deskflow.services.interfaces import (
    BusinessHoursOracle,
    Directory,
    DirectoryEntry,
    FlowServices,
    InboundMessage,
    RecordStore,
    SpreadsheetProvider,
    Transport,
)
from deskflow.services.router import WorkflowRouter
from deskflow.services.session_store import SessionStore

FIXED_TODAY = date(2026, 10, 19)  # Monday
SENDER = "5215550001111"


class FakeTransport(Transport):
    def __init__(self, roles: Optional[dict] = None, deliver: bool = True):
        self.roles = roles or {}
        self.deliver = deliver
        self.replies = []
        self.sent = []

    def reply(self, message, content):
        self.replies.append((message.sender, content))

    def send(self, recipient, content):
        if not self.deliver:
            return False
        self.sent.append((recipient, content))
        return True

    def get_sender_role(self, sender):
        return self.roles.get(sender)


class FakeStore(RecordStore):
    def __init__(self):
        self.records = defaultdict(list)
        self.create_error = None

    def add(self, domain: str, **fields) -> dict:
        record = {"id": str(uuid4()), **fields}
        self.records[domain].append(record)
        return record

    def create(self, domain, payload):
        if self.create_error is not None:
            raise self.create_error
        record = {"id": str(uuid4()), **payload}
        if domain == "ticket":
            record["ticket_number"] = f"TKT-{len(self.records['ticket']) + 1:06d}"
            record.setdefault("comments", [])
        self.records[domain].append(record)
        return dict(record)

    def find(self, domain, query):
        found = []
        for record in self.records[domain]:
            matches = True
            for key, value in query.items():
                if key == "name_contains":
                    matches = str(value).lower() in record["name"].lower()
                else:
                    matches = record.get(key) == value
                if not matches:
                    break
            if matches:
                found.append(dict(record))
        return found

    def update(self, domain, record_id, patch):
        for record in self.records[domain]:
            if record["id"] == record_id:
                record.update(patch)
                return dict(record)
        return None


class FakeDirectory(Directory):
    def __init__(self):
        self.entries = {}

    @staticmethod
    def _key(sender: str) -> str:
        return re.sub(r"\D", "", sender or "")

    def add(self, phone: str, **fields) -> DirectoryEntry:
        entry = DirectoryEntry(phone=self._key(phone), **fields)
        self.entries[entry.phone] = entry
        return entry

    def lookup_by_sender(self, sender):
        return self.entries.get(self._key(sender))

    def is_paused(self, sender):
        entry = self.lookup_by_sender(sender)
        return bool(entry and entry.bot_paused)

    def set_paused(self, sender, paused):
        entry = self.lookup_by_sender(sender) or self.add(sender)
        entry.bot_paused = paused

    def list_entries(self):
        return list(self.entries.values())


class FakeSheets(SpreadsheetProvider):
    def __init__(self, rows=None):
        self.rows = rows or []
        self.writes = []
        self.appends = []

    def write_range(self, cell_range, values):
        self.writes.append((cell_range, values))
        return sum(len(row) for row in values)

    def append_row(self, cell_range, row):
        self.appends.append((cell_range, row))
        return len(row)

    def read_range(self, cell_range):
        return self.rows


class FixedHours(BusinessHoursOracle):
    def __init__(self, open_now: bool):
        self.open_now = open_now

    def is_open_now(self):
        return self.open_now

    def next_open_time(self):
        return datetime(2026, 10, 20, 9, 0)

    def describe_next_open(self):
        return "martes 20/10 a las 09:00"


def make_message(text: str, sender: str = SENDER, **kwargs) -> InboundMessage:
    kwargs.setdefault("message_id", uuid4().hex)
    return InboundMessage(sender=sender, text=text, **kwargs)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def sheets():
    return FakeSheets()


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def services(transport, store, directory, sheets):
    return FlowServices(
        transport=transport,
        store=store,
        directory=directory,
        hours=FixedHours(open_now=True),
        sheets=sheets,
    )


@pytest.fixture
def router(sessions, services):
    return WorkflowRouter(sessions, services, today=lambda: FIXED_TODAY)


@pytest.fixture
def say(router):
    """Send one message through the router and return the TurnResult."""

    def _say(text: str, role: Optional[str] = None, sender: str = SENDER):
        return router.route(make_message(text, sender=sender), role)

    return _say


@pytest.fixture
def engine(transport, store, directory, sheets, sessions):
    conversation_engine = ConversationEngine(
        transport=transport,
        store=store,
        directory=directory,
        hours=FixedHours(open_now=True),
        sheets=sheets,
        sessions=sessions,
        config=Settings(bot_identity="5215559999999"),
    )
    conversation_engine.router.today = lambda: FIXED_TODAY
    return conversation_engine


@pytest.fixture
def mock_provider():
    provider = Mock()
    provider.name = "mock"
    return provider


@pytest.fixture
def session_factory():
    """SQLAlchemy sessions bound to a fresh in-memory SQLite database."""
    db_engine = build_engine("sqlite:///:memory:")
    init_db(bind=db_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db_engine.dispose()
