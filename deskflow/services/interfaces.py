from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class InboundMessage:
    sender: str
    text: str
    message_id: Optional[str] = None
    message_type: str = "text"
    chat_id: Optional[str] = None
    from_me: bool = False
    is_status: bool = False


@dataclass
class DirectoryEntry:
    phone: str
    known_name: Optional[str] = None
    strike_count: int = 0
    strike_reasons: List[str] = field(default_factory=list)
    role: Optional[str] = None
    bot_paused: bool = False


class Transport(ABC):
    """Outbound side of the chat channel."""

    @abstractmethod
    def reply(self, message: InboundMessage, content: str) -> None:
        """Answer the sender of ``message``."""
        pass

    @abstractmethod
    def send(self, recipient: str, content: str) -> bool:
        """Send a message to any identity. Returns False when undeliverable."""
        pass

    @abstractmethod
    def get_sender_role(self, sender: str) -> Optional[str]:
        """Role used for role-gated workflows."""
        pass


class RecordStore(ABC):
    """Persistence for committed domain records."""

    @abstractmethod
    def create(self, domain: str, payload: dict) -> dict:
        """Persist a record. Raises ConflictError on business-rule clashes."""
        pass

    @abstractmethod
    def find(self, domain: str, query: dict) -> List[dict]:
        pass

    @abstractmethod
    def update(self, domain: str, record_id, patch: dict) -> Optional[dict]:
        pass


class Directory(ABC):
    """Contact directory keyed by sender identity / phone."""

    @abstractmethod
    def lookup_by_sender(self, sender: str) -> Optional[DirectoryEntry]:
        pass

    def get_role(self, sender: str) -> Optional[str]:
        entry = self.lookup_by_sender(sender)
        return entry.role if entry else None

    @abstractmethod
    def is_paused(self, sender: str) -> bool:
        pass

    @abstractmethod
    def set_paused(self, sender: str, paused: bool) -> None:
        pass

    @abstractmethod
    def list_entries(self) -> List[DirectoryEntry]:
        pass


class BusinessHoursOracle(ABC):
    @abstractmethod
    def is_open_now(self) -> bool:
        pass

    @abstractmethod
    def next_open_time(self) -> datetime:
        pass


class SpreadsheetProvider(ABC):
    """Spreadsheet backend. Failures surface as ProviderError."""

    @abstractmethod
    def write_range(self, cell_range: str, values: List[List[str]]) -> int:
        """Overwrite a range. Returns the number of updated cells."""
        pass

    @abstractmethod
    def append_row(self, cell_range: str, row: List[str]) -> int:
        pass

    @abstractmethod
    def read_range(self, cell_range: str) -> List[List[str]]:
        pass


@dataclass
class FlowServices:
    """Collaborators handed to workflow hooks and commits."""

    transport: Transport
    store: RecordStore
    directory: Directory
    hours: Optional[BusinessHoursOracle] = None
    sheets: Optional[SpreadsheetProvider] = None
    strike_threshold: int = 3
