import threading
from collections import defaultdict
from typing import Optional

from deskflow.logging_config import get_logger
from deskflow.services.interfaces import Directory, InboundMessage, Transport

logger = get_logger("transport")


class RecordingTransport(Transport):
    """Collects outgoing messages in memory.

    The HTTP surface hands the collected replies back to the chat gateway,
    which owns actual delivery. Roles come from the contact directory.
    """

    def __init__(self, directory: Optional[Directory] = None):
        self.directory = directory
        self._lock = threading.Lock()
        self._replies: dict[str, list[str]] = defaultdict(list)
        self.outbox: list[tuple[str, str]] = []

    def reply(self, message: InboundMessage, content: str) -> None:
        with self._lock:
            self._replies[message.message_id or message.sender].append(content)

    def send(self, recipient: str, content: str) -> bool:
        with self._lock:
            self.outbox.append((recipient, content))
        logger.debug("Queued outbound message", extra={"context": {"recipient": recipient}})
        return True

    def get_sender_role(self, sender: str) -> Optional[str]:
        if self.directory is None:
            return None
        return self.directory.get_role(sender)

    def pop_replies(self, message: InboundMessage) -> list[str]:
        with self._lock:
            return self._replies.pop(message.message_id or message.sender, [])

    def drain_outbox(self) -> list[tuple[str, str]]:
        with self._lock:
            pending, self.outbox = self.outbox, []
        return pending
