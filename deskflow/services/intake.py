"""Drop messages the engine must never answer.

Status broadcasts, our own messages, unsupported types, repeated ids and
anything arriving while the sender (or the whole bot) is paused, except the
resume keyword.
"""

import threading
from collections import OrderedDict
from typing import Optional

from deskflow.logging_config import get_logger
from deskflow.services.interfaces import Directory, InboundMessage
from deskflow.services.slot_validators import normalize_text

logger = get_logger("intake")

STATUS_CHAT_ID = "status@broadcast"

DROP_UNSUPPORTED = "unsupported_type"
DROP_STATUS = "status_broadcast"
DROP_SELF = "self_message"
DROP_DUPLICATE = "duplicate"
DROP_PAUSED = "paused"
DROP_GLOBAL_PAUSE = "global_pause"
DROP_EMPTY = "empty"


class MessageDedup:
    """Bounded memory of recently seen message ids."""

    def __init__(self, max_size: int = 1000):
        self.max_size = max(1, max_size)
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def seen_before(self, message_id: Optional[str]) -> bool:
        """Record ``message_id``; True when it was already recorded."""
        if not message_id:
            return False
        with self._lock:
            if message_id in self._seen:
                self._seen.move_to_end(message_id)
                return True
            self._seen[message_id] = None
            while len(self._seen) > self.max_size:
                self._seen.popitem(last=False)
        return False


class IntakeGuard:
    def __init__(
        self,
        directory: Directory,
        bot_identity: str = "",
        supported_types: Optional[set[str]] = None,
        command_prefix: str = "!",
        pause_keyword: str = "stop",
        resume_keyword: str = "start",
        dedup: Optional[MessageDedup] = None,
    ):
        self.directory = directory
        self.bot_identity = bot_identity
        self.supported_types = supported_types or {"text", "chat"}
        self.command_prefix = command_prefix
        self.pause_keyword = pause_keyword
        self.resume_keyword = resume_keyword
        self.dedup = dedup or MessageDedup()
        self.global_pause = False

    def _keyword(self, text: str) -> str:
        return normalize_text(text).lstrip(self.command_prefix)

    def is_resume(self, text: str) -> bool:
        return self._keyword(text) == self.resume_keyword

    def is_pause(self, text: str) -> bool:
        return self._keyword(text) == self.pause_keyword

    def drop_reason(self, message: InboundMessage) -> Optional[str]:
        """Why ``message`` must be ignored, or None when it may be processed."""
        if message.is_status or message.chat_id == STATUS_CHAT_ID:
            return DROP_STATUS
        if message.from_me or (self.bot_identity and message.sender == self.bot_identity):
            return DROP_SELF
        if (message.message_type or "").lower() not in self.supported_types:
            return DROP_UNSUPPORTED
        if not (message.text or "").strip():
            return DROP_EMPTY
        if self.dedup.seen_before(message.message_id):
            return DROP_DUPLICATE
        if self.is_resume(message.text):
            return None
        if self.global_pause:
            return DROP_GLOBAL_PAUSE
        if self.directory.is_paused(message.sender):
            return DROP_PAUSED
        return None

    def check(self, message: InboundMessage) -> bool:
        reason = self.drop_reason(message)
        if reason is None:
            return True
        logger.debug(
            "Message dropped",
            extra={"context": {"sender": message.sender, "reason": reason, "message_id": message.message_id}},
        )
        return False
