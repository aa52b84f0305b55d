"""In-process store of the one active guided workflow per sender."""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional

from deskflow.logging_config import get_logger
from deskflow.services.state_machine import TERMINAL_STEP

logger = get_logger("session_store")

INACTIVE_STEPS = {TERMINAL_STEP, "none", ""}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConversationSession:
    sender: str
    domain: str
    flow: str
    step: str
    slots: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        return self.step not in INACTIVE_STEPS


class _SenderLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class ActiveSessionError(Exception):
    def __init__(self, sender: str, domain: str):
        self.sender = sender
        self.domain = domain
        super().__init__(f"Sender {sender} already has an active {domain} session")


class SessionStore:
    """Keyed map sender -> session with a per-sender turn lock.

    Non-durable: a restart drops in-flight sessions.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._sessions: dict[str, ConversationSession] = {}
        self._locks: dict[str, _SenderLock] = {}
        self._guard = threading.Lock()
        self._clock = clock or _utcnow

    @contextmanager
    def lock(self, sender: str, blocking: bool = True) -> Iterator[bool]:
        """Hold the sender's lock for a whole read-modify-write turn.

        Yields whether the lock was acquired, which is always True when
        blocking. The entry is dropped once no caller holds or waits on it.
        """
        with self._guard:
            entry = self._locks.get(sender)
            if entry is None:
                entry = self._locks[sender] = _SenderLock()
            entry.users += 1
        acquired = entry.lock.acquire(blocking=blocking)
        try:
            yield acquired
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[sender]

    def get(self, sender: str, domain: Optional[str] = None) -> Optional[ConversationSession]:
        with self._guard:
            session = self._sessions.get(sender)
        if session is None or (domain is not None and session.domain != domain):
            return None
        return replace(session, slots=dict(session.slots))

    def get_active_domain(self, sender: str) -> Optional[str]:
        session = self.get(sender)
        if session is None or not session.is_active:
            return None
        return session.domain

    def start(
        self,
        sender: str,
        domain: str,
        flow: str,
        step: str,
        slots: Optional[dict] = None,
    ) -> ConversationSession:
        now = self._clock()
        with self._guard:
            existing = self._sessions.get(sender)
            if existing is not None and existing.is_active:
                raise ActiveSessionError(sender, existing.domain)
            session = ConversationSession(
                sender=sender,
                domain=domain,
                flow=flow,
                step=step,
                slots=dict(slots or {}),
                created_at=now,
                updated_at=now,
            )
            self._sessions[sender] = session
        logger.info("Session started", extra={"context": {"sender": sender, "domain": domain, "step": step}})
        return replace(session, slots=dict(session.slots))

    def advance(self, sender: str, step: str, slot_patch: Optional[dict] = None) -> ConversationSession:
        with self._guard:
            session = self._sessions.get(sender)
            if session is None:
                raise KeyError(f"No session for {sender}")
            session.step = step
            if slot_patch:
                session.slots.update(slot_patch)
            session.updated_at = self._clock()
            snapshot = replace(session, slots=dict(session.slots))
        return snapshot

    def clear(self, sender: str) -> bool:
        """Remove the sender's session. Returns False when there was none."""
        with self._guard:
            removed = self._sessions.pop(sender, None)
        if removed is not None:
            logger.info(
                "Session cleared",
                extra={"context": {"sender": sender, "domain": removed.domain, "step": removed.step}},
            )
        return removed is not None

    def expire_stale(self, max_idle: timedelta) -> list[str]:
        """Drop sessions idle for longer than ``max_idle``.

        A sender whose turn is in progress keeps its session.
        """
        cutoff = self._clock() - max_idle
        with self._guard:
            candidates = [sender for sender, session in self._sessions.items() if session.updated_at < cutoff]

        stale = []
        for sender in candidates:
            with self.lock(sender, blocking=False) as acquired:
                if not acquired:
                    continue
                with self._guard:
                    session = self._sessions.get(sender)
                    if session is not None and session.updated_at < cutoff:
                        del self._sessions[sender]
                        stale.append(sender)
        if stale:
            logger.info("Expired idle sessions", extra={"context": {"count": len(stale)}})
        return stale

    def active_count(self) -> int:
        with self._guard:
            return sum(1 for session in self._sessions.values() if session.is_active)
