from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from deskflow.logging_config import get_logger
from deskflow.models import Contact
from deskflow.services.interfaces import Directory, DirectoryEntry
from deskflow.services.record_store import digits_only

logger = get_logger("directory")


def _entry(contact: Contact) -> DirectoryEntry:
    return DirectoryEntry(
        phone=contact.phone,
        known_name=contact.name,
        strike_count=contact.strike_count or 0,
        strike_reasons=list(contact.strike_reasons or []),
        role=contact.role,
        bot_paused=bool(contact.bot_paused),
    )


class SqlDirectory(Directory):
    """Contact directory over the ``contacts`` table.

    Phones are compared on digits only; a stored number also matches when
    the last ten digits agree (country prefix present on one side only).
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _find(self, db: Session, sender: str) -> Optional[Contact]:
        phone = digits_only(sender)
        if not phone:
            return None
        contact = db.query(Contact).filter(Contact.phone == phone).first()
        if contact is None and len(phone) >= 10:
            contact = db.query(Contact).filter(Contact.phone.endswith(phone[-10:])).first()
        return contact

    def lookup_by_sender(self, sender: str) -> Optional[DirectoryEntry]:
        db = self.session_factory()
        try:
            contact = self._find(db, sender)
            return _entry(contact) if contact is not None else None
        finally:
            db.close()

    def is_paused(self, sender: str) -> bool:
        entry = self.lookup_by_sender(sender)
        return bool(entry and entry.bot_paused)

    def set_paused(self, sender: str, paused: bool) -> None:
        db = self.session_factory()
        try:
            contact = self._find(db, sender)
            if contact is None:
                contact = Contact(
                    phone=digits_only(sender),
                    role="user",
                    strike_count=0,
                    strike_reasons=[],
                    created_at=datetime.now(timezone.utc),
                )
                db.add(contact)
            contact.bot_paused = paused
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.info("Contact pause updated", extra={"context": {"sender": sender, "paused": paused}})

    def list_entries(self) -> List[DirectoryEntry]:
        db = self.session_factory()
        try:
            return [_entry(contact) for contact in db.query(Contact).order_by(Contact.name).all()]
        finally:
            db.close()
