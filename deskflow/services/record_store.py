import re
import uuid
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from deskflow.logging_config import get_logger
from deskflow.models import Contact, Project, Reservation, StaffRequest, Task, Ticket
from deskflow.services.errors import ConflictError
from deskflow.services.interfaces import RecordStore
from deskflow.services.slot_validators import time_to_minutes

logger = get_logger("record_store")

DOMAIN_MODELS = {
    "ticket": Ticket,
    "reservation": Reservation,
    "hr": StaffRequest,
    "project": Project,
    "task": Task,
}


def digits_only(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def to_dict(row) -> dict:
    data = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        data[column.name] = value
    return data


def _coerce_id(record_id):
    if isinstance(record_id, uuid.UUID):
        return record_id
    return uuid.UUID(str(record_id))


def overlaps(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """Half-open [start, end) windows intersect."""
    return time_to_minutes(start_a) < time_to_minutes(end_b) and time_to_minutes(start_b) < time_to_minutes(end_a)


class SqlRecordStore(RecordStore):
    """SQLAlchemy-backed store for every workflow domain."""

    def __init__(self, session_factory: Callable[[], Session], strike_threshold: int = 3):
        self.session_factory = session_factory
        self.strike_threshold = strike_threshold

    def _model(self, domain: str):
        try:
            return DOMAIN_MODELS[domain]
        except KeyError:
            raise ValueError(f"Unknown domain: {domain}") from None

    def create(self, domain: str, payload: dict) -> dict:
        db = self.session_factory()
        try:
            if domain == "ticket":
                row = self._create_ticket(db, payload)
            elif domain == "reservation":
                row = self._create_reservation(db, payload)
            else:
                model = self._model(domain)
                row = model(**payload)
                db.add(row)
            db.commit()
            db.refresh(row)
            record = to_dict(row)
        except ConflictError:
            db.rollback()
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Failed to create {domain} record")
            raise
        finally:
            db.close()
        logger.info("Record created", extra={"context": {"domain": domain, "id": record["id"]}})
        return record

    def _create_ticket(self, db: Session, payload: dict) -> Ticket:
        count = db.query(func.count(Ticket.id)).scalar() or 0
        row = Ticket(
            ticket_number=f"TKT-{count + 1:06d}",
            created_at=datetime.now(timezone.utc),
            **payload,
        )
        db.add(row)
        return row

    def _create_reservation(self, db: Session, payload: dict) -> Reservation:
        payload = dict(payload)
        user_created = payload.pop("user_created", False)
        phone = digits_only(payload["user_phone"])

        contact = db.query(Contact).filter(Contact.phone == phone).first()
        if contact is not None and contact.strike_count >= self.strike_threshold:
            raise ConflictError("Tu usuario está bloqueado para reservar.", reason="blocked")

        active = (
            db.query(Reservation)
            .filter(Reservation.date == payload["date"], Reservation.status == "activo")
            .order_by(Reservation.start_time)
            .all()
        )
        for existing in active:
            if overlaps(payload["start_time"], payload["end_time"], existing.start_time, existing.end_time):
                raise ConflictError("Horario ocupado", record=to_dict(existing), reason="overlap")

        if contact is None and user_created:
            db.add(
                Contact(
                    phone=phone,
                    name=payload.get("user_name"),
                    role="user",
                    strike_count=0,
                    strike_reasons=[],
                    created_at=datetime.now(timezone.utc),
                )
            )

        row = Reservation(created_at=datetime.now(timezone.utc), **payload)
        db.add(row)
        return row

    def find(self, domain: str, query: dict) -> List[dict]:
        model = self._model(domain)
        db = self.session_factory()
        try:
            q = db.query(model)
            for key, value in query.items():
                if key == "name_contains":
                    q = q.filter(func.lower(model.name).contains(str(value).lower()))
                elif key == "id":
                    q = q.filter(model.id == _coerce_id(value))
                else:
                    q = q.filter(getattr(model, key) == value)
            return [to_dict(row) for row in q.all()]
        finally:
            db.close()

    def update(self, domain: str, record_id, patch: dict) -> Optional[dict]:
        model = self._model(domain)
        db = self.session_factory()
        try:
            row = db.query(model).filter(model.id == _coerce_id(record_id)).first()
            if row is None:
                return None
            for key, value in patch.items():
                setattr(row, key, value)
            if hasattr(row, "updated_at"):
                row.updated_at = datetime.now(timezone.utc)

            project_progress = None
            if domain == "task":
                db.flush()
                project_progress = self._recalculate_project(db, row.project_id)

            db.commit()
            db.refresh(row)
            record = to_dict(row)
            if project_progress is not None:
                record["project_progress"] = project_progress
            return record
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _recalculate_project(self, db: Session, project_id) -> int:
        """Project progress is the mean of its tasks' progress."""
        tasks = db.query(Task).filter(Task.project_id == project_id).all()
        project = db.query(Project).filter(Project.id == project_id).first()
        if not tasks or project is None:
            return 0
        progress = round(sum(task.progress for task in tasks) / len(tasks))
        project.progress = progress
        if progress == 100:
            project.status = "done"
        elif project.status == "planned" and progress > 0:
            project.status = "in_progress"
        return progress
