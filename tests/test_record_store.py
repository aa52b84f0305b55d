from datetime import datetime, timezone

import pytest

from deskflow.models import Contact, Project, Task
from deskflow.services.directory import SqlDirectory
from deskflow.services.errors import ConflictError
from deskflow.services.record_store import SqlRecordStore, overlaps


def _reservation(**overrides):
    payload = {
        "date": "2026-10-20",
        "start_time": "10:00",
        "end_time": "11:00",
        "title": "Sync",
        "user_phone": "5551234567",
        "user_name": "Ana",
        "user_created": True,
        "status": "activo",
    }
    payload.update(overrides)
    return payload


def _add_contact(session_factory, **fields):
    db = session_factory()
    fields.setdefault("strike_count", 0)
    fields.setdefault("strike_reasons", [])
    db.add(Contact(created_at=datetime.now(timezone.utc), **fields))
    db.commit()
    db.close()


class TestOverlaps:
    def test_touching_windows_do_not_overlap(self):
        assert not overlaps("10:00", "11:00", "11:00", "12:00")

    def test_contained_window(self):
        assert overlaps("10:00", "12:00", "10:30", "11:00")


class TestSqlRecordStore:
    @pytest.fixture
    def store(self, session_factory):
        return SqlRecordStore(session_factory)

    def test_ticket_numbers_are_sequential(self, store):
        base = {
            "sender": "5215550001111",
            "branch": "lomas",
            "category": "pos",
            "title": "Terminal",
            "description": "No cobra",
            "priority": "high",
            "status": "open",
        }
        first = store.create("ticket", base)
        second = store.create("ticket", base)
        assert first["ticket_number"] == "TKT-000001"
        assert second["ticket_number"] == "TKT-000002"
        assert store.find("ticket", {"sender": "5215550001111"})[0]["comments"] == []

    def test_reservation_creates_contact(self, store, session_factory):
        record = store.create("reservation", _reservation())
        assert record["status"] == "activo"
        db = session_factory()
        contact = db.query(Contact).filter(Contact.phone == "5551234567").one()
        assert contact.name == "Ana"
        db.close()

    def test_overlap_raises_conflict_with_record(self, store):
        store.create("reservation", _reservation())
        with pytest.raises(ConflictError) as exc:
            store.create("reservation", _reservation(start_time="10:30", end_time="11:30", title="Otra"))
        assert exc.value.reason == "overlap"
        assert exc.value.record["title"] == "Sync"

    def test_back_to_back_allowed(self, store):
        store.create("reservation", _reservation())
        store.create("reservation", _reservation(start_time="11:00", end_time="12:00", user_created=False))
        assert len(store.find("reservation", {"date": "2026-10-20"})) == 2

    def test_cancelled_reservations_do_not_block(self, store):
        store.create("reservation", _reservation(status="cancelado"))
        store.create("reservation", _reservation(user_created=False))

    def test_blocked_contact(self, store, session_factory):
        _add_contact(session_factory, phone="5551234567", name="Luis", strike_count=3)
        with pytest.raises(ConflictError) as exc:
            store.create("reservation", _reservation(user_created=False))
        assert exc.value.reason == "blocked"

    def test_staff_request(self, store):
        record = store.create(
            "hr",
            {
                "request_type": "baja",
                "entity_type": "usuario",
                "entity_name": "Ana López",
                "user_role": "cajero",
                "platform": "Odoo",
                "notes": None,
                "status": "pending",
                "requested_by": "5215550001111",
            },
        )
        assert store.find("hr", {"id": record["id"]})[0]["entity_name"] == "Ana López"

    def test_unknown_domain(self, store):
        with pytest.raises(ValueError):
            store.find("weather", {})

    def test_task_update_recalculates_project(self, store, session_factory):
        db = session_factory()
        project = Project(name="Migración ERP", status="planned", progress=0)
        db.add(project)
        db.flush()
        db.add_all(
            [
                Task(project_id=project.id, name="Cableado", status="doing", progress=50),
                Task(project_id=project.id, name="Licencias", status="todo", progress=0),
            ]
        )
        db.commit()
        db.close()

        task = store.find("task", {"name": "Licencias"})[0]
        record = store.update("task", task["id"], {"status": "done", "progress": 100})

        assert record["status"] == "done"
        assert record["project_progress"] == 75
        project_row = store.find("project", {"name_contains": "erp"})[0]
        assert project_row["progress"] == 75
        assert project_row["status"] == "in_progress"

    def test_update_missing(self, store):
        assert store.update("project", "00000000-0000-0000-0000-000000000000", {"progress": 5}) is None


class TestSqlDirectory:
    @pytest.fixture
    def directory(self, session_factory):
        return SqlDirectory(session_factory)

    def test_lookup_by_suffix(self, directory, session_factory):
        _add_contact(
            session_factory,
            phone="5215551234567",
            name="Luis",
            role="admin",
            strike_count=1,
            strike_reasons=["no-show"],
        )
        entry = directory.lookup_by_sender("+52 1 555 123 4567")
        assert entry.known_name == "Luis"
        assert directory.lookup_by_sender("5551234567").strike_reasons == ["no-show"]
        assert directory.get_role("5215551234567") == "admin"

    def test_unknown(self, directory):
        assert directory.lookup_by_sender("5550000000") is None
        assert directory.is_paused("5550000000") is False

    def test_set_paused_creates_contact(self, directory):
        directory.set_paused("5215550002222", True)
        assert directory.is_paused("5215550002222") is True
        directory.set_paused("5215550002222", False)
        assert directory.is_paused("5215550002222") is False

    def test_list_entries(self, directory, session_factory):
        _add_contact(session_factory, phone="5551111111", name="Beto")
        _add_contact(session_factory, phone="5552222222", name="Ana")
        assert [entry.known_name for entry in directory.list_entries()] == ["Ana", "Beto"]
