"""Shared fixtures: every test gets its own SQLite file."""
from contextlib import closing
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

import databases_sql
from utils import week_bounds

ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Email": "owner@studio.com"}
CLIENT_HEADERS = {"X-User-Id": "user-1", "X-User-Email": "jane@studio.com"}

BOOKER = {
    "first_name": "Jane",
    "last_name": "Doe",
    "email": "jane@studio.com",
    "phone": "0400111222",
    "notes": None,
}


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Point the store at a fresh database file."""
    monkeypatch.setattr(databases_sql, "DB_PATH", tmp_path / "booking.db")
    databases_sql.init_db()
    yield databases_sql


@pytest.fixture
def this_monday() -> date:
    return week_bounds()[0].date()


@pytest.fixture
def instructor_id(db):
    return db.insert_instructor("Asha Menon", "Pilates")


@pytest.fixture
def make_class(db, instructor_id, this_monday):
    """Factory for classes in the current week."""

    def _make(title="Mat Pilates", capacity=10, booked=0, day=0, start="09:00",
              end="09:50", is_active=True, instructor=None, class_date=None):
        class_id = db.insert_class(
            title,
            instructor or instructor_id,
            class_date or this_monday + timedelta(days=day),
            start,
            end,
            capacity,
            is_active,
        )
        if booked:
            set_booked_slots(class_id, booked)
        return class_id

    return _make


def set_booked_slots(class_id: str, value: int):
    conn = databases_sql.get_conn()
    with closing(conn):
        conn.execute("UPDATE classes SET booked_slots = ? WHERE id = ?", (value, class_id))


@pytest.fixture
def client(db):
    from main import app

    db.set_admin("admin-1")
    with TestClient(app) as c:
        yield c
