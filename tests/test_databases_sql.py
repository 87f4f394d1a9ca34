"""Tests for the SQLite store and its transaction primitive."""
import sqlite3
from datetime import date

import pytest

from databases_sql import Write, run_transaction
from errors import ConflictError, InvalidUpdateError, NotFoundError, TransactionError, TransientError


class TestRunTransaction:
    def test_commits_buffered_writes(self, db, make_class):
        class_id = make_class(capacity=5)

        def work(tx):
            cls = tx.get("classes", class_id)
            tx.update("classes", class_id, {"booked_slots": cls["booked_slots"] + 2})
            return "done"

        assert run_transaction(work) == "done"
        assert db.get_class(class_id)["booked_slots"] == 2

    def test_read_after_write_is_rejected(self, db, make_class):
        class_id = make_class()

        def work(tx):
            tx.update("classes", class_id, {"title": "Changed"})
            tx.get("classes", class_id)

        with pytest.raises(TransactionError):
            run_transaction(work)
        assert db.get_class(class_id)["title"] == "Mat Pilates"

    def test_domain_error_discards_writes(self, db, make_class):
        class_id = make_class()

        def work(tx):
            tx.get("classes", class_id)
            tx.write_all([Write("update", "classes", class_id, {"booked_slots": 3})])
            raise NotFoundError("gone")

        with pytest.raises(NotFoundError):
            run_transaction(work)
        assert db.get_class(class_id)["booked_slots"] == 0

    def test_retries_after_conflict(self, db):
        calls = []

        def work(tx):
            calls.append(1)
            if len(calls) == 1:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        assert run_transaction(work, max_attempts=3) == "ok"
        assert len(calls) == 2

    def test_conflict_surfaces_after_retries(self, db):
        calls = []

        def work(tx):
            calls.append(1)
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(ConflictError):
            run_transaction(work, max_attempts=3)
        assert len(calls) == 3

    def test_other_store_failures_are_transient(self, db):
        def work(tx):
            raise sqlite3.OperationalError("disk I/O error")

        with pytest.raises(TransientError):
            run_transaction(work)

    def test_check_constraint_guards_capacity(self, db, make_class):
        class_id = make_class(capacity=1, booked=1)

        def work(tx):
            tx.update("classes", class_id, {"booked_slots": 2})

        with pytest.raises(InvalidUpdateError):
            run_transaction(work)
        assert db.get_class(class_id)["booked_slots"] == 1

    def test_unknown_fields_are_rejected(self, db, make_class):
        class_id = make_class()

        with pytest.raises(ValueError):
            run_transaction(lambda tx: tx.update("classes", class_id, {"colour": "red"}))


class TestClasses:
    def test_insert_starts_with_no_booked_slots(self, db, make_class):
        cls = db.get_class(make_class(capacity=8))

        assert cls["booked_slots"] == 0
        assert cls["capacity"] == 8
        assert cls["is_active"] is True

    def test_active_classes_between_filters_and_orders(self, db, instructor_id):
        db.insert_class("Late", instructor_id, date(2026, 10, 20), "18:00", "19:00", 5)
        db.insert_class("Early", instructor_id, date(2026, 10, 20), "07:00", "08:00", 5)
        db.insert_class("Monday", instructor_id, date(2026, 10, 19), "12:00", "13:00", 5)
        db.insert_class("Hidden", instructor_id, date(2026, 10, 19), "08:00", "09:00", 5, is_active=False)
        db.insert_class("Next week", instructor_id, date(2026, 10, 26), "08:00", "09:00", 5)

        titles = [c["title"] for c in db.list_active_classes_between("2026-10-19", "2026-10-25")]

        assert titles == ["Monday", "Early", "Late"]

    def test_update_never_touches_booked_slots(self, db, make_class):
        class_id = make_class(capacity=10, booked=4)

        updated = db.update_class(class_id, {"title": "Reformer", "booked_slots": 0, "capacity": 6})

        assert updated["title"] == "Reformer"
        assert db.get_class(class_id)["booked_slots"] == 4
        assert db.get_class(class_id)["capacity"] == 6

    def test_update_rejects_capacity_below_booked(self, db, make_class):
        class_id = make_class(capacity=10, booked=4)

        with pytest.raises(InvalidUpdateError):
            db.update_class(class_id, {"capacity": 3})
        assert db.get_class(class_id)["capacity"] == 10

    def test_update_missing_class(self, db):
        with pytest.raises(NotFoundError):
            db.update_class("cls_missing", {"title": "x"})

    def test_delete_class(self, db, make_class):
        class_id = make_class()

        assert db.delete_class(class_id) is True
        assert db.get_class(class_id) is None
        assert db.delete_class(class_id) is False


class TestInstructors:
    def test_active_only_sorted_by_name(self, db):
        db.insert_instructor("Zed")
        db.insert_instructor("Amy")
        db.insert_instructor("Bob", is_active=False)

        assert [i["name"] for i in db.list_instructors(active_only=True)] == ["Amy", "Zed"]
        assert len(db.list_instructors()) == 3

    def test_update_missing_instructor(self, db):
        with pytest.raises(NotFoundError):
            db.update_instructor("ins_missing", {"name": "x"})


class TestProfilesAndRoles:
    def test_upsert_keeps_created_at(self, db):
        first = db.upsert_profile("u1", "Jane", "Doe", "jane@studio.com", "0400")
        second = db.upsert_profile("u1", "Janet", "Doe", "jane@studio.com", "0401")

        assert second["first_name"] == "Janet"
        assert second["created_at"] == first["created_at"]

    def test_admin_role(self, db):
        assert db.is_admin("u1") is False
        db.set_admin("u1")
        assert db.is_admin("u1") is True
        db.set_admin("u1", admin=False)
        assert db.is_admin("u1") is False

    def test_overview_counts(self, db, make_class):
        make_class()
        make_class(title="Yoga")
        db.upsert_profile("u1", "Jane", "Doe", "jane@studio.com", None)

        assert db.overview_counts() == {
            "total_classes": 2,
            "upcoming_bookings": 0,
            "registered_users": 1,
        }

