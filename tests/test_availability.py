"""Tests for the weekly availability query."""
import sqlite3
from datetime import date, datetime

import pytest

import databases_sql
from availability import ANY_INSTRUCTOR, find_available
from conftest import set_booked_slots
from errors import TransientError
from utils import week_bounds

WEEK = week_bounds(datetime(2026, 10, 21, 12, 0))


@pytest.fixture
def studio(db):
    asha = db.insert_instructor("Asha")
    dan = db.insert_instructor("Dan")
    ids = {
        "tue_late": db.insert_class("Yoga", asha, date(2026, 10, 20), "18:00", "19:00", 10),
        "mon": db.insert_class("Pilates", dan, date(2026, 10, 19), "09:00", "10:00", 10),
        "tue_early": db.insert_class("HIIT", dan, date(2026, 10, 20), "07:00", "08:00", 10),
        "sun": db.insert_class("Flow", asha, date(2026, 10, 25), "09:00", "10:00", 10),
        "full": db.insert_class("Full", asha, date(2026, 10, 22), "09:00", "10:00", 1),
        "inactive": db.insert_class("Hidden", asha, date(2026, 10, 23), "09:00", "10:00", 10, is_active=False),
        "next_week": db.insert_class("Later", asha, date(2026, 10, 26), "09:00", "10:00", 10),
        "last_week": db.insert_class("Earlier", dan, date(2026, 10, 18), "09:00", "10:00", 10),
    }
    set_booked_slots(ids["full"], 1)
    return {"asha": asha, "dan": dan, **ids}


def test_any_instructor_returns_open_classes_in_order(studio):
    result = find_available(*WEEK, ANY_INSTRUCTOR)

    assert [c["id"] for c in result] == [
        studio["mon"], studio["tue_early"], studio["tue_late"], studio["sun"],
    ]


@pytest.mark.parametrize("any_value", [None, ""])
def test_blank_filter_means_any(studio, any_value):
    assert len(find_available(*WEEK, any_value)) == 4


def test_instructor_filter(studio):
    result = find_available(*WEEK, studio["asha"])

    assert [c["id"] for c in result] == [studio["tue_late"], studio["sun"]]


def test_full_classes_are_dropped(studio):
    ids = {c["id"] for c in find_available(*WEEK)}

    assert studio["full"] not in ids
    assert studio["inactive"] not in ids


def test_same_slot_keeps_insertion_order(db):
    ins = db.insert_instructor("Asha")
    first = db.insert_class("A", ins, date(2026, 10, 21), "09:00", "10:00", 5)
    second = db.insert_class("B", ins, date(2026, 10, 21), "09:00", "10:00", 5)

    assert [c["id"] for c in find_available(*WEEK)] == [first, second]


def test_read_failure_is_transient(db, monkeypatch):
    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(databases_sql, "list_active_classes_between", broken)

    with pytest.raises(TransientError):
        find_available(*WEEK)
