"""Tests for the weekly timetable projection."""
from schedule import build_schedule
from utils import WEEKDAYS


def _cls(id, date, start, title="Class"):
    return {"id": id, "title": title, "date": date, "start_time": start}


def test_groups_by_weekday_and_start_time():
    schedule = build_schedule([
        _cls("a", "2026-10-19", "09:00"),
        _cls("b", "2026-10-19", "18:00"),
        _cls("c", "2026-10-21", "09:00"),
    ])

    assert schedule.cell("Monday", "09:00")["id"] == "a"
    assert schedule.cell("Monday", "18:00")["id"] == "b"
    assert schedule.cell("Wednesday", "09:00")["id"] == "c"
    assert schedule.cell("Tuesday", "09:00") is None


def test_first_class_wins_a_shared_cell():
    schedule = build_schedule([
        _cls("first", "2026-10-20", "07:00"),
        _cls("second", "2026-10-20", "07:00"),
    ])

    assert schedule.cell("Tuesday", "07:00")["id"] == "first"


def test_times_are_distinct_and_sorted():
    schedule = build_schedule([
        _cls("a", "2026-10-19", "18:00"),
        _cls("b", "2026-10-20", "07:00"),
        _cls("c", "2026-10-25", "18:00"),
        _cls("d", "2026-10-22", "09:30"),
    ])

    assert schedule.times == ["07:00", "09:30", "18:00"]


def test_rows_cover_every_weekday():
    schedule = build_schedule([_cls("a", "2026-10-25", "10:00")])

    rows = list(schedule.rows())

    assert len(rows) == 1
    time, cells = rows[0]
    assert time == "10:00"
    assert len(cells) == len(WEEKDAYS)
    assert cells[-1]["id"] == "a"
    assert cells[:-1] == [None] * 6


def test_empty_input():
    schedule = build_schedule([])

    assert schedule.is_empty
    assert list(schedule.days) == list(WEEKDAYS)
