"""
Weekly timetable projection: weekday -> start time -> class.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from utils import WEEKDAYS, weekday_name


@dataclass
class Schedule:
    days: Dict[str, Dict[str, Dict[str, Any]]] = field(
        default_factory=lambda: {day: {} for day in WEEKDAYS}
    )
    times: List[str] = field(default_factory=list)

    def cell(self, day: str, time: str) -> Optional[Dict[str, Any]]:
        return self.days.get(day, {}).get(time)

    def rows(self):
        """(time, [class or None for Monday..Sunday]) for every start time."""
        for time in self.times:
            yield time, [self.cell(day, time) for day in WEEKDAYS]

    @property
    def is_empty(self) -> bool:
        return not self.times


def build_schedule(classes: Iterable[Dict[str, Any]]) -> Schedule:
    """Group classes into a day-by-start-time grid.

    Only one class is shown per cell; when several share a slot the first one wins.
    """
    schedule = Schedule()
    times = set()
    for cls in classes:
        day = weekday_name(cls["date"])
        schedule.days[day].setdefault(cls["start_time"], cls)
        times.add(cls["start_time"])
    schedule.times = sorted(times)
    return schedule
