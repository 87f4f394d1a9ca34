"""
Which classes can still be booked this week.
"""
import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

import databases_sql
from errors import TransientError

logger = logging.getLogger(__name__)

ANY_INSTRUCTOR = "any"


def find_available(
    week_start: datetime,
    week_end: datetime,
    instructor_filter: Optional[str] = ANY_INSTRUCTOR,
) -> List[Dict[str, Any]]:
    """Active classes in [week_start, week_end] with at least one free slot.

    Ordered by date then start time. Full classes are dropped after the query,
    so the result is only a hint; booking re-checks capacity.
    """
    instructor_id = None if instructor_filter in (None, "", ANY_INSTRUCTOR) else instructor_filter
    try:
        classes = databases_sql.list_active_classes_between(
            week_start.date().isoformat(),
            week_end.date().isoformat(),
            instructor_id=instructor_id,
        )
    except sqlite3.Error as exc:
        logger.exception("Error loading available classes")
        raise TransientError("Error loading available classes. Please try again.") from exc

    return [c for c in classes if c["booked_slots"] < c["capacity"]]
