"""
Seed demo instructors and this week's classes.
- Default: Adds missing instructors/classes only.
- --force: Clears all classes and bookings, then seeds a fresh week.
- --admin UID: Grants the admin role to the given identity-provider user id.
Dates and times are studio wall-clock values.
"""

import argparse
import logging
from datetime import timedelta

from databases_sql import (
    clear_schedule, init_db, insert_class, insert_instructor,
    list_classes, list_instructors, set_admin,
)
from utils import week_bounds

logger = logging.getLogger(__name__)

INSTRUCTORS = [
    ("Asha Menon", "Mat and reformer Pilates, 10 years teaching."),
    ("Daniel Cruz", "Strength and conditioning coach."),
    ("Mei Tanaka", "Vinyasa and restorative yoga."),
]

# (title, instructor index, weekday offset from Monday, start, end, capacity)
WEEKLY_CLASSES = [
    ("Mat Pilates", 0, 0, "07:00", "07:50", 10),
    ("Yoga Flow", 2, 0, "18:00", "19:00", 12),
    ("HIIT", 1, 1, "07:00", "07:45", 15),
    ("Reformer Pilates", 0, 2, "09:00", "09:50", 6),
    ("Restorative Yoga", 2, 3, "18:00", "19:00", 12),
    ("Strength Basics", 1, 4, "17:30", "18:20", 10),
    ("Weekend Flow", 2, 5, "09:00", "10:00", 15),
]


def seed_studio(force: bool = False):
    init_db()
    if force:
        clear_schedule()
        logger.info("Cleared all classes and bookings.")

    instructors = {i["name"]: i["id"] for i in list_instructors()}
    for name, bio in INSTRUCTORS:
        if name not in instructors:
            instructors[name] = insert_instructor(name, bio)
            logger.info("Seeded instructor: %s", name)

    monday, _ = week_bounds()
    existing = {(c["title"], c["date"], c["start_time"]) for c in list_classes()}
    for title, who, offset, start, end, capacity in WEEKLY_CLASSES:
        day = (monday + timedelta(days=offset)).date()
        if (title, day.isoformat(), start) in existing:
            continue
        insert_class(title, instructors[INSTRUCTORS[who][0]], day, start, end, capacity)
        logger.info("Seeded: %s on %s at %s", title, day.strftime("%a %d %b"), start)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--force", action="store_true", help="clear classes and bookings first")
    parser.add_argument("--admin", metavar="UID", help="grant the admin role to this user id")
    args = parser.parse_args()

    seed_studio(force=args.force)
    if args.admin:
        set_admin(args.admin)
        logger.info("Granted admin role to %s", args.admin)
