# SQLite document store. Creates collections if missing, provides CRUD helpers
# and the read-then-write transaction primitive used by the slot ledger.

import logging
import sqlite3
from contextlib import closing
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from errors import ConflictError, InvalidUpdateError, NotFoundError, TransactionError, TransientError
from settings import settings
from utils import generate_id, utc_now_iso

logger = logging.getLogger(__name__)

DB_PATH = Path(settings.database_path)
UNAVAILABLE_MESSAGE = "The booking service is temporarily unavailable. Please try again."

SCHEMA = """
CREATE TABLE IF NOT EXISTS instructors (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    bio TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS classes (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    instructor_id TEXT NOT NULL,
    date TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    capacity INTEGER NOT NULL CHECK (capacity > 0),
    booked_slots INTEGER NOT NULL DEFAULT 0 CHECK (booked_slots >= 0 AND booked_slots <= capacity),
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_classes_date ON classes(date, start_time);

CREATE TABLE IF NOT EXISTS bookings (
    id TEXT PRIMARY KEY,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    email TEXT NOT NULL,
    phone TEXT NOT NULL,
    class_id TEXT NOT NULL,
    class_title TEXT,
    instructor_id TEXT,
    class_date TEXT,
    class_start_time TEXT,
    class_end_time TEXT,
    notes TEXT,
    status TEXT NOT NULL CHECK (status IN ('Pending', 'Confirmed', 'Cancelled')),
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_bookings_email ON bookings(email, created_at);

CREATE TABLE IF NOT EXISTS user_profiles (
    id TEXT PRIMARY KEY,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    email TEXT NOT NULL,
    phone TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS admin_roles (
    id TEXT PRIMARY KEY,
    is_admin INTEGER NOT NULL DEFAULT 0
);
"""

COLUMNS = {
    "instructors": ("name", "bio", "is_active", "created_at"),
    "classes": (
        "title", "instructor_id", "date", "start_time", "end_time",
        "capacity", "booked_slots", "is_active", "created_at",
    ),
    "bookings": (
        "first_name", "last_name", "email", "phone", "class_id", "class_title",
        "instructor_id", "class_date", "class_start_time", "class_end_time",
        "notes", "status", "created_at",
    ),
    "user_profiles": ("first_name", "last_name", "email", "phone", "created_at"),
    "admin_roles": ("is_admin",),
}

_BOOL_COLUMNS = {"is_active", "is_admin"}


def get_conn():
    conn = sqlite3.connect(
        str(DB_PATH),
        timeout=settings.db_timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    conn = get_conn()
    with closing(conn):
        conn.executescript(SCHEMA)


def _columns(collection: str, fields) -> List[str]:
    if collection not in COLUMNS:
        raise ValueError(f"Unknown collection: {collection}")
    unknown = set(fields) - set(COLUMNS[collection])
    if unknown:
        raise ValueError(f"Unknown fields for {collection}: {sorted(unknown)}")
    return list(fields)


def _to_db(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _row_to_dict(row) -> Dict[str, Any]:
    data = dict(row)
    for key in _BOOL_COLUMNS & data.keys():
        data[key] = bool(data[key])
    return data


def _insert(conn, collection: str, doc_id: str, data: Dict[str, Any]):
    cols = _columns(collection, data)
    placeholders = ", ".join("?" for _ in range(len(cols) + 1))
    conn.execute(
        f"INSERT INTO {collection} (id, {', '.join(cols)}) VALUES ({placeholders})",
        (doc_id, *(_to_db(data[c]) for c in cols)),
    )


def _update(conn, collection: str, doc_id: str, data: Dict[str, Any]):
    cols = _columns(collection, data)
    if not cols:
        return
    assignments = ", ".join(f"{c} = ?" for c in cols)
    conn.execute(
        f"UPDATE {collection} SET {assignments} WHERE id = ?",
        (*(_to_db(data[c]) for c in cols), doc_id),
    )


def _fetch(conn, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    _columns(collection, ())
    row = conn.execute(f"SELECT * FROM {collection} WHERE id = ?", (doc_id,)).fetchone()
    return _row_to_dict(row) if row else None


# ---------- Transactions ----------

class Write(NamedTuple):
    op: str  # "set" | "update" | "delete"
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = None


class Transaction:
    """One all-or-nothing unit of work.

    Reads go straight to the store; writes are buffered and only applied when
    the transaction commits. Once a write has been buffered no further reads
    are allowed, so every decision is made on the state read at the start.
    """

    def __init__(self, conn):
        self._conn = conn
        self._writes: List[Write] = []

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        if self._writes:
            raise TransactionError("Transactions require all reads to be executed before all writes")
        return _fetch(self._conn, collection, doc_id)

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]):
        self._writes.append(Write("update", collection, doc_id, data))

    def write_all(self, writes: List[Write]):
        self._writes.extend(writes)

    def flush(self):
        for w in self._writes:
            if w.op == "set":
                _insert(self._conn, w.collection, w.doc_id, w.data)
            elif w.op == "update":
                _update(self._conn, w.collection, w.doc_id, w.data)
            elif w.op == "delete":
                _columns(w.collection, ())
                self._conn.execute(f"DELETE FROM {w.collection} WHERE id = ?", (w.doc_id,))
            else:
                raise ValueError(f"Unknown write op: {w.op}")


def _is_conflict(exc: sqlite3.OperationalError) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


def _rollback(conn):
    if conn.in_transaction:
        conn.rollback()


def run_transaction(fn: Callable[[Transaction], Any], max_attempts: Optional[int] = None):
    """Run fn(tx) atomically, retrying when another writer holds the store.

    Domain errors raised by fn roll the transaction back and propagate as-is.
    """
    attempts = max(1, max_attempts or settings.transaction_attempts)
    for attempt in range(1, attempts + 1):
        conn = get_conn()
        with closing(conn):
            try:
                conn.execute("BEGIN IMMEDIATE")
                tx = Transaction(conn)
                result = fn(tx)
                tx.flush()
                conn.execute("COMMIT")
                return result
            except sqlite3.IntegrityError as exc:
                _rollback(conn)
                logger.warning("Transaction rejected by a store constraint: %s", exc)
                raise InvalidUpdateError(f"The change breaks a store constraint: {exc}") from exc
            except sqlite3.OperationalError as exc:
                _rollback(conn)
                if not _is_conflict(exc):
                    logger.exception("Store failure during transaction")
                    raise TransientError(UNAVAILABLE_MESSAGE) from exc
                logger.warning("Transaction conflict (attempt %d/%d): %s", attempt, attempts, exc)
            except sqlite3.Error as exc:
                _rollback(conn)
                logger.exception("Store failure during transaction")
                raise TransientError(UNAVAILABLE_MESSAGE) from exc
            except BaseException:
                _rollback(conn)
                raise
    raise ConflictError(f"Booking could not be saved after {attempts} attempts. Please try again.")


# ---------- Instructors ----------

def insert_instructor(name: str, bio: Optional[str] = None, is_active: bool = True) -> str:
    instructor_id = generate_id("ins")
    conn = get_conn()
    with closing(conn):
        _insert(conn, "instructors", instructor_id, {
            "name": name, "bio": bio, "is_active": is_active, "created_at": utc_now_iso(),
        })
    return instructor_id


def get_instructor(instructor_id: str) -> Optional[Dict[str, Any]]:
    conn = get_conn()
    with closing(conn):
        return _fetch(conn, "instructors", instructor_id)


def list_instructors(active_only: bool = False) -> List[Dict[str, Any]]:
    query = "SELECT * FROM instructors"
    if active_only:
        query += " WHERE is_active = 1"
    query += " ORDER BY name"
    conn = get_conn()
    with closing(conn):
        return [_row_to_dict(r) for r in conn.execute(query).fetchall()]


def update_instructor(instructor_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    conn = get_conn()
    with closing(conn):
        _update(conn, "instructors", instructor_id, fields)
        updated = _fetch(conn, "instructors", instructor_id)
    if updated is None:
        raise NotFoundError(f"Instructor {instructor_id} not found")
    return updated


def delete_instructor(instructor_id: str) -> bool:
    # Classes and bookings keep their instructor_id; display falls back to the raw id.
    conn = get_conn()
    with closing(conn):
        cur = conn.execute("DELETE FROM instructors WHERE id = ?", (instructor_id,))
        return cur.rowcount > 0


# ---------- Classes ----------

def insert_class(
    title: str,
    instructor_id: str,
    class_date,
    start_time: str,
    end_time: str,
    capacity: int,
    is_active: bool = True,
) -> str:
    class_id = generate_id("cls")
    conn = get_conn()
    with closing(conn):
        _insert(conn, "classes", class_id, {
            "title": title,
            "instructor_id": instructor_id,
            "date": class_date,
            "start_time": start_time,
            "end_time": end_time,
            "capacity": capacity,
            "booked_slots": 0,
            "is_active": is_active,
            "created_at": utc_now_iso(),
        })
    return class_id


def get_class(class_id: str) -> Optional[Dict[str, Any]]:
    conn = get_conn()
    with closing(conn):
        return _fetch(conn, "classes", class_id)


def list_classes() -> List[Dict[str, Any]]:
    conn = get_conn()
    with closing(conn):
        rows = conn.execute("SELECT * FROM classes ORDER BY date, start_time, rowid").fetchall()
        return [_row_to_dict(r) for r in rows]


def list_active_classes_between(
    start_date: str, end_date: str, instructor_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Active classes dated within [start_date, end_date], ordered by date then start time."""
    query = "SELECT * FROM classes WHERE date >= ? AND date <= ? AND is_active = 1"
    params: list = [start_date, end_date]
    if instructor_id:
        query += " AND instructor_id = ?"
        params.append(instructor_id)
    query += " ORDER BY date, start_time, rowid"
    conn = get_conn()
    with closing(conn):
        return [_row_to_dict(r) for r in conn.execute(query, params).fetchall()]


def update_class(class_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Edit schedule fields of a class. booked_slots is owned by the ledger and never touched here."""
    changes = {k: v for k, v in fields.items() if k not in ("booked_slots", "created_at")}

    def work(tx: Transaction):
        current = tx.get("classes", class_id)
        if current is None:
            raise NotFoundError(f"Class {class_id} not found")
        capacity = changes.get("capacity", current["capacity"])
        if capacity < current["booked_slots"]:
            raise InvalidUpdateError(
                f"Capacity {capacity} is below the {current['booked_slots']} slots already booked"
            )
        tx.update("classes", class_id, changes)
        return {**current, **{k: _to_db(v) for k, v in changes.items()}}

    updated = run_transaction(work)
    for key in _BOOL_COLUMNS & updated.keys():
        updated[key] = bool(updated[key])
    return updated


def delete_class(class_id: str) -> bool:
    # Existing bookings are left in place and keep their class snapshot.
    conn = get_conn()
    with closing(conn):
        cur = conn.execute("DELETE FROM classes WHERE id = ?", (class_id,))
        return cur.rowcount > 0


# ---------- Bookings ----------

def get_booking(booking_id: str) -> Optional[Dict[str, Any]]:
    conn = get_conn()
    with closing(conn):
        return _fetch(conn, "bookings", booking_id)


def list_bookings() -> List[Dict[str, Any]]:
    conn = get_conn()
    with closing(conn):
        rows = conn.execute("SELECT * FROM bookings ORDER BY created_at DESC").fetchall()
        return [_row_to_dict(r) for r in rows]


def list_bookings_by_email(email: str) -> List[Dict[str, Any]]:
    conn = get_conn()
    with closing(conn):
        rows = conn.execute(
            "SELECT * FROM bookings WHERE lower(email) = lower(?) ORDER BY created_at DESC",
            (email,),
        ).fetchall()
        return [_row_to_dict(r) for r in rows]


def count_occupying_bookings(class_id: str) -> int:
    conn = get_conn()
    with closing(conn):
        cur = conn.execute(
            "SELECT COUNT(*) FROM bookings WHERE class_id = ? AND status IN ('Pending', 'Confirmed')",
            (class_id,),
        )
        return cur.fetchone()[0]


# ---------- Profiles & roles ----------

def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    conn = get_conn()
    with closing(conn):
        return _fetch(conn, "user_profiles", user_id)


def upsert_profile(user_id: str, first_name: str, last_name: str, email: str, phone: Optional[str]) -> Dict[str, Any]:
    conn = get_conn()
    with closing(conn):
        conn.execute(
            """INSERT INTO user_profiles (id, first_name, last_name, email, phone, created_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   first_name = excluded.first_name,
                   last_name = excluded.last_name,
                   email = excluded.email,
                   phone = excluded.phone""",
            (user_id, first_name, last_name, email, phone, utc_now_iso()),
        )
        return _fetch(conn, "user_profiles", user_id)


def is_admin(user_id: str) -> bool:
    conn = get_conn()
    with closing(conn):
        role = _fetch(conn, "admin_roles", user_id)
    return bool(role and role["is_admin"] is True)


def set_admin(user_id: str, admin: bool = True):
    conn = get_conn()
    with closing(conn):
        conn.execute(
            "INSERT INTO admin_roles (id, is_admin) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET is_admin = excluded.is_admin",
            (user_id, int(admin)),
        )


def overview_counts() -> Dict[str, int]:
    conn = get_conn()
    with closing(conn):
        total_classes = conn.execute("SELECT COUNT(*) FROM classes").fetchone()[0]
        upcoming = conn.execute(
            "SELECT COUNT(*) FROM bookings WHERE status IN ('Pending', 'Confirmed')"
        ).fetchone()[0]
        users = conn.execute("SELECT COUNT(*) FROM user_profiles").fetchone()[0]
    return {"total_classes": total_classes, "upcoming_bookings": upcoming, "registered_users": users}


def clear_schedule():
    """Remove every booking and class (used by seeding with --force)."""
    conn = get_conn()
    with closing(conn):
        conn.execute("DELETE FROM bookings")
        conn.execute("DELETE FROM classes")
