"""
Read-through cache of instructor names for display.

Names may be up to `ttl` seconds stale. Nothing that changes bookings or
slots should consult it.
"""
import logging
import sqlite3
import time
from typing import Callable, Dict, List, Optional

import databases_sql
from settings import settings

logger = logging.getLogger(__name__)


class InstructorDirectory:
    def __init__(
        self,
        loader: Callable[[], List[dict]] = databases_sql.list_instructors,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._ttl = settings.instructor_cache_ttl if ttl is None else ttl
        self._clock = clock
        self._names: Dict[str, str] = {}
        self._loaded_at: Optional[float] = None

    def _stale(self) -> bool:
        return self._loaded_at is None or self._clock() - self._loaded_at >= self._ttl

    def refresh(self):
        try:
            instructors = self._loader()
        except sqlite3.Error:
            # Cosmetic only: keep showing what we had (or raw ids).
            logger.warning("Could not refresh instructor names", exc_info=True)
            self._loaded_at = self._clock()
            return
        self._names = {i["id"]: i["name"] for i in instructors}
        self._loaded_at = self._clock()

    def invalidate(self):
        self._loaded_at = None

    def name_for(self, instructor_id: Optional[str]) -> str:
        if self._stale():
            self.refresh()
        if not instructor_id:
            return "N/A"
        return self._names.get(instructor_id, instructor_id)

    def names(self) -> Dict[str, str]:
        if self._stale():
            self.refresh()
        return dict(self._names)
