"""
Runtime configuration, read once from the environment (and a .env file if present).
"""
import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True), override=False)


def _get_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_path: str = os.getenv("STUDIO_DATABASE_PATH", "booking.db")
    timezone: str = os.getenv("STUDIO_TIMEZONE", "Asia/Kolkata")

    # Store / transactions
    transaction_attempts: int = max(1, int(os.getenv("STUDIO_TRANSACTION_ATTEMPTS", "5")))
    db_timeout: float = float(os.getenv("STUDIO_DB_TIMEOUT", "5.0"))

    # Display
    instructor_cache_ttl: float = float(os.getenv("STUDIO_INSTRUCTOR_CACHE_TTL", "60"))
    templates_dir: str = os.getenv("STUDIO_TEMPLATES_DIR", "templates")

    log_level: str = os.getenv("STUDIO_LOG_LEVEL", "INFO")
    seed_on_startup: bool = _get_bool("STUDIO_SEED_ON_STARTUP", False)


settings = Settings()
