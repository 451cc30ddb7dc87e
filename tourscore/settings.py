import os
from dataclasses import dataclass
from typing import Optional

HOLES_PER_ROUND = 18
STANDARD_SLOPE_RATING = 113
UNREPORTED_HOLE = -1

MIN_PAR = 3
MAX_PAR = 6
MIN_COURSE_RATING = 50.0
MAX_COURSE_RATING = 90.0
MIN_SLOPE_RATING = 55
MAX_SLOPE_RATING = 155
MIN_HANDICAP_INDEX = -10.0
MAX_HANDICAP_INDEX = 54.0
MAX_HOLE_STROKES = 20

DEFAULT_DATABASE_URL = "postgresql://localhost/tourscore"


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str


def _normalize_database_url(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_DATABASE_URL
    normalized = value.strip()
    if normalized.startswith("postgres://"):
        return "postgresql://" + normalized[len("postgres://"):]
    return normalized


def _normalize_log_level(value: Optional[str]) -> str:
    level = (value or "INFO").strip().upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return "INFO"
    return level


def load_settings() -> Settings:
    database_url = _normalize_database_url(os.getenv("DATABASE_URL"))
    log_level = _normalize_log_level(os.getenv("TOURSCORE_LOG_LEVEL"))
    return Settings(
        database_url=database_url,
        log_level=log_level,
    )
