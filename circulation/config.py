from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Политика выдачи
DEFAULT_LOAN_DAYS = 14
RENEWAL_DAYS = 7
MAX_TOTAL_LOAN_DAYS = 30

# Штрафы
FINE_PER_DAY = 2.0
MAX_FINE = 14.0

# Читатели
DEFAULT_MAX_BOOKS = 2
MIN_MAX_BOOKS = 1
MAX_MAX_BOOKS = 10
MEMBERSHIP_DAYS = 365
MAX_PREFERENCES = 5
PHONE_LENGTH = 10
MAX_NAME_LENGTH = 100

# Префиксы и ширина номеров
LOAN_ID_PREFIX = "T"
RESERVATION_ID_PREFIX = "R"
MEMBER_ID_PREFIX = "M"
ADMIN_ID_PREFIX = "A"
LOAN_ID_WIDTH = 5
RESERVATION_ID_WIDTH = 5
MEMBER_ID_WIDTH = 3

BCRYPT_ROUNDS = 12
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@dataclass(frozen=True)
class Settings:
    loan_days: int = DEFAULT_LOAN_DAYS
    fine_per_day: float = FINE_PER_DAY
    max_fine: float = MAX_FINE
    default_max_books: int = DEFAULT_MAX_BOOKS
    membership_days: int = MEMBERSHIP_DAYS
    bcrypt_rounds: int = BCRYPT_ROUNDS


def _env_value(
    name: str,
    cast: Callable[[str], T],
    default: T,
    valid: Callable[[T], bool],
) -> T:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring %s=%r: not a valid value", name, raw)
        return default
    if not valid(value):
        logger.warning("Ignoring %s=%r: out of range", name, raw)
        return default
    return value


def load_settings() -> Settings:
    """Собирает настройки из переменных окружения CIRCULATION_*"""
    return Settings(
        loan_days=_env_value(
            "CIRCULATION_LOAN_DAYS", int, DEFAULT_LOAN_DAYS,
            lambda v: 0 < v <= MAX_TOTAL_LOAN_DAYS,
        ),
        fine_per_day=_env_value("CIRCULATION_FINE_PER_DAY", float, FINE_PER_DAY, lambda v: v > 0),
        max_fine=_env_value("CIRCULATION_MAX_FINE", float, MAX_FINE, lambda v: v > 0),
        default_max_books=_env_value(
            "CIRCULATION_DEFAULT_MAX_BOOKS", int, DEFAULT_MAX_BOOKS,
            lambda v: MIN_MAX_BOOKS <= v <= MAX_MAX_BOOKS,
        ),
        membership_days=_env_value("CIRCULATION_MEMBERSHIP_DAYS", int, MEMBERSHIP_DAYS, lambda v: v > 0),
        # bcrypt принимает 4..31
        bcrypt_rounds=_env_value("CIRCULATION_BCRYPT_ROUNDS", int, BCRYPT_ROUNDS, lambda v: 4 <= v <= 31),
    )


def configure_logging(level: Optional[str] = None) -> None:
    level = (level or os.getenv("CIRCULATION_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
