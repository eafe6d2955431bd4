from __future__ import annotations

from datetime import date
from typing import Iterable


def quarter_of(d: date) -> int:
    return (d.month - 1) // 3 + 1


def id_prefix(type_prefix: str, today: date) -> str:
    return f"{type_prefix}{today.year:04d}{quarter_of(today)}"


def next_id(type_prefix: str, today: date, existing: Iterable[str], width: int) -> str:
    """
    Следующий номер вида T2026400001: префикс типа + год + квартал + порядковый номер.

    Нумерация идёт заново в каждом квартале. Чужие и битые номера
    (другая ширина, не цифры) пропускаются.
    """
    prefix = id_prefix(type_prefix, today)
    max_n = 0
    for existing_id in existing:
        if not existing_id.startswith(prefix):
            continue
        suffix = existing_id[len(prefix):]
        if len(suffix) != width or not (suffix.isascii() and suffix.isdigit()):
            continue
        max_n = max(max_n, int(suffix))
    return f"{prefix}{str(max_n + 1).zfill(width)}"
