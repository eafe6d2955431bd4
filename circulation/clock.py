from __future__ import annotations

from datetime import date, timedelta


class SystemClock:
    def today(self) -> date:
        return date.today()


class FixedClock:
    """Часы для тестов: дата меняется только вручную."""

    def __init__(self, current: date):
        self.current = current

    def today(self) -> date:
        return self.current

    def advance(self, days: int) -> date:
        self.current = self.current + timedelta(days=days)
        return self.current
