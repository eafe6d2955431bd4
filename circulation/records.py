from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


@dataclass
class Title:
    isbn: str
    title: str
    author: str = ""
    publisher: str = ""
    genre: str = ""
    total_copies: int = 0
    available_copies: int = 0
    reserved: bool = False

    @property
    def on_loan(self) -> int:
        return self.total_copies - self.available_copies

    def can_borrow(self) -> bool:
        return not self.reserved and self.available_copies > 0


@dataclass
class Borrower:
    member_id: str
    name: str
    phone: str
    registration_date: date
    expiry_date: date
    max_books: int
    is_admin: bool = False
    password_hash: str = ""
    preferences: List[str] = field(default_factory=list)

    def is_expired(self, today: date) -> bool:
        return today > self.expiry_date


@dataclass
class LoanRecord:
    loan_id: str
    member_id: str
    isbn: str
    borrow_date: date
    due_date: date
    return_date: Optional[date] = None
    renew_count: int = 0
    fine: float = 0.0
    returned: bool = False

    @property
    def span_days(self) -> int:
        return (self.due_date - self.borrow_date).days

    @property
    def status(self) -> str:
        return "returned" if self.returned else "open"

    def is_overdue(self, today: date) -> bool:
        return not self.returned and today > self.due_date


@dataclass
class ReservationRecord:
    reservation_id: str
    member_id: str
    isbn: str
    reservation_date: date
    active: bool = True

    @property
    def status(self) -> str:
        return "active" if self.active else "cancelled"
