"""
Сохранение и загрузка состояния выдачи.

save_all() каждый раз переписывает таблицы целиком в одной транзакции;
ошибки peewee уходят вызывающему без обработки.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, NamedTuple

from circulation.db import db
from circulation.models import MODELS, Book, Loan, Member, Reservation
from circulation.records import Borrower, LoanRecord, ReservationRecord, Title

logger = logging.getLogger(__name__)

# SQLite ограничивает число параметров в одном запросе
_BATCH_SIZE = 100


class Snapshot(NamedTuple):
    titles: List[Title]
    members: List[Borrower]
    loans: List[LoanRecord]
    reservations: List[ReservationRecord]


def create_schema() -> None:
    parent = Path(db.database).parent if db.database and db.database != ":memory:" else None
    if parent is not None:
        parent.mkdir(parents=True, exist_ok=True)
    db.create_tables(MODELS, safe=True)


def _title_from_row(row: Book) -> Title:
    return Title(
        isbn=row.isbn,
        title=row.title,
        author=row.author,
        publisher=row.publisher,
        genre=row.genre,
        total_copies=row.total_copies,
        available_copies=row.available_copies,
        reserved=row.is_reserved,
    )


def _member_from_row(row: Member) -> Borrower:
    return Borrower(
        member_id=row.member_id,
        name=row.name,
        phone=row.phone,
        registration_date=row.registration_date,
        expiry_date=row.expiry_date,
        max_books=row.max_books,
        is_admin=row.is_admin,
        password_hash=row.password_hash,
        preferences=list(row.preferences or []),
    )


def _loan_from_row(row: Loan) -> LoanRecord:
    return LoanRecord(
        loan_id=row.loan_id,
        member_id=row.member_id,
        isbn=row.isbn,
        borrow_date=row.borrow_date,
        due_date=row.due_date,
        return_date=row.return_date,
        renew_count=row.renew_count,
        fine=row.fine,
        returned=row.is_returned,
    )


def _reservation_from_row(row: Reservation) -> ReservationRecord:
    return ReservationRecord(
        reservation_id=row.reservation_id,
        member_id=row.member_id,
        isbn=row.isbn,
        reservation_date=row.reservation_date,
        active=row.is_active,
    )


def load_all() -> Snapshot:
    snapshot = Snapshot(
        titles=[_title_from_row(r) for r in Book.select().order_by(Book.isbn)],
        members=[_member_from_row(r) for r in Member.select().order_by(Member.member_id)],
        loans=[_loan_from_row(r) for r in Loan.select().order_by(Loan.loan_id)],
        reservations=[
            _reservation_from_row(r)
            for r in Reservation.select().order_by(Reservation.seq, Reservation.reservation_id)
        ],
    )
    logger.info(
        "Loaded | titles=%s members=%s loans=%s reservations=%s",
        len(snapshot.titles), len(snapshot.members), len(snapshot.loans), len(snapshot.reservations),
    )
    return snapshot


def _insert(model, rows: Iterable[dict]) -> None:
    rows = list(rows)
    for i in range(0, len(rows), _BATCH_SIZE):
        model.insert_many(rows[i:i + _BATCH_SIZE]).execute()


def save_all(snapshot: Snapshot) -> None:
    with db.atomic():
        for model in MODELS:
            model.delete().execute()

        _insert(Book, (
            {
                "isbn": t.isbn,
                "title": t.title,
                "author": t.author,
                "publisher": t.publisher,
                "genre": t.genre,
                "total_copies": t.total_copies,
                "available_copies": t.available_copies,
                "is_reserved": t.reserved,
            }
            for t in snapshot.titles
        ))
        _insert(Member, (
            {
                "member_id": m.member_id,
                "name": m.name,
                "phone": m.phone,
                "preferences": list(m.preferences),
                "registration_date": m.registration_date,
                "expiry_date": m.expiry_date,
                "max_books": m.max_books,
                "is_admin": m.is_admin,
                "password_hash": m.password_hash,
            }
            for m in snapshot.members
        ))
        _insert(Loan, (
            {
                "loan_id": l.loan_id,
                "member_id": l.member_id,
                "isbn": l.isbn,
                "borrow_date": l.borrow_date,
                "due_date": l.due_date,
                "return_date": l.return_date,
                "renew_count": l.renew_count,
                "fine": l.fine,
                "is_returned": l.returned,
            }
            for l in snapshot.loans
        ))
        _insert(Reservation, (
            {
                "reservation_id": r.reservation_id,
                "member_id": r.member_id,
                "isbn": r.isbn,
                "reservation_date": r.reservation_date,
                "is_active": r.active,
                "seq": seq,
            }
            for seq, r in enumerate(snapshot.reservations)
        ))

    logger.debug("Saved snapshot")
