from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from circulation.config import (
    LOAN_ID_PREFIX,
    LOAN_ID_WIDTH,
    MAX_TOTAL_LOAN_DAYS,
    RENEWAL_DAYS,
    Settings,
)
from circulation.errors import (
    AlreadyReturned,
    BorrowerIneligible,
    NotFoundError,
    RenewalLimitExceeded,
    TitleUnavailable,
)
from circulation.ids import next_id
from circulation.inventory import InventoryCoordinator
from circulation.members import MembershipRegistry
from circulation.records import LoanRecord

logger = logging.getLogger(__name__)


def compute_fine(due_date: date, today: date, fine_per_day: float, max_fine: float) -> float:
    if today <= due_date:
        return 0.0
    days_overdue = (today - due_date).days
    return min(days_overdue * fine_per_day, max_fine)


class LoanLedger:
    """
    Выдачи: open -> returned, других состояний нет.

    Срок продлевается на RENEWAL_DAYS, пока от даты выдачи до срока
    возврата не больше MAX_TOTAL_LOAN_DAYS. Штраф по открытой выдаче
    считается на сегодня, по закрытой фиксируется в момент возврата.
    """

    def __init__(
        self,
        inventory: InventoryCoordinator,
        members: MembershipRegistry,
        clock,
        settings: Settings,
        loans: Optional[Iterable[LoanRecord]] = None,
    ) -> None:
        self.inventory = inventory
        self.members = members
        self.clock = clock
        self.settings = settings
        self._loans: Dict[str, LoanRecord] = {l.loan_id: replace(l) for l in loans or ()}

    # ---------- выдача ----------
    def borrow(self, member_id: str, isbn: str) -> str:
        logger.info("borrow called | member_id=%s isbn=%s", member_id, isbn)

        if self.members.is_expired(member_id):
            raise BorrowerIneligible(f"Абонемент читателя {member_id} истёк.")

        limit = self.members.max_books_allowed(member_id)
        active = self.active_count(member_id)
        if active >= limit:
            raise BorrowerIneligible(
                f"У читателя {member_id} уже {active} книг(и) на руках (лимит {limit})."
            )

        title = self.inventory.get(isbn)
        if not title.can_borrow():
            if title.reserved:
                raise TitleUnavailable(f"Книга {isbn} в резерве.")
            raise TitleUnavailable(f"Нет свободных экземпляров книги {isbn}.")

        today = self.clock.today()
        loan = LoanRecord(
            loan_id=next_id(LOAN_ID_PREFIX, today, self._loans.keys(), LOAN_ID_WIDTH),
            member_id=member_id,
            isbn=isbn,
            borrow_date=today,
            due_date=today + timedelta(days=self.settings.loan_days),
        )
        self.inventory.commit_borrow(isbn)
        self._loans[loan.loan_id] = loan

        logger.info("Loan opened | loan_id=%s due=%s", loan.loan_id, loan.due_date)
        return loan.loan_id

    def can_renew(self, loan_id: str) -> bool:
        loan = self._record(loan_id)
        return not loan.returned and loan.span_days + RENEWAL_DAYS <= MAX_TOTAL_LOAN_DAYS

    def renew(self, loan_id: str) -> LoanRecord:
        loan = self._record(loan_id)
        if loan.returned:
            raise AlreadyReturned(f"Выдача {loan_id} уже закрыта.")
        if loan.span_days + RENEWAL_DAYS > MAX_TOTAL_LOAN_DAYS:
            raise RenewalLimitExceeded(
                f"Продлить нельзя: срок выдачи превысит {MAX_TOTAL_LOAN_DAYS} дней."
            )

        loan.due_date = loan.due_date + timedelta(days=RENEWAL_DAYS)
        loan.renew_count += 1
        logger.info("Loan renewed | loan_id=%s due=%s renewals=%s", loan_id, loan.due_date, loan.renew_count)
        return replace(loan)

    def return_loan(self, loan_id: str) -> LoanRecord:
        loan = self._record(loan_id)
        if loan.returned:
            raise AlreadyReturned(f"Выдача {loan_id} уже закрыта.")

        # сначала фонд: если книги уже нет в каталоге, выдача остаётся открытой
        self.inventory.commit_return(loan.isbn)

        today = self.clock.today()
        loan.fine = self._fine_on(loan, today)
        loan.return_date = today
        loan.returned = True

        logger.info("Loan returned | loan_id=%s fine=%.2f", loan_id, loan.fine)
        return replace(loan)

    def renew_for_member(self, member_id: str, isbn: str) -> LoanRecord:
        return self.renew(self._active_loan_for(member_id, isbn).loan_id)

    def return_for_member(self, member_id: str, isbn: str) -> LoanRecord:
        return self.return_loan(self._active_loan_for(member_id, isbn).loan_id)

    # ---------- штрафы ----------
    def _fine_on(self, loan: LoanRecord, today: date) -> float:
        return compute_fine(loan.due_date, today, self.settings.fine_per_day, self.settings.max_fine)

    def fine(self, loan_id: str) -> float:
        loan = self._record(loan_id)
        if loan.returned:
            return loan.fine
        return self._fine_on(loan, self.clock.today())

    def outstanding_fines(self, member_id: Optional[str] = None) -> float:
        """Сумма штрафов по ещё не сданным книгам (на сегодня)."""
        return sum(self.fine(l.loan_id) for l in self.list_active(member_id))

    def collected_fines(self, member_id: Optional[str] = None) -> float:
        return sum(
            l.fine for l in self._loans.values()
            if l.returned and (member_id is None or l.member_id == member_id)
        )

    # ---------- выборки ----------
    def _record(self, loan_id: str) -> LoanRecord:
        loan = self._loans.get(loan_id)
        if loan is None:
            raise NotFoundError(f"Выдача {loan_id} не найдена.")
        return loan

    def get(self, loan_id: str) -> LoanRecord:
        return replace(self._record(loan_id))

    def _active_loan_for(self, member_id: str, isbn: str) -> LoanRecord:
        for loan in self._loans.values():
            if loan.member_id == member_id and loan.isbn == isbn and not loan.returned:
                return loan
        raise NotFoundError(f"У читателя {member_id} нет открытой выдачи книги {isbn}.")

    def active_count(self, member_id: str) -> int:
        return sum(1 for l in self._loans.values() if l.member_id == member_id and not l.returned)

    def list_all(self) -> List[LoanRecord]:
        return [replace(l) for l in self._loans.values()]

    def history(self, member_id: str) -> List[LoanRecord]:
        return [replace(l) for l in self._loans.values() if l.member_id == member_id]

    def list_active(self, member_id: Optional[str] = None) -> List[LoanRecord]:
        return [
            replace(l) for l in self._loans.values()
            if not l.returned and (member_id is None or l.member_id == member_id)
        ]

    def list_overdue(self) -> List[LoanRecord]:
        today = self.clock.today()
        return [replace(l) for l in self._loans.values() if l.is_overdue(today)]

    def has_active_for_title(self, isbn: str) -> bool:
        return any(l.isbn == isbn and not l.returned for l in self._loans.values())
