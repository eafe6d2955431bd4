from __future__ import annotations

import logging
from collections import Counter
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from circulation import storage
from circulation.clock import SystemClock
from circulation.config import Settings, load_settings
from circulation.errors import CirculationError
from circulation.inventory import InventoryCoordinator
from circulation.loans import LoanLedger
from circulation.members import MembershipRegistry
from circulation.records import Title
from circulation.reservations import ReservationQueueManager
from circulation.storage import Snapshot

logger = logging.getLogger(__name__)

Saver = Callable[[Snapshot], None]


class CirculationDesk:
    """
    Связывает фонд, читателей, выдачи и резервы с хранилищем.

    После каждого успешного изменения состояние сохраняется целиком
    (autosave). Внутри batch() сохранение откладывается до выхода из блока.
    """

    def __init__(
        self,
        inventory: InventoryCoordinator,
        members: MembershipRegistry,
        loans: LoanLedger,
        reservations: ReservationQueueManager,
        save: Optional[Saver] = storage.save_all,
        autosave: bool = True,
    ) -> None:
        self.inventory = inventory
        self.members = members
        self.loans = loans
        self.reservations = reservations
        self._save = save
        self.autosave = autosave

    @classmethod
    def build(
        cls,
        clock=None,
        settings: Optional[Settings] = None,
        snapshot: Optional[Snapshot] = None,
        save: Optional[Saver] = storage.save_all,
        autosave: bool = True,
    ) -> "CirculationDesk":
        clock = clock or SystemClock()
        settings = settings or load_settings()
        snapshot = snapshot or Snapshot([], [], [], [])

        # один общий фонд и один реестр читателей на все компоненты
        inventory = InventoryCoordinator(snapshot.titles)
        members = MembershipRegistry(clock, settings, snapshot.members)
        loans = LoanLedger(inventory, members, clock, settings, snapshot.loans)
        reservations = ReservationQueueManager(inventory, members, clock, snapshot.reservations)
        return cls(inventory, members, loans, reservations, save=save, autosave=autosave)

    @classmethod
    def load(
        cls,
        clock=None,
        settings: Optional[Settings] = None,
        loader: Callable[[], Snapshot] = storage.load_all,
        save: Optional[Saver] = storage.save_all,
    ) -> "CirculationDesk":
        return cls.build(clock=clock, settings=settings, snapshot=loader(), save=save)

    # ---------- сохранение ----------
    def snapshot(self) -> Snapshot:
        return Snapshot(
            titles=self.inventory.list_all(),
            members=self.members.list_all(),
            loans=self.loans.list_all(),
            reservations=self.reservations.list_all(),
        )

    def flush(self) -> None:
        if self._save is not None:
            self._save(self.snapshot())

    def _changed(self) -> None:
        if self.autosave:
            self.flush()

    @contextmanager
    def batch(self) -> Iterator["CirculationDesk"]:
        previous = self.autosave
        self.autosave = False
        try:
            yield self
        except BaseException:
            self.autosave = previous
            # ошибку сохранения только пишем в лог, наружу уходит исходная
            try:
                self.flush()
            except Exception:
                logger.exception("Save after failed batch failed")
            raise
        self.autosave = previous
        self.flush()

    # ---------- каталог / читатели ----------
    def add_title(
        self,
        isbn: str,
        title: str,
        author: str = "",
        publisher: str = "",
        genre: str = "",
        copies: int = 1,
    ) -> Tuple[bool, str]:
        try:
            self.inventory.add_title(Title(
                isbn=isbn,
                title=(title or "").strip(),
                author=(author or "").strip(),
                publisher=(publisher or "").strip(),
                genre=(genre or "").strip(),
                total_copies=copies,
                available_copies=copies,
            ))
        except CirculationError as e:
            return False, str(e)
        self._changed()
        return True, "Книга добавлена."

    def delete_title(self, isbn: str) -> Tuple[bool, str]:
        if self.loans.has_active_for_title(isbn):
            return False, "Нельзя удалить: по книге есть открытые выдачи."
        if self.reservations.has_active_reservations(isbn):
            return False, "Нельзя удалить: на книгу есть активные резервы."
        try:
            self.inventory.delete_title(isbn)
        except CirculationError as e:
            return False, str(e)
        self._changed()
        return True, "Книга удалена."

    def register_member(
        self,
        name: str,
        phone: str,
        password: str,
        preferences: Sequence[str] = (),
        admin: bool = False,
    ) -> Tuple[bool, str, Optional[str]]:
        try:
            member = self.members.register(name, phone, password, preferences, admin)
        except CirculationError as e:
            return False, str(e), None
        self._changed()
        return True, f"Читатель зарегистрирован, абонемент до {member.expiry_date}.", member.member_id

    def delete_member(self, member_id: str) -> Tuple[bool, str]:
        if self.loans.active_count(member_id):
            return False, "Нельзя удалить: у читателя есть открытые выдачи."
        if any(r.active for r in self.reservations.list_for_member(member_id)):
            return False, "Нельзя удалить: у читателя есть активные резервы."
        try:
            self.members.delete(member_id)
        except CirculationError as e:
            return False, str(e)
        self._changed()
        return True, "Читатель удалён."

    # ---------- выдачи ----------
    def issue_loan(self, member_id: str, isbn: str) -> Tuple[bool, str, Optional[str]]:
        try:
            loan_id = self.loans.borrow(member_id, isbn)
        except CirculationError as e:
            return False, str(e), None
        self._changed()
        loan = self.loans.get(loan_id)
        return True, f"Выдача оформлена. ID={loan_id}, до {loan.due_date}.", loan_id

    def renew_loan(self, loan_id: str) -> Tuple[bool, str]:
        try:
            loan = self.loans.renew(loan_id)
        except CirculationError as e:
            return False, str(e)
        self._changed()
        return True, f"Продлено до {loan.due_date}."

    def return_loan(self, loan_id: str) -> Tuple[bool, str]:
        try:
            loan = self.loans.return_loan(loan_id)
        except CirculationError as e:
            return False, str(e)
        self._changed()
        if loan.fine > 0:
            return True, f"Возврат оформлен. Просрочка, штраф ${loan.fine:.2f}."
        return True, "Возврат оформлен."

    # ---------- резервы ----------
    def create_reservation(self, member_id: str, isbn: str) -> Tuple[bool, str, Optional[str]]:
        try:
            reservation_id = self.reservations.reserve(member_id, isbn)
        except CirculationError as e:
            return False, str(e), None
        self._changed()
        position = self.reservations.queue_position(reservation_id)
        return True, f"Резерв создан, место в очереди: {position}.", reservation_id

    def cancel_reservation(self, reservation_id: str) -> Tuple[bool, str]:
        try:
            self.reservations.cancel(reservation_id)
        except CirculationError as e:
            return False, str(e)
        self._changed()
        return True, "Резерв отменён."

    def next_in_queue(self, isbn: str) -> Optional[Dict[str, Any]]:
        """Кто первый в очереди на книгу. Очередь не меняется."""
        reservation_id = self.reservations.peek_next(isbn)
        if reservation_id is None:
            return None
        r = self.reservations.get(reservation_id)
        member = self.members.get(r.member_id)
        return {
            "reservation_id": r.reservation_id,
            "member_id": r.member_id,
            "reader_name": member.name,
            "reader_phone": member.phone,
            "reservation_date": r.reservation_date,
        }

    # ---------- отчёты ----------
    def _loan_row(self, loan) -> Dict[str, Any]:
        title = self.inventory.get(loan.isbn) if self.inventory.exists(loan.isbn) else None
        return {
            "loan_id": loan.loan_id,
            "status": loan.status,
            "member_id": loan.member_id,
            "isbn": loan.isbn,
            "book_title": title.title if title else "",
            "borrow_date": loan.borrow_date,
            "due_date": loan.due_date,
            "return_date": loan.return_date,
            "renew_count": loan.renew_count,
            "fine": self.loans.fine(loan.loan_id),
        }

    def report_active_loans(self) -> List[Dict[str, Any]]:
        loans = sorted(self.loans.list_active(), key=lambda l: l.due_date)
        return [self._loan_row(l) for l in loans]

    def report_overdue_loans(self) -> List[Dict[str, Any]]:
        loans = sorted(self.loans.list_overdue(), key=lambda l: l.due_date)
        return [self._loan_row(l) for l in loans]

    def report_reservations(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for r in self.reservations.list_all():
            rows.append({
                "reservation_id": r.reservation_id,
                "status": r.status,
                "member_id": r.member_id,
                "isbn": r.isbn,
                "reservation_date": r.reservation_date,
                "queue_position": self.reservations.queue_position(r.reservation_id),
                "queue_length": self.reservations.queue_length(r.isbn),
            })
        return rows

    def report_inventory(self) -> List[Dict[str, Any]]:
        titles = sorted(self.inventory.list_all(), key=lambda t: t.title.lower())
        return [
            {
                "isbn": t.isbn,
                "title": t.title,
                "author": t.author,
                "genre": t.genre,
                "total": t.total_copies,
                "available": t.available_copies,
                "loaned": t.on_loan,
                "reserved": t.reserved,
                "queue_length": self.reservations.queue_length(t.isbn),
            }
            for t in titles
        ]

    def report_fines(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for m in self.members.list_all():
            outstanding = self.loans.outstanding_fines(m.member_id)
            collected = self.loans.collected_fines(m.member_id)
            if not outstanding and not collected:
                continue
            rows.append({
                "member_id": m.member_id,
                "reader_name": m.name,
                "outstanding": outstanding,
                "collected": collected,
            })
        return rows

    def report_summary(self) -> Dict[str, int]:
        titles = self.inventory.list_all()
        total_copies = sum(t.total_copies for t in titles)
        available = sum(t.available_copies for t in titles)
        members = self.members.list_all()
        admins = self.members.admin_count()
        return {
            "titles": len(titles),
            "total_copies": total_copies,
            "available_copies": available,
            "loaned_copies": total_copies - available,
            "members": len(members),
            "admins": admins,
            "regular_members": len(members) - admins,
            "loans": len(self.loans.list_all()),
            "active_loans": len(self.loans.list_active()),
            "overdue_loans": len(self.loans.list_overdue()),
            "reservations": len(self.reservations.list_all()),
            "active_reservations": len(self.reservations.list_active()),
        }

    def report_top_borrowed(self, top_n: int = 10) -> List[Dict[str, Any]]:
        """Самые выдаваемые книги: все выдачи, и открытые, и закрытые."""
        if top_n <= 0:
            top_n = 10
        counts = Counter(l.isbn for l in self.loans.list_all())
        # при равенстве выше та книга, что раньше попала в выдачи
        ranked = [isbn for isbn, _ in counts.most_common() if self.inventory.exists(isbn)]

        rows: List[Dict[str, Any]] = []
        for rank, isbn in enumerate(ranked[:top_n], start=1):
            t = self.inventory.get(isbn)
            rows.append({
                "rank": rank,
                "isbn": isbn,
                "title": t.title,
                "author": t.author,
                "borrow_count": counts[isbn],
            })
        return rows
