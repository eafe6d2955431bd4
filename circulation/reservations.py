from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from circulation.config import RESERVATION_ID_PREFIX, RESERVATION_ID_WIDTH
from circulation.errors import (
    AlreadyCancelled,
    BorrowerIneligible,
    DuplicateReservation,
    NotFoundError,
)
from circulation.ids import next_id
from circulation.inventory import InventoryCoordinator
from circulation.members import MembershipRegistry
from circulation.records import ReservationRecord

logger = logging.getLogger(__name__)


class ReservationQueueManager:
    """
    Очереди ожидания по книгам (FIFO по дате резерва).

    Очередь книги не пуста тогда и только тогда, когда у книги стоит флаг
    reserved: оба меняются внутри reserve()/cancel().

    Возврат экземпляра очередь не двигает: вызывающий сам смотрит
    peek_next() и закрывает резерв через cancel().
    """

    def __init__(
        self,
        inventory: InventoryCoordinator,
        members: MembershipRegistry,
        clock,
        reservations: Optional[Iterable[ReservationRecord]] = None,
    ) -> None:
        self.inventory = inventory
        self.members = members
        self.clock = clock
        self._reservations: Dict[str, ReservationRecord] = {
            r.reservation_id: replace(r) for r in reservations or ()
        }
        self._queues: Dict[str, List[str]] = {}
        self.rebuild_queues()

    def rebuild_queues(self) -> None:
        """Собирает очереди заново из активных резервов и выставляет флаги книг."""
        groups: Dict[str, List[ReservationRecord]] = {}
        for r in self._reservations.values():
            if r.active:
                groups.setdefault(r.isbn, []).append(r)

        # sorted() устойчив: в пределах одного дня сохраняется порядок создания
        self._queues = {
            isbn: [r.reservation_id for r in sorted(items, key=lambda r: r.reservation_date)]
            for isbn, items in groups.items()
        }

        for title in self.inventory.list_all():
            self.inventory.set_reserved(title.isbn, bool(self._queues.get(title.isbn)))

    # ---------- резерв / отмена ----------
    def reserve(self, member_id: str, isbn: str) -> str:
        logger.info("reserve called | member_id=%s isbn=%s", member_id, isbn)

        if self.members.is_expired(member_id):
            raise BorrowerIneligible(f"Абонемент читателя {member_id} истёк.")
        self.inventory.get(isbn)

        for r in self._reservations.values():
            if r.active and r.member_id == member_id and r.isbn == isbn:
                raise DuplicateReservation(
                    f"У читателя {member_id} уже есть активный резерв {r.reservation_id} на книгу {isbn}."
                )

        today = self.clock.today()
        reservation = ReservationRecord(
            reservation_id=next_id(
                RESERVATION_ID_PREFIX, today, self._reservations.keys(), RESERVATION_ID_WIDTH
            ),
            member_id=member_id,
            isbn=isbn,
            reservation_date=today,
        )
        self._reservations[reservation.reservation_id] = reservation
        self._queues.setdefault(isbn, []).append(reservation.reservation_id)
        self.inventory.set_reserved(isbn, True)

        logger.info(
            "Reservation created | reservation_id=%s position=%s",
            reservation.reservation_id, len(self._queues[isbn]),
        )
        return reservation.reservation_id

    def cancel(self, reservation_id: str) -> ReservationRecord:
        reservation = self._record(reservation_id)
        if not reservation.active:
            raise AlreadyCancelled(f"Резерв {reservation_id} уже не активен.")

        isbn = reservation.isbn
        reservation.active = False

        queue = self._queues.get(isbn, [])
        if reservation_id in queue:
            queue.remove(reservation_id)
        if not queue:
            self._queues.pop(isbn, None)

        if self.inventory.exists(isbn):
            self.inventory.set_reserved(isbn, self.has_active_reservations(isbn))

        logger.info("Reservation cancelled | reservation_id=%s", reservation_id)
        return replace(reservation)

    # ---------- очередь ----------
    def queue_position(self, reservation_id: str) -> Optional[int]:
        reservation = self._reservations.get(reservation_id)
        if reservation is None or not reservation.active:
            return None
        queue = self._queues.get(reservation.isbn, [])
        if reservation_id not in queue:
            return None
        return queue.index(reservation_id) + 1

    def peek_next(self, isbn: str) -> Optional[str]:
        queue = self._queues.get(isbn)
        return queue[0] if queue else None

    def queue_length(self, isbn: str) -> int:
        return len(self._queues.get(isbn, []))

    def queue_for(self, isbn: str) -> List[str]:
        return list(self._queues.get(isbn, []))

    def has_active_reservations(self, isbn: str) -> bool:
        return bool(self._queues.get(isbn))

    # ---------- выборки ----------
    def _record(self, reservation_id: str) -> ReservationRecord:
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Резерв {reservation_id} не найден.")
        return reservation

    def get(self, reservation_id: str) -> ReservationRecord:
        return replace(self._record(reservation_id))

    def list_all(self) -> List[ReservationRecord]:
        return [replace(r) for r in self._reservations.values()]

    def list_active(self) -> List[ReservationRecord]:
        return [replace(r) for r in self._reservations.values() if r.active]

    def list_for_member(self, member_id: str) -> List[ReservationRecord]:
        return [replace(r) for r in self._reservations.values() if r.member_id == member_id]
