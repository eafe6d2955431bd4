from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from circulation.errors import DuplicateTitleError, InvariantViolation, NotFoundError
from circulation.records import Title

logger = logging.getLogger(__name__)

# Поля каталога, по которым разрешён поиск
SEARCH_FIELDS = ("title", "author", "publisher", "genre")


def _check_counts(isbn: str, total: int, available: int) -> None:
    if total < 0 or available < 0 or available > total:
        raise InvariantViolation(
            f"Неверные количества экземпляров для {isbn}: всего={total}, доступно={available}."
        )


class InventoryCoordinator:
    """
    Фонд: количество экземпляров по каждой книге и флаг резерва.

    Пока у книги есть хоть один активный резерв, выдать её нельзя никому,
    даже если экземпляры стоят на полке.

    Наружу отдаются копии записей; менять фонд можно только методами класса.
    """

    def __init__(self, titles: Optional[Iterable[Title]] = None) -> None:
        self._titles: Dict[str, Title] = {}
        for t in titles or ():
            _check_counts(t.isbn, t.total_copies, t.available_copies)
            self._titles[t.isbn] = replace(t)

    def _record(self, isbn: str) -> Title:
        record = self._titles.get(isbn)
        if record is None:
            raise NotFoundError(f"Книга {isbn} не найдена.")
        return record

    # ---------- каталог ----------
    def add_title(self, title: Title) -> Title:
        isbn = (title.isbn or "").strip()
        if not isbn:
            raise InvariantViolation("ISBN пустой.")
        if isbn in self._titles:
            raise DuplicateTitleError(f"Книга с ISBN {isbn} уже есть в каталоге.")
        _check_counts(isbn, title.total_copies, title.available_copies)

        # у новой книги ещё нет очереди, значит и резерва нет
        record = replace(title, isbn=isbn, reserved=False)
        self._titles[isbn] = record
        logger.info("Title added | isbn=%s total=%s", isbn, record.total_copies)
        return replace(record)

    def update_title(
        self,
        isbn: str,
        title: Optional[str] = None,
        author: Optional[str] = None,
        publisher: Optional[str] = None,
        genre: Optional[str] = None,
        total_copies: Optional[int] = None,
    ) -> Title:
        record = self._record(isbn)

        if total_copies is not None:
            # выданные экземпляры остаются выданными
            available = total_copies - record.on_loan
            _check_counts(isbn, total_copies, available)
            record.total_copies = total_copies
            record.available_copies = available

        if title is not None:
            record.title = title
        if author is not None:
            record.author = author
        if publisher is not None:
            record.publisher = publisher
        if genre is not None:
            record.genre = genre
        return replace(record)

    def delete_title(self, isbn: str) -> None:
        """Проверку выдач и резервов по книге делает вызывающая сторона."""
        self._record(isbn)
        del self._titles[isbn]
        logger.info("Title deleted | isbn=%s", isbn)

    def get(self, isbn: str) -> Title:
        return replace(self._record(isbn))

    def exists(self, isbn: str) -> bool:
        return isbn in self._titles

    def list_all(self) -> List[Title]:
        return [replace(t) for t in self._titles.values()]

    def search(self, field: str, key: str, fuzzy: bool = False) -> List[Title]:
        """
        fuzzy=False: точное совпадение с учётом регистра,
        fuzzy=True: подстрока без учёта регистра.
        """
        if field not in SEARCH_FIELDS:
            raise ValueError(f"Unknown search field: {field}")

        if not fuzzy:
            return [replace(t) for t in self._titles.values() if getattr(t, field) == key]

        needle = key.lower()
        return [replace(t) for t in self._titles.values() if needle in getattr(t, field).lower()]

    def list_borrowable(self) -> List[Title]:
        return [replace(t) for t in self._titles.values() if t.can_borrow()]

    # ---------- выдача / возврат ----------
    def can_borrow(self, isbn: str) -> bool:
        return self._record(isbn).can_borrow()

    def commit_borrow(self, isbn: str) -> bool:
        record = self._record(isbn)
        if record.available_copies <= 0:
            logger.warning("Borrow ignored: no copies left | isbn=%s", isbn)
            return False
        record.available_copies -= 1
        return True

    def commit_return(self, isbn: str) -> bool:
        record = self._record(isbn)
        if record.available_copies >= record.total_copies:
            logger.warning(
                "Return ignored: all copies already on shelf | isbn=%s total=%s",
                isbn, record.total_copies,
            )
            return False
        record.available_copies += 1
        return True

    def set_reserved(self, isbn: str, reserved: bool) -> None:
        self._record(isbn).reserved = bool(reserved)
