from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from circulation.auth import hash_password, verify_password
from circulation.config import (
    ADMIN_ID_PREFIX,
    MAX_MAX_BOOKS,
    MAX_NAME_LENGTH,
    MAX_PREFERENCES,
    MEMBER_ID_PREFIX,
    MEMBER_ID_WIDTH,
    MIN_MAX_BOOKS,
    PHONE_LENGTH,
    Settings,
)
from circulation.errors import NotFoundError, ValidationError
from circulation.ids import next_id
from circulation.records import Borrower

logger = logging.getLogger(__name__)

# Поля читателя, по которым разрешён поиск
SEARCH_FIELDS = ("name", "phone")


def _copy(member: Borrower) -> Borrower:
    return replace(member, preferences=list(member.preferences))


class MembershipRegistry:
    """Читатели и администраторы: сроки абонемента и лимиты книг."""

    def __init__(self, clock, settings: Settings, members: Optional[Iterable[Borrower]] = None) -> None:
        self.clock = clock
        self.settings = settings
        self._members: Dict[str, Borrower] = {m.member_id: _copy(m) for m in members or ()}

    def register(
        self,
        name: str,
        phone: str,
        password: str,
        preferences: Sequence[str] = (),
        admin: bool = False,
    ) -> Borrower:
        name = (name or "").strip()
        phone = (phone or "").strip()
        prefs = [p.strip() for p in preferences if p and p.strip()]

        if not name or len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Имя должно быть от 1 до {MAX_NAME_LENGTH} символов.")
        if len(phone) != PHONE_LENGTH or not phone.isdigit():
            raise ValidationError(f"Телефон должен состоять из {PHONE_LENGTH} цифр.")
        if len(prefs) > MAX_PREFERENCES:
            raise ValidationError(f"Не больше {MAX_PREFERENCES} любимых жанров.")
        if not password:
            raise ValidationError("Пароль пустой.")

        today = self.clock.today()
        member_id = next_id(
            ADMIN_ID_PREFIX if admin else MEMBER_ID_PREFIX,
            today,
            self._members.keys(),
            MEMBER_ID_WIDTH,
        )
        member = Borrower(
            member_id=member_id,
            name=name,
            phone=phone,
            registration_date=today,
            expiry_date=today + timedelta(days=self.settings.membership_days),
            max_books=self.settings.default_max_books,
            is_admin=admin,
            password_hash=hash_password(password, rounds=self.settings.bcrypt_rounds),
            preferences=prefs,
        )
        self._members[member_id] = member
        logger.info("Member registered | member_id=%s admin=%s", member_id, admin)
        return _copy(member)

    def _record(self, member_id: str) -> Borrower:
        member = self._members.get(member_id)
        if member is None:
            raise NotFoundError(f"Читатель {member_id} не найден.")
        return member

    def get(self, member_id: str) -> Borrower:
        return _copy(self._record(member_id))

    def exists(self, member_id: str) -> bool:
        return member_id in self._members

    def list_all(self) -> List[Borrower]:
        return [_copy(m) for m in self._members.values()]

    def search(self, field: str, key: str, fuzzy: bool = False) -> List[Borrower]:
        """Как InventoryCoordinator.search, но по имени или телефону."""
        if field not in SEARCH_FIELDS:
            raise ValueError(f"Unknown search field: {field}")

        if not fuzzy:
            return [_copy(m) for m in self._members.values() if getattr(m, field) == key]

        needle = key.lower()
        return [_copy(m) for m in self._members.values() if needle in getattr(m, field).lower()]

    def list_admins(self) -> List[Borrower]:
        return [_copy(m) for m in self._members.values() if m.is_admin]

    def admin_count(self) -> int:
        return sum(1 for m in self._members.values() if m.is_admin)

    def delete(self, member_id: str) -> None:
        """Открытые выдачи и резервы проверяет вызывающая сторона."""
        self._record(member_id)
        del self._members[member_id]
        logger.info("Member deleted | member_id=%s", member_id)

    def is_expired(self, member_id: str) -> bool:
        return self._record(member_id).is_expired(self.clock.today())

    def max_books_allowed(self, member_id: str) -> int:
        return self._record(member_id).max_books

    def set_max_books(self, member_id: str, max_books: int) -> Borrower:
        if not MIN_MAX_BOOKS <= max_books <= MAX_MAX_BOOKS:
            raise ValidationError(f"Лимит книг должен быть от {MIN_MAX_BOOKS} до {MAX_MAX_BOOKS}.")
        member = self._record(member_id)
        member.max_books = max_books
        return _copy(member)

    def renew_membership(self, member_id: str) -> Borrower:
        member = self._record(member_id)
        member.expiry_date = self.clock.today() + timedelta(days=self.settings.membership_days)
        logger.info("Membership renewed | member_id=%s until=%s", member_id, member.expiry_date)
        return _copy(member)

    def authenticate(self, member_id: str, password: str) -> Optional[Borrower]:
        member = self._members.get((member_id or "").strip())
        if member is None:
            return None
        if not verify_password(password or "", member.password_hash):
            return None
        return _copy(member)
