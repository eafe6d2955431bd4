from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from circulation.config import configure_logging
from circulation.db import db
from circulation.services import CirculationDesk
from circulation.storage import create_schema

logger = logging.getLogger(__name__)

# (имя, телефон, пароль, любимые жанры, админ)
DEFAULT_MEMBERS: List[Tuple[str, str, str, List[str], bool]] = [
    ("Library Admin", "0000000001", "admin123", [], True),
    ("Alice Reader", "0000000002", "alice123", ["Fiction", "History"], False),
    ("Bob Reader", "0000000003", "bob123", ["Science"], False),
]

# (isbn, название, автор, издательство, жанр, экземпляров)
DEFAULT_TITLES: List[Tuple[str, str, str, str, str, int]] = [
    ("9780441172719", "Dune", "Frank Herbert", "Ace", "Fiction", 2),
    ("9780590353427", "Harry Potter and the Sorcerer's Stone", "J.K. Rowling", "Scholastic", "Fiction", 1),
    ("9780132350884", "Clean Code", "Robert C. Martin", "Prentice Hall", "Non-Fiction", 3),
    ("9780553380163", "A Brief History of Time", "Stephen Hawking", "Bantam", "Science", 2),
    ("9780679783268", "Team of Rivals", "Doris Kearns Goodwin", "Simon & Schuster", "History", 1),
    ("9781501127625", "Steve Jobs", "Walter Isaacson", "Simon & Schuster", "Biography", 2),
]


def seed_desk(desk: CirculationDesk) -> Dict[str, str]:
    """Заполняет пустой стол демо-данными; возвращает имя -> ID читателя."""
    member_ids: Dict[str, str] = {}

    with desk.batch():
        for isbn, title, author, publisher, genre, copies in DEFAULT_TITLES:
            if desk.inventory.exists(isbn):
                continue
            ok, msg = desk.add_title(isbn, title, author, publisher, genre, copies)
            if not ok:
                logger.warning("Seed title skipped | isbn=%s reason=%s", isbn, msg)

        for name, phone, password, prefs, admin in DEFAULT_MEMBERS:
            existing: Optional[str] = next(
                (m.member_id for m in desk.members.list_all() if m.phone == phone), None
            )
            if existing:
                member_ids[name] = existing
                continue
            ok, msg, member_id = desk.register_member(name, phone, password, prefs, admin)
            if ok:
                member_ids[name] = member_id

        # одна выдача и одна очередь на книгу без свободных экземпляров
        alice = member_ids.get("Alice Reader")
        bob = member_ids.get("Bob Reader")
        if alice and not desk.loans.list_active(alice):
            desk.issue_loan(alice, "9780590353427")
        if bob and not desk.reservations.list_for_member(bob):
            desk.create_reservation(bob, "9780590353427")

    return member_ids


def run_seed() -> Dict[str, str]:
    db.connect(reuse_if_open=True)
    try:
        create_schema()
        desk = CirculationDesk.load()
        return seed_desk(desk)
    finally:
        if not db.is_closed():
            db.close()


if __name__ == "__main__":
    configure_logging()
    ids = run_seed()
    print("Seed OK.")
    print("Members:")
    for name, member_id in ids.items():
        print(f"  {member_id}  {name}")
