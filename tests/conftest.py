from datetime import date, timedelta

import pytest

from circulation.clock import FixedClock
from circulation.config import Settings
from circulation.db import db
from circulation.inventory import InventoryCoordinator
from circulation.loans import LoanLedger
from circulation.members import MembershipRegistry
from circulation.records import Borrower, Title
from circulation.reservations import ReservationQueueManager
from circulation.services import CirculationDesk
from circulation.storage import create_schema

DAY0 = date(2026, 1, 5)


def make_member(member_id, expiry=None, max_books=2, name=None):
    return Borrower(
        member_id=member_id,
        name=name or f"Reader {member_id}",
        phone="0123456789",
        registration_date=DAY0 - timedelta(days=30),
        expiry_date=expiry or DAY0 + timedelta(days=365),
        max_books=max_books,
    )


@pytest.fixture
def clock():
    return FixedClock(DAY0)


@pytest.fixture
def settings():
    # минимальная стоимость bcrypt, чтобы тесты шли быстро
    return Settings(bcrypt_rounds=4)


@pytest.fixture
def inventory():
    return InventoryCoordinator([
        Title("X", "Dune", "Frank Herbert", "Ace", "Fiction", total_copies=2, available_copies=2),
        Title("Y", "Clean Code", "Robert C. Martin", "Prentice Hall", "Non-Fiction", total_copies=1, available_copies=1),
    ])


@pytest.fixture
def members(clock, settings):
    return MembershipRegistry(clock, settings, [
        make_member("M20261001"),
        make_member("M20261002"),
        make_member("M20261003"),
        make_member("M20254001", expiry=DAY0 - timedelta(days=1)),
    ])


@pytest.fixture
def ledger(inventory, members, clock, settings):
    return LoanLedger(inventory, members, clock, settings)


@pytest.fixture
def queues(inventory, members, clock):
    return ReservationQueueManager(inventory, members, clock)


@pytest.fixture
def saves():
    return []


@pytest.fixture
def desk(inventory, members, ledger, queues, saves):
    return CirculationDesk(inventory, members, ledger, queues, save=saves.append)


@pytest.fixture
def sqlite_db(tmp_path):
    db.init(str(tmp_path / "library.db"))
    db.connect(reuse_if_open=True)
    create_schema()
    yield db
    if not db.is_closed():
        db.close()
