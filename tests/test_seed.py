from circulation.seed import DEFAULT_TITLES, seed_desk
from circulation.services import CirculationDesk


def test_seed_fills_empty_desk(clock, settings, saves):
    desk = CirculationDesk.build(clock=clock, settings=settings, save=saves.append)
    ids = seed_desk(desk)

    assert ids["Library Admin"] == "A20261001"
    assert ids["Alice Reader"] == "M20261001"
    assert len(desk.inventory.list_all()) == len(DEFAULT_TITLES)
    assert len(saves) == 1

    hp = desk.inventory.get("9780590353427")
    assert hp.available_copies == 0
    assert hp.reserved is True
    assert desk.next_in_queue("9780590353427")["member_id"] == ids["Bob Reader"]


def test_seed_twice_adds_nothing(clock, settings, saves):
    desk = CirculationDesk.build(clock=clock, settings=settings, save=saves.append)
    first = seed_desk(desk)
    second = seed_desk(desk)

    assert first == second
    assert len(desk.members.list_all()) == 3
    assert len(desk.loans.list_all()) == 1
    assert len(desk.reservations.list_all()) == 1
