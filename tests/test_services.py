from datetime import timedelta

import pytest

from circulation.services import CirculationDesk

from conftest import DAY0


def test_issue_and_return_loan(desk, saves):
    ok, msg, loan_id = desk.issue_loan("M20261001", "X")
    assert ok is True
    assert loan_id == "T2026100001"
    assert str(DAY0 + timedelta(days=14)) in msg

    ok, msg = desk.return_loan(loan_id)
    assert ok is True
    assert "штраф" not in msg
    assert len(saves) == 2


def test_failures_become_messages_without_saving(desk, saves):
    ok, msg, loan_id = desk.issue_loan("M20254001", "X")
    assert ok is False
    assert loan_id is None
    assert "истёк" in msg

    ok, msg = desk.return_loan("T2026199999")
    assert ok is False
    assert "не найдена" in msg

    ok, msg = desk.cancel_reservation("R2026199999")
    assert ok is False
    assert saves == []


def test_late_return_mentions_fine(desk, clock):
    _, _, loan_id = desk.issue_loan("M20261001", "X")
    clock.advance(17)
    ok, msg = desk.return_loan(loan_id)
    assert ok is True
    assert "$6.00" in msg


def test_renew_loan_messages(desk):
    _, _, loan_id = desk.issue_loan("M20261001", "X")
    assert desk.renew_loan(loan_id) == (True, f"Продлено до {DAY0 + timedelta(days=21)}.")
    assert desk.renew_loan(loan_id)[0] is True

    ok, msg = desk.renew_loan(loan_id)
    assert ok is False
    assert "30" in msg


def test_reservation_flow(desk, inventory):
    ok, msg, a = desk.create_reservation("M20261001", "X")
    assert ok is True
    assert msg.endswith("1.")
    ok, msg, b = desk.create_reservation("M20261002", "X")
    assert msg.endswith("2.")

    ok, msg, loan_id = desk.issue_loan("M20261003", "X")
    assert ok is False
    assert "резерв" in msg

    ok, msg, _ = desk.create_reservation("M20261001", "X")
    assert ok is False

    assert desk.next_in_queue("X")["reservation_id"] == a
    assert desk.cancel_reservation(a) == (True, "Резерв отменён.")
    assert desk.next_in_queue("X")["member_id"] == "M20261002"

    desk.cancel_reservation(b)
    assert desk.next_in_queue("X") is None
    assert inventory.get("X").reserved is False
    assert desk.issue_loan("M20261003", "X")[0] is True


def test_batch_flushes_once(desk, saves):
    with desk.batch():
        desk.issue_loan("M20261001", "X")
        desk.issue_loan("M20261002", "X")
        desk.create_reservation("M20261003", "X")
        assert saves == []

    assert len(saves) == 1
    assert len(saves[0].loans) == 2
    assert desk.autosave is True


def test_batch_flushes_on_error(desk, saves):
    with pytest.raises(RuntimeError):
        with desk.batch():
            desk.issue_loan("M20261001", "X")
            raise RuntimeError("boom")

    assert len(saves) == 1
    assert desk.autosave is True


def test_delete_title_is_blocked_by_open_state(desk):
    _, _, loan_id = desk.issue_loan("M20261001", "Y")
    ok, msg = desk.delete_title("Y")
    assert ok is False

    desk.return_loan(loan_id)
    _, _, r = desk.create_reservation("M20261001", "Y")
    assert desk.delete_title("Y")[0] is False

    desk.cancel_reservation(r)
    assert desk.delete_title("Y") == (True, "Книга удалена.")
    assert desk.delete_title("Y")[0] is False


def test_add_title_and_register_member(desk):
    assert desk.add_title("Z", "New Book", copies=3) == (True, "Книга добавлена.")
    assert desk.add_title("Z", "Again")[0] is False
    assert desk.add_title("W", "Broken", copies=-1)[0] is False

    ok, msg, member_id = desk.register_member("Carol", "0123456789", "pw")
    assert ok is True
    assert member_id == "M20261004"
    assert desk.register_member("Carol", "123", "pw")[0] is False


def test_reports(desk, clock):
    _, _, late = desk.issue_loan("M20261001", "X")
    desk.issue_loan("M20261002", "Y")
    desk.renew_loan(desk.loans.list_active("M20261002")[0].loan_id)
    _, _, r1 = desk.create_reservation("M20261003", "X")
    _, _, r2 = desk.create_reservation("M20261002", "X")
    clock.advance(16)

    active = desk.report_active_loans()
    assert [row["isbn"] for row in active] == ["X", "Y"]

    overdue = desk.report_overdue_loans()
    assert [row["loan_id"] for row in overdue] == [late]
    assert overdue[0]["fine"] == 4.0
    assert overdue[0]["book_title"] == "Dune"

    reservations = {row["reservation_id"]: row for row in desk.report_reservations()}
    assert reservations[r1]["queue_position"] == 1
    assert reservations[r2]["queue_position"] == 2
    assert reservations[r2]["queue_length"] == 2

    inventory = {row["isbn"]: row for row in desk.report_inventory()}
    assert inventory["X"]["loaned"] == 1
    assert inventory["X"]["reserved"] is True
    assert inventory["Y"]["available"] == 0

    desk.return_loan(late)
    fines = desk.report_fines()
    assert fines == [{
        "member_id": "M20261001",
        "reader_name": "Reader M20261001",
        "outstanding": 0.0,
        "collected": 4.0,
    }]


def test_batch_keeps_body_error_when_save_fails(inventory, members, ledger, queues, caplog):
    def broken_save(snapshot):
        raise OSError("disk full")

    desk = CirculationDesk(inventory, members, ledger, queues, save=broken_save)
    with pytest.raises(RuntimeError, match="boom"):
        with desk.batch():
            desk.issue_loan("M20261001", "X")
            raise RuntimeError("boom")

    assert "Save after failed batch failed" in caplog.text
    assert desk.autosave is True


def test_delete_member_is_blocked_by_open_state(desk, saves):
    _, _, loan_id = desk.issue_loan("M20261001", "X")
    ok, msg = desk.delete_member("M20261001")
    assert ok is False
    assert "выдачи" in msg

    desk.return_loan(loan_id)
    _, _, r = desk.create_reservation("M20261001", "Y")
    ok, msg = desk.delete_member("M20261001")
    assert ok is False
    assert "резервы" in msg

    desk.cancel_reservation(r)
    saved = len(saves)
    assert desk.delete_member("M20261001") == (True, "Читатель удалён.")
    assert len(saves) == saved + 1
    assert desk.delete_member("M20261001")[0] is False


def test_report_summary(desk, clock):
    desk.issue_loan("M20261001", "X")
    _, _, kept = desk.issue_loan("M20261002", "Y")
    desk.return_loan(kept)
    desk.create_reservation("M20261003", "X")
    _, _, gone = desk.create_reservation("M20261002", "Y")
    desk.cancel_reservation(gone)
    clock.advance(15)

    assert desk.report_summary() == {
        "titles": 2,
        "total_copies": 3,
        "available_copies": 2,
        "loaned_copies": 1,
        "members": 4,
        "admins": 0,
        "regular_members": 4,
        "loans": 2,
        "active_loans": 1,
        "overdue_loans": 1,
        "reservations": 2,
        "active_reservations": 1,
    }


def test_report_top_borrowed(desk):
    for member_id in ("M20261001", "M20261002"):
        _, _, loan_id = desk.issue_loan(member_id, "Y")
        desk.return_loan(loan_id)
    desk.issue_loan("M20261003", "X")
    desk.issue_loan("M20261003", "Y")

    rows = desk.report_top_borrowed()
    assert [(r["rank"], r["isbn"], r["borrow_count"]) for r in rows] == [(1, "Y", 3), (2, "X", 1)]
    assert rows[0]["title"] == "Clean Code"

    assert [r["isbn"] for r in desk.report_top_borrowed(top_n=1)] == ["Y"]
    assert len(desk.report_top_borrowed(top_n=0)) == 2
