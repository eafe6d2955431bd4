from datetime import date

import pytest

from circulation.ids import id_prefix, next_id, quarter_of


@pytest.mark.parametrize(
    "month, quarter",
    [(1, 1), (3, 1), (4, 2), (6, 2), (7, 3), (9, 3), (10, 4), (12, 4)],
)
def test_quarter_of(month, quarter):
    assert quarter_of(date(2026, month, 15)) == quarter


def test_prefix_has_year_and_quarter():
    assert id_prefix("R", date(2026, 10, 17)) == "R20264"


def test_first_id_of_quarter_starts_at_one():
    assert next_id("T", date(2026, 1, 5), [], 5) == "T2026100001"


def test_next_id_takes_max_suffix_plus_one():
    existing = ["T2026100003", "T2026100001", "T2026100002"]
    assert next_id("T", date(2026, 2, 1), existing, 5) == "T2026100004"


def test_new_quarter_restarts_sequence():
    existing = ["T2026100041", "T2025400007"]
    assert next_id("T", date(2026, 4, 1), existing, 5) == "T2026200001"


def test_other_type_prefix_is_ignored():
    assert next_id("R", date(2026, 1, 5), ["T2026100009"], 5) == "R2026100001"


def test_malformed_ids_are_skipped():
    existing = [
        "T20261abcde",   # не цифры
        "T202610099",    # короче
        "T20261000099",  # длиннее
        "",
        "T2026100002",
    ]
    assert next_id("T", date(2026, 1, 5), existing, 5) == "T2026100003"


def test_member_ids_use_three_digits():
    existing = ["M20264001", "M20264002", "A20264001"]
    assert next_id("M", date(2026, 10, 17), existing, 3) == "M20264003"
    assert next_id("A", date(2026, 10, 17), existing, 3) == "A20264002"
