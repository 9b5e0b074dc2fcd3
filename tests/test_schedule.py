from datetime import date
from decimal import Decimal

import pytest

from backoffice.utils.loan_calculations import (
    collection_dates,
    day_name,
    expected_total,
    money,
    normalize_day,
    week_start_of,
)


def test_collection_dates_skip_sundays():
    # Fri 2024-03-01
    assert collection_dates(date(2024, 3, 1), 3) == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 4)]


def test_sunday_start_rolls_to_monday():
    assert collection_dates(date(2024, 3, 3), 1) == [date(2024, 3, 4)]


def test_thirty_collection_days_span_five_weeks():
    dates = collection_dates(date(2024, 3, 4), 30)
    assert len(dates) == 30
    assert dates[-1] == date(2024, 4, 6)
    assert len({week_start_of(d) for d in dates}) == 5


def test_duration_must_be_positive():
    with pytest.raises(ValueError):
        collection_dates(date(2024, 3, 4), 0)


def test_week_start_is_monday():
    assert week_start_of(date(2024, 3, 9)) == date(2024, 3, 4)
    assert week_start_of(date(2024, 3, 10)) == date(2024, 3, 4)
    assert week_start_of(date(2024, 3, 4)) == date(2024, 3, 4)


def test_day_names():
    assert day_name(date(2024, 3, 6)) == "wednesday"
    assert normalize_day(" Saturday ") == "saturday"
    for bad in ("Sunday", "someday", ""):
        with pytest.raises(ValueError):
            normalize_day(bad)


def test_money_helpers():
    assert money("1500.005") == Decimal("1500.01")
    assert money(None) == Decimal("0.00")
    assert expected_total(1500, 30) == Decimal("45000.00")
