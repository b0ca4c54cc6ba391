from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
import uuid

import pytest

from core.utils import (
    add_months, add_years, as_date, days_between, format_money, is_settled,
    iso_date, money_out, parse_date_only, parse_uuid, round2, to_decimal,
)


class TestRound2:

    @pytest.mark.parametrize('value, expected', [
        ('2219.178', Decimal('2219.18')),
        ('0.005', Decimal('0.01')),
        ('-0.005', Decimal('-0.01')),
        (2.675, Decimal('2.68')),
        (10, Decimal('10.00')),
    ])
    def test_rounds_half_away_from_zero(self, value, expected):
        assert round2(value) == expected

    @pytest.mark.parametrize('value', ['1.005', '152219.175', '0.0049999', '37500', '1e-3'])
    def test_is_idempotent(self, value):
        assert round2(round2(value)) == round2(value)

    def test_rejects_non_numeric(self):
        with pytest.raises(ValueError):
            round2('abc')


def test_to_decimal_goes_through_str_for_floats():
    assert to_decimal(0.1) == Decimal('0.1')


@pytest.mark.parametrize('value', [None, True, float('nan'), float('inf'), '', '  ', 'x', [], {}])
def test_to_decimal_returns_default_for_non_numbers(value):
    assert to_decimal(value, default='fallback') == 'fallback'


def test_money_out_and_format():
    assert money_out(Decimal('2219.178')) == 2219.18
    assert money_out(None) is None
    assert format_money(Decimal('152219.18')) == 'INR 152,219.18'


def test_is_settled_uses_one_paisa_tolerance():
    assert is_settled(Decimal('0.01'))
    assert is_settled(Decimal('0'))
    assert not is_settled(Decimal('0.02'))


class TestDates:

    def test_parse_date_only_accepts_calendar_dates(self):
        assert parse_date_only('2024-08-15') == date(2024, 8, 15)
        assert parse_date_only(' 2024-08-15 ') == date(2024, 8, 15)
        assert parse_date_only(date(2024, 1, 1)) == date(2024, 1, 1)

    @pytest.mark.parametrize('value', [
        '2024-02-30', 'not-a-date', '', None, 20240815,
        '2024-08-15garbage', '20240815', '2024-W33-4', '2024-08-15T23:59:59+05:30', '2024-8-15',
    ])
    def test_parse_date_only_rejects_invalid(self, value):
        assert parse_date_only(value) is None

    def test_as_date_converts_aware_datetimes_to_utc(self):
        early_morning_ist = datetime(2024, 8, 15, 2, 0, tzinfo=dt_timezone(timedelta(hours=5, minutes=30)))
        assert as_date(early_morning_ist) == date(2024, 8, 14)

    def test_add_months_rolls_month_end_overflow_forward(self):
        assert add_months(date(2023, 8, 31), 6) == date(2024, 3, 2)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 3, 2)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 3, 3)
        assert add_months(date(2024, 1, 1), 6) == date(2024, 7, 1)
        assert add_months(date(2024, 10, 15), 6) == date(2025, 4, 15)

    def test_add_years_from_leap_day(self):
        assert add_years(date(2020, 2, 29), 3) == date(2023, 3, 1)
        assert add_years(date(2020, 2, 29), 4) == date(2024, 2, 29)
        assert add_years(date(2024, 1, 1), 3) == date(2027, 1, 1)

    def test_days_between_is_never_negative(self):
        assert days_between(date(2024, 7, 1), date(2024, 8, 15)) == 45
        assert days_between(date(2024, 8, 15), date(2024, 7, 1)) == 0

    def test_iso_date(self):
        assert iso_date(date(2024, 7, 1)) == '2024-07-01'
        assert iso_date(None) is None


def test_parse_uuid():
    value = uuid.uuid4()
    assert parse_uuid(str(value)) == value
    assert parse_uuid(value) is value
    assert parse_uuid('nope') is None
    assert parse_uuid(None) is None
