from datetime import date, datetime

import pytest

from habitstreak.core.errors import ValidationError
from habitstreak.lib.dates import (
    date_key,
    is_date_key,
    normalize_date_key,
    parse_date_key,
    parse_when,
    shift,
    today_key,
)


@pytest.fixture
def frozen_today(monkeypatch):
    # Wednesday
    monkeypatch.setattr("habitstreak.lib.clock.today", lambda: date(2025, 1, 15))


def test_date_key_zero_pads():
    assert date_key(date(2025, 3, 7)) == "2025-03-07"


def test_date_key_drops_time_of_day():
    assert date_key(datetime(2025, 12, 31, 23, 59, 59)) == "2025-12-31"


def test_is_date_key():
    assert is_date_key("2025-01-09")
    assert not is_date_key("2025-1-9")
    assert not is_date_key("2025-02-30")
    assert not is_date_key("2025-01-09T10:00:00")
    assert not is_date_key(None)


def test_parse_date_key_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_date_key("yesterday")


def test_shift_crosses_month_and_year():
    assert shift("2025-03-01", -1) == "2025-02-28"
    assert shift("2024-12-31", 1) == "2025-01-01"


def test_normalize_keeps_strict_keys():
    assert normalize_date_key(" 2025-01-10 ") == "2025-01-10"


def test_normalize_reduces_timestamps_to_day():
    assert normalize_date_key("2025-01-10T22:15:00") == "2025-01-10"


def test_normalize_falls_back_to_default():
    assert normalize_date_key("__legacy__") is None
    assert normalize_date_key("", default="2025-01-01") == "2025-01-01"
    assert normalize_date_key(42, default="x") == "x"


def test_today_key(frozen_today):
    assert today_key() == "2025-01-15"


def test_parse_when_relative(frozen_today):
    assert parse_when(None) == "2025-01-15"
    assert parse_when("today") == "2025-01-15"
    assert parse_when("yesterday") == "2025-01-14"
    assert parse_when("tomorrow") == "2025-01-16"


def test_parse_when_weekday_looks_back(frozen_today):
    assert parse_when("mon") == "2025-01-13"
    assert parse_when("wednesday") == "2025-01-15"
    assert parse_when("thu") == "2025-01-09"


def test_parse_when_explicit_date(frozen_today):
    assert parse_when("2024-02-29") == "2024-02-29"


def test_parse_when_unreadable(frozen_today):
    with pytest.raises(ValidationError):
        parse_when("not a day at all")
