from datetime import date

import pytest

from app.dates import normalize_days, parse_day
from app.errors import ValidationError


def test_parse_day_accepts_plain_day_key():
    assert parse_day("2025-01-10") == date(2025, 1, 10)


@pytest.mark.parametrize(
    "value",
    ["2025-02-30", "not-a-date", "2025-01-10T10:00:00", "2025-01-10T00:00:00+02:00", "20250110", "", 20250110, None],
)
def test_parse_day_rejects_malformed_keys(value):
    with pytest.raises(ValidationError):
        parse_day(value)


def test_normalize_days_dedupes_and_sorts():
    assert normalize_days(["2025-02-02", "2025-02-01", "2025-02-02"]) == ["2025-02-01", "2025-02-02"]


def test_normalize_days_rejects_empty_and_bare_string():
    with pytest.raises(ValidationError):
        normalize_days([])
    with pytest.raises(ValidationError):
        normalize_days("2025-02-01")


def test_normalize_days_rejects_past_but_keeps_today():
    today = date(2025, 1, 1)
    assert normalize_days(["2025-01-01"], today=today) == ["2025-01-01"]

    with pytest.raises(ValidationError) as exc:
        normalize_days(["2024-12-31", "2025-01-02"], today=today)
    assert exc.value.details["dates"] == ["2024-12-31"]
