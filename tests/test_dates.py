from __future__ import annotations
import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure project root on sys.path so 'filmstock' is importable when running pytest
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from filmstock.core.v1.dates import (
    any_expired,
    expiry_end_date,
    format_expiry_date,
    is_date_expired,
    parse_expiry_date,
    split_expiry_field,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2027", date(2027, 12, 31)),
        ("032027", date(2027, 3, 1)),
        ("03/2027", date(2027, 3, 1)),
        ("03/15/2027", date(2027, 3, 15)),
    ],
)
def test_parse_accepted_shapes(raw, expected):
    assert parse_expiry_date(raw) == expected


@pytest.mark.parametrize("raw", ["", "soon", "13/2027", "132027", "02/30/2027", "2027-03", "1/2/3/4"])
def test_parse_rejects_other_shapes(raw):
    assert parse_expiry_date(raw) is None


def test_format_display_forms():
    assert format_expiry_date("2027") == "2027"
    assert format_expiry_date("032027") == "03/2027"
    assert format_expiry_date("03/2027") == "03/2027"
    assert format_expiry_date("03/15/2027") == "03/2027"
    assert format_expiry_date("soon") == "soon"
    assert format_expiry_date("") == "Unknown"


@pytest.mark.parametrize("raw", ["2027", "032027", "03/2027", "03/15/2027", "whenever"])
def test_format_is_idempotent(raw):
    once = format_expiry_date(raw)
    assert format_expiry_date(once) == once


def test_end_of_precision_rounding():
    assert expiry_end_date("2024") == date(2024, 12, 31)
    assert expiry_end_date("02/2024") == date(2024, 2, 29)
    assert expiry_end_date("022023") == date(2023, 2, 28)
    assert expiry_end_date("02/10/2024") == date(2024, 2, 10)
    assert expiry_end_date("nope") is None


def test_year_expiry_boundary():
    assert not is_date_expired("2024", today=date(2024, 1, 2))
    assert not is_date_expired("2024", today=date(2024, 12, 31))
    assert is_date_expired("2024", today=date(2025, 1, 1))


def test_month_expiry_boundary():
    assert not is_date_expired("06/2024", today=date(2024, 6, 30))
    assert is_date_expired("06/2024", today=date(2024, 7, 1))


def test_unparseable_is_never_expired():
    assert not is_date_expired("someday", today=date(2100, 1, 1))
    assert any_expired(["someday", "2000"], today=date(2024, 1, 1))
    assert not any_expired([], today=date(2024, 1, 1))


def test_split_expiry_field():
    assert split_expiry_field(None) == []
    assert split_expiry_field("03/2027, 2028") == ["03/2027", "2028"]
    assert split_expiry_field(["2027", " ", "2028 "]) == ["2027", "2028"]
