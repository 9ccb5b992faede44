"""Tests for wei/ether/gwei formatting."""

import pytest

from tx_guard.analyzer.value_codec import parse_quantity, to_ether_decimal, to_gwei_decimal


@pytest.mark.parametrize(
    ("wei", "expected"),
    [
        ("25000000000000000000", "25"),
        ("1000000000000000000", "1"),
        ("1500000000000000000", "1.5"),
        ("1", "0.000000000000000001"),
        ("0", "0"),
        ("0xde0b6b3a7640000", "1"),
    ],
)
def test_to_ether_decimal(wei, expected):
    assert to_ether_decimal(wei) == expected


def test_to_ether_decimal_keeps_precision_beyond_float_range():
    wei = str(2**64 + 1)
    assert to_ether_decimal(wei) == "18.446744073709551617"


def test_to_gwei_decimal():
    assert to_gwei_decimal("20000000000") == "20"
    assert to_gwei_decimal("1500000000") == "1.5"


@pytest.mark.parametrize("raw", ["abc", "", "-5", "1.5", "0xzz"])
def test_malformed_input_is_returned_unchanged(raw):
    assert to_ether_decimal(raw) == raw
    assert to_gwei_decimal(raw) == raw


def test_parse_quantity():
    assert parse_quantity("0x10") == 16
    assert parse_quantity(" 42 ") == 42
    assert parse_quantity(7) == 7
    with pytest.raises(ValueError):
        parse_quantity(True)
    with pytest.raises(ValueError):
        parse_quantity(-1)
    with pytest.raises(ValueError):
        parse_quantity("12abc")
