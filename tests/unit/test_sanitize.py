"""Unit tests for :func:`hostguard.core.sanitize.sanitize`."""

from __future__ import annotations

import pytest

from hostguard.core.sanitize import sanitize


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("0", 0),
        ("7654", 7654),
        ("007", 7),
        ("18446744073709551616", 18446744073709551616),
    ],
)
def test_plain_digit_strings_return_their_value(raw: str, expected: int) -> None:
    assert sanitize(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "",
        " ",
        "12 ",
        " 12",
        "12\n",
        "3\n4",
        "-3",
        "+3",
        "1.5",
        "1e3",
        "abc",
        "12abc",
        "٣",  # non-ASCII digit
        "０",  # fullwidth zero
    ],
)
def test_malformed_strings_collapse_to_zero(raw: str) -> None:
    assert sanitize(raw) == 0


@pytest.mark.parametrize("raw", [None, 5, -5, 1.0, b"12", ["1"]])
def test_non_string_input_returns_zero(raw: object) -> None:
    assert sanitize(raw) == 0


def test_huge_digit_string_never_raises() -> None:
    result = sanitize("9" * 100_000)
    assert isinstance(result, int)
    assert result >= 0


def test_result_is_always_non_negative_int() -> None:
    for raw in ["", "-1", "42", "x", "\n"]:
        value = sanitize(raw)
        assert isinstance(value, int)
        assert value >= 0
