"""IMEI helpers."""

from __future__ import annotations

import re

_IMEI = re.compile(r"^\d{15}$")


def normalize_imei(value: str) -> str:
    """Strip spaces and dashes."""
    return re.sub(r"[\s-]", "", value)


def luhn_check_digit(digits: str) -> int:
    total = 0
    for i, char in enumerate(digits):
        digit = int(char)
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit = digit // 10 + digit % 10
        total += digit
    return (10 - total % 10) % 10


def is_valid_imei(value: str, *, luhn: bool = False) -> bool:
    """Check for exactly 15 digits, optionally verifying the Luhn check digit."""
    imei = normalize_imei(value)
    if not _IMEI.match(imei):
        return False
    if luhn:
        return luhn_check_digit(imei[:14]) == int(imei[14])
    return True


def tac(value: str) -> str:
    """Type Allocation Code: the first eight digits."""
    return normalize_imei(value)[:8]
