"""Identity normalization applied at every lookup and write boundary."""

from __future__ import annotations

import re

from wage_ledger.errors import ValidationError

_NON_DIGITS = re.compile(r"\D")
_MOBILE_NUMBER = re.compile(r"^[6-9]\d{9}$")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

COUNTRY_CODE = "91"
NATIONAL_NUMBER_LENGTH = 10


def normalize_phone(raw: str | None) -> str:
    """Reduce a phone number to its ten-digit national form.

    "+91 98765-43210", "09876543210" and "9876543210" all normalize to
    "9876543210". Returns an empty string when there are no digits.
    """
    if raw is None:
        return ""
    digits = _NON_DIGITS.sub("", str(raw))
    if len(digits) > NATIONAL_NUMBER_LENGTH:
        if digits.startswith(COUNTRY_CODE) and len(digits) == NATIONAL_NUMBER_LENGTH + 2:
            digits = digits[2:]
        elif digits.startswith("0") and len(digits) == NATIONAL_NUMBER_LENGTH + 1:
            digits = digits[1:]
    return digits


def customer_key(raw: str | None) -> str:
    """Normalize and validate a phone number used as a ledger key."""
    key = normalize_phone(raw)
    if not key:
        raise ValidationError("Customer phone is required", field="phone")
    if not _MOBILE_NUMBER.match(key):
        raise ValidationError(
            f"Invalid phone number {raw!r}: expected a 10-digit mobile number",
            field="phone",
        )
    return key


def is_valid_email(email: str | None) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(_EMAIL.match(email.strip()))
