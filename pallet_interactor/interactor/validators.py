"""Shared validation helpers for the transfer flow."""

from __future__ import annotations

import re
from typing import Optional

BASE58_REGEX = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")
# SS58 addresses are Base58; common 32-byte account ids encode to 46-48 chars.
SS58_MIN_LENGTH = 46
SS58_MAX_LENGTH = 48
ADDRESS_REGEX = re.compile(rf"^[1-9A-HJ-NP-Za-km-z]{{{SS58_MIN_LENGTH},{SS58_MAX_LENGTH}}}$")
AMOUNT_REGEX = re.compile(r"^\d+$")


def is_base58_string(value: Optional[str], *, min_length: int = 1, max_length: Optional[int] = None) -> bool:
    """Validate a Base58 string using a simple character check and length bounds."""
    if not value or not isinstance(value, str):
        return False
    if not BASE58_REGEX.fullmatch(value):
        return False
    length = len(value)
    if length < min_length:
        return False
    if max_length is not None and length > max_length:
        return False
    return True


def is_valid_ss58_address(address: Optional[str]) -> bool:
    """Basic format validation for SS58 account addresses (no checksum)."""
    if not address or not isinstance(address, str):
        return False
    return is_base58_string(address.strip(), min_length=SS58_MIN_LENGTH, max_length=SS58_MAX_LENGTH)


def is_valid_amount(amount: Optional[str]) -> bool:
    """Amounts are non-negative integers in the chain's smallest unit."""
    if amount is None:
        return False
    return bool(AMOUNT_REGEX.fullmatch(str(amount).strip()))
