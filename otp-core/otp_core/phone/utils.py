"""
Phone Utilities
===============
Canonicalization and validation of phone numbers for one national
numbering plan.
"""

import re
from dataclasses import dataclass
from typing import Any, Tuple


@dataclass(frozen=True)
class NumberingPlan:
    """A national numbering plan (country code, trunk prefix, subscriber length)."""
    country_code: str = "94"
    trunk_prefix: str = "0"
    significant_digits: int = 9

    @property
    def pattern(self) -> "re.Pattern[str]":
        return re.compile(
            rf"^\+{self.country_code}[1-9]\d{{{self.significant_digits - 1}}}$"
        )


# Sri Lanka: +94 followed by 9 significant digits
DEFAULT_PLAN = NumberingPlan()


def normalize_phone(raw: Any, plan: NumberingPlan = DEFAULT_PLAN) -> Tuple[str, bool]:
    """
    Canonicalize a raw phone number.

    Rules:
    - All non-digit characters are removed
    - A leading trunk prefix is replaced by the country code
    - A number already starting with the country code is kept as is
    - A bare significant number is prefixed with the country code

    Never raises. Anything that cannot be parsed comes back as ("", False).

    Args:
        raw: Raw user input
        plan: Numbering plan to validate against

    Returns:
        Tuple of (canonical "+<digits>" number, ok)
    """
    if not isinstance(raw, str):
        return "", False

    digits = re.sub(r"\D", "", raw)
    if not digits:
        return "", False

    if plan.trunk_prefix and digits.startswith(plan.trunk_prefix):
        digits = plan.country_code + digits[len(plan.trunk_prefix):]
    elif digits.startswith(plan.country_code):
        pass
    elif len(digits) == plan.significant_digits:
        digits = plan.country_code + digits

    canonical = f"+{digits}"
    return canonical, bool(plan.pattern.match(canonical))


def validate_phone(raw: Any, plan: NumberingPlan = DEFAULT_PLAN) -> bool:
    """True if the input normalizes to a valid number in the plan."""
    return normalize_phone(raw, plan)[1]


def mask_phone(phone: str) -> str:
    """
    Redact the middle of a phone number for logging.

    Args:
        phone: Phone number in any format

    Returns:
        Masked number, e.g. +9477****567
    """
    digits = "".join(ch for ch in phone if ch.isdigit())
    prefix = "+" if phone.startswith("+") else ""
    if len(digits) < 7:
        return prefix + "*" * len(digits)
    return f"{prefix}{digits[:4]}****{digits[-3:]}"
