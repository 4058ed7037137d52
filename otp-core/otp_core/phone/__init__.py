"""
Phone Number Handling
=====================
Normalization to the canonical form used as record and rate-limit key.
"""

from .utils import NumberingPlan, DEFAULT_PLAN, normalize_phone, validate_phone, mask_phone

__all__ = [
    "NumberingPlan",
    "DEFAULT_PLAN",
    "normalize_phone",
    "validate_phone",
    "mask_phone",
]
