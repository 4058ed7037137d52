"""
Identity Binding
================
Verified phone number to user identity mapping.
"""

from .models import Identity, DEFAULT_PROFILE, default_profile
from .base import IdentityBinder, IdentityNotFound
from .memory import InMemoryIdentityBinder
from .sql import SQLIdentityBinder, IdentityRow

__all__ = [
    # Models
    "Identity",
    "DEFAULT_PROFILE",
    "default_profile",
    # Interface
    "IdentityBinder",
    "IdentityNotFound",
    # Implementations
    "InMemoryIdentityBinder",
    "SQLIdentityBinder",
    "IdentityRow",
]
