"""
Identity Binder Interface
=========================
Maps a verified phone number to a stable user identity.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import Identity


class IdentityNotFound(Exception):
    """Raised by mark_phone_verified for an unknown identity id."""

    def __init__(self, identity_id: str):
        self.identity_id = identity_id
        super().__init__(f"Identity {identity_id} not found")


class IdentityBinder(ABC):
    """Abstract base class for identity binders."""

    name: str = "base"

    @abstractmethod
    async def find_by_phone(self, phone_number: str) -> Optional[Identity]:
        """Look up the identity for a canonical phone number."""

    @abstractmethod
    async def create_identity(self, phone_number: str, defaults: Dict[str, Any]) -> Identity:
        """
        Create an identity for a phone number with the given profile.

        The new identity is marked phone-verified with last_login_at set.
        If an identity for the phone already exists (a concurrent create
        won), that identity is returned instead.
        """

    @abstractmethod
    async def mark_phone_verified(self, identity_id: str) -> None:
        """Set the phone-verified flag and refresh last_login_at."""
