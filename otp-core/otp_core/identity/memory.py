"""
In-Memory Identity Binder
=========================
Process-local identities for development and testing.
"""

import asyncio
import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .base import IdentityBinder, IdentityNotFound
from .models import Identity


class InMemoryIdentityBinder(IdentityBinder):
    """Dict-backed identity binder."""

    name = "memory"

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._clock = clock
        self._by_id: Dict[str, Identity] = {}
        self._by_phone: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def find_by_phone(self, phone_number: str) -> Optional[Identity]:
        async with self._lock:
            identity_id = self._by_phone.get(phone_number)
            if identity_id is None:
                return None
            return copy.deepcopy(self._by_id[identity_id])

    async def create_identity(self, phone_number: str, defaults: Dict[str, Any]) -> Identity:
        async with self._lock:
            existing = self._by_phone.get(phone_number)
            if existing is not None:
                return copy.deepcopy(self._by_id[existing])

            now = self._clock()
            identity = Identity(
                id=str(uuid.uuid4()),
                phone_number=phone_number,
                created_at=now,
                phone_verified=True,
                last_login_at=now,
                profile=copy.deepcopy(defaults),
            )
            self._by_id[identity.id] = identity
            self._by_phone[phone_number] = identity.id
            return copy.deepcopy(identity)

    async def mark_phone_verified(self, identity_id: str) -> None:
        async with self._lock:
            identity = self._by_id.get(identity_id)
            if identity is None:
                raise IdentityNotFound(identity_id)
            identity.phone_verified = True
            identity.last_login_at = self._clock()

    def __len__(self) -> int:
        return len(self._by_id)
