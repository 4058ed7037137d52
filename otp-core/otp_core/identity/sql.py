"""
SQL Identity Binder
===================
SQLAlchemy-backed identities with a unique phone number column.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from sqlalchemy import JSON, Boolean, String, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column
import structlog

from otp_core.store.database import Base, UTCDateTime, transaction
from .base import IdentityBinder, IdentityNotFound
from .models import Identity

logger = structlog.get_logger(__name__)


class IdentityRow(Base):
    """users table."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    phone_number: Mapped[str] = mapped_column(String(20), unique=True)
    phone_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime())
    last_login_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    profile: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    def to_identity(self) -> Identity:
        return Identity(
            id=self.id,
            phone_number=self.phone_number,
            created_at=self.created_at,
            phone_verified=self.phone_verified,
            last_login_at=self.last_login_at,
            profile=dict(self.profile or {}),
        )


class SQLIdentityBinder(IdentityBinder):
    """Identity binder on an async SQLAlchemy session factory."""

    name = "sql"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._session_factory = session_factory
        self._clock = clock

    async def find_by_phone(self, phone_number: str) -> Optional[Identity]:
        async with self._session_factory() as db:
            row = await db.scalar(
                select(IdentityRow).where(IdentityRow.phone_number == phone_number)
            )
            return row.to_identity() if row else None

    async def create_identity(self, phone_number: str, defaults: Dict[str, Any]) -> Identity:
        now = self._clock()
        row = IdentityRow(
            id=str(uuid.uuid4()),
            phone_number=phone_number,
            phone_verified=True,
            created_at=now,
            last_login_at=now,
            profile=defaults,
        )
        try:
            async with transaction(self._session_factory) as db:
                db.add(row)
        except IntegrityError:
            # Lost a race with a concurrent create for the same phone
            logger.info("Identity already exists, reusing")
            existing = await self.find_by_phone(phone_number)
            if existing is None:
                raise
            return existing
        return row.to_identity()

    async def mark_phone_verified(self, identity_id: str) -> None:
        async with transaction(self._session_factory) as db:
            result = await db.execute(
                update(IdentityRow)
                .where(IdentityRow.id == identity_id)
                .values(phone_verified=True, last_login_at=self._clock())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise IdentityNotFound(identity_id)
