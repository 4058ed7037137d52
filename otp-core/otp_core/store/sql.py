"""
SQL Verification Store
======================
SQLAlchemy-backed verification store. Conditional updates are single
UPDATE statements guarded by WHERE clauses, so they stay atomic across
processes sharing the database.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import JSON, Integer, String, delete, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column
import structlog

from otp_core.otp.models import DeliveryStatus, VerificationRecord, VerificationStatus
from .base import VerificationStore
from .database import Base, UTCDateTime, transaction

logger = structlog.get_logger(__name__)


class VerificationRow(Base):
    """otp_verifications table."""
    __tablename__ = "otp_verifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    phone_number: Mapped[str] = mapped_column(String(20), index=True)
    secret_digest: Mapped[str] = mapped_column(String(64))
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(16), index=True)
    delivery_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    provider_response: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    client_ip: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime())
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    @classmethod
    def from_record(cls, record: VerificationRecord) -> "VerificationRow":
        return cls(
            id=record.id,
            phone_number=record.phone_number,
            secret_digest=record.secret_digest,
            attempts=record.attempts,
            max_attempts=record.max_attempts,
            status=record.status.value,
            delivery_status=record.delivery_status.value if record.delivery_status else None,
            provider_message_id=record.provider_message_id,
            provider_response=record.provider_response,
            client_ip=record.client_ip,
            user_agent=record.user_agent,
            created_at=record.created_at,
            expires_at=record.expires_at,
            verified_at=record.verified_at,
            updated_at=record.updated_at,
        )

    def to_record(self) -> VerificationRecord:
        return VerificationRecord(
            id=self.id,
            phone_number=self.phone_number,
            secret_digest=self.secret_digest,
            attempts=self.attempts,
            max_attempts=self.max_attempts,
            status=VerificationStatus(self.status),
            delivery_status=DeliveryStatus(self.delivery_status) if self.delivery_status else None,
            provider_message_id=self.provider_message_id,
            provider_response=self.provider_response,
            client_ip=self.client_ip,
            user_agent=self.user_agent,
            created_at=self.created_at,
            expires_at=self.expires_at,
            verified_at=self.verified_at,
            updated_at=self.updated_at,
        )


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert enum values to their stored string form."""
    return {
        name: value.value if isinstance(value, (VerificationStatus, DeliveryStatus)) else value
        for name, value in fields.items()
    }


class SQLVerificationStore(VerificationStore):
    """Verification store on an async SQLAlchemy session factory."""

    name = "sql"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, record: VerificationRecord) -> None:
        async with transaction(self._session_factory) as db:
            db.add(VerificationRow.from_record(record))

    async def get(self, verification_id: str) -> Optional[VerificationRecord]:
        async with self._session_factory() as db:
            row = await db.get(VerificationRow, verification_id)
            return row.to_record() if row else None

    async def conditional_update(
        self,
        verification_id: str,
        expected_status: Optional[VerificationStatus],
        fields: Dict[str, Any],
    ) -> bool:
        self._check_fields(fields)
        conditions = [VerificationRow.id == verification_id]
        if expected_status is not None:
            conditions.append(VerificationRow.status == expected_status.value)

        async with transaction(self._session_factory) as db:
            result = await db.execute(
                update(VerificationRow)
                .where(*conditions)
                .values(**_column_values(fields))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    async def atomic_increment(
        self,
        verification_id: str,
        field: str,
        *,
        expected_status: VerificationStatus = VerificationStatus.PENDING,
        ceiling: Optional[int] = None,
    ) -> Optional[int]:
        self._check_fields({field: None})
        column = getattr(VerificationRow, field)

        conditions = [
            VerificationRow.id == verification_id,
            VerificationRow.status == expected_status.value,
        ]
        if ceiling is not None:
            conditions.append(column < ceiling)

        async with transaction(self._session_factory) as db:
            result = await db.execute(
                update(VerificationRow)
                .where(*conditions)
                .values({field: column + 1})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            # Same transaction, so this reads our own write
            value = await db.scalar(
                select(column).where(VerificationRow.id == verification_id)
            )
            return int(value)

    async def delete_expired_batch(self, now: datetime, limit: int) -> int:
        batch = (
            select(VerificationRow.id)
            .where(VerificationRow.expires_at < now)
            .limit(limit)
        )
        async with transaction(self._session_factory) as db:
            result = await db.execute(
                delete(VerificationRow)
                .where(VerificationRow.id.in_(batch))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def ping(self) -> bool:
        async with self._session_factory() as db:
            await db.execute(text("SELECT 1"))
        return True
