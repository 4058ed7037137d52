"""
Verification Record Storage
===========================
Store interface and its in-memory and SQL implementations.
"""

from .base import VerificationStore
from .memory import InMemoryVerificationStore
from .database import (
    Base,
    UTCDateTime,
    create_async_engine,
    create_session_factory,
    create_tables,
    close_engine,
    transaction,
)
from .sql import SQLVerificationStore, VerificationRow

__all__ = [
    # Interface
    "VerificationStore",
    # Implementations
    "InMemoryVerificationStore",
    "SQLVerificationStore",
    "VerificationRow",
    # Database
    "Base",
    "UTCDateTime",
    "create_async_engine",
    "create_session_factory",
    "create_tables",
    "close_engine",
    "transaction",
]
