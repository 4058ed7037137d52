"""
SMS Sender Base
===============
Base class and result types for SMS gateway integrations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum
import structlog

logger = structlog.get_logger(__name__)


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass
class SendResult:
    """Result of a message send operation."""
    success: bool
    provider_message_id: Optional[str] = None
    status: MessageStatus = MessageStatus.PENDING
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


class SmsSender(ABC):
    """
    Abstract base class for SMS senders.

    `send` reports gateway rejection and transport failures (including
    timeouts) as an unsuccessful SendResult rather than raising.
    """

    name: str = "base"

    def __init__(self):
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the sender (e.g., create HTTP clients)."""
        self._is_initialized = True
        logger.info("SMS sender initialized", provider=self.name)

    async def close(self) -> None:
        """Clean up resources (e.g., close HTTP clients)."""
        self._is_initialized = False
        logger.info("SMS sender closed", provider=self.name)

    @abstractmethod
    async def send(self, phone_number: str, message: str) -> SendResult:
        """
        Send an SMS message.

        Args:
            phone_number: Recipient in canonical +<digits> form
            message: Message content

        Returns:
            SendResult with provider response
        """

    async def health_check(self) -> bool:
        """
        Check if the sender is usable.

        Returns:
            True if the sender is ready
        """
        return self._is_initialized
