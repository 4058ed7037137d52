"""
Console SMS Sender
==================
Keeps messages in memory instead of sending them. For local development
and tests.
"""

import uuid
from typing import List, Tuple
import structlog

from otp_core.phone import mask_phone
from .base import SmsSender, SendResult, MessageStatus

logger = structlog.get_logger(__name__)


class ConsoleSender(SmsSender):
    """
    Sender that records messages in `outbox`.

    Only the masked recipient is logged; message bodies carry codes.
    """

    name = "console"

    def __init__(self):
        super().__init__()
        self.outbox: List[Tuple[str, str]] = []

    async def send(self, phone_number: str, message: str) -> SendResult:
        message_id = f"console-{uuid.uuid4().hex[:12]}"
        self.outbox.append((phone_number, message))
        logger.info(
            "SMS (console)",
            to=mask_phone(phone_number),
            length=len(message),
            message_id=message_id,
        )
        return SendResult(
            success=True,
            provider_message_id=message_id,
            status=MessageStatus.SENT,
        )

    @property
    def last_message(self) -> str:
        return self.outbox[-1][1]
