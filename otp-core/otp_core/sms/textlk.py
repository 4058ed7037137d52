"""
Text.lk SMS Gateway Sender
==========================
Sender for the Text.lk HTTP SMS API.
"""

import httpx
from typing import Optional
import structlog

from otp_core.phone import mask_phone
from .base import SmsSender, SendResult, MessageStatus

logger = structlog.get_logger(__name__)

DEFAULT_API_URL = "https://api.text.lk/sms/send"


class TextLKSender(SmsSender):
    """
    Text.lk SMS sender.

    Posts a JSON payload with the account credentials. The gateway accepts
    a message when it answers 2xx with `"status": "success"`.
    """

    name = "textlk"

    def __init__(
        self,
        user_id: str,
        api_key: str,
        sender_id: str = "SafeDriver",
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            user_id: Text.lk account user id
            api_key: Text.lk API key
            sender_id: Registered sender id shown to the recipient
            api_url: Send endpoint
            timeout: Request timeout in seconds
            client: Preconfigured HTTP client (owned by the caller)
        """
        super().__init__()
        self.user_id = user_id
        self.api_key = api_key
        self.sender_id = sender_id
        self.api_url = api_url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def initialize(self) -> None:
        """Create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            self._owns_client = True
        await super().initialize()

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
        await super().close()

    async def send(self, phone_number: str, message: str) -> SendResult:
        """Send SMS via Text.lk."""
        if not self._client:
            raise RuntimeError("Sender not initialized")

        payload = {
            "user_id": self.user_id,
            "api_key": self.api_key,
            "sender_id": self.sender_id,
            "to": phone_number.lstrip("+"),
            "message": message,
        }

        try:
            response = await self._client.post(
                self.api_url,
                json=payload,
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            logger.error("Text.lk send timed out", to=mask_phone(phone_number))
            return SendResult(
                success=False,
                status=MessageStatus.FAILED,
                error_code="timeout",
                error_message="Request timed out",
            )
        except httpx.HTTPError as e:
            logger.error("Text.lk send failed", to=mask_phone(phone_number), error=str(e))
            return SendResult(
                success=False,
                status=MessageStatus.FAILED,
                error_code="transport_error",
                error_message=str(e),
            )

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_success and data.get("status") == "success":
            return SendResult(
                success=True,
                provider_message_id=data.get("message_id"),
                status=MessageStatus.SENT,
                raw_response=data,
            )

        logger.warning(
            "Text.lk rejected message",
            to=mask_phone(phone_number),
            status_code=response.status_code,
            gateway_status=data.get("status"),
        )
        return SendResult(
            success=False,
            status=MessageStatus.REJECTED,
            error_code=str(data.get("code", response.status_code)),
            error_message=data.get("message", "Unknown error"),
            raw_response=data,
        )

    async def health_check(self) -> bool:
        return self._client is not None and await super().health_check()
