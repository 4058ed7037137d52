"""
SMS Delivery
============
Sender interface, Text.lk gateway sender and message templating.
"""

from .base import SmsSender, SendResult, MessageStatus
from .textlk import TextLKSender
from .console import ConsoleSender
from .template import render_message, validate_template, TEMPLATE_FIELDS

__all__ = [
    "SmsSender",
    "SendResult",
    "MessageStatus",
    "TextLKSender",
    "ConsoleSender",
    "render_message",
    "validate_template",
    "TEMPLATE_FIELDS",
]
