"""Messaging transports."""

from .base import InboundEvent, MessagingTransport
from .cloud_api import CloudApiTransport, parse_webhook_payload
from .console import ConsoleTransport

__all__ = [
    "CloudApiTransport",
    "ConsoleTransport",
    "InboundEvent",
    "MessagingTransport",
    "parse_webhook_payload",
]
