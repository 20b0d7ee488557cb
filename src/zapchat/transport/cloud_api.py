"""WhatsApp Cloud API transport (Graph API over ``httpx``)."""

import logging
from typing import Any

import httpx

from zapchat.configs.system import WhatsAppConfig

from .base import InboundEvent, MessagingTransport

logger = logging.getLogger(__name__)

MESSAGING_PRODUCT = "whatsapp"
MESSAGE_TYPE_TEXT = "text"
WEBHOOK_FIELD_MESSAGES = "messages"


class CloudApiTransport(MessagingTransport):
    """Sends messages through ``POST /{version}/{phone_number_id}/messages``."""

    def __init__(
        self, config: WhatsAppConfig, client: httpx.AsyncClient | None = None
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=config.timeout.total_seconds()
        )

    @property
    def messages_url(self) -> str:
        c = self._config
        return f"{c.base_url.rstrip('/')}/{c.api_version}/{c.phone_number_id}/messages"

    async def _post(self, payload: dict[str, Any]) -> None:
        response = await self._client.post(
            self.messages_url,
            json=payload,
            headers={"Authorization": f"Bearer {self._config.access_token}"},
        )
        response.raise_for_status()

    async def send_message(self, conversation_id: str, text: str) -> None:
        await self._post(
            {
                "messaging_product": MESSAGING_PRODUCT,
                "recipient_type": "individual",
                "to": conversation_id,
                "type": MESSAGE_TYPE_TEXT,
                "text": {"preview_url": False, "body": text},
            }
        )
        logger.debug("Sent %d chars to %s", len(text), conversation_id)

    async def send_typing_indicator(
        self, conversation_id: str, message_id: str | None = None
    ) -> None:
        # The Cloud API only shows typing as part of a read receipt.
        if not message_id:
            logger.debug("No message id for %s, skipping typing indicator", conversation_id)
            return
        await self._post(
            {
                "messaging_product": MESSAGING_PRODUCT,
                "status": "read",
                "message_id": message_id,
                "typing_indicator": {"type": MESSAGE_TYPE_TEXT},
            }
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def parse_webhook_payload(payload: dict[str, Any]) -> list[InboundEvent]:
    """Extract user messages from a Cloud API webhook body.

    Status callbacks and malformed entries are skipped. Messages of any
    type other than text are reported with ``has_attachment=True``.
    """
    events: list[InboundEvent] = []
    for entry in payload.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        for change in entry.get("changes") or []:
            if not isinstance(change, dict):
                continue
            if change.get("field", WEBHOOK_FIELD_MESSAGES) != WEBHOOK_FIELD_MESSAGES:
                continue
            value = change.get("value") or {}
            own_number = (value.get("metadata") or {}).get("display_phone_number")
            for msg in value.get("messages") or []:
                event = _to_event(msg, own_number)
                if event is not None:
                    events.append(event)
    return events


def _to_event(msg: Any, own_number: str | None) -> InboundEvent | None:
    if not isinstance(msg, dict) or not msg.get("from"):
        logger.debug("Skipping webhook message without sender: %r", msg)
        return None
    sender = str(msg["from"])
    is_text = msg.get("type") == MESSAGE_TYPE_TEXT
    text = ""
    if is_text:
        body = (msg.get("text") or {}).get("body")
        text = body if isinstance(body, str) else ""
    return InboundEvent(
        conversation_id=sender,
        text=text,
        has_attachment=not is_text,
        is_own_message=bool(own_number) and _digits(sender) == _digits(own_number),
        message_id=msg.get("id"),
    )


def _digits(number: str | None) -> str:
    return "".join(ch for ch in number or "" if ch.isdigit())
