"""WhatsApp Cloud API webhook endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, HTTPException, Query
from fastapi.responses import PlainTextResponse

from zapchat.transport import parse_webhook_payload

from .deps import MessageHandlerDep, WhatsAppConfigDep

logger = logging.getLogger(__name__)

HUB_MODE_SUBSCRIBE = "subscribe"
STATUS_OK = {"status": "ok"}

router = APIRouter(tags=["webhook"])


@router.get("/health")
async def health() -> dict[str, str]:
    return STATUS_OK


@router.get("/webhook", response_class=PlainTextResponse)
async def verify_webhook(
    config: WhatsAppConfigDep,
    mode: str | None = Query(default=None, alias="hub.mode"),
    token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
) -> str:
    """Meta subscription handshake: echo the challenge when the token matches."""
    if (
        mode != HUB_MODE_SUBSCRIBE
        or not config.verify_token
        or token != config.verify_token
    ):
        logger.warning("Webhook verification rejected (mode=%s)", mode)
        raise HTTPException(status_code=403, detail="Verification failed")
    logger.info("Webhook verified")
    return challenge


@router.post("/webhook")
async def receive_webhook(
    background_tasks: BackgroundTasks,
    handler: MessageHandlerDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, str]:
    """Acknowledge immediately; each message is handled in the background."""
    events = parse_webhook_payload(payload)
    for event in events:
        background_tasks.add_task(handler.handle, event)
    if events:
        logger.debug("Scheduled %d inbound messages", len(events))
    return STATUS_OK
