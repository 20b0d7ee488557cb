"""Per-request dependencies; read what the lifespan put on ``app.state``.

Tests override ``get_*`` via ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from zapchat.configs.system import WhatsAppConfig
from zapchat.core.handler import MessageHandler


def get_message_handler(request: Request) -> MessageHandler:
    """Return the ``MessageHandler`` built by the lifespan."""
    return request.app.state.bot.handler


def get_whatsapp_config(request: Request) -> WhatsAppConfig:
    return request.app.state.config.whatsapp


MessageHandlerDep = Annotated[MessageHandler, Depends(get_message_handler)]
WhatsAppConfigDep = Annotated[WhatsAppConfig, Depends(get_whatsapp_config)]
