"""Messaging transport interface and the inbound event model."""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class InboundEvent(BaseModel):
    """A user message delivered by a transport."""

    conversation_id: str = Field(description="Chat the message belongs to")
    text: str = Field(default="", description="Message text, empty for media")
    has_attachment: bool = Field(
        default=False, description="Message carries media instead of text"
    )
    is_own_message: bool = Field(
        default=False, description="Message was sent by the bot's own account"
    )
    message_id: str | None = Field(
        default=None, description="Transport message id, if known"
    )


class MessagingTransport(ABC):
    """Outbound side of a messaging platform."""

    @abstractmethod
    async def send_message(self, conversation_id: str, text: str) -> None:
        """Deliver *text* to *conversation_id*; raise on failure."""

    @abstractmethod
    async def send_typing_indicator(
        self, conversation_id: str, message_id: str | None = None
    ) -> None:
        """Show the "typing..." state in *conversation_id*."""

    async def aclose(self) -> None:  # noqa: B027
        """Release transport resources."""
