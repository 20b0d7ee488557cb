"""Terminal transport for trying the bot locally."""

import sys
from typing import TextIO

from .base import MessagingTransport

BOT_PREFIX = "bot> "


class ConsoleTransport(MessagingTransport):
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    async def send_message(self, conversation_id: str, text: str) -> None:
        self._stream.write(f"{BOT_PREFIX}{text}\n")
        self._stream.flush()

    async def send_typing_indicator(
        self, conversation_id: str, message_id: str | None = None
    ) -> None:
        self._stream.write(f"{BOT_PREFIX}...\n")
        self._stream.flush()
