"""Interactive terminal chat against the same handler the webhook uses."""

import logging
import sys
from typing import TextIO

from zapchat.configs.config import get_app_config
from zapchat.configs.system import LoggingConfig
from zapchat.core.handler import MessageHandler
from zapchat.infra.logging import setup_logging
from zapchat.transport import ConsoleTransport, InboundEvent

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("exit", "quit", "q")
DEFAULT_CONVERSATION_ID = "console"


class ConsoleChat:
    """Reads lines from *input_stream* and feeds them to the handler."""

    def __init__(
        self,
        handler: MessageHandler,
        conversation_id: str = DEFAULT_CONVERSATION_ID,
        input_stream: TextIO = sys.stdin,
        output_stream: TextIO = sys.stdout,
    ) -> None:
        self.handler = handler
        self.conversation_id = conversation_id
        self.input_stream = input_stream
        self.output_stream = output_stream

    async def run(self) -> None:
        self._print(f"zapchat console (chat id: {self.conversation_id})\n")
        self._print("Type your message and press Enter. Type 'exit' to quit.\n\n")
        while True:
            self._print("> ")
            line = self.input_stream.readline()
            if not line:
                self._print("\nGoodbye!\n")
                return
            text = line.rstrip("\n\r")
            if text.strip().lower() in EXIT_COMMANDS:
                self._print("Goodbye!\n")
                return
            await self.handler.handle(
                InboundEvent(conversation_id=self.conversation_id, text=text)
            )

    def _print(self, text: str) -> None:
        self.output_stream.write(text)
        self.output_stream.flush()


async def main(conversation_id: str = DEFAULT_CONVERSATION_ID, debug: bool = False) -> None:
    from zapchat.app import build_bot

    config = get_app_config()
    setup_logging(
        LoggingConfig(level="DEBUG" if debug else "WARNING", json_output=False),
        stream=sys.stderr,
    )
    async with build_bot(config, ConsoleTransport()) as bot:
        await ConsoleChat(bot.handler, conversation_id).run()
