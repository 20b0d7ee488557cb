"""``python -m zapchat serve|chat``."""

import argparse
import asyncio
import sys

from .console import DEFAULT_CONVERSATION_ID


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="zapchat", description="WhatsApp LLM chat bot"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the webhook server")
    serve.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")

    chat = sub.add_parser("chat", help="Chat with the bot in the terminal")
    chat.add_argument(
        "--chat-id",
        default=DEFAULT_CONVERSATION_ID,
        help=f"Conversation id to use (default: {DEFAULT_CONVERSATION_ID})",
    )
    chat.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser.parse_args(argv)


def cli_entry() -> None:
    args = parse_args()

    if args.command == "serve":
        import uvicorn

        uvicorn.run("zapchat.app:app", host=args.host, port=args.port, log_config=None)
        return

    from .console import main

    try:
        asyncio.run(main(conversation_id=args.chat_id, debug=args.debug))
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    cli_entry()
