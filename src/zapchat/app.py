"""Composition root and FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI

from zapchat.api.webhook import router as webhook_router
from zapchat.configs.config import PROJECT_ROOT, AppConfig, get_app_config
from zapchat.core.handler import MessageHandler
from zapchat.core.llm import build_chat_model, build_model_client
from zapchat.core.orchestrator import ResponseOrchestrator
from zapchat.core.tools import load_mcp_tools
from zapchat.feedback import FeedbackClassifier, RunCorrelator
from zapchat.history import HistoryStore
from zapchat.infra.concurrency import KeyedLock
from zapchat.infra.logging import setup_logging
from zapchat.infra.telemetry import init_telemetry
from zapchat.infra.tracing import TraceSink, build_trace_sink
from zapchat.transport import CloudApiTransport, MessagingTransport

logger = logging.getLogger(__name__)


@dataclass
class Bot:
    """The wired components of a running bot."""

    config: AppConfig
    store: HistoryStore
    correlator: RunCorrelator
    classifier: FeedbackClassifier
    sink: TraceSink
    orchestrator: ResponseOrchestrator
    handler: MessageHandler
    transport: MessagingTransport


def _data_dir(config: AppConfig) -> Path:
    path = Path(config.history.data_dir)
    return path if path.is_absolute() else PROJECT_ROOT / path


@asynccontextmanager
async def build_bot(
    config: AppConfig, transport: MessagingTransport
) -> AsyncIterator[Bot]:
    """Wire every component for *transport*; close the transport on exit."""
    store = HistoryStore(_data_dir(config), limit=config.history.limit)
    fb = config.feedback
    correlator = RunCorrelator(
        max_entries=fb.correlator_max_entries, ttl=fb.correlator_ttl
    )
    classifier = FeedbackClassifier(fb.positive_patterns, fb.negative_patterns)
    sink = build_trace_sink(config.tracing)

    llm = build_chat_model(config.llm)
    tools = await load_mcp_tools(config.tools)
    model_client = build_model_client(llm, tools, config.tools)

    orchestrator = ResponseOrchestrator(
        store=store,
        correlator=correlator,
        model_client=model_client,
        sink=sink,
        system_prompt=config.prompt.system_prompt,
        limit=config.history.limit,
        run_name=config.chat.run_name,
        locks=KeyedLock() if config.chat.serialize_turns else None,
        item_id_keys=config.tools.item_id_keys,
        nudge_agent=fb.nudge_agent,
    )
    handler = MessageHandler(
        orchestrator=orchestrator,
        transport=transport,
        classifier=classifier,
        correlator=correlator,
        sink=sink,
        config=config.chat,
    )
    logger.info(
        "Bot ready (model=%s, tools=%d, history=%s, limit=%d)",
        config.llm.model_name,
        len(tools),
        store.data_dir,
        store.limit,
    )
    try:
        yield Bot(
            config=config,
            store=store,
            correlator=correlator,
            classifier=classifier,
            sink=sink,
            orchestrator=orchestrator,
            handler=handler,
            transport=transport,
        )
    finally:
        await transport.aclose()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the bot onto ``app.state``; tear it down on shutdown."""
    config = get_app_config()
    setup_logging(config.logging)
    init_telemetry(app, config.tracing)
    logger.info("Starting zapchat...")

    async with build_bot(config, CloudApiTransport(config.whatsapp)) as bot:
        app.state.config = config
        app.state.bot = bot
        yield

    logger.info("Shutting down zapchat...")


def get_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="zapchat",
        description="WhatsApp LLM chat bot",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(webhook_router)
    return app


app = get_app()
