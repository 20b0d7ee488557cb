"""Run tracing and user-feedback sink (LangSmith).

``TraceSink`` is the side channel the orchestrator and the message
handler talk to:

- ``start_run`` hands out the id of the run about to be invoked.  The id
  is passed to LangChain as ``RunnableConfig["run_id"]`` so the LangSmith
  trace of the model/agent call carries exactly that id.
- ``callbacks`` returns the LangChain tracer to attach to the call.
- ``record_feedback`` attaches a user rating to a previous run.

Every failure is logged and swallowed: the reply path must never break
because the observability side channel did.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from langchain_core.callbacks import BaseCallbackHandler

from zapchat.configs.system import TracingConfig
from zapchat.infra.id_utils import new_run_id
from zapchat.infra.telemetry import (
    ATTR_CONVERSATION_ID,
    ATTR_FEEDBACK_POLARITY,
    ATTR_RUN_ID,
    SPAN_FEEDBACK_RECORD,
    tracer,
)

logger = logging.getLogger(__name__)

FEEDBACK_KEY = "user_rating"
FEEDBACK_SOURCE_TYPE = "whatsapp"
_SCORES = {"positive": 1, "negative": 0}


class TraceSink(ABC):
    """Interface for run tracing / feedback backends."""

    @abstractmethod
    def start_run(
        self, name: str, metadata: dict[str, Any], tags: list[str]
    ) -> str | None:
        """Return the id of a run about to start, or ``None`` if untraced."""

    @abstractmethod
    def callbacks(self) -> list[BaseCallbackHandler]:
        """LangChain callbacks to attach to traced invocations."""

    @abstractmethod
    async def record_feedback(
        self,
        run_id: str,
        polarity: str,
        conversation_id: str,
        comment: str = "",
        item_id: str | None = None,
    ) -> bool:
        """Attach feedback to *run_id*; ``True`` when it was recorded."""


class NullTraceSink(TraceSink):
    """Tracing disabled: no run ids, no callbacks, no feedback calls."""

    def start_run(
        self, name: str, metadata: dict[str, Any], tags: list[str]
    ) -> str | None:
        return None

    def callbacks(self) -> list[BaseCallbackHandler]:
        return []

    async def record_feedback(
        self,
        run_id: str,
        polarity: str,
        conversation_id: str,
        comment: str = "",
        item_id: str | None = None,
    ) -> bool:
        return False


class LangSmithTraceSink(TraceSink):
    """LangSmith-backed sink.

    The LangSmith client is synchronous; feedback calls run in a worker
    thread so they never block the event loop.
    """

    def __init__(self, config: TracingConfig, client: Any | None = None) -> None:
        if client is None:
            from langsmith import Client

            client = Client(api_url=config.endpoint, api_key=config.api_key)
        self._client = client
        self._project = config.project
        self._tracer: BaseCallbackHandler | None = None

    def start_run(
        self, name: str, metadata: dict[str, Any], tags: list[str]
    ) -> str | None:
        run_id = new_run_id()
        logger.info("Starting trace for %s with run id %s", name, run_id)
        return run_id

    def callbacks(self) -> list[BaseCallbackHandler]:
        if self._tracer is None:
            from langchain_core.tracers.langchain import LangChainTracer

            self._tracer = LangChainTracer(
                project_name=self._project, client=self._client
            )
        return [self._tracer]

    async def record_feedback(
        self,
        run_id: str,
        polarity: str,
        conversation_id: str,
        comment: str = "",
        item_id: str | None = None,
    ) -> bool:
        score = _SCORES.get(polarity)
        if score is None:
            logger.warning("Ignoring feedback with polarity %r", polarity)
            return False

        source_info: dict[str, Any] = {
            "source_type": FEEDBACK_SOURCE_TYPE,
            "chat_id": conversation_id,
        }
        if item_id:
            source_info["item_id"] = item_id

        with tracer.start_as_current_span(SPAN_FEEDBACK_RECORD) as span:
            span.set_attribute(ATTR_CONVERSATION_ID, conversation_id)
            span.set_attribute(ATTR_RUN_ID, run_id)
            span.set_attribute(ATTR_FEEDBACK_POLARITY, polarity)
            try:
                await asyncio.to_thread(
                    self._client.create_feedback,
                    run_id,
                    FEEDBACK_KEY,
                    score=score,
                    value=score,
                    comment=comment or f"Feedback from chat {conversation_id}",
                    source_info=source_info,
                )
            except Exception:
                logger.warning(
                    "Failed to record %s feedback for run %s",
                    polarity,
                    run_id,
                    exc_info=True,
                )
                return False

        logger.info("Recorded %s feedback for run %s", polarity, run_id)
        return True


def build_trace_sink(config: TracingConfig) -> TraceSink:
    """Return the LangSmith sink when enabled, the null sink otherwise."""
    if not config.enabled:
        logger.info("LangSmith tracing is disabled")
        return NullTraceSink()
    if not config.api_key:
        logger.warning(
            "LangSmith tracing enabled without an API key; runs may not be recorded."
        )
    logger.info("LangSmith tracing is enabled (project=%s)", config.project)
    return LangSmithTraceSink(config)
