"""One chat turn: load history, call the model, persist the reply.

Stages run in order on a shared ``TurnState``::

    LOADING_HISTORY -> PREPARING_PROMPT -> INVOKING_MODEL
        -> EXTRACTING_REPLY -> PERSISTING -> DONE

Any failure after loading moves the turn to ``ERROR``: the history
accumulated so far (including the user turn) is saved, then
``ResponseGenerationError`` is raised with the original exception as
its cause.
"""

import logging
import uuid
from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager, nullcontext

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.runnables import RunnableConfig

from zapchat.configs.system import ToolsConfig
from zapchat.feedback import FeedbackResult, RunCorrelator
from zapchat.history import HistoryStore, truncate_history
from zapchat.infra.concurrency import KeyedLock
from zapchat.infra.id_utils import generate_id
from zapchat.infra.telemetry import (
    ATTR_CONVERSATION_ID,
    ATTR_MODEL_TURN_COUNT,
    ATTR_RUN_ID,
    SPAN_CHAT_TURN,
    SPAN_MODEL_INVOKE,
    tracer,
)
from zapchat.infra.tracing import TraceSink

from .exceptions import ResponseGenerationError
from .llm import ModelClient
from .models import TurnStage, TurnState
from .tools import extract_item_id

logger = logging.getLogger(__name__)

DEFAULT_RUN_NAME = "whatsapp_response"
RUN_TAGS = ["whatsapp"]
MESSAGE_ID_PREFIX = "msg"


def ensure_system_turn(
    history: Sequence[BaseMessage], system_prompt: str
) -> list[BaseMessage]:
    """Return *history* starting with exactly one system turn.

    An existing leading system turn is kept as is; system turns found
    anywhere else are dropped.
    """
    if history and isinstance(history[0], SystemMessage):
        head: BaseMessage = history[0]
        rest = history[1:]
    else:
        head = SystemMessage(content=system_prompt)
        rest = history
    return [head, *(m for m in rest if not isinstance(m, SystemMessage))]


def select_reply(produced: Sequence[BaseMessage]) -> BaseMessage | None:
    """Pick the canonical assistant turn among the model's output."""
    ai_turns = [m for m in produced if isinstance(m, AIMessage)]
    for msg in reversed(ai_turns):
        if not msg.tool_calls:
            return msg
    if ai_turns:
        return ai_turns[-1]
    return produced[-1] if produced else None


def reply_text(msg: BaseMessage | None) -> str:
    """Plain text of *msg*; text content blocks are joined."""
    if msg is None:
        return ""
    content = msg.content
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                text = block.get("text")
                if isinstance(text, str):
                    parts.append(text)
        return "".join(parts)
    return ""


def langchain_run_id(run_id: str) -> uuid.UUID | None:
    """*run_id* as the UUID LangChain expects, or ``None`` for opaque ids."""
    try:
        return uuid.UUID(run_id)
    except ValueError:
        return None


def feedback_hint(feedback: FeedbackResult, item_id: str) -> str:
    return f"[user feedback: {feedback.polarity} on item {item_id}]"


class ResponseOrchestrator:
    """Produces the assistant reply for one inbound text."""

    def __init__(
        self,
        store: HistoryStore,
        correlator: RunCorrelator,
        model_client: ModelClient,
        sink: TraceSink,
        system_prompt: str,
        limit: int | None = None,
        run_name: str = DEFAULT_RUN_NAME,
        locks: KeyedLock | None = None,
        item_id_keys: Sequence[str] | None = None,
        nudge_agent: bool = False,
    ) -> None:
        self._store = store
        self._correlator = correlator
        self._model_client = model_client
        self._sink = sink
        self._system_prompt = system_prompt
        self._limit = limit if limit is not None else store.limit
        self._run_name = run_name
        self._locks = locks
        self._item_id_keys = list(
            item_id_keys if item_id_keys is not None else ToolsConfig().item_id_keys
        )
        self._nudge_agent = nudge_agent

    async def respond(
        self,
        conversation_id: str,
        text: str,
        feedback: FeedbackResult | None = None,
    ) -> str:
        """Run one turn for *conversation_id* and return the reply text.

        Raises:
            ResponseGenerationError: the model call (or anything after
                loading) failed; the user turn has been persisted.
        """
        state = TurnState(conversation_id=conversation_id, text=text, feedback=feedback)
        guard: AbstractAsyncContextManager[None] = (
            self._locks.hold(conversation_id) if self._locks else nullcontext()
        )
        async with guard:
            with tracer.start_as_current_span(SPAN_CHAT_TURN) as span:
                span.set_attribute(ATTR_CONVERSATION_ID, conversation_id)
                await self.load_history(state)
                try:
                    self.prepare_prompt(state)
                    await self.invoke_model(state)
                    self.extract_reply(state)
                    await self.persist(state)
                except Exception as exc:
                    failed_at = state.stage
                    state.stage = TurnStage.ERROR
                    span.record_exception(exc)
                    logger.error(
                        "Turn for %s failed while %s: %s",
                        conversation_id,
                        failed_at,
                        exc,
                    )
                    await self._save_best_effort(state)
                    raise ResponseGenerationError(conversation_id, str(exc)) from exc
                if state.run_id:
                    span.set_attribute(ATTR_RUN_ID, state.run_id)
        return state.reply_text

    async def load_history(self, state: TurnState) -> TurnState:
        state.stage = TurnStage.LOADING_HISTORY
        loaded = await self._store.load(state.conversation_id)
        state.history = ensure_system_turn(loaded, self._system_prompt)
        return state

    def prepare_prompt(self, state: TurnState) -> TurnState:
        state.stage = TurnStage.PREPARING_PROMPT
        user_turn = HumanMessage(content=state.text, id=generate_id(MESSAGE_ID_PREFIX))
        state.history.append(user_turn)
        state.window = truncate_history(state.history, self._limit)

        fb = state.feedback
        if self._nudge_agent and fb is not None and fb.is_feedback:
            item_id = self._correlator.get_produced_item_id(state.conversation_id)
            if item_id:
                state.window[-1] = HumanMessage(
                    content=f"{state.text}\n\n{feedback_hint(fb, item_id)}",
                    id=user_turn.id,
                )
        return state

    async def invoke_model(self, state: TurnState) -> TurnState:
        state.stage = TurnStage.INVOKING_MODEL
        cid = state.conversation_id
        metadata = {"chat_id": cid}
        tags = list(RUN_TAGS)

        # Recorded before the call so feedback arriving mid-call finds it.
        state.run_id = self._sink.start_run(self._run_name, metadata, tags)
        if state.run_id:
            self._correlator.record_run(cid, state.run_id)

        config = RunnableConfig(
            run_name=self._run_name,
            metadata=metadata,
            tags=tags,
            callbacks=self._sink.callbacks(),
        )
        if state.run_id and (run_uuid := langchain_run_id(state.run_id)) is not None:
            config["run_id"] = run_uuid

        with tracer.start_as_current_span(SPAN_MODEL_INVOKE) as span:
            span.set_attribute(ATTR_CONVERSATION_ID, cid)
            if state.run_id:
                span.set_attribute(ATTR_RUN_ID, state.run_id)
            state.produced = await self._model_client.ainvoke(state.window, config)
            span.set_attribute(ATTR_MODEL_TURN_COUNT, len(state.produced))

        for msg in state.produced:
            if not isinstance(msg, ToolMessage):
                continue
            item_id = extract_item_id(msg, self._item_id_keys)
            if item_id is not None:
                state.item_id = item_id
                self._correlator.record_produced_item_id(cid, item_id)
                logger.debug("Tool %s produced item %s for %s", msg.name, item_id, cid)
        return state

    def extract_reply(self, state: TurnState) -> TurnState:
        state.stage = TurnStage.EXTRACTING_REPLY
        state.reply = select_reply(state.produced)
        state.reply_text = reply_text(state.reply)
        if not state.reply_text:
            logger.warning("Model returned no text for %s", state.conversation_id)
        return state

    async def persist(self, state: TurnState) -> TurnState:
        state.stage = TurnStage.PERSISTING
        reply_id = state.reply.id if state.reply is not None else None
        state.history.append(
            AIMessage(
                content=state.reply_text,
                id=reply_id or generate_id(MESSAGE_ID_PREFIX),
            )
        )
        await self._store.save(state.conversation_id, state.history)
        state.stage = TurnStage.DONE
        return state

    async def _save_best_effort(self, state: TurnState) -> None:
        try:
            await self._store.save(state.conversation_id, state.history)
        except Exception:
            logger.warning(
                "Could not save history for %s after failure",
                state.conversation_id,
                exc_info=True,
            )
