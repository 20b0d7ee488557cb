"""Tests for the response orchestrator."""

import asyncio
import json
import uuid
from typing import Any

import pytest
from langchain_core.messages import (
    AIMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from zapchat.core.exceptions import ResponseGenerationError
from zapchat.core.llm import ModelClient
from zapchat.core.models import TurnStage, TurnState
from zapchat.core.orchestrator import (
    ResponseOrchestrator,
    ensure_system_turn,
    langchain_run_id,
    reply_text,
    select_reply,
)
from zapchat.feedback import FeedbackClassifier, RunCorrelator
from zapchat.history import HistoryStore
from zapchat.infra.concurrency import KeyedLock
from zapchat.infra.tracing import NullTraceSink, TraceSink

SYSTEM_PROMPT = "Você é um bot de piadas."


class FakeModelClient(ModelClient):
    """Returns canned turns and records what it was called with."""

    def __init__(self, produced=None, error: Exception | None = None) -> None:
        self.produced = produced if produced is not None else [AIMessage(content="R")]
        self.error = error
        self.calls: list[tuple[list, dict]] = []
        self.on_call = None

    async def ainvoke(self, messages, config):
        self.calls.append((list(messages), dict(config)))
        if self.on_call is not None:
            await self.on_call()
        if self.error is not None:
            raise self.error
        return list(self.produced)


class FakeSink(TraceSink):
    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id or str(uuid.uuid4())
        self.started: list[tuple[str, dict, list]] = []

    def start_run(self, name: str, metadata: dict[str, Any], tags: list[str]):
        self.started.append((name, metadata, tags))
        return self.run_id

    def callbacks(self):
        return []

    async def record_feedback(self, *args, **kwargs) -> bool:
        return True


def _orchestrator(tmp_path, client, sink=None, **kwargs):
    store = HistoryStore(tmp_path, limit=kwargs.pop("limit", 20))
    correlator = kwargs.pop("correlator", RunCorrelator())
    return (
        ResponseOrchestrator(
            store=store,
            correlator=correlator,
            model_client=client,
            sink=sink or NullTraceSink(),
            system_prompt=SYSTEM_PROMPT,
            **kwargs,
        ),
        store,
        correlator,
    )


class TestHelpers:
    def test_ensure_system_turn_prepends_prompt(self):
        history = ensure_system_turn([HumanMessage(content="oi")], "sys")
        assert isinstance(history[0], SystemMessage)
        assert history[0].content == "sys"
        assert history[1].content == "oi"

    def test_ensure_system_turn_keeps_existing_and_drops_strays(self):
        history = ensure_system_turn(
            [
                SystemMessage(content="old"),
                HumanMessage(content="oi"),
                SystemMessage(content="stray"),
            ],
            "new",
        )
        assert [m.content for m in history] == ["old", "oi"]

    def test_select_reply_prefers_final_ai_turn(self):
        produced = [
            AIMessage(content="", tool_calls=[{"name": "t", "args": {}, "id": "c"}]),
            ToolMessage(content="{}", tool_call_id="c"),
            AIMessage(content="final"),
        ]
        assert select_reply(produced).content == "final"

    def test_select_reply_falls_back_to_last_turn(self):
        produced = [ToolMessage(content="only tool", tool_call_id="c")]
        assert select_reply(produced).content == "only tool"
        assert select_reply([]) is None

    def test_reply_text(self):
        assert reply_text(None) == ""
        assert reply_text(AIMessage(content="")) == ""
        blocks = AIMessage(
            content=[
                {"type": "text", "text": "a"},
                {"type": "image_url", "image_url": {"url": "x"}},
                {"type": "text", "text": "b"},
            ]
        )
        assert reply_text(blocks) == "ab"

    def test_langchain_run_id_accepts_only_uuids(self):
        rid = uuid.uuid4()
        assert langchain_run_id(str(rid)) == rid
        assert langchain_run_id("r1") is None


class TestResponseOrchestrator:
    @pytest.mark.asyncio
    async def test_first_turn_persists_system_user_assistant(self, tmp_path):
        orchestrator, store, _ = _orchestrator(tmp_path, FakeModelClient())

        reply = await orchestrator.respond("c1", "oi")

        assert reply == "R"
        saved = await store.load("c1")
        assert [type(m) for m in saved] == [SystemMessage, HumanMessage, AIMessage]
        assert [m.content for m in saved] == [SYSTEM_PROMPT, "oi", "R"]

    @pytest.mark.asyncio
    async def test_model_sees_history_and_new_turn(self, tmp_path):
        client = FakeModelClient()
        orchestrator, _, _ = _orchestrator(tmp_path, client)

        await orchestrator.respond("c1", "oi")
        await orchestrator.respond("c1", "conta outra")

        window, _ = client.calls[-1]
        assert [m.content for m in window] == [SYSTEM_PROMPT, "oi", "R", "conta outra"]

    @pytest.mark.asyncio
    async def test_window_is_bounded(self, tmp_path):
        client = FakeModelClient()
        orchestrator, store, _ = _orchestrator(tmp_path, client, limit=4)

        for i in range(5):
            await orchestrator.respond("c1", f"q{i}")

        window, _ = client.calls[-1]
        assert len(window) == 4
        assert isinstance(window[0], SystemMessage)
        assert window[-1].content == "q4"
        assert len(await store.load("c1")) == 4

    @pytest.mark.asyncio
    async def test_model_error_keeps_user_turn_and_raises(self, tmp_path):
        boom = RuntimeError("upstream down")
        orchestrator, store, _ = _orchestrator(tmp_path, FakeModelClient(error=boom))

        with pytest.raises(ResponseGenerationError) as excinfo:
            await orchestrator.respond("c1", "oi")

        assert excinfo.value.__cause__ is boom
        assert excinfo.value.conversation_id == "c1"
        assert "Failed to get response from LLM" in str(excinfo.value)
        saved = await store.load("c1")
        assert [m.content for m in saved] == [SYSTEM_PROMPT, "oi"]

    @pytest.mark.asyncio
    async def test_run_is_recorded_before_model_call(self, tmp_path):
        sink = FakeSink()
        client = FakeModelClient()
        correlator = RunCorrelator()
        seen: list = []

        async def on_call():
            seen.append(correlator.get_run("c1"))

        client.on_call = on_call
        orchestrator, _, _ = _orchestrator(
            tmp_path, client, sink=sink, correlator=correlator
        )

        await orchestrator.respond("c1", "oi")

        assert seen == [sink.run_id]
        name, metadata, tags = sink.started[0]
        assert name == "whatsapp_response"
        assert metadata["chat_id"] == "c1"
        _, config = client.calls[0]
        assert config["run_id"] == uuid.UUID(sink.run_id)
        assert config["run_name"] == "whatsapp_response"

    @pytest.mark.asyncio
    async def test_opaque_run_ids_are_correlated_but_not_passed_on(self, tmp_path):
        sink = FakeSink(run_id="r1")
        client = FakeModelClient()
        orchestrator, _, correlator = _orchestrator(tmp_path, client, sink=sink)

        assert await orchestrator.respond("c1", "oi") == "R"
        assert correlator.get_run("c1") == "r1"

        sink.run_id = "r2"
        assert await orchestrator.respond("c1", "de novo") == "R"
        assert correlator.get_run("c1") == "r2"

        for _, config in client.calls:
            assert "run_id" not in config
            assert config["run_name"] == "whatsapp_response"

    @pytest.mark.asyncio
    async def test_untraced_run_has_no_run_id(self, tmp_path):
        client = FakeModelClient()
        orchestrator, _, correlator = _orchestrator(tmp_path, client)

        await orchestrator.respond("c1", "oi")

        _, config = client.calls[0]
        assert "run_id" not in config
        assert correlator.get_run("c1") is None

    @pytest.mark.asyncio
    async def test_agent_turns_record_item_and_persist_only_reply(self, tmp_path):
        produced = [
            AIMessage(
                content="",
                tool_calls=[{"name": "get_joke", "args": {}, "id": "call_1"}],
            ),
            ToolMessage(
                content=json.dumps({"joke_id": 42, "text": "..."}),
                tool_call_id="call_1",
                name="get_joke",
            ),
            AIMessage(content="Aqui vai uma piada"),
        ]
        orchestrator, store, correlator = _orchestrator(
            tmp_path, FakeModelClient(produced=produced)
        )

        reply = await orchestrator.respond("c1", "conta uma piada")

        assert reply == "Aqui vai uma piada"
        assert correlator.get_produced_item_id("c1") == "42"
        saved = await store.load("c1")
        assert [type(m) for m in saved] == [SystemMessage, HumanMessage, AIMessage]

    @pytest.mark.asyncio
    async def test_tool_result_content_blocks(self, tmp_path):
        produced = [
            ToolMessage(
                content=[{"type": "text", "text": '{"jokeId": "abc"}'}],
                tool_call_id="call_1",
            ),
            AIMessage(content="ok"),
        ]
        orchestrator, _, correlator = _orchestrator(
            tmp_path, FakeModelClient(produced=produced)
        )
        await orchestrator.respond("c1", "piada")
        assert correlator.get_produced_item_id("c1") == "abc"

    @pytest.mark.asyncio
    async def test_empty_reply_is_empty_string(self, tmp_path):
        orchestrator, _, _ = _orchestrator(
            tmp_path, FakeModelClient(produced=[AIMessage(content="")])
        )
        assert await orchestrator.respond("c1", "oi") == ""

    @pytest.mark.asyncio
    async def test_feedback_nudge_only_changes_model_copy(self, tmp_path):
        client = FakeModelClient()
        correlator = RunCorrelator()
        correlator.record_produced_item_id("c1", "42")
        orchestrator, store, _ = _orchestrator(
            tmp_path, client, correlator=correlator, nudge_agent=True
        )
        feedback = FeedbackClassifier().classify("adorei")

        await orchestrator.respond("c1", "adorei", feedback=feedback)

        window, _ = client.calls[0]
        assert "positive" in window[-1].content
        assert "42" in window[-1].content
        saved = await store.load("c1")
        assert saved[1].content == "adorei"

    @pytest.mark.asyncio
    async def test_same_conversation_turns_are_serialised(self, tmp_path):
        client = FakeModelClient()
        release = asyncio.Event()
        active = 0
        peak = 0

        async def on_call():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await release.wait()
            active -= 1

        client.on_call = on_call
        orchestrator, store, _ = _orchestrator(tmp_path, client, locks=KeyedLock())

        first = asyncio.create_task(orchestrator.respond("c1", "a"))
        second = asyncio.create_task(orchestrator.respond("c1", "b"))
        await asyncio.sleep(0.05)
        release.set()
        await asyncio.gather(first, second)

        assert peak == 1
        saved = await store.load("c1")
        assert [m.content for m in saved] == [SYSTEM_PROMPT, "a", "R", "b", "R"]


class TestStages:
    @pytest.mark.asyncio
    async def test_stages_advance_state(self, tmp_path):
        orchestrator, _, _ = _orchestrator(tmp_path, FakeModelClient())
        state = TurnState(conversation_id="c1", text="oi")

        await orchestrator.load_history(state)
        assert state.stage == TurnStage.LOADING_HISTORY
        assert isinstance(state.history[0], SystemMessage)

        orchestrator.prepare_prompt(state)
        assert state.stage == TurnStage.PREPARING_PROMPT
        assert state.window[-1].content == "oi"

        await orchestrator.invoke_model(state)
        orchestrator.extract_reply(state)
        assert state.reply_text == "R"

        await orchestrator.persist(state)
        assert state.stage == TurnStage.DONE
