"""Tests for the inbound message handler."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from zapchat.configs.system import ChatConfig
from zapchat.core.exceptions import ResponseGenerationError
from zapchat.core.handler import MessageHandler
from zapchat.feedback import POLARITY_NEGATIVE, FeedbackClassifier, RunCorrelator
from zapchat.transport import InboundEvent


def _transport():
    transport = MagicMock()
    transport.send_message = AsyncMock()
    transport.send_typing_indicator = AsyncMock()
    return transport


def _orchestrator(**kwargs):
    orchestrator = MagicMock()
    orchestrator.respond = AsyncMock(**(kwargs or {"return_value": "resposta"}))
    return orchestrator


def _sink(**kwargs):
    sink = MagicMock()
    sink.record_feedback = AsyncMock(**(kwargs or {"return_value": True}))
    return sink


def _handler(orchestrator=None, transport=None, sink=None, correlator=None):
    orchestrator = orchestrator or _orchestrator()
    transport = transport or _transport()
    sink = sink or _sink()
    handler = MessageHandler(
        orchestrator=orchestrator,
        transport=transport,
        classifier=FeedbackClassifier(),
        correlator=correlator or RunCorrelator(),
        sink=sink,
        config=ChatConfig(),
    )
    return handler, orchestrator, transport, sink


class TestMessageHandler:
    @pytest.mark.asyncio
    async def test_replies_with_orchestrator_output(self):
        handler, orchestrator, transport, _ = _handler()

        await handler.handle(
            InboundEvent(conversation_id="c1", text="oi", message_id="wamid.1")
        )

        transport.send_typing_indicator.assert_awaited_once_with("c1", "wamid.1")
        orchestrator.respond.assert_awaited_once()
        assert orchestrator.respond.await_args.args == ("c1", "oi")
        transport.send_message.assert_awaited_once_with("c1", "resposta")

    @pytest.mark.asyncio
    async def test_own_messages_are_ignored(self):
        handler, orchestrator, transport, _ = _handler()

        await handler.handle(
            InboundEvent(conversation_id="c1", text="oi", is_own_message=True)
        )

        orchestrator.respond.assert_not_awaited()
        transport.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event",
        [
            InboundEvent(conversation_id="c1", has_attachment=True),
            InboundEvent(conversation_id="c1", text="   "),
        ],
    )
    async def test_non_text_gets_fixed_reply(self, event):
        handler, orchestrator, transport, _ = _handler()

        await handler.handle(event)

        orchestrator.respond.assert_not_awaited()
        transport.send_message.assert_awaited_once_with(
            "c1", "I can only respond to text messages for now."
        )

    @pytest.mark.asyncio
    async def test_failure_sends_apology(self):
        orchestrator = _orchestrator(side_effect=ResponseGenerationError("c1", "boom"))
        handler, _, transport, _ = _handler(orchestrator=orchestrator)

        await handler.handle(InboundEvent(conversation_id="c1", text="oi"))

        transport.send_message.assert_awaited_once_with(
            "c1", "Sorry, I encountered an error. Please try again later."
        )

    @pytest.mark.asyncio
    async def test_failed_apology_is_swallowed(self):
        orchestrator = _orchestrator(side_effect=ResponseGenerationError("c1", "boom"))
        transport = _transport()
        transport.send_message.side_effect = ConnectionError("offline")
        handler, _, _, _ = _handler(orchestrator=orchestrator, transport=transport)

        await handler.handle(InboundEvent(conversation_id="c1", text="oi"))

        transport.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_typing_failure_does_not_block_reply(self):
        transport = _transport()
        transport.send_typing_indicator.side_effect = RuntimeError("x")
        handler, _, _, _ = _handler(transport=transport)

        await handler.handle(InboundEvent(conversation_id="c1", text="oi"))

        transport.send_message.assert_awaited_once_with("c1", "resposta")

    @pytest.mark.asyncio
    async def test_feedback_is_recorded_against_last_run(self):
        correlator = RunCorrelator()
        correlator.record_run("c1", "run-1")
        correlator.record_produced_item_id("c1", "42")
        handler, orchestrator, _, sink = _handler(correlator=correlator)

        await handler.handle(InboundEvent(conversation_id="c1", text="sem graça"))

        sink.record_feedback.assert_awaited_once_with(
            "run-1", POLARITY_NEGATIVE, "c1", item_id="42"
        )
        # Feedback still gets a normal reply.
        orchestrator.respond.assert_awaited_once()
        assert orchestrator.respond.await_args.kwargs["feedback"].is_feedback

    @pytest.mark.asyncio
    async def test_feedback_without_run_is_not_recorded(self):
        handler, _, _, sink = _handler()

        await handler.handle(InboundEvent(conversation_id="c1", text="adorei"))

        sink.record_feedback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_block_reply(self):
        correlator = RunCorrelator()
        correlator.record_run("c1", "run-1")
        sink = _sink(side_effect=RuntimeError("langsmith down"))
        handler, _, transport, _ = _handler(sink=sink, correlator=correlator)

        await handler.handle(InboundEvent(conversation_id="c1", text="adorei"))

        transport.send_message.assert_awaited_once_with("c1", "resposta")
