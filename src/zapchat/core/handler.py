"""Inbound message handling: filtering, feedback side channel, replies."""

import logging

from zapchat.configs.system import ChatConfig
from zapchat.feedback import FeedbackClassifier, FeedbackResult, RunCorrelator
from zapchat.infra.logging import conversation_context
from zapchat.infra.tracing import TraceSink
from zapchat.transport import InboundEvent, MessagingTransport

from .exceptions import ResponseGenerationError
from .orchestrator import ResponseOrchestrator

logger = logging.getLogger(__name__)


class MessageHandler:
    """Turns one ``InboundEvent`` into at most one outbound reply."""

    def __init__(
        self,
        orchestrator: ResponseOrchestrator,
        transport: MessagingTransport,
        classifier: FeedbackClassifier,
        correlator: RunCorrelator,
        sink: TraceSink,
        config: ChatConfig | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._transport = transport
        self._classifier = classifier
        self._correlator = correlator
        self._sink = sink
        self._config = config or ChatConfig()

    async def handle(self, event: InboundEvent) -> None:
        if event.is_own_message:
            return
        with conversation_context(event.conversation_id):
            await self._handle(event)

    async def _handle(self, event: InboundEvent) -> None:
        cid = event.conversation_id
        if event.has_attachment or not event.text.strip():
            logger.info("Non-text message from %s", cid)
            await self._send_quietly(cid, self._config.media_reply_message)
            return

        logger.info("Received message from %s", cid)
        try:
            await self._transport.send_typing_indicator(cid, event.message_id)
        except Exception:
            logger.warning("Failed to send typing indicator to %s", cid, exc_info=True)

        feedback = await self.record_feedback(cid, event.text)

        try:
            reply = await self._orchestrator.respond(cid, event.text, feedback=feedback)
            await self._transport.send_message(cid, reply)
        except ResponseGenerationError as exc:
            logger.error("No reply for %s: %s", cid, exc)
            await self._send_quietly(cid, self._config.apology_message)
        except Exception:
            logger.exception("Failed to deliver reply to %s", cid)
            await self._send_quietly(cid, self._config.apology_message)
        else:
            logger.info("Replied to %s", cid)

    async def record_feedback(self, conversation_id: str, text: str) -> FeedbackResult:
        """Classify *text* and attach it to the conversation's last run."""
        result = self._classifier.classify(text)
        if not result.is_feedback:
            return result

        run_id = self._correlator.get_run(conversation_id)
        if run_id is None:
            logger.info(
                "%s feedback from %s with no previous run",
                result.polarity,
                conversation_id,
            )
            return result

        logger.info(
            "Detected %s feedback from %s (pattern %r) for run %s",
            result.polarity,
            conversation_id,
            result.pattern,
            run_id,
        )
        try:
            await self._sink.record_feedback(
                run_id,
                result.polarity,
                conversation_id,
                item_id=self._correlator.get_produced_item_id(conversation_id),
            )
        except Exception:
            logger.warning(
                "Failed to record feedback for %s", conversation_id, exc_info=True
            )
        return result

    async def _send_quietly(self, conversation_id: str, text: str) -> None:
        try:
            await self._transport.send_message(conversation_id, text)
        except Exception:
            logger.error(
                "Failed to send message to %s", conversation_id, exc_info=True
            )
