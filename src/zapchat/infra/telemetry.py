"""OpenTelemetry bootstrap: tracing initialisation and span names.

Configures a ``TracerProvider`` with an OTLP HTTP exporter when
``TracingConfig.otel_enabled`` is set.  When disabled the module is a
graceful no-op: ``tracer`` still hands out non-recording spans, so call
sites never need to check.

Usage::

    from zapchat.infra.telemetry import SPAN_HISTORY_LOAD, tracer

    with tracer.start_as_current_span(SPAN_HISTORY_LOAD) as span:
        ...
"""

from __future__ import annotations

import logging

from opentelemetry import trace

from zapchat.configs.system import TracingConfig

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("zapchat")

# ---------------------------------------------------------------------------
# Span names
# ---------------------------------------------------------------------------

SPAN_HISTORY_LOAD = "history.load"
SPAN_HISTORY_SAVE = "history.save"
SPAN_CHAT_TURN = "chat.turn"
SPAN_MODEL_INVOKE = "model.invoke"
SPAN_FEEDBACK_RECORD = "feedback.record"

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_CONVERSATION_ID = "chat.conversation_id"
ATTR_HISTORY_MESSAGE_COUNT = "history.message_count"
ATTR_HISTORY_DROPPED = "history.dropped"
ATTR_RUN_ID = "chat.run_id"
ATTR_MODEL_TURN_COUNT = "model.turn_count"
ATTR_FEEDBACK_POLARITY = "feedback.polarity"


def init_telemetry(app: object | None = None, settings: TracingConfig | None = None) -> bool:
    """Initialise the OTEL ``TracerProvider`` and auto-instrumentations.

    Returns ``True`` when tracing was switched on.
    """
    if settings is None or not settings.otel_enabled:
        logger.info("OpenTelemetry tracing disabled.")
        return False

    if not settings.otel_endpoint:
        logger.warning(
            "OTEL tracing enabled but no endpoint configured; skipping setup."
        )
        return False

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
        OTLPSpanExporter,
    )
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider(
        resource=Resource.create({"service.name": settings.service_name})
    )
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint))
    )
    trace.set_tracer_provider(provider)

    if app is not None:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(app, excluded_urls="health")

    from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

    HTTPXClientInstrumentor().instrument()

    logger.info(
        "OpenTelemetry tracing initialised (service=%s).", settings.service_name
    )
    return True
