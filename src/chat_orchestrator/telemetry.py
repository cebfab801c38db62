"""Tracing for the orchestrator, selected by the ``OBSERVABILITY`` setting.

``logfire`` sends spans to Pydantic Logfire (when ``LOGFIRE_TOKEN`` is
set), ``otel`` exports them over OTLP/HTTP, and ``off`` disables tracing.
Both backends are optional extras, imported only when selected. The same
mode decides whether the pydantic-ai agent is built with
``instrument=True``, so model and tool spans nest under the request span.
"""

from __future__ import annotations

from typing import Callable, Literal

from fastapi import FastAPI
from loguru import logger

from chat_orchestrator import __version__
from chat_orchestrator.config import Settings

Mode = Literal["off", "logfire", "otel"]


def observability_mode(settings: Settings) -> Mode:
    """Normalise ``settings.observability``; unknown values count as ``off``."""
    mode = settings.observability.strip().lower()
    if mode in ("logfire", "otel"):
        return mode  # type: ignore[return-value]
    if mode not in ("", "off"):
        logger.warning("Unknown OBSERVABILITY value '{}', tracing disabled", settings.observability)
    return "off"


def is_observability_active(settings: Settings) -> bool:
    return observability_mode(settings) != "off"


def setup_telemetry(app: FastAPI, settings: Settings) -> Mode:
    """Instrument ``app`` for the configured mode and return that mode."""
    mode = observability_mode(settings)
    if mode == "off":
        logger.info("Tracing disabled (OBSERVABILITY=off)")
    else:
        _BACKENDS[mode](app, settings)
    return mode


def _setup_logfire(app: FastAPI, settings: Settings) -> None:
    import logfire

    logfire.configure(
        service_name=settings.otel_service_name,
        service_version=__version__,
        send_to_logfire="if-token-present",
    )
    logfire.instrument_fastapi(app)
    logger.info("Logfire tracing enabled | service={}", settings.otel_service_name)


def _setup_otel(app: FastAPI, settings: Settings) -> None:
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        BatchSpanProcessor,
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    endpoint = f"{settings.otel_exporter_otlp_endpoint.rstrip('/')}/v1/traces"
    provider = TracerProvider(
        resource=Resource.create(
            {"service.name": settings.otel_service_name, "service.version": __version__}
        )
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app)
    logger.info(
        "OpenTelemetry tracing enabled | service={} | endpoint={}",
        settings.otel_service_name,
        endpoint,
    )


_BACKENDS: dict[str, Callable[[FastAPI, Settings], None]] = {
    "logfire": _setup_logfire,
    "otel": _setup_otel,
}
