from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from dictionary_review.core.config import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
CORRELATED_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"

_base_record_factory = logging.getLogRecordFactory()
_httpx_instrumentor = HTTPXClientInstrumentor()


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TracerProvider | None:
    """Configure logging and, when enabled, tracing for the API; returns the provider to shut down."""
    if settings.otel_log_correlation:
        logging.setLogRecordFactory(_correlated_record)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format=CORRELATED_LOG_FORMAT if settings.otel_log_correlation else LOG_FORMAT,
        )
    if not settings.otel_enabled:
        return None

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    exporter = _build_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="healthz")
    _httpx_instrumentor.instrument(tracer_provider=provider)
    return provider


def shutdown_api_telemetry(app: FastAPI, provider: TracerProvider) -> None:
    FastAPIInstrumentor.uninstrument_app(app)
    _httpx_instrumentor.uninstrument()
    provider.force_flush()
    provider.shutdown()


def _build_exporter(settings: Settings) -> OTLPSpanExporter | None:
    # Without an explicit endpoint the exporter reads the standard OTEL_EXPORTER_OTLP_* variables.
    if settings.otel_exporter_otlp_endpoint:
        return OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            headers=settings.otel_exporter_otlp_headers or None,
        )
    if os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"):
        return OTLPSpanExporter()
    logger.info("OTel exporter endpoint not set; spans stay local for service=%s", settings.otel_service_name)
    return None


def _correlated_record(*args: object, **kwargs: object) -> logging.LogRecord:
    record = _base_record_factory(*args, **kwargs)
    context = trace.get_current_span().get_span_context()
    record.trace_id = format(context.trace_id, "032x")
    record.span_id = format(context.span_id, "016x")
    return record
