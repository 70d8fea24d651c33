from __future__ import annotations

import logging

import pytest
from fastapi import FastAPI
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from dictionary_review.core.config import Settings
from dictionary_review.core.telemetry import _build_exporter, setup_api_telemetry


@pytest.fixture(autouse=True)
def _clear_otel_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", raising=False)
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)


def test_disabled_tracing_still_correlates_log_records() -> None:
    factory = logging.getLogRecordFactory()
    try:
        provider = setup_api_telemetry(FastAPI(), Settings(otel_enabled=False, otel_log_correlation=True))
        assert provider is None

        record = logging.getLogRecordFactory()("dictionary_review", logging.INFO, __file__, 1, "vote", (), None)
        assert record.trace_id == "0" * 32
        assert record.span_id == "0" * 16
    finally:
        logging.setLogRecordFactory(factory)


def test_exporter_requires_an_endpoint() -> None:
    assert _build_exporter(Settings()) is None


def test_exporter_uses_configured_endpoint() -> None:
    exporter = _build_exporter(
        Settings(
            otel_exporter_otlp_endpoint="http://collector:4318/v1/traces",
            otel_exporter_otlp_headers={"authorization": "Bearer otel"},
        )
    )
    assert isinstance(exporter, OTLPSpanExporter)


def test_exporter_falls_back_to_standard_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318")
    assert isinstance(_build_exporter(Settings()), OTLPSpanExporter)
