"""Testes de logging estruturado, medição de latência e correlation id."""

from __future__ import annotations

import json
import logging

import pytest

from adstudio.observability.logging import (
    CorrelationIdFilter,
    configure_logging,
    get_logger,
    log_fallback,
    short_id,
)
from adstudio.observability.middleware import _correlation_id, get_correlation_id
from adstudio.observability.timing import timed


class TestShortId:
    def test_truncates(self):
        assert short_id("sess-1234567890") == "sess-123..."

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert short_id(value) == ""


class TestCorrelationIdFilter:
    """Filtro injeta service e correlation_id."""

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)

    def test_uses_context_var(self):
        token = _correlation_id.set("corr-abc")
        try:
            record = self._record()
            CorrelationIdFilter("adstudio").filter(record)
        finally:
            _correlation_id.reset(token)

        assert record.correlation_id == "corr-abc"
        assert record.service == "adstudio"
        assert get_correlation_id() == ""

    def test_keeps_explicit_correlation_id(self):
        record = self._record()
        record.correlation_id = "explicit"
        CorrelationIdFilter("adstudio").filter(record)
        assert record.correlation_id == "explicit"


class TestJsonLogging:
    def test_output_is_json(self, capsys: pytest.CaptureFixture[str]):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        try:
            configure_logging("INFO", "adstudio-test")
            get_logger("adstudio.test").info("job_created", extra={"job_id": "job-1..."})
        finally:
            root.handlers = handlers
            root.setLevel(level)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "job_created"
        assert payload["level"] == "INFO"
        assert payload["service"] == "adstudio-test"
        assert payload["job_id"] == "job-1..."


class TestFallbackAndTiming:
    def test_log_fallback(self, caplog: pytest.LogCaptureFixture):
        logger = get_logger("adstudio.test.fallback")
        with caplog.at_level(logging.WARNING, logger="adstudio.test.fallback"):
            log_fallback(logger, "veo_status", reason="UpstreamError", job_id="job-1...")

        record = caplog.records[-1]
        assert record.fallback_used is True
        assert record.component == "veo_status"
        assert record.reason == "UpstreamError"
        assert record.job_id == "job-1..."

    def test_timed_logs_even_on_error(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger="adstudio.observability.timing"):
            with pytest.raises(RuntimeError):
                with timed("veo_submit"):
                    raise RuntimeError("boom")

        record = caplog.records[-1]
        assert record.getMessage() == "component_latency"
        assert record.component == "veo_submit"
        assert record.elapsed_ms >= 0
