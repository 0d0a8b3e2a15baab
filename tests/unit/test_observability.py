"""Tests for structured logging and the metrics hook."""

from __future__ import annotations

import io
import json
import logging
import sys

from picrelay.observability import MetricsHook, NoopMetricsHook, StructuredFormatter, get_logger
from picrelay.observability.metrics import resolve_metrics

# =========================================================================
# Structured logging
# =========================================================================


class TestStructuredLogger:
    def test_emits_single_line_json_with_extra_fields(self):
        stream = io.StringIO()
        log = get_logger("picrelay.test.json", stream=stream)
        log.info("tool resolved", extra={"extra_fields": {"op": "resolve", "path": "/usr/bin/upic"}})
        entry = json.loads(stream.getvalue().strip())
        assert entry["message"] == "tool resolved"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "picrelay.test.json"
        assert entry["op"] == "resolve"
        assert entry["path"] == "/usr/bin/upic"
        assert "ts" in entry

    def test_get_logger_is_idempotent(self):
        first = get_logger("picrelay.test.idempotent", stream=io.StringIO())
        second = get_logger("picrelay.test.idempotent", stream=io.StringIO())
        assert first is second
        assert len(first.handlers) == 1

    def test_string_level(self):
        log = get_logger("picrelay.test.level", level="warning", stream=io.StringIO())
        assert log.level == logging.WARNING

    def test_exception_is_serialised(self):
        formatter = StructuredFormatter()
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "picrelay", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )
        entry = json.loads(formatter.format(record))
        assert "RuntimeError: boom" in entry["exception"]

    def test_non_serialisable_extra_uses_str(self):
        stream = io.StringIO()
        log = get_logger("picrelay.test.default", stream=stream)
        log.info("x", extra={"extra_fields": {"obj": object()}})
        assert "object object" in json.loads(stream.getvalue())["obj"]


# =========================================================================
# Metrics
# =========================================================================


class TestMetricsHook:
    def test_noop_satisfies_protocol(self):
        assert isinstance(NoopMetricsHook(), MetricsHook)

    def test_noop_methods_accept_tags(self):
        hook = NoopMetricsHook()
        hook.increment("a", tags={"k": "v"})
        hook.timing("b", 1.5)
        hook.gauge("c", 2.0)

    def test_resolve_metrics_defaults_to_shared_noop(self):
        assert resolve_metrics(None) is resolve_metrics(None)
        assert isinstance(resolve_metrics(None), NoopMetricsHook)

    def test_resolve_metrics_passes_hook_through(self, metrics):
        assert resolve_metrics(metrics) is metrics
        assert isinstance(metrics, MetricsHook)
