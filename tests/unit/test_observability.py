"""
Tests for structured logging and tracing helpers.
"""

import json
import logging
from http import HTTPStatus

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from eventmq.observability import configure_logging, create_span, get_trace_id, record_counter, traced
from eventmq.observability import tracing
from eventmq.observability.logging import StructuredFormatter, TraceContextFilter
from eventmq.shared import NotEventMessageError


class TestStructuredFormatter:
    """Test JSON log formatting."""

    def _record(self, **extra):
        record = logging.LogRecord(
            name="eventmq.messaging.service",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="Event %s already processed",
            args=("abc",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_formats_json(self):
        entry = json.loads(StructuredFormatter().format(self._record()))

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "eventmq.messaging.service"
        assert entry["message"] == "Event abc already processed"
        assert entry["timestamp"].endswith("Z")

    def test_includes_extra_fields(self):
        entry = json.loads(StructuredFormatter().format(
            self._record(subscriber_name="svcA", payload_obj=object())
        ))

        assert entry["subscriber_name"] == "svcA"
        assert isinstance(entry["payload_obj"], str)

    def test_trace_filter_sets_placeholder(self):
        record = self._record()

        assert TraceContextFilter().filter(record) is True
        assert record.trace_id == "no-trace"


class TestConfigureLogging:
    """Test root logger configuration."""

    def test_installs_single_handler(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging(structured=False)

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestTracing:
    """Test span helpers without an SDK provider."""

    def test_no_trace_id_outside_span(self):
        assert get_trace_id() is None

    def test_create_span_reraises(self):
        with pytest.raises(RuntimeError):
            with create_span("mq.test"):
                raise RuntimeError("boom")

    @pytest.mark.asyncio
    async def test_traced_async_function(self):
        @traced("mq.test")
        async def work(value):
            return value * 2

        assert await work(21) == 42

    def test_traced_sync_function(self):
        @traced()
        def work():
            return "done"

        assert work() == "done"
        assert work.__name__ == "work"

    def test_record_counter_without_init_is_noop(self):
        record_counter("mq_events_published_total")
        record_counter("unknown_metric", 5)


@pytest.fixture
def spans(monkeypatch):
    """Capture finished spans with an SDK tracer local to the test."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(tracing, "_tracer", provider.get_tracer("eventmq-test"))
    return exporter


def _by_name(exporter):
    return {span.name: span for span in exporter.get_finished_spans()}


class TestEngineSpans:
    """Spans recorded around message engine operations."""

    @pytest.mark.asyncio
    async def test_spans_follow_an_event(self, spans, service):
        event_id = await service.push("Billing", "invoice.created", "{}")
        await service.exchange_process()
        [response] = await service.pop("svcA", "invoice.created")
        await service.change_status_processing(response.message_id, HTTPStatus.FORBIDDEN, "denied")

        recorded = _by_name(spans)

        push = recorded["mq.push"].attributes
        assert push["mq.publisher"] == "Billing"
        assert push["mq.event_name"] == "invoice.created"
        assert push["mq.event_message_id"] == str(event_id)

        exchange = recorded["mq.exchange_process"].attributes
        assert exchange["mq.events_processed"] == 1
        assert "mq.limit" not in exchange

        pop = recorded["mq.pop"].attributes
        assert pop["mq.subscriber_name"] == "svcA"
        assert pop["mq.messages_delivered"] == 1

        status = recorded["mq.change_status_processing"].attributes
        assert status["mq.message_id"] == str(response.message_id)
        assert status["mq.status_code"] == 403
        assert status["mq.event_message_id"] == str(event_id)

    @pytest.mark.asyncio
    async def test_link_span_records_both_ids(self, spans, service):
        parent_id = await service.push("Billing", "invoice.created", "{}")
        child_id = await service.push("Billing", "invoice.paid", "{}")

        await service.link_event(parent_id, child_id)

        link = _by_name(spans)["mq.link_event"].attributes
        assert link["mq.parent_id"] == str(parent_id)
        assert link["mq.event_id"] == str(child_id)

    @pytest.mark.asyncio
    async def test_idle_exchange_is_not_an_error(self, spans, service):
        with pytest.raises(NotEventMessageError):
            await service.exchange_process(limit=5)

        span = _by_name(spans)["mq.exchange_process"]
        assert span.attributes["mq.error_reason"] == "NotEventMessage"
        assert span.attributes["mq.limit"] == 5
        assert span.status.status_code == StatusCode.UNSET

    def test_unexpected_error_marks_span_failed(self, spans):
        @traced()
        def fan_out():
            raise ConnectionError("database went away")

        with pytest.raises(ConnectionError):
            fan_out()

        span = _by_name(spans)["mq.fan_out"]
        assert span.status.status_code == StatusCode.ERROR
        assert span.events[0].name == "exception"
