"""
OpenTelemetry Tracing

Each engine operation runs in an ``mq.*`` span. The span carries the
publisher, event, subscriber and message identifiers taken from the call
arguments, so one event can be followed from push through fan-out and pop
to the subscriber's status report. Webhook notifications carry the trace
context in their headers.

Engine errors with a client status (InvalidEventName, NotEventMessage,
MessageNotFound, ...) are recorded as ``mq.error_reason`` without marking
the span failed. Anything else marks the span as an error.
"""

import inspect
import logging
import os
from contextlib import contextmanager
from functools import wraps
from typing import Optional, Dict, Any, Callable

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.trace import Status, StatusCode, Span
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from opentelemetry.propagate import set_global_textmap, inject

from ..shared.exceptions import MessageMQError

logger = logging.getLogger(__name__)

TRACER_NAME = "eventmq"

# Engine parameters recorded on spans, by parameter name
SPAN_ARGUMENTS = {
    "publisher": "mq.publisher",
    "event_name": "mq.event_name",
    "subscriber_name": "mq.subscriber_name",
    "message_id": "mq.message_id",
    "parent_id": "mq.parent_id",
    "event_id": "mq.event_id",
    "status_code": "mq.status_code",
    "limit": "mq.limit",
}

_tracer: Optional[trace.Tracer] = None


def init_tracing(
    service_name: str = TRACER_NAME,
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False
) -> trace.Tracer:
    """
    Install an SDK tracer provider for the message engine.

    Args:
        service_name: Reported as service.name
        service_version: Reported as service.version
        otlp_endpoint: OTLP gRPC collector; defaults to $OTEL_EXPORTER_OTLP_ENDPOINT
        console_export: Also print finished spans to stdout

    With neither an endpoint nor console export, spans are recorded
    (trace ids reach the logs) but not exported.
    """
    global _tracer

    endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    provider = TracerProvider(resource=Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
    }))

    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
        logger.info("Exporting message engine spans to %s", endpoint)
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    set_global_textmap(TraceContextTextMapPropagator())

    _tracer = trace.get_tracer(TRACER_NAME, service_version)
    return _tracer


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def get_current_span() -> Optional[Span]:
    return trace.get_current_span()


def get_trace_id() -> Optional[str]:
    """Current trace id as 32 hex digits, or None outside a recorded span."""
    context = get_current_span().get_span_context()
    if context.is_valid:
        return format(context.trace_id, '032x')
    return None


def _attribute_value(value: Any) -> Any:
    # OTel attributes accept only primitives; HTTPStatus becomes its int
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return int(value)
    if isinstance(value, (str, float)):
        return value
    return str(value)


def span_attributes(signature: inspect.Signature, args: tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Map the engine parameters of a call to ``mq.*`` span attributes."""
    try:
        bound = signature.bind_partial(*args, **kwargs)
    except TypeError:
        return {}

    attributes = {}
    for param, value in bound.arguments.items():
        key = SPAN_ARGUMENTS.get(param)
        if key is not None and value is not None:
            attributes[key] = _attribute_value(value)
    return attributes


def set_span_attributes(attributes: Dict[str, Any], span: Optional[Span] = None) -> None:
    """Record operation results (ids, counts) on the current span."""
    span = span or get_current_span()
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, _attribute_value(value))


@contextmanager
def create_span(name: str, attributes: Optional[Dict[str, Any]] = None):
    """
    Open a span around an engine step.

    Usage:
        with create_span("mq.fan_out", {"mq.event_name": event.event_name}) as span:
            ...
    """
    with get_tracer().start_as_current_span(
        name,
        attributes=attributes or {},
        record_exception=False,
        set_status_on_exception=False
    ) as span:
        try:
            yield span
        except MessageMQError as e:
            span.set_attribute("mq.error_reason", e.reason)
            if e.status_code >= 500:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
            raise
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def traced(name: Optional[str] = None, attributes: Optional[Dict[str, Any]] = None) -> Callable:
    """
    Run a function in a span named ``name`` (default ``mq.<function name>``).

    Usage:
        @traced("mq.pop")
        async def pop(self, subscriber_name, event_name):
            ...
    """
    def decorator(func: Callable) -> Callable:
        span_name = name or f"mq.{func.__name__}"
        signature = inspect.signature(func)

        def _attributes(args, kwargs):
            return {**(attributes or {}), **span_attributes(signature, args, kwargs)}

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            with create_span(span_name, _attributes(args, kwargs)):
                return await func(*args, **kwargs)

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            with create_span(span_name, _attributes(args, kwargs)):
                return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def inject_trace_context(carrier: Dict[str, str]) -> Dict[str, str]:
    """Add the W3C traceparent of the current span to outbound headers."""
    inject(carrier)
    return carrier


def add_event_to_span(name: str, attributes: Optional[Dict[str, Any]] = None) -> None:
    get_current_span().add_event(name, attributes or {})
