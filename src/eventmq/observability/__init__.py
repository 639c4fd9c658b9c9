"""
Observability for the message engine.

Spans carry ``mq.*`` attributes (event, subscriber and message ids, counts),
metrics count published/fanned-out/popped messages, and JSON logs carry the
active trace id.
"""

from .tracing import (
    SPAN_ARGUMENTS,
    init_tracing,
    get_trace_id,
    create_span,
    traced,
    set_span_attributes,
    add_event_to_span,
    inject_trace_context,
)
from .metrics import init_metrics, record_counter, record_histogram
from .logging import StructuredFormatter, TraceContextFilter, configure_logging

__all__ = [
    "SPAN_ARGUMENTS",
    "init_tracing",
    "get_trace_id",
    "create_span",
    "traced",
    "set_span_attributes",
    "add_event_to_span",
    "inject_trace_context",
    "init_metrics",
    "record_counter",
    "record_histogram",
    "StructuredFormatter",
    "TraceContextFilter",
    "configure_logging",
]
