"""Structured event logging for gridsheet.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from gridsheet.logging.events import (
    EventLevel,
    EventType,
    GridEvent,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    get_sink,
    redact_context,
    set_log_dir,
)
from gridsheet.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "GridEvent",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "get_sink",
    "redact_context",
    "set_log_dir",
]
