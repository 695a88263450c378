# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Scoped span management.

SpanScope ties a started span to a with block so it is always closed,
with error status when an exception escapes the block.
"""

import logging
from typing import Any, Dict, Optional

from opentelemetry.context import Context
from opentelemetry.trace import Span

from planx.telemetry.context.span import clean_attributes, close_span, record_span_error

logger = logging.getLogger(__name__)


class SpanScope:
    """
    Owns a started span and its child context for the duration of a block.

    Usage Example:
        ```python
        with SpanScope(*spans.start_sink_write_span(ctx, "http", session_id, 100)) as scope:
            telemetry.log.info(scope.ctx, "writing batch")
            try:
                sink.write(batch)
            except BatchError as e:
                scope.record_error(e)  # partial failure, keep going
        ```

    Or through PipelineSpans:
        ```python
        with spans.scope(ctx, "engine.route", {"from": "source", "to": "sink"}) as scope:
            ...
        ```

    Exceptions are recorded on the span and re-raised, never suppressed.
    """

    def __init__(self, ctx: Context, span: Span):
        """
        Initialize the SpanScope.

        Args:
            ctx: Child context carrying the span
            span: The started span
        """
        self.ctx = ctx
        self.span = span

    @property
    def is_recording(self) -> bool:
        return self.span.is_recording()

    def set_attributes(self, attributes: Dict[str, Any]) -> None:
        """Add attributes to the span."""
        if not self.span.is_recording():
            return

        try:
            self.span.set_attributes(clean_attributes(attributes))
        except Exception as e:
            logger.debug(f"Failed to set span attributes: {e}")

    def add_event(self, name: str, attributes: Optional[Dict[str, Any]] = None) -> None:
        """Add a timeline event to the span."""
        if not self.span.is_recording():
            return

        try:
            self.span.add_event(name, clean_attributes(attributes))
        except Exception as e:
            logger.debug(f"Failed to add span event: {e}")

    def record_error(self, err: BaseException) -> None:
        """Mark the span as failed without closing it."""
        record_span_error(self.span, err)

    def close(self) -> None:
        """Close the span. Safe to call more than once."""
        close_span(self.span)

    def __enter__(self) -> "SpanScope":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        if exc_val is not None:
            self.record_error(exc_val)
        self.close()
        return False  # Don't suppress exceptions
