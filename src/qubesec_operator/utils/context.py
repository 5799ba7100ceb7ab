"""Per-reconciliation context and correlation ID propagation."""

from __future__ import annotations

import contextvars
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from opentelemetry import trace

from .errors import ReconcileCancelledError

# Context variable for storing correlation ID
correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def new_correlation_id() -> str:
    """Generate a fresh correlation ID."""
    return uuid.uuid4().hex[:16]


def set_correlation_id(corr_id: str) -> None:
    """Set the correlation ID in the current context."""
    correlation_id.set(corr_id)


def get_correlation_id() -> str | None:
    """Get the correlation ID from the current context."""
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str) -> Iterator[str]:
    """Context manager to set a correlation ID for the duration of a block.

    Args:
        corr_id: Correlation ID to use

    Yields:
        The correlation ID
    """
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def propagate_trace_context() -> dict[str, Any] | None:
    """Get OpenTelemetry trace context for log correlation.

    Returns:
        Dictionary with trace and span IDs if a span is recording, None otherwise
    """
    span = trace.get_current_span()
    if span and span.is_recording():
        span_context = span.get_span_context()
        if span_context.is_valid:
            return {
                "trace_id": format(span_context.trace_id, "032x"),
                "span_id": format(span_context.span_id, "016x"),
            }
    return None


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get a dictionary of context values.

    Args:
        additional: Additional key-value pairs to include

    Returns:
        Dictionary with context values including correlation_id and trace IDs
    """
    ctx: dict[str, Any] = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    trace_ctx = propagate_trace_context()
    if trace_ctx:
        ctx.update(trace_ctx)

    if additional:
        ctx.update(additional)

    return ctx


@dataclass
class ReconcileContext:
    """State scoped to a single reconciliation pass.

    Nothing here outlives the pass; handlers receive it as a parameter.
    """

    kind: str
    name: str
    namespace: str
    correlation_id: str = field(default_factory=new_correlation_id)
    deadline: float | None = None

    @classmethod
    def for_resource(
        cls,
        kind: str,
        name: str,
        namespace: str,
        timeout: float | None = None,
    ) -> ReconcileContext:
        """Build a context for one pass with an optional timeout in seconds."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        return cls(kind=kind, name=name, namespace=namespace, deadline=deadline)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check_cancelled(self, stage: str) -> None:
        """Raise if the pass ran past its deadline.

        Args:
            stage: Name of the stage about to start, for the error message

        Raises:
            ReconcileCancelledError: If the deadline has passed
        """
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise ReconcileCancelledError(
                f"reconciliation of {self.kind} {self.namespace}/{self.name} "
                f"cancelled before {stage}: deadline exceeded"
            )
