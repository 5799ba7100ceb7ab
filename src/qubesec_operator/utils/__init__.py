"""Utility functions for the QubeSec Operator."""

from .context import (
    ReconcileContext,
    get_context_dict,
    get_correlation_id,
    propagate_trace_context,
    set_correlation_id,
    with_correlation_id,
)
from .events import emit_event
from .rate_limit import handle_rate_limit_error, rate_limit_k8s
from .secrets import (
    build_owner_reference,
    create_owned_secret,
    ensure_owned_by,
    read_secret_bytes,
    update_secret_field,
)
from .status import (
    fingerprint,
    full_fingerprint,
    status_needs_update,
    write_status,
)

__all__ = [
    "ReconcileContext",
    "emit_event",
    "build_owner_reference",
    "create_owned_secret",
    "ensure_owned_by",
    "read_secret_bytes",
    "update_secret_field",
    "fingerprint",
    "full_fingerprint",
    "status_needs_update",
    "write_status",
    "rate_limit_k8s",
    "handle_rate_limit_error",
    "set_correlation_id",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
    "propagate_trace_context",
]
