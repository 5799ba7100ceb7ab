"""Status documents, fingerprints and the conflict-safe status write."""

from __future__ import annotations

import copy
import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..constants import (
    FINGERPRINT_HASH_LENGTH,
    FINGERPRINT_LENGTH,
    STATUS_FAILED,
    STATUS_INVALID,
    STATUS_PENDING,
    STATUS_SUCCESS,
    STATUS_VALID,
    STATUS_WRITE_ATTEMPTS,
)
from .errors import ConflictError, sanitize_error_message

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({STATUS_SUCCESS, STATUS_FAILED, STATUS_VALID, STATUS_INVALID})

# Fields that change on every write and are ignored when deciding whether to write
TIMESTAMP_FIELDS = frozenset({"lastUpdateTime", "lastCheckedTime"})

StatusMutation = Callable[[dict[str, Any]], dict[str, Any]]


def now_rfc3339() -> str:
    """Current UTC time in RFC 3339 form with second precision."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def full_fingerprint(data: bytes) -> str:
    """Full hex SHA-256 of ``data``."""
    return hashlib.sha256(data).hexdigest()


def fingerprint(data: bytes) -> str:
    """Display fingerprint: the first 10 hex characters of SHA-256 of ``data``."""
    return full_fingerprint(data)[:FINGERPRINT_LENGTH]


def fingerprint_hash(data: bytes) -> str:
    """Short fingerprint: the first 8 hex characters of SHA-256 of ``data``."""
    return full_fingerprint(data)[:FINGERPRINT_HASH_LENGTH]


def _status(value: str, error: str, generation: int | None, fields: dict[str, Any]) -> dict[str, Any]:
    status: dict[str, Any] = {
        "status": value,
        "error": error,
        "lastUpdateTime": now_rfc3339(),
        **fields,
    }
    if generation is not None:
        status["observedGeneration"] = generation
    return status


def success_status(generation: int | None = None, value: str = STATUS_SUCCESS, **fields: Any) -> dict[str, Any]:
    """Build a successful status document.

    Args:
        generation: metadata.generation the pass observed
        value: Status value, STATUS_SUCCESS or one of the verification outcomes
        **fields: Kind-specific fields such as references and fingerprints

    Returns:
        Status fields to merge into the resource status
    """
    return _status(value, "", generation, fields)


def failed_status(error: str, generation: int | None = None) -> dict[str, Any]:
    """Build a Failed status document with a sanitized error message."""
    return _status(STATUS_FAILED, sanitize_error_message(error), generation, {})


def pending_status(reason: str, generation: int | None = None) -> dict[str, Any]:
    """Build a Pending status document explaining what the resource waits for."""
    return _status(STATUS_PENDING, sanitize_error_message(reason), generation, {})


def merge_status(fields: dict[str, Any]) -> StatusMutation:
    """Return a mutation that overlays ``fields`` on the current status."""
    def mutate(current: dict[str, Any]) -> dict[str, Any]:
        return {**current, **fields}

    return mutate


def status_needs_update(current: dict[str, Any] | None, desired: dict[str, Any]) -> bool:
    """Return True if ``desired`` differs from ``current`` other than in timestamps."""
    current = current or {}
    keys = (set(current) | set(desired)) - TIMESTAMP_FIELDS
    return any(current.get(key) != desired.get(key) for key in keys)


def write_status(
    store: Any,
    kind: str,
    namespace: str,
    name: str,
    mutate: StatusMutation,
    expected_generation: int | None = None,
    attempts: int = STATUS_WRITE_ATTEMPTS,
) -> bool:
    """Read-modify-write the status subresource under optimistic concurrency.

    Each attempt re-reads the resource, applies ``mutate`` to a copy of its
    status and writes it back with the re-read resourceVersion. Nothing is
    written when the mutation changes only timestamps.

    Args:
        store: Cluster store
        kind: Resource kind
        namespace: Resource namespace
        name: Resource name
        mutate: Function from the current status to the desired status
        expected_generation: Generation the pass worked from; a newer one aborts the write
        attempts: Maximum number of read-modify-write attempts

    Returns:
        True if a write happened, False if the status was already up to date

    Raises:
        ConflictError: If the resource is gone, its spec moved on, or every attempt lost a race
    """
    for attempt in range(1, attempts + 1):
        obj = store.get_custom_object(kind, namespace, name)
        if obj is None:
            raise ConflictError(f"{kind} {namespace}/{name} no longer exists")

        metadata = obj.get("metadata", {})
        generation = metadata.get("generation")
        if expected_generation is not None and generation is not None and generation > expected_generation:
            raise ConflictError(
                f"{kind} {namespace}/{name} moved to generation {generation} "
                f"while reconciling generation {expected_generation}"
            )

        current = copy.deepcopy(obj.get("status") or {})
        desired = mutate(copy.deepcopy(current))
        if not status_needs_update(current, desired):
            return False

        body = {**obj, "status": desired}
        try:
            store.replace_status(kind, namespace, name, body)
        except ApiException as e:
            if e.status != 409:
                raise
            metrics.status_conflicts_total.labels(kind=kind).inc()
            logger.info(
                f"Status write for {kind} {namespace}/{name} lost a race "
                f"(attempt {attempt}/{attempts}), re-reading"
            )
            continue

        metrics.resource_status_total.labels(kind=kind, status=desired.get("status", "unknown")).inc()
        return True

    raise ConflictError(f"status write for {kind} {namespace}/{name} conflicted {attempts} times")
