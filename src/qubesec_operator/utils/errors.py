"""Reconciliation error taxonomy and error sanitization utilities."""

from __future__ import annotations

import json
import re

from kubernetes.client.exceptions import ApiException

from ..constants import STATUS_FAILED, STATUS_PENDING


class ReconcileError(Exception):
    """Base class for errors that end a reconciliation pass.

    ``terminal_status`` is the status written when the error reaches the
    driver boundary; None means nothing is written and the pass is simply
    redelivered.
    """

    terminal_status: str | None = STATUS_FAILED
    reason = "ReconcileFailed"


class ReferenceNotFoundError(ReconcileError):
    """A referenced resource or secret does not exist."""

    reason = "ReferenceNotFound"


class ReferenceNotReadyError(ReconcileError):
    """A referenced producer exists but has not reached Success yet."""

    terminal_status = STATUS_PENDING
    reason = "ReferenceNotReady"


class DataIntegrityError(ReconcileError):
    """Stored data does not have the shape the resource expects."""

    reason = "DataIntegrity"


class NamingCollisionError(DataIntegrityError):
    """The canonical output secret is owned by a different resource."""

    reason = "NamingCollision"


class ProviderError(ReconcileError):
    """A cryptographic provider operation failed."""

    reason = "ProviderError"

    def __init__(self, operation: str, cause: str | Exception) -> None:
        self.operation = operation
        self.cause = str(cause) or type(cause).__name__
        super().__init__(f"{operation} failed: {self.cause}")


class KeyEnvelopeError(ProviderError):
    """A key envelope is malformed or tagged for another algorithm or key kind."""

    reason = "KeyEnvelopeMismatch"


class PreconditionError(ReconcileError):
    """A required spec field is missing or malformed."""

    reason = "PreconditionFailed"


class ConflictError(ReconcileError):
    """A status write lost an optimistic-concurrency race."""

    terminal_status = None
    reason = "Conflict"


class ReconcileCancelledError(ReconcileError):
    """The pass ran out of time before starting a stage."""

    terminal_status = None
    reason = "Cancelled"


class ApiRequestError(ReconcileError):
    """The Kubernetes API rejected a request made on behalf of the resource."""

    reason = "ApiRequestRejected"


class TransientError(ReconcileError):
    """A dependency failed in a way that is expected to clear; the pass is retried later."""

    terminal_status = None
    reason = "Transient"


def classify_api_error(error: ApiException) -> ReconcileError:
    """Map a Kubernetes API error raised inside a pipeline to a reconcile error.

    409 is a lost race, 429 and 5xx (or no status at all) are transient, and
    every other 4xx is a request the API server will keep rejecting.
    """
    status = error.status or 0
    if status == 409:
        return ConflictError(f"conflicting write: {error.reason}")
    if status == 429 or status >= 500 or status == 0:
        return TransientError(f"Kubernetes API unavailable ({status} {error.reason})")

    return ApiRequestError(f"Kubernetes API rejected the request ({status}): {_api_error_message(error)}")


def _api_error_message(error: ApiException) -> str:
    try:
        body = json.loads(error.body)
    except (TypeError, ValueError):
        return error.reason
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return error.reason


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"(-----BEGIN [^\n]*?-----)[\s\S]*?(-----END [^\n]*?-----)",
    r"(private[_\s-]?key[:=\s]+)([A-Za-z0-9/+=]{16,})",
    r"(shared[_\s-]?secret[:=\s]+)([A-Za-z0-9/+=]{16,})",
    r"(derived[_\s-]?key[:=\s]+)([A-Za-z0-9/+=]{16,})",
    r"(seed[:=\s]+)([A-Za-z0-9/+=]{16,})",
    r"(token[:=\s]+)([A-Za-z0-9/+=\.\-_]{16,})",
]


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove key material.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = re.sub(SENSITIVE_PATTERNS[0], r"\1 [REDACTED] \2", message)
    for pattern in SENSITIVE_PATTERNS[1:]:
        sanitized = re.sub(pattern, r"\1[REDACTED]", sanitized, flags=re.IGNORECASE)
    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    error_msg = str(error) or type(error).__name__
    return sanitize_error_message(error_msg)
