"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_ALGORITHM_MISMATCH,
    EVENT_REASON_CERTIFICATE_ISSUED,
    EVENT_REASON_KEY_DERIVED,
    EVENT_REASON_KEY_PAIR_GENERATED,
    EVENT_REASON_MESSAGE_SIGNED,
    EVENT_REASON_RANDOM_NUMBER_GENERATED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_PENDING,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_SHARED_SECRET_DECAPSULATED,
    EVENT_REASON_SHARED_SECRET_ENCAPSULATED,
    EVENT_REASON_SIGNATURE_INVALID,
    EVENT_REASON_SIGNATURE_VERIFIED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: The resource the event is about
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_reconcile_pending(body: dict[str, Any], message: str) -> None:
    """Emit reconcile pending event."""
    emit_event(body, EVENT_REASON_RECONCILE_PENDING, message)


def emit_key_pair_generated(body: dict[str, Any], secret_name: str, algorithm: str) -> None:
    """Emit key pair generated event."""
    emit_event(body, EVENT_REASON_KEY_PAIR_GENERATED, f"{algorithm} key pair stored in secret {secret_name}")


def emit_shared_secret_encapsulated(body: dict[str, Any], secret_name: str) -> None:
    """Emit shared secret encapsulated event."""
    emit_event(body, EVENT_REASON_SHARED_SECRET_ENCAPSULATED, f"Shared secret stored in secret {secret_name}")


def emit_shared_secret_decapsulated(body: dict[str, Any], secret_name: str) -> None:
    """Emit shared secret decapsulated event."""
    emit_event(body, EVENT_REASON_SHARED_SECRET_DECAPSULATED, f"Shared secret stored in secret {secret_name}")


def emit_key_derived(body: dict[str, Any], secret_name: str, key_type: str) -> None:
    """Emit key derived event."""
    emit_event(body, EVENT_REASON_KEY_DERIVED, f"{key_type} key stored in secret {secret_name}")


def emit_message_signed(body: dict[str, Any], secret_name: str) -> None:
    """Emit message signed event."""
    emit_event(body, EVENT_REASON_MESSAGE_SIGNED, f"Signature stored in secret {secret_name}")


def emit_signature_verified(body: dict[str, Any]) -> None:
    """Emit signature verified event."""
    emit_event(body, EVENT_REASON_SIGNATURE_VERIFIED, "Signature is valid")


def emit_signature_invalid(body: dict[str, Any]) -> None:
    """Emit signature invalid event."""
    emit_event(body, EVENT_REASON_SIGNATURE_INVALID, "Signature is not valid for the message", type_="Warning")


def emit_random_number_generated(body: dict[str, Any], secret_name: str, num_bytes: int) -> None:
    """Emit random number generated event."""
    emit_event(body, EVENT_REASON_RANDOM_NUMBER_GENERATED, f"{num_bytes} random bytes stored in secret {secret_name}")


def emit_certificate_issued(body: dict[str, Any], secret_name: str, domain: str) -> None:
    """Emit certificate issued event."""
    emit_event(body, EVENT_REASON_CERTIFICATE_ISSUED, f"Certificate for {domain} stored in secret {secret_name}")


def emit_algorithm_mismatch(body: dict[str, Any], message: str) -> None:
    """Emit algorithm mismatch warning event."""
    emit_event(body, EVENT_REASON_ALGORITHM_MISMATCH, message, type_="Warning")
