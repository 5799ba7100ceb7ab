"""Shared utilities for kopf handler functions."""

from __future__ import annotations

import kopf

from ..constants import CONFLICT_RETRY_DELAY_SECONDS, PENDING_RETRY_DELAY_SECONDS
from .base import BaseHandler, ReconcileOutcome


def apply_outcome(outcome: ReconcileOutcome, kind: str, resync: bool = False) -> None:
    """Translate a reconcile outcome into kopf retry semantics.

    Pending, transient and conflicting passes are retried after a delay.
    Failures are permanent for change handlers; the resync timer keeps running
    for them so a later fix to a referenced resource is still picked up.

    Args:
        outcome: Outcome of the pass
        kind: Resource kind, for the error message
        resync: Whether the pass was started by the resync timer

    Raises:
        kopf.TemporaryError: For PENDING, RETRY and CONFLICT outcomes
        kopf.PermanentError: For FAILED outcomes outside the resync timer
    """
    if outcome == ReconcileOutcome.PENDING:
        raise kopf.TemporaryError(f"{kind} is waiting on a referenced resource", delay=PENDING_RETRY_DELAY_SECONDS)
    if outcome == ReconcileOutcome.RETRY:
        raise kopf.TemporaryError(f"{kind} hit a transient error", delay=PENDING_RETRY_DELAY_SECONDS)
    if outcome == ReconcileOutcome.CONFLICT:
        raise kopf.TemporaryError(f"{kind} changed during reconciliation", delay=CONFLICT_RETRY_DELAY_SECONDS)
    if outcome == ReconcileOutcome.FAILED and not resync:
        raise kopf.PermanentError(f"{kind} reconciliation failed; see status.error")


def run_handler(handler: BaseHandler, name: str, namespace: str, resync: bool = False) -> None:
    """Reconcile one resource and apply the outcome."""
    outcome = handler.reconcile(name, namespace)
    apply_outcome(outcome, handler.kind, resync=resync)
