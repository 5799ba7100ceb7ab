"""Base handler class with the reconciliation pipeline shared by all CRD handlers."""

from __future__ import annotations

import enum
import logging
import time
from typing import Any, Callable

from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..constants import CONTROLLER_NAME, RECONCILE_TIMEOUT_SECONDS, STATUS_PENDING
from ..logging import log_resource_event
from ..services.crypto import CryptoProvider, PQCProvider
from ..services.kubernetes import get_cluster_store
from ..tracing import add_span_attribute, trace_span
from ..utils.context import ReconcileContext, with_correlation_id
from ..utils.errors import (
    ConflictError,
    ReconcileError,
    TransientError,
    classify_api_error,
    sanitize_exception,
)
from ..utils.events import emit_reconcile_failed, emit_reconcile_pending, emit_reconcile_started
from ..utils.secrets import build_owner_reference, ensure_owned_by
from ..utils.status import TERMINAL_STATUSES, failed_status, merge_status, pending_status, write_status


class ReconcileOutcome(str, enum.Enum):
    """What a reconciliation pass achieved."""

    SUCCEEDED = "succeeded"
    UNCHANGED = "unchanged"
    PENDING = "pending"
    FAILED = "failed"
    CONFLICT = "conflict"
    RETRY = "retry"
    DELETED = "deleted"


class BaseHandler:
    """Base class for all CRD handlers with common functionality.

    Subclasses implement ``run_pipeline`` for one resource; everything a pass
    needs is either on the handler (store, provider) or in the
    ReconcileContext passed to it, so handlers are safe to share between
    worker threads.
    """

    def __init__(
        self,
        kind: str,
        store: Any | None = None,
        provider: CryptoProvider | None = None,
    ):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "QuantumKEMKeyPair")
            store: Cluster store; created from the environment on first use when omitted
            provider: Cryptographic provider; PQCProvider when omitted
        """
        self.kind = kind
        self._store = store
        self.provider = provider or PQCProvider()
        self.logger = logging.getLogger(__name__)

    @property
    def store(self) -> Any:
        if self._store is None:
            self._store = get_cluster_store()
        return self._store

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata."""
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **kwargs)

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def reconcile(
        self,
        name: str,
        namespace: str,
        timeout: float | None = RECONCILE_TIMEOUT_SECONDS,
    ) -> ReconcileOutcome:
        """Run one reconciliation pass for a resource identity.

        The resource is fetched fresh; a missing resource ends the pass with
        DELETED. Errors raised by pipeline stages are mapped to a status write
        and an outcome; unexpected errors propagate.

        Args:
            name: Resource name
            namespace: Resource namespace
            timeout: Seconds the pass may run before later stages are cancelled

        Returns:
            The outcome of the pass
        """
        ctx = ReconcileContext.for_resource(self.kind, name, namespace, timeout)
        with with_correlation_id(ctx.correlation_id):
            with trace_span(
                f"reconcile_{self.kind}",
                kind=self.kind,
                attributes={"resource.name": name, "resource.namespace": namespace},
            ):
                body = self.store.get_custom_object(self.kind, namespace, name)
                if body is None:
                    self.log_info(
                        {"name": name, "namespace": namespace},
                        "Resource no longer exists, nothing to reconcile",
                        event="reconcile",
                        reason="Deleted",
                    )
                    metrics.reconcile_total.labels(kind=self.kind, result=ReconcileOutcome.DELETED.value).inc()
                    return ReconcileOutcome.DELETED

                outcome = self.reconcile_with_metrics(body, lambda: self._run_stages(body, ctx))
                add_span_attribute("reconcile.outcome", outcome.value)
                return outcome

    def _run_stages(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        try:
            return self.run_pipeline(body, ctx)
        except ReconcileError as e:
            return self.handle_reconcile_error(body, e)
        except ApiException as e:
            return self.handle_reconcile_error(body, classify_api_error(e))

    def run_pipeline(self, body: dict[str, Any], ctx: ReconcileContext) -> ReconcileOutcome:
        """Gate, resolve, invoke the provider, materialize and record status."""
        raise NotImplementedError

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        reconcile_fn: Callable[[], ReconcileOutcome],
    ) -> ReconcileOutcome:
        """Execute reconciliation with metrics and error handling.

        Args:
            body: The resource being reconciled
            reconcile_fn: Function to execute for reconciliation

        Returns:
            The outcome returned by ``reconcile_fn``
        """
        meta = body.get("metadata", {})
        self.log_info(meta, "Reconciliation started", event="reconcile", reason="ReconcileStarted")
        if (body.get("status") or {}).get("status") not in TERMINAL_STATUSES:
            emit_reconcile_started(body)

        start_time = time.time()
        try:
            outcome = reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result=outcome.value).inc()
            return outcome
        except Exception as e:
            sanitized_error = sanitize_exception(e)
            error_type = type(e).__name__
            metrics.error_total.labels(kind=self.kind, error_type=error_type).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def handle_reconcile_error(self, body: dict[str, Any], error: ReconcileError) -> ReconcileOutcome:
        """Map a pipeline error to a status write and an outcome.

        Conflicts and cancellations write nothing. A failing status write is
        logged and does not change the outcome.
        """
        meta = body.get("metadata", {})
        message = sanitize_exception(error)
        metrics.error_total.labels(kind=self.kind, error_type=type(error).__name__).inc()

        if error.terminal_status is None:
            self.log_warning(meta, f"Reconciliation will be retried: {message}", reason=error.reason)
            if isinstance(error, TransientError):
                return ReconcileOutcome.RETRY
            return ReconcileOutcome.CONFLICT

        if error.terminal_status == STATUS_PENDING:
            self.log_info(meta, f"Waiting: {message}", event="pending", reason=error.reason)
            emit_reconcile_pending(body, message)
            fields = pending_status(message, self.generation(body))
            outcome = ReconcileOutcome.PENDING
        else:
            self.log_error(meta, f"Reconciliation failed: {message}", error=error, reason=error.reason)
            emit_reconcile_failed(body, message)
            fields = failed_status(message, self.generation(body))
            outcome = ReconcileOutcome.FAILED

        try:
            self.write_status(body, fields)
        except ConflictError as e:
            self.log_warning(meta, f"Could not record status: {sanitize_exception(e)}", reason=e.reason)
            return ReconcileOutcome.CONFLICT
        except ApiException as e:
            self.log_error(meta, "Could not record status", error=e, reason="StatusWriteFailed")
        return outcome

    def generation(self, body: dict[str, Any]) -> int | None:
        return body.get("metadata", {}).get("generation")

    def write_status(self, body: dict[str, Any], fields: dict[str, Any]) -> bool:
        """Merge ``fields`` into the resource status with the conflict-safe write."""
        meta = body.get("metadata", {})
        return write_status(
            self.store,
            self.kind,
            meta.get("namespace"),
            meta.get("name"),
            merge_status(fields),
            expected_generation=self.generation(body),
        )

    def finish(self, body: dict[str, Any], fields: dict[str, Any]) -> ReconcileOutcome:
        """Record a successful status; UNCHANGED when it was already recorded."""
        if self.write_status(body, fields):
            return ReconcileOutcome.SUCCEEDED
        return ReconcileOutcome.UNCHANGED

    def owner_reference(self, body: dict[str, Any]) -> dict[str, Any]:
        return build_owner_reference(body)

    def read_output_secret(
        self,
        body: dict[str, Any],
        secret_name: str,
        reference_field: str,
    ) -> dict[str, Any] | None:
        """Look up the canonical output secret for a resource.

        Args:
            body: The resource being reconciled
            secret_name: Canonical output secret name
            reference_field: Status field that records the output secret

        Returns:
            The existing secret, or None if the material has to be generated

        Raises:
            NamingCollisionError: If another resource controls the secret
        """
        meta = body.get("metadata", {})
        namespace = meta.get("namespace")
        secret = self.store.read_secret(namespace, secret_name)

        if secret is None:
            recorded = (body.get("status") or {}).get(reference_field) or {}
            if recorded.get("name") == secret_name and (recorded.get("namespace") or namespace) == namespace:
                self.log_warning(
                    meta,
                    f"Output secret {secret_name} was deleted, generating new material",
                    reason="OutputSecretMissing",
                    secret=secret_name,
                )
            return None

        ensure_owned_by(secret, meta.get("uid"))
        return secret

    def secret_reference(self, body: dict[str, Any], secret_name: str) -> dict[str, str]:
        return {"name": secret_name, "namespace": body.get("metadata", {}).get("namespace", "")}
