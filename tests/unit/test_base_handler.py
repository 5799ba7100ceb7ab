"""Tests for base handler functionality."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from kubernetes.client.exceptions import ApiException

from qubesec_operator.handlers.base import BaseHandler, ReconcileOutcome
from qubesec_operator.utils.errors import (
    ConflictError,
    PreconditionError,
    ReconcileCancelledError,
    ReferenceNotReadyError,
)

KIND = "QuantumKEMKeyPair"


class PipelineHandler(BaseHandler):
    """Handler whose pipeline is supplied by the test."""

    def __init__(self, pipeline, **kwargs):
        super().__init__(KIND, **kwargs)
        self.pipeline = pipeline

    def run_pipeline(self, body, ctx):
        return self.pipeline(body, ctx)


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = BaseHandler(kind="TestKind", store=Mock())
        assert handler.kind == "TestKind"
        assert handler.logger is not None
        assert handler.provider is not None

    @patch("qubesec_operator.handlers.base.get_cluster_store")
    def test_store_created_lazily(self, mock_get_store):
        """Test the cluster store is only created on first use."""
        handler = BaseHandler(kind="TestKind")
        mock_get_store.assert_not_called()

        assert handler.store is mock_get_store.return_value
        assert handler.store is mock_get_store.return_value
        mock_get_store.assert_called_once()

    @patch("qubesec_operator.handlers.base.emit_reconcile_started")
    @patch("qubesec_operator.handlers.base.metrics")
    def test_reconcile_with_metrics_success(self, mock_metrics, mock_emit_started):
        """Test successful reconciliation with metrics."""
        handler = BaseHandler(kind="TestKind", store=Mock())
        body = {"metadata": {"name": "test-resource", "namespace": "default"}}
        reconcile_fn = Mock(return_value=ReconcileOutcome.SUCCEEDED)

        outcome = handler.reconcile_with_metrics(body, reconcile_fn)

        assert outcome == ReconcileOutcome.SUCCEEDED
        reconcile_fn.assert_called_once()
        mock_emit_started.assert_called_once_with(body)
        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="succeeded")
        assert mock_metrics.reconcile_duration_seconds.labels.called

    @patch("qubesec_operator.handlers.base.emit_reconcile_started")
    @patch("qubesec_operator.handlers.base.metrics")
    def test_no_started_event_once_terminal(self, mock_metrics, mock_emit_started):
        """Test resources with a terminal status do not get a started event on every pass."""
        handler = BaseHandler(kind="TestKind", store=Mock())
        body = {"metadata": {"name": "r"}, "status": {"status": "Success"}}

        handler.reconcile_with_metrics(body, Mock(return_value=ReconcileOutcome.UNCHANGED))

        mock_emit_started.assert_not_called()

    @patch("qubesec_operator.handlers.base.emit_reconcile_failed")
    @patch("qubesec_operator.handlers.base.emit_reconcile_started")
    @patch("qubesec_operator.handlers.base.metrics")
    @patch("qubesec_operator.handlers.base.sanitize_exception")
    def test_reconcile_with_metrics_failure(
        self, mock_sanitize, mock_metrics, mock_emit_started, mock_emit_failed
    ):
        """Test unexpected errors are logged, reported and re-raised."""
        handler = BaseHandler(kind="TestKind", store=Mock())
        body = {"metadata": {"name": "test-resource", "namespace": "default"}}
        test_error = ValueError("Test error")
        mock_sanitize.return_value = "Sanitized error"

        def failing_fn():
            raise test_error

        with pytest.raises(ValueError):
            handler.reconcile_with_metrics(body, failing_fn)

        mock_sanitize.assert_any_call(test_error)
        mock_emit_started.assert_called_once_with(body)
        mock_emit_failed.assert_called_once_with(body, "Reconciliation failed: Sanitized error")
        mock_metrics.error_total.labels.assert_called_with(kind="TestKind", error_type="ValueError")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="error")


class TestReconcileErrorHandling:
    """Test cases for mapping pipeline errors to outcomes."""

    def test_precondition_error_fails(self, store):
        """Test precondition errors record a Failed status."""
        store.add_object(KIND, "r", generation=4)

        def pipeline(body, ctx):
            raise PreconditionError("spec.algorithm is required")

        handler = PipelineHandler(pipeline, store=store)

        assert handler.reconcile("r", "default") == ReconcileOutcome.FAILED
        status = store.status_of(KIND, "r")
        assert status["status"] == "Failed"
        assert status["error"] == "spec.algorithm is required"
        assert status["observedGeneration"] == 4

    def test_not_ready_is_pending(self, store, event_reasons):
        """Test unready references record a Pending status."""
        store.add_object(KIND, "r")

        def pipeline(body, ctx):
            raise ReferenceNotReadyError("key pair is not ready")

        handler = PipelineHandler(pipeline, store=store)

        assert handler.reconcile("r", "default") == ReconcileOutcome.PENDING
        assert store.status_of(KIND, "r")["status"] == "Pending"
        assert event_reasons() == ["ReconcileStarted", "ReconcilePending"]

    def test_conflict_writes_nothing(self, store):
        """Test conflicts end the pass without a status write."""
        store.add_object(KIND, "r")

        def pipeline(body, ctx):
            raise ConflictError("lost a race")

        handler = PipelineHandler(pipeline, store=store)

        assert handler.reconcile("r", "default") == ReconcileOutcome.CONFLICT
        assert store.status_writes == 0

    def test_cancellation_writes_nothing(self, store):
        """Test cancelled passes end without a status write."""
        store.add_object(KIND, "r")

        def pipeline(body, ctx):
            ctx.check_cancelled("work")
            return ReconcileOutcome.SUCCEEDED

        handler = PipelineHandler(pipeline, store=store)

        assert handler.reconcile("r", "default", timeout=-1) == ReconcileOutcome.CONFLICT
        assert store.status_writes == 0

    def test_status_write_conflict_becomes_conflict(self, store):
        """Test a failing status write after an error is reported as a conflict."""
        store.add_object(KIND, "r")

        def pipeline(body, ctx):
            store.update_spec(KIND, "r", {"changed": True})
            raise PreconditionError("bad spec")

        handler = PipelineHandler(pipeline, store=store)

        assert handler.reconcile("r", "default") == ReconcileOutcome.CONFLICT
        assert store.status_writes == 0

    def test_status_write_api_error_keeps_outcome(self, store):
        """Test an API error while recording a failure does not mask the failure."""
        store.add_object(KIND, "r")

        def pipeline(body, ctx):
            raise PreconditionError("bad spec")

        handler = PipelineHandler(pipeline, store=store)

        with patch.object(store, "replace_status", side_effect=ApiException(status=500)):
            assert handler.reconcile("r", "default") == ReconcileOutcome.FAILED

    @pytest.mark.parametrize(
        ("status_code", "expected"),
        [
            (409, ReconcileOutcome.CONFLICT),
            (429, ReconcileOutcome.RETRY),
            (500, ReconcileOutcome.RETRY),
            (503, ReconcileOutcome.RETRY),
        ],
    )
    def test_retryable_api_errors_write_nothing(self, store, status_code, expected):
        """Test lost races, throttling and server errors are redelivered without a status write."""
        store.add_object(KIND, "r")

        def pipeline(body, ctx):
            raise ApiException(status=status_code, reason="boom")

        handler = PipelineHandler(pipeline, store=store)

        assert handler.reconcile("r", "default") == expected
        assert store.status_writes == 0

    @pytest.mark.parametrize("status_code", [400, 403, 404, 422])
    def test_rejected_api_requests_fail(self, store, event_reasons, status_code):
        """Test client errors from the API server are recorded as Failed."""
        store.add_object(KIND, "r")

        def pipeline(body, ctx):
            raise ApiException(status=status_code, reason="Rejected")

        handler = PipelineHandler(pipeline, store=store)

        assert handler.reconcile("r", "default") == ReconcileOutcome.FAILED
        status = store.status_of(KIND, "r")
        assert status["status"] == "Failed"
        assert status["error"] == f"Kubernetes API rejected the request ({status_code}): Rejected"
        assert "ReconcileFailed" in event_reasons()

    def test_unexpected_errors_propagate(self, store):
        """Test errors outside the reconcile taxonomy propagate."""
        store.add_object(KIND, "r")

        def pipeline(body, ctx):
            raise RuntimeError("bug")

        handler = PipelineHandler(pipeline, store=store)

        with pytest.raises(RuntimeError):
            handler.reconcile("r", "default")

    def test_cancelled_error_has_no_terminal_status(self):
        """Test cancellation does not map to a status value."""
        assert ReconcileCancelledError.terminal_status is None


class TestReadOutputSecret:
    """Test cases for the output secret gate."""

    def test_absent_secret_generates(self, store):
        """Test an absent secret that was never recorded means generate."""
        body = store.add_object(KIND, "r")
        handler = BaseHandler(KIND, store=store)

        assert handler.read_output_secret(body, "r", "keyPairReference") is None

    def test_recorded_other_secret_is_ignored(self, store):
        """Test a reference to another secret does not block generation."""
        body = store.add_object(KIND, "r", status={"keyPairReference": {"name": "old", "namespace": "default"}})
        handler = BaseHandler(KIND, store=store)

        assert handler.read_output_secret(body, "r", "keyPairReference") is None

    def test_recorded_secret_deleted_regenerates(self, store):
        """Test a deleted secret that status still points at is generated again."""
        body = store.add_object(
            KIND,
            "r",
            status={"status": "Success", "keyPairReference": {"name": "r", "namespace": "default"}},
        )
        handler = BaseHandler(KIND, store=store)

        with patch.object(handler, "log_warning") as mock_warning:
            assert handler.read_output_secret(body, "r", "keyPairReference") is None

        assert mock_warning.call_args.kwargs["reason"] == "OutputSecretMissing"
