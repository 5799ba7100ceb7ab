"""Tests for Prometheus metrics."""

from __future__ import annotations

from qubesec_operator.metrics import (
    api_call_duration_seconds,
    api_call_total,
    crypto_operation_duration_seconds,
    crypto_operations_total,
    error_total,
    rate_limit_hits_total,
    reconcile_duration_seconds,
    reconcile_total,
    resource_status_total,
    secrets_materialized_total,
    status_conflicts_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_reconcile_total_exists(self):
        """Test reconcile_total counter exists."""
        # Prometheus counters don't include "_total" in their _name attribute
        assert reconcile_total._name == "qubesec_operator_reconcile"

    def test_reconcile_duration_exists(self):
        """Test reconcile_duration_seconds histogram exists."""
        assert reconcile_duration_seconds._name == "qubesec_operator_reconcile_duration_seconds"

    def test_crypto_operations_total_exists(self):
        """Test crypto_operations_total counter exists."""
        assert crypto_operations_total._name == "qubesec_operator_crypto_operations"

    def test_crypto_operation_duration_exists(self):
        """Test crypto_operation_duration_seconds histogram exists."""
        assert crypto_operation_duration_seconds._name == "qubesec_operator_crypto_operation_duration_seconds"

    def test_secrets_materialized_total_exists(self):
        """Test secrets_materialized_total counter exists."""
        assert secrets_materialized_total._name == "qubesec_operator_secrets_materialized"

    def test_status_conflicts_total_exists(self):
        """Test status_conflicts_total counter exists."""
        assert status_conflicts_total._name == "qubesec_operator_status_conflicts"

    def test_api_call_total_exists(self):
        """Test api_call_total counter exists."""
        assert api_call_total._name == "qubesec_operator_api_call"

    def test_api_call_duration_exists(self):
        """Test api_call_duration_seconds histogram exists."""
        assert api_call_duration_seconds._name == "qubesec_operator_api_call_duration_seconds"

    def test_rate_limit_hits_total_exists(self):
        """Test rate_limit_hits_total counter exists."""
        assert rate_limit_hits_total._name == "qubesec_operator_rate_limit_hits"

    def test_error_total_exists(self):
        """Test error_total counter exists."""
        assert error_total._name == "qubesec_operator_error"

    def test_resource_status_total_exists(self):
        """Test resource_status_total counter exists."""
        assert resource_status_total._name == "qubesec_operator_resource_status"


class TestMetricLabels:
    """Test that metrics have correct labels."""

    def test_reconcile_total_labels(self):
        """Test reconcile_total has correct labels."""
        reconcile_total.labels(kind="QuantumKEMKeyPair", result="succeeded").inc(0)
        reconcile_total.labels(kind="QuantumDerivedKey", result="pending").inc()

    def test_crypto_operations_total_labels(self):
        """Test crypto_operations_total has correct labels."""
        crypto_operations_total.labels(operation="keygen", algorithm="Kyber768", result="success").inc(0)
        crypto_operations_total.labels(operation="sign", algorithm="Dilithium3", result="error").inc()

    def test_secrets_materialized_total_labels(self):
        """Test secrets_materialized_total has correct labels."""
        secrets_materialized_total.labels(kind="QuantumSignMessage", result="updated").inc(0)

    def test_status_conflicts_total_labels(self):
        """Test status_conflicts_total has correct labels."""
        status_conflicts_total.labels(kind="QuantumEncapsulateSecret").inc(0)


class TestMetricOperations:
    """Test metric operations."""

    def test_counter_increment(self):
        """Test that counters can be incremented."""
        initial = reconcile_total.labels(kind="TestCounter", result="test")._value.get()

        reconcile_total.labels(kind="TestCounter", result="test").inc()

        new_value = reconcile_total.labels(kind="TestCounter", result="test")._value.get()
        assert new_value == initial + 1

    def test_different_label_values_independent(self):
        """Test that metrics with different labels are independent."""
        first = crypto_operations_total.labels(operation="test1", algorithm="a", result="success")
        second = crypto_operations_total.labels(operation="test2", algorithm="a", result="success")
        initial_second = second._value.get()

        first.inc(3)

        assert second._value.get() == initial_second
