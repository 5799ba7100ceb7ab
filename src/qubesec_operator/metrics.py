"""Prometheus metrics for the QubeSec Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "qubesec_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "qubesec_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

error_total = Counter(
    "qubesec_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "qubesec_operator_resource_status_total",
    "Resource status transitions written by the operator",
    ["kind", "status"],
)

# Cryptographic operation metrics
crypto_operations_total = Counter(
    "qubesec_operator_crypto_operations_total",
    "Total number of cryptographic provider operations",
    ["operation", "algorithm", "result"],
)

crypto_operation_duration_seconds = Histogram(
    "qubesec_operator_crypto_operation_duration_seconds",
    "Duration of cryptographic provider operations in seconds",
    ["operation"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5],
)

# Secret materialization metrics
secrets_materialized_total = Counter(
    "qubesec_operator_secrets_materialized_total",
    "Total number of output secrets written",
    ["kind", "result"],
)

# Optimistic concurrency metrics
status_conflicts_total = Counter(
    "qubesec_operator_status_conflicts_total",
    "Total number of status writes that lost a resourceVersion race",
    ["kind"],
)

# API call metrics
api_call_total = Counter(
    "qubesec_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "qubesec_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "qubesec_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)
