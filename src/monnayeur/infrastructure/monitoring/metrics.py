"""
Prometheus metrics collection.
"""

from prometheus_client import Counter, Gauge, Histogram

# ============================================================
# HTTP Metrics
# ============================================================

http_requests_total = Counter(
    "monnayeur_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "monnayeur_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 120.0),
)

# ============================================================
# Claim Metrics
# ============================================================

claims_total = Counter(
    "monnayeur_claims_total",
    "Claim submissions by outcome",
    ["status", "reason"],
)

claims_detached_total = Counter(
    "monnayeur_claims_detached_total",
    "Claims whose mint outlived the response deadline",
)

background_tasks_in_flight = Gauge(
    "monnayeur_background_tasks_in_flight",
    "Detached mint and bonus tasks still running",
)

# ============================================================
# Ledger Metrics
# ============================================================

ledger_requests_total = Counter(
    "monnayeur_ledger_requests_total",
    "Total ledger gateway requests",
    ["operation", "status"],
)

ledger_request_duration_seconds = Histogram(
    "monnayeur_ledger_request_duration_seconds",
    "Ledger gateway request duration in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

circuit_breaker_state = Gauge(
    "monnayeur_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["service"],
)

# ============================================================
# Reconciliation & Batch Metrics
# ============================================================

sweep_results_total = Counter(
    "monnayeur_sweep_results_total",
    "Reconciliation sweep outcomes per record",
    ["result"],
)

sweep_duration_seconds = Histogram(
    "monnayeur_sweep_duration_seconds",
    "Reconciliation sweep duration in seconds",
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
)

batch_results_total = Counter(
    "monnayeur_batch_results_total",
    "Batch mint outcomes per wallet",
    ["result"],
)

bonus_results_total = Counter(
    "monnayeur_bonus_results_total",
    "Referral bonus outcomes",
    ["result"],
)
