"""Custom Prometheus metrics for the resilience layer.

Exposed through whatever /metrics endpoint the host application mounts.
Alert rules worth configuring:
- circuit_breaker_opened_total (a provider/model is failing repeatedly)
- budget_exceeded_total (spend over limit; hard enforcement blocks calls)
- counter_store_errors_total (guards are running permissive because the store is down)
"""

from prometheus_client import Counter, Histogram

# === Circuit Breaker Metrics ===

circuit_breaker_opened_total = Counter(
    "circuit_breaker_opened_total",
    "Times a circuit breaker transitioned to OPEN",
    ["agent_type", "model"],
)
"""
Breaker open transitions by agent and model.

Tenant is deliberately not a label (unbounded cardinality); tenant ids go
to the structured log entry emitted alongside.
"""

circuit_breaker_short_circuits_total = Counter(
    "circuit_breaker_short_circuits_total",
    "Attempts skipped because the circuit breaker was open",
    ["agent_type", "model"],
)

# === Budget Metrics ===

budget_spend_total = Counter(
    "budget_spend_total",
    "Spend recorded against budget ledgers (USD)",
    ["agent_type"],
)

budget_tokens_total = Counter(
    "budget_tokens_total",
    "Tokens recorded against budget ledgers",
    ["agent_type"],
)

budget_exceeded_total = Counter(
    "budget_exceeded_total",
    "Budget checks that found spend over limit",
    ["budget_type", "enforcement"],
)
"""
Labels:
- budget_type: global_daily, global_monthly, per_agent_daily, per_agent_monthly,
  global_daily_tokens, global_monthly_tokens
- enforcement: soft (logged only), hard (call blocked)
"""

# === Attempt Metrics ===

attempts_total = Counter(
    "attempts_total",
    "Provider call attempts by model and outcome",
    ["model", "success"],
)

attempt_latency_seconds = Histogram(
    "attempt_latency_seconds",
    "Provider call attempt latency in seconds",
    ["model", "success"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

attempt_tokens_total = Counter(
    "attempt_tokens_total",
    "Tokens consumed by model and type",
    ["model", "token_type"],
)
"""
Labels:
- token_type: input, output
"""

# === Store Metrics ===

counter_store_errors_total = Counter(
    "counter_store_errors_total",
    "Counter store operations that failed and were treated as permissive",
    ["operation"],
)
