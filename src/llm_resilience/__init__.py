"""
Resilience layer for calls to metered LLM providers.

Decides whether a provider call may be attempted and tracks what happened:
- Circuit breaker per (agent, model, tenant)
- Budget ledgers per (scope, period, tenant) with soft/hard enforcement
- Retry/backoff classification and jittered delays
- Attempt tracking for observability and billing

State shared between concurrent requests lives in a counter store
(in-memory for single-process use, Redis for everything else).
"""

__version__ = "0.1.0"
