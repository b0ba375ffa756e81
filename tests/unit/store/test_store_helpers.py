"""
Unit tests for CounterStoreHelper (namespacing and failure tolerance).
"""

from unittest.mock import patch

from prometheus_client import REGISTRY

from llm_resilience.store.helpers import CounterStoreHelper


def _store_errors(operation: str) -> float:
    return REGISTRY.get_sample_value("counter_store_errors_total", {"operation": operation}) or 0.0


def test_key_joins_namespace_and_parts(memory_store):
    helper = CounterStoreHelper(memory_store, "ns")

    assert helper.key("budget", "global", "2026-03-15") == "ns:budget:global:2026-03-15"


def test_default_namespace(memory_store):
    assert CounterStoreHelper(memory_store).key("cb") == "llm_resilience:cb"


def test_read_number_defaults_to_zero(memory_store):
    helper = CounterStoreHelper(memory_store)

    assert helper.read_number("missing") == 0.0


def test_read_number_parses_strings(memory_store):
    helper = CounterStoreHelper(memory_store)
    memory_store.write("k", "2.75")

    assert helper.read_number("k") == 2.75


def test_read_number_non_numeric_is_zero(memory_store):
    helper = CounterStoreHelper(memory_store)
    memory_store.write("k", "not-a-number")

    assert helper.read_number("k") == 0.0


def test_failing_store_reads_as_empty(failing_store):
    helper = CounterStoreHelper(failing_store)
    before = _store_errors("read")

    assert helper.read("k") is None
    assert helper.read_number("k") == 0.0
    assert _store_errors("read") == before + 2


def test_failing_store_operations_return_defaults(failing_store):
    helper = CounterStoreHelper(failing_store)

    assert helper.write("k", 1) is False
    assert helper.delete("k") is False
    assert helper.exists("k") is False
    assert helper.increment("k") is None


def test_increment_uses_atomic_store(memory_store):
    helper = CounterStoreHelper(memory_store)

    helper.increment("k", 2, expires_in=10)

    assert helper.increment("k", 3) == 5.0


def test_increment_falls_back_to_read_modify_write(plain_store):
    helper = CounterStoreHelper(plain_store)

    assert helper.increment("k", 1, expires_in=30) == 1.0
    assert helper.increment("k", 1, expires_in=30) == 2.0
    assert plain_store.data["k"] == 2.0
    assert plain_store.expiries["k"] == 30


def test_non_atomic_warning_logged_once_per_process(plain_store):
    with patch("llm_resilience.store.helpers.logger") as mock_logger:
        CounterStoreHelper(plain_store).increment("a")
        CounterStoreHelper(plain_store).increment("b")

    race_warnings = [
        c for c in mock_logger.warning.call_args_list if "atomic increment" in c.args[0]
    ]
    assert len(race_warnings) == 1
