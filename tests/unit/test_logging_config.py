"""
Unit tests for structlog configuration.
"""

import json
import logging

import pytest
import structlog

from llm_resilience.logging_config import add_app_context, call_context, configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_add_app_context():
    assert add_app_context(None, "info", {"event": "x"}) == {"event": "x", "app": "llm-resilience"}


def test_production_renders_json(capsys):
    configure_logging("INFO", "production")

    structlog.get_logger("llm_resilience.test").warning("Circuit breaker opened", model_id="gpt-4o")

    lines = [line for line in capsys.readouterr().out.splitlines() if "Circuit breaker opened" in line]
    record = json.loads(lines[-1])
    assert record["model_id"] == "gpt-4o"
    assert record["app"] == "llm-resilience"
    assert record["level"] == "warning"


def test_log_level_applied():
    configure_logging("warning", "development")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1


def test_unknown_level_defaults_to_info():
    configure_logging("chatty", "development")

    assert logging.getLogger().level == logging.INFO


def test_call_context_binds_and_unbinds():
    with call_context("SupportAgent", "acme", model_id="gpt-4o"):
        assert structlog.contextvars.get_contextvars() == {
            "agent_type": "SupportAgent",
            "tenant_id": "acme",
            "model_id": "gpt-4o",
        }

    assert "agent_type" not in structlog.contextvars.get_contextvars()


def test_call_context_skips_missing_tenant():
    with call_context("SupportAgent"):
        assert "tenant_id" not in structlog.contextvars.get_contextvars()


def test_call_context_reaches_rendered_events(capsys):
    configure_logging("INFO", "production")

    with call_context("SupportAgent", "acme"):
        structlog.get_logger("llm_resilience.test").warning("Budget exceeded")

    lines = [line for line in capsys.readouterr().out.splitlines() if "Budget exceeded" in line]
    record = json.loads(lines[-1])
    assert record["agent_type"] == "SupportAgent"
    assert record["tenant_id"] == "acme"
