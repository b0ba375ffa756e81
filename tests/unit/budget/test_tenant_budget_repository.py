"""
Unit tests for the Redis tenant budget repository.
"""

from unittest.mock import MagicMock, patch

import pytest

from llm_resilience.budget import BudgetEnforcement, ConfigResolver, RedisTenantBudgetRepository, TenantBudget
from llm_resilience.store.redis_store import RedisClient


@pytest.fixture
def repository(mock_redis):
    return RedisTenantBudgetRepository(mock_redis, namespace="test")


@pytest.fixture
def acme_budget():
    return TenantBudget(
        tenant_id="acme",
        daily_limit=25.0,
        monthly_limit=500.0,
        per_agent_daily={"SupportAgent": 5.0},
        daily_token_limit=100000,
        enforcement=BudgetEnforcement.HARD,
    )


def test_exists_checks_registry_key(repository, mock_redis):
    mock_redis.exists.return_value = 1

    assert repository.exists() is True
    mock_redis.exists.assert_called_once_with("test:tenant_budgets")


def test_exists_false_without_registry(repository, mock_redis):
    mock_redis.exists.return_value = 0

    assert repository.exists() is False


def test_for_tenant_deserializes_record(repository, mock_redis, acme_budget):
    mock_redis.get.return_value = acme_budget.model_dump_json()

    assert repository.for_tenant("acme") == acme_budget
    mock_redis.get.assert_called_once_with("test:tenant_budget:acme")


def test_for_tenant_missing(repository):
    assert repository.for_tenant("globex") is None


def test_for_tenant_invalid_json(repository, mock_redis):
    mock_redis.get.return_value = "{not json"

    assert repository.for_tenant("acme") is None


def test_for_tenant_propagates_connection_errors(repository, mock_redis):
    mock_redis.get.side_effect = ConnectionError("redis down")

    with pytest.raises(ConnectionError):
        repository.for_tenant("acme")


def test_save_budget(repository, mock_redis, acme_budget):
    pipe = MagicMock()
    mock_redis.pipeline.return_value = pipe

    assert repository.save_budget(acme_budget) is True

    pipe.set.assert_called_once_with("test:tenant_budget:acme", acme_budget.model_dump_json())
    pipe.sadd.assert_called_once_with("test:tenant_budgets", "acme")
    pipe.execute.assert_called_once()


def test_save_budget_resets_table_check_cache(repository, mock_redis, acme_budget):
    mock_redis.pipeline.return_value = MagicMock()
    ConfigResolver._tenant_budget_table_exists = False

    repository.save_budget(acme_budget)

    assert ConfigResolver._tenant_budget_table_exists is None


def test_save_budget_failure(repository, mock_redis, acme_budget):
    pipe = MagicMock()
    pipe.execute.side_effect = ConnectionError("redis down")
    mock_redis.pipeline.return_value = pipe

    assert repository.save_budget(acme_budget) is False


def test_delete_budget(repository, mock_redis):
    pipe = MagicMock()
    pipe.execute.return_value = [1, 1]
    mock_redis.pipeline.return_value = pipe

    assert repository.delete_budget("acme") is True
    pipe.delete.assert_called_once_with("test:tenant_budget:acme")
    pipe.srem.assert_called_once_with("test:tenant_budgets", "acme")


def test_delete_missing_budget(repository, mock_redis):
    pipe = MagicMock()
    pipe.execute.return_value = [0, 0]
    mock_redis.pipeline.return_value = pipe

    assert repository.delete_budget("globex") is False


def test_list_tenants_sorted(repository, mock_redis):
    mock_redis.smembers.return_value = {"globex", "acme"}

    assert repository.list_tenants() == ["acme", "globex"]


def test_list_tenants_on_error(repository, mock_redis):
    mock_redis.smembers.side_effect = ConnectionError("redis down")

    assert repository.list_tenants() == []


def test_tenant_budget_requires_tenant_id():
    with pytest.raises(ValueError):
        TenantBudget(tenant_id="")


def test_to_budget_config(acme_budget):
    config = acme_budget.to_budget_config()

    assert config.enforcement == BudgetEnforcement.HARD
    assert config.global_daily == 25.0
    assert config.global_monthly == 500.0
    assert config.per_agent_daily == {"SupportAgent": 5.0}
    assert config.per_agent_monthly == {}
    assert config.global_daily_tokens == 100000
    assert config.global_monthly_tokens is None


def test_from_settings_uses_cache_namespace(test_settings):
    with patch.object(RedisClient, "get_client") as mock_get_client:
        repository = RedisTenantBudgetRepository.from_settings(test_settings)

    mock_get_client.assert_called_once_with(test_settings)
    assert repository.registry_key == "test:tenant_budgets"
