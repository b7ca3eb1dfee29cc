from datetime import date
from decimal import Decimal

import pytest

from mf_engine.bootstrap import build_orchestrator
from mf_engine.config import Settings
from mf_engine.domain.models import TransactionIntent
from mf_engine.infrastructure.cache.memory_cache import InMemoryCache
from mf_engine.infrastructure.db.repositories.ledger_repository import SqlLedgerStore
from mf_engine.infrastructure.repositories.memory_ledger_store import InMemoryLedgerStore

CONFIG = """
portfolios:
  core:
    periodic_sip_budget: 10000
funds:
  - code: F1
    name: Flexi Cap Fund
"""


@pytest.fixture()
def config_path(tmp_path):
    path = tmp_path / "portfolios.yml"
    path.write_text(CONFIG)
    return str(path)


@pytest.mark.integration
def test_memory_backend(config_path):
    orchestrator = build_orchestrator(
        Settings(PORTFOLIO_CONFIG_FILE=config_path, LEDGER_BACKEND="memory", DEFAULT_REBALANCE_THRESHOLD_PCT=3),
        configure_logging=False,
    )

    assert isinstance(orchestrator.ledger.store, InMemoryLedgerStore)
    assert isinstance(orchestrator.cache, InMemoryCache)
    assert orchestrator.engine_config.default_rebalance_threshold_pct == Decimal("3.0")
    assert orchestrator.config_store.default_threshold_pct == Decimal("3.0")
    assert orchestrator.config_store.get("core").rebalance_threshold_pct == Decimal("3.0")

    result = orchestrator.record_transaction(
        TransactionIntent.buy("core", "F1", date(2026, 1, 15), "10", "100", target_allocation_pct="60")
    )
    assert "Flexi Cap Fund" in result.message
    assert orchestrator.get_total_target_allocation("core") == Decimal("60")


@pytest.mark.integration
def test_sql_backend(config_path):
    orchestrator = build_orchestrator(
        Settings(
            PORTFOLIO_CONFIG_FILE=config_path,
            LEDGER_BACKEND="sql",
            DATABASE_URL="sqlite:///:memory:",
        ),
        configure_logging=False,
    )

    assert isinstance(orchestrator.ledger.store, SqlLedgerStore)
    orchestrator.record_transaction(TransactionIntent.buy("core", "F1", date(2026, 1, 15), "10", "100"))
    assert orchestrator.get_holding("core", "F1").units == Decimal("10")


def test_unknown_backend(config_path):
    with pytest.raises(ValueError):
        build_orchestrator(
            Settings(PORTFOLIO_CONFIG_FILE=config_path, LEDGER_BACKEND="mongo"),
            configure_logging=False,
        )
