from datetime import date
from decimal import Decimal

import pytest

from mf_engine.core.config import EngineConfig
from mf_engine.domain.models import FundInfo, PortfolioConfig
from mf_engine.domain.services.portfolio_orchestrator import PortfolioOrchestrator
from mf_engine.domain.services.transaction_ledger import TransactionLedger
from mf_engine.infrastructure.cache.memory_cache import InMemoryCache
from mf_engine.infrastructure.config_store import (
    InMemoryFundReference,
    InMemoryPortfolioConfigStore,
)
from mf_engine.infrastructure.repositories.memory_ledger_store import InMemoryLedgerStore


@pytest.fixture()
def trade_date() -> date:
    return date(2026, 1, 15)


@pytest.fixture()
def ledger_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture()
def ledger(ledger_store) -> TransactionLedger:
    return TransactionLedger(ledger_store)


@pytest.fixture()
def config_store() -> InMemoryPortfolioConfigStore:
    return InMemoryPortfolioConfigStore([
        PortfolioConfig(
            portfolio_id="P1",
            name="Core",
            periodic_sip_budget=Decimal("10000"),
        ),
        PortfolioConfig(
            portfolio_id="P2",
            name="Kids",
            periodic_sip_budget=Decimal("5000"),
        ),
    ])


@pytest.fixture()
def fund_reference() -> InMemoryFundReference:
    return InMemoryFundReference([
        FundInfo("F1", "Flexi Cap Fund", "Flexi Cap"),
        FundInfo("F2", "Nifty 50 Index Fund", "Index"),
    ])


@pytest.fixture()
def orchestrator(ledger_store, config_store, fund_reference) -> PortfolioOrchestrator:
    return PortfolioOrchestrator(
        ledger_store=ledger_store,
        config_store=config_store,
        engine_config=EngineConfig(),
        fund_reference=fund_reference,
        cache=InMemoryCache(),
    )
