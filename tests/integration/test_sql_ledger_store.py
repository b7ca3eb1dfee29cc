from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from mf_engine.domain.errors import DependencyError
from mf_engine.domain.models import (
    Transaction,
    TransactionIntent,
    TransactionSide,
    TransactionSubtype,
)
from mf_engine.domain.services.portfolio_orchestrator import PortfolioOrchestrator
from mf_engine.infrastructure.db.database import create_db_engine, create_session_factory, init_db
from mf_engine.infrastructure.db.repositories.ledger_repository import SqlLedgerStore

TODAY = date(2026, 1, 15)


@pytest.fixture()
def sql_store():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield SqlLedgerStore(create_session_factory(engine))
    engine.dispose()


def make_row(txn_id, fund_code="F1", side=TransactionSide.BUY, units="10", price="100", gain="0", group=None):
    subtype = TransactionSubtype.SIP if side == TransactionSide.BUY else TransactionSubtype.WITHDRAWAL
    if group:
        subtype = TransactionSubtype.SWITCH
    return Transaction(
        id=txn_id,
        portfolio_id="P1",
        fund_code=fund_code,
        trade_date=TODAY,
        side=side,
        subtype=subtype,
        units=Decimal(units),
        price_per_unit=Decimal(price),
        total_amount=Decimal(units) * Decimal(price),
        realized_gain_loss=Decimal(gain),
        created_at=datetime(2026, 1, 15, 10, 30),
        switch_group_id=group,
    )


@pytest.mark.integration
def test_rows_round_trip_in_insertion_order(sql_store):
    sql_store.append_batch([make_row("TXN-B", "F2"), make_row("TXN-A", "F1")])
    sql_store.append_batch([make_row("TXN-C", "F1", TransactionSide.SELL, "4", "120.5", "82.00")])

    rows = sql_store.list_for("P1")
    assert [r.id for r in rows] == ["TXN-B", "TXN-A", "TXN-C"]
    assert [r.id for r in sql_store.list_for("P1", "F1")] == ["TXN-A", "TXN-C"]

    sell = sql_store.get("TXN-C")
    assert sell.side == TransactionSide.SELL
    assert sell.subtype == TransactionSubtype.WITHDRAWAL
    assert sell.units == Decimal("4")
    assert sell.price_per_unit == Decimal("120.5")
    assert sell.realized_gain_loss == Decimal("82.00")
    assert sell.trade_date == TODAY
    assert sql_store.get("TXN-NOPE") is None


@pytest.mark.integration
def test_failed_batch_commits_nothing(sql_store):
    sql_store.append_batch([make_row("TXN-A")])

    with pytest.raises(IntegrityError):
        sql_store.append_batch([make_row("TXN-B"), make_row("TXN-A")])

    assert [r.id for r in sql_store.list_for("P1")] == ["TXN-A"]


@pytest.mark.integration
def test_replace_and_group_delete(sql_store):
    sql_store.append_batch([
        make_row("TXN-S", "F1", TransactionSide.SELL, "5", "10", "0", group="SWG-1"),
        make_row("TXN-B", "F2", TransactionSide.BUY, "25", "2", group="SWG-1"),
    ])
    sql_store.append_batch([make_row("TXN-X", "F1")])

    edited = make_row("TXN-X", "F1", units="12", price="101")
    sql_store.replace_batch([edited])
    assert sql_store.get("TXN-X").total_amount == Decimal("1212.00")

    assert [r.id for r in sql_store.list_group("SWG-1")] == ["TXN-S", "TXN-B"]
    sql_store.delete_batch(["TXN-S", "TXN-B"])
    assert [r.id for r in sql_store.list_for("P1")] == ["TXN-X"]

    with pytest.raises(KeyError):
        sql_store.delete_batch(["TXN-X", "TXN-GONE"])
    assert sql_store.get("TXN-X") is not None


@pytest.mark.integration
def test_orchestrator_on_sql_ledger(sql_store, config_store):
    orchestrator = PortfolioOrchestrator(sql_store, config_store)

    orchestrator.record_transaction(TransactionIntent.buy("P1", "F1", TODAY, "10", "100"))
    orchestrator.record_transaction(TransactionIntent.buy("P1", "F1", TODAY, "10", "200"))
    result = orchestrator.record_transaction(TransactionIntent.sell("P1", "F1", TODAY, "5", "300"))

    assert sql_store.get(result.transaction_id).realized_gain_loss == Decimal("750.00")
    holding = orchestrator.get_holding("P1", "F1")
    assert holding.units == Decimal("15")
    assert holding.weighted_avg_cost == Decimal("150.0000")


@pytest.mark.integration
def test_sql_failure_surfaces_as_dependency_error(sql_store, config_store):
    orchestrator = PortfolioOrchestrator(sql_store, config_store)
    orchestrator.record_transaction(TransactionIntent.buy("P1", "F1", TODAY, "10", "100"))

    def broken_append(transactions):
        raise IntegrityError("INSERT", {}, Exception("locked"))

    sql_store.append_batch = broken_append
    with pytest.raises(DependencyError):
        orchestrator.record_transaction(TransactionIntent.buy("P1", "F1", TODAY, "1", "100"))
    assert len(orchestrator.list_transactions("P1")) == 1


@pytest.mark.integration
def test_five_decimal_nav_survives_numeric_column(sql_store, config_store):
    orchestrator = PortfolioOrchestrator(sql_store, config_store)

    result = orchestrator.record_transaction(
        TransactionIntent.buy("P1", "F1", TODAY, "1000", "10.12345")
    )

    row = sql_store.get(result.transaction_id)
    assert row.price_per_unit == Decimal("10.1235")
    assert row.total_amount == Decimal("10123.50")
    assert row.total_amount == (row.units * row.price_per_unit).quantize(Decimal("0.01"))
    assert orchestrator.get_holding("P1", "F1").investment == row.total_amount


@pytest.mark.integration
def test_replace_batch_is_all_or_nothing(sql_store):
    sql_store.append_batch([make_row("TXN-A", "F1"), make_row("TXN-B", "F2")])

    with pytest.raises(KeyError):
        sql_store.replace_batch([
            make_row("TXN-A", "F1", units="99"),
            make_row("TXN-GONE", "F1"),
        ])

    assert sql_store.get("TXN-A").units == Decimal("10")

    sql_store.replace_batch([
        make_row("TXN-A", "F1", units="11"),
        make_row("TXN-B", "F2", units="12"),
    ])
    assert [r.units for r in sql_store.list_for("P1")] == [Decimal("11"), Decimal("12")]
