"""
Unit Tests for HoldingsAggregator
"""

from datetime import date
from decimal import Decimal

import pytest

from mf_engine.domain.models import (
    PortfolioConfig,
    TransactionDraft,
    TransactionSide,
    TransactionSubtype,
)
from mf_engine.domain.services.holdings_aggregator import HoldingsAggregator

TODAY = date(2026, 1, 15)


def book(ledger, side, fund_code, units, price, avg=None):
    return ledger.append(TransactionDraft(
        portfolio_id="P1",
        fund_code=fund_code,
        trade_date=TODAY,
        side=side,
        subtype=TransactionSubtype.SIP if side == TransactionSide.BUY else TransactionSubtype.WITHDRAWAL,
        units=Decimal(units),
        price_per_unit=Decimal(price),
        avg_cost_at_sale=Decimal(avg) if avg else None,
    ))


@pytest.fixture()
def aggregator(ledger):
    return HoldingsAggregator(ledger)


def test_weighted_average_from_buys(ledger, aggregator):
    book(ledger, TransactionSide.BUY, "F1", "10", "100")
    book(ledger, TransactionSide.BUY, "F1", "10", "200")

    holding = aggregator.recompute("P1", "F1")

    assert holding.units == Decimal("20")
    assert holding.weighted_avg_cost == Decimal("150.0000")
    assert holding.investment == Decimal("3000.00")


def test_sell_leaves_average_cost_unchanged(ledger, aggregator):
    book(ledger, TransactionSide.BUY, "F1", "10", "100")
    book(ledger, TransactionSide.BUY, "F1", "10", "200")
    book(ledger, TransactionSide.SELL, "F1", "5", "300", avg="150")

    holding = aggregator.recompute("P1", "F1")

    assert holding.units == Decimal("15")
    assert holding.weighted_avg_cost == Decimal("150.0000")
    assert holding.realized_gain_loss == Decimal("750.00")


def test_average_cost_rounded_to_four_places(ledger, aggregator):
    book(ledger, TransactionSide.BUY, "F1", "1", "10")
    book(ledger, TransactionSide.BUY, "F1", "2", "11")

    assert aggregator.recompute("P1", "F1").weighted_avg_cost == Decimal("10.6667")


def test_exited_fund_is_pruned_but_keeps_realized_pnl(ledger, aggregator):
    book(ledger, TransactionSide.BUY, "F1", "10", "100")
    book(ledger, TransactionSide.SELL, "F1", "10", "110", avg="100")
    book(ledger, TransactionSide.BUY, "F2", "5", "20")

    holdings = aggregator.active_holdings("P1")

    assert list(holdings) == ["F2"]
    assert not aggregator.is_active(aggregator.recompute("P1", "F1"))
    assert aggregator.realized_gain_loss("P1") == Decimal("100.00")


def test_active_holdings_in_first_purchase_order_with_targets(ledger, aggregator):
    book(ledger, TransactionSide.BUY, "F2", "5", "20")
    book(ledger, TransactionSide.BUY, "F1", "10", "100")
    book(ledger, TransactionSide.BUY, "F2", "5", "22")
    config = PortfolioConfig("P1", target_allocations={"F1": Decimal("60"), "F2": Decimal("40")})

    holdings = aggregator.active_holdings("P1", config)

    assert list(holdings) == ["F2", "F1"]
    assert holdings["F1"].target_allocation_pct == Decimal("60")
    assert holdings["F2"].units == Decimal("10")
    assert holdings["F2"].weighted_avg_cost == Decimal("21.0000")


def test_recompute_is_idempotent(ledger, aggregator):
    book(ledger, TransactionSide.BUY, "F1", "3", "33.33")
    assert aggregator.recompute("P1", "F1") == aggregator.recompute("P1", "F1")


def test_net_units(ledger):
    book(ledger, TransactionSide.BUY, "F1", "10", "100")
    book(ledger, TransactionSide.SELL, "F1", "4", "100", avg="100")
    book(ledger, TransactionSide.BUY, "F2", "1", "10")

    positions = HoldingsAggregator.net_units(ledger.list_for("P1"))

    assert positions == {"F1": Decimal("6"), "F2": Decimal("1")}


def test_unknown_portfolio_has_no_holdings(aggregator):
    assert aggregator.active_holdings("NOPE") == {}
