"""
HOLDINGS AGGREGATOR
Derive current positions from the ledger

RESPONSIBILITIES:
- units = Σ BUY units - Σ SELL units
- weighted average cost from BUY rows only (SELL never moves cost basis)
- Prune fully exited positions from the active set

RULES:
❌ No writes, no caching
✅ Pure and idempotent; safe for concurrent readers
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, Optional

from mf_engine.domain.models import Holding, PortfolioConfig, Transaction
from mf_engine.domain.services.transaction_ledger import TransactionLedger
from mf_engine.utils.decimals import ZERO, q_nav


class HoldingsAggregator:
    """
    Holdings Aggregator
    Views over the ledger, never stored
    """

    def __init__(self, ledger: TransactionLedger, units_epsilon: Decimal = Decimal("0.0001")):
        self.ledger = ledger
        self.units_epsilon = units_epsilon

    @staticmethod
    def aggregate(
        portfolio_id: str,
        fund_code: str,
        rows: Iterable[Transaction],
        target_allocation_pct: Decimal = ZERO,
    ) -> Holding:
        """
        Fold ledger rows of one (portfolio, fund) into a Holding

        Args:
            portfolio_id: Portfolio id
            fund_code: Fund code
            rows: Ledger rows (other funds are ignored)
            target_allocation_pct: Target % to attach

        Returns:
            Holding (units may be zero for an exited position)
        """
        buy_units = ZERO
        buy_amount = ZERO
        sell_units = ZERO
        realized = ZERO

        for row in rows:
            if row.portfolio_id != portfolio_id or row.fund_code != fund_code:
                continue
            if row.is_buy:
                buy_units += row.units
                buy_amount += row.total_amount
            else:
                sell_units += row.units
                realized += row.realized_gain_loss

        avg_cost = q_nav(buy_amount / buy_units) if buy_units > ZERO else ZERO

        return Holding(
            portfolio_id=portfolio_id,
            fund_code=fund_code,
            units=buy_units - sell_units,
            weighted_avg_cost=avg_cost,
            target_allocation_pct=target_allocation_pct,
            realized_gain_loss=realized,
        )

    @staticmethod
    def net_units(rows: Iterable[Transaction]) -> Dict[str, Decimal]:
        """Net units per fund code for a set of rows."""
        positions: Dict[str, Decimal] = OrderedDict()
        for row in rows:
            delta = row.units if row.is_buy else -row.units
            positions[row.fund_code] = positions.get(row.fund_code, ZERO) + delta
        return positions

    def is_active(self, holding: Holding) -> bool:
        return holding.units >= self.units_epsilon

    def recompute(
        self,
        portfolio_id: str,
        fund_code: str,
        config: Optional[PortfolioConfig] = None,
    ) -> Holding:
        rows = self.ledger.list_for(portfolio_id, fund_code)
        target = config.target_for(fund_code) if config else ZERO
        return self.aggregate(portfolio_id, fund_code, rows, target)

    def active_holdings(
        self,
        portfolio_id: str,
        config: Optional[PortfolioConfig] = None,
    ) -> Dict[str, Holding]:
        """
        Active holdings of a portfolio in first-purchase order
        """
        rows = self.ledger.list_for(portfolio_id)
        fund_codes = list(OrderedDict.fromkeys(row.fund_code for row in rows))

        holdings: Dict[str, Holding] = OrderedDict()
        for fund_code in fund_codes:
            target = config.target_for(fund_code) if config else ZERO
            holding = self.aggregate(portfolio_id, fund_code, rows, target)
            if self.is_active(holding):
                holdings[fund_code] = holding
        return holdings

    def realized_gain_loss(self, portfolio_id: str) -> Decimal:
        """Booked P&L across the whole ledger, exited funds included."""
        return sum(
            (row.realized_gain_loss for row in self.ledger.list_for(portfolio_id) if row.is_sell),
            ZERO,
        )
