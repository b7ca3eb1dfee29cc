"""
DOMAIN MODELS — PORTFOLIO & PnL

Immutable structures representing a valued portfolio.
No ledger access. No price fetching.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from mf_engine.utils.decimals import HUNDRED, ZERO, q_money, q_pct


@dataclass(frozen=True)
class FundPosition:
    """
    Valued position for a single fund.
    `current_price` is None when no live price was supplied.
    """
    fund_code: str
    units: Decimal
    avg_cost: Decimal
    invested_amount: Decimal
    current_price: Optional[Decimal]
    display_name: Optional[str] = None

    @property
    def price_available(self) -> bool:
        return self.current_price is not None

    @property
    def current_value(self) -> Optional[Decimal]:
        if self.current_price is None:
            return None
        return q_money(self.units * self.current_price)

    @property
    def pnl(self) -> Optional[Decimal]:
        if self.current_value is None:
            return None
        return self.current_value - self.invested_amount

    @property
    def pnl_pct(self) -> Optional[Decimal]:
        if self.pnl is None:
            return None
        if self.invested_amount <= ZERO:
            return ZERO
        return q_pct(self.pnl / self.invested_amount * HUNDRED)


@dataclass(frozen=True)
class PortfolioSummary:
    """
    Snapshot of one portfolio at a point in time.
    Totals only include priced positions, so a missing NAV never reads as a loss.
    """
    portfolio_id: str
    positions: Dict[str, FundPosition]
    realized_gain_loss: Decimal = ZERO

    @property
    def total_invested(self) -> Decimal:
        return sum((p.invested_amount for p in self.positions.values()), ZERO)

    @property
    def priced_invested(self) -> Decimal:
        return sum(
            (p.invested_amount for p in self.positions.values() if p.price_available),
            ZERO,
        )

    @property
    def total_value(self) -> Decimal:
        return sum(
            (p.current_value for p in self.positions.values() if p.price_available),
            ZERO,
        )

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.total_value - self.priced_invested

    @property
    def unrealized_pnl_pct(self) -> Decimal:
        if self.priced_invested <= ZERO:
            return ZERO
        return q_pct(self.unrealized_pnl / self.priced_invested * HUNDRED)

    @property
    def price_unavailable(self) -> list:
        return sorted(code for code, p in self.positions.items() if not p.price_available)
