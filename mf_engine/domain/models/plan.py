"""
DOMAIN MODELS — REBALANCE PLAN & BUY SIGNALS

Ephemeral read models. Never persisted; rebuilt from holdings, prices and
portfolio configuration on every request.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from mf_engine.utils.decimals import ZERO


class PriceStatus(str, Enum):
    LIVE = "LIVE"
    UNAVAILABLE = "PriceUnavailable"


class ATHTier(str, Enum):
    """Buy-opportunity strength by depth below all-time high"""
    WATCH = "Watch"
    CONSIDER = "Consider"
    GOOD_BUY = "Good Buy"
    STRONG_BUY = "Strong Buy"


@dataclass(frozen=True)
class FundPlan:
    """
    Rebalancing view of one fund.

    Price-dependent fields are None when the fund's price is unavailable;
    ongoing SIP and target lumpsum only depend on configuration and are
    always filled.
    """
    fund_code: str
    units: Decimal
    investment: Decimal
    target_allocation_pct: Decimal
    ongoing_sip: Decimal
    target_lumpsum: Decimal
    rebalance_sip: Decimal
    price_status: PriceStatus
    display_name: Optional[str] = None
    current_price: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    current_allocation_pct: Optional[Decimal] = None
    target_value: Optional[Decimal] = None
    drift: Optional[Decimal] = None
    rebalance_lumpsum: Optional[Decimal] = None
    buy_sell_delta: Optional[Decimal] = None
    unrealized_pl: Optional[Decimal] = None

    @property
    def price_available(self) -> bool:
        return self.price_status == PriceStatus.LIVE

    @property
    def action(self) -> str:
        """BUY / SELL / HOLD, or UNKNOWN without a price."""
        if self.buy_sell_delta is None:
            return "UNKNOWN"
        if self.buy_sell_delta > ZERO:
            return "BUY"
        if self.buy_sell_delta < ZERO:
            return "SELL"
        return "HOLD"


@dataclass(frozen=True)
class RebalancePlan:
    """Rebalance plan for a whole portfolio"""
    portfolio_id: str
    rebalance_threshold_pct: Decimal
    periodic_sip_budget: Decimal
    lumpsum_budget: Decimal
    total_current_value: Decimal
    total_gap: Decimal
    funds: List[FundPlan] = field(default_factory=list)

    @property
    def price_unavailable(self) -> List[str]:
        return [f.fund_code for f in self.funds if not f.price_available]

    @property
    def total_rebalance_sip(self) -> Decimal:
        return sum((f.rebalance_sip for f in self.funds), ZERO)

    @property
    def needs_rebalance(self) -> bool:
        return any(f.buy_sell_delta not in (None, ZERO) for f in self.funds)

    def get(self, fund_code: str) -> Optional[FundPlan]:
        for fund in self.funds:
            if fund.fund_code == fund_code:
                return fund
        return None


@dataclass(frozen=True)
class ATHSignal:
    """Fund trading below its all-time high - Immutable"""
    fund_code: str
    current_price: Decimal
    ath_price: Decimal
    pct_below_ath: Decimal
    tier: ATHTier
    display_name: Optional[str] = None
    portfolio_ids: Tuple[str, ...] = ()
