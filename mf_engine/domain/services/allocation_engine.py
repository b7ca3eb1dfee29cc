"""
ALLOCATION ENGINE (REBALANCER)
Holdings + live prices + portfolio config → rebalance plan

RESPONSIBILITIES:
- Current value / allocation % per fund
- Ongoing SIP split by target weight
- Rebalance SIP split by gap to target (underweight funds only)
- Lumpsum split, threshold-gated
- One-shot buy/sell correction, threshold-gated

RULES:
❌ No ledger access, no price fetching
❌ A missing price never counts as zero value
✅ Drift at or below threshold → no corrective action
✅ Deterministic output
"""

import logging
from decimal import Decimal
from typing import Callable, Dict, Mapping, Optional

from mf_engine.domain.models import (
    FundPlan,
    Holding,
    PortfolioConfig,
    PriceStatus,
    RebalancePlan,
)
from mf_engine.utils.decimals import HUNDRED, ZERO, q_money, q_pct

logger = logging.getLogger(__name__)


class AllocationEngine:
    """
    Allocation Engine
    Turns a valued portfolio into SIP / lumpsum / buy-sell recommendations
    """

    def __init__(self, fund_label: Optional[Callable[[str], Optional[str]]] = None):
        """
        Initialize allocation engine

        Args:
            fund_label: Optional fund code -> display name lookup (labels only)
        """
        self.fund_label = fund_label

    def build_plan(
        self,
        config: PortfolioConfig,
        holdings: Mapping[str, Holding],
        prices: Mapping[str, Decimal],
    ) -> RebalancePlan:
        """
        Build the rebalance plan for one portfolio

        Args:
            config: Threshold, SIP and lumpsum budgets, target allocations
            holdings: Active holdings keyed by fund code
            prices: Live price snapshot (fund code -> NAV)

        Returns:
            RebalancePlan with one FundPlan per holding
        """
        sip_budget = config.periodic_sip_budget
        lumpsum_budget = config.lumpsum_budget
        threshold = config.rebalance_threshold_pct

        # Values for funds with a usable price only
        current_values: Dict[str, Decimal] = {}
        for fund_code, holding in holdings.items():
            price = prices.get(fund_code)
            if price is None or price <= ZERO:
                logger.warning(f"⚠️ Live price missing for {fund_code}; excluded from allocation base")
                continue
            current_values[fund_code] = holding.units * price

        total_value = sum(current_values.values(), ZERO)

        gaps: Dict[str, Decimal] = {}
        for fund_code, value in current_values.items():
            target_value = self._share(holdings[fund_code].target_allocation_pct, total_value)
            gaps[fund_code] = max(ZERO, target_value - value)
        total_gap = sum(gaps.values(), ZERO)

        funds = []
        for fund_code, holding in holdings.items():
            target_pct = holding.target_allocation_pct
            ongoing_sip = self._share(target_pct, sip_budget)
            target_lumpsum = self._share(target_pct, lumpsum_budget)

            if total_gap == ZERO:
                # Everything at or above target: plain target-weight split
                rebalance_sip = ongoing_sip
            elif gaps.get(fund_code, ZERO) > ZERO:
                rebalance_sip = gaps[fund_code] / total_gap * sip_budget
            else:
                rebalance_sip = ZERO

            if fund_code not in current_values:
                funds.append(FundPlan(
                    fund_code=fund_code,
                    display_name=self._label(fund_code),
                    units=holding.units,
                    investment=holding.investment,
                    target_allocation_pct=target_pct,
                    ongoing_sip=q_money(ongoing_sip),
                    target_lumpsum=q_money(target_lumpsum),
                    rebalance_sip=q_money(rebalance_sip),
                    price_status=PriceStatus.UNAVAILABLE,
                ))
                continue

            value = current_values[fund_code]
            current_pct = q_pct(value / total_value * HUNDRED) if total_value > ZERO else ZERO
            target_value = self._share(target_pct, total_value)
            drift = abs(current_pct - target_pct)

            if drift <= threshold:
                rebalance_lumpsum = target_lumpsum
                buy_sell_delta = ZERO
            else:
                post_lumpsum_target = self._share(target_pct, total_value + lumpsum_budget)
                rebalance_lumpsum = max(ZERO, post_lumpsum_target - value)
                buy_sell_delta = target_value - value

            funds.append(FundPlan(
                fund_code=fund_code,
                display_name=self._label(fund_code),
                units=holding.units,
                investment=holding.investment,
                target_allocation_pct=target_pct,
                ongoing_sip=q_money(ongoing_sip),
                target_lumpsum=q_money(target_lumpsum),
                rebalance_sip=q_money(rebalance_sip),
                price_status=PriceStatus.LIVE,
                current_price=prices[fund_code],
                current_value=q_money(value),
                current_allocation_pct=current_pct,
                target_value=q_money(target_value),
                drift=q_pct(drift),
                rebalance_lumpsum=q_money(rebalance_lumpsum),
                buy_sell_delta=q_money(buy_sell_delta),
                unrealized_pl=q_money(value) - holding.investment,
            ))

        plan = RebalancePlan(
            portfolio_id=config.portfolio_id,
            rebalance_threshold_pct=threshold,
            periodic_sip_budget=sip_budget,
            lumpsum_budget=lumpsum_budget,
            total_current_value=q_money(total_value),
            total_gap=q_money(total_gap),
            funds=funds,
        )
        logger.info(
            f"📊 Rebalance plan {config.portfolio_id}: value=₹{plan.total_current_value:,.2f} "
            f"gap=₹{plan.total_gap:,.2f} funds={len(funds)} unavailable={len(plan.price_unavailable)}"
        )
        return plan

    @staticmethod
    def _share(percentage: Decimal, amount: Decimal) -> Decimal:
        """percentage / 100 x amount, unrounded"""
        return percentage / HUNDRED * amount

    def _label(self, fund_code: str) -> Optional[str]:
        return self.fund_label(fund_code) if self.fund_label else None
