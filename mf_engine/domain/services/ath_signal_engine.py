"""
ATH SIGNAL ENGINE
Classify how far a fund trades below its all-time high

Tiers (lower bounds adjustable via ATHBands):
    < consider        → Watch
    consider-good_buy → Consider
    good_buy-strong   → Good Buy
    ≥ strong_buy      → Strong Buy

A signal flags a candidate only; it never sizes a trade.
"""

from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from mf_engine.core.config import ATHBands
from mf_engine.domain.models import ATHSignal, ATHTier
from mf_engine.utils.decimals import HUNDRED, ZERO, q_pct


class ATHSignalEngine:
    """Stateless ATH classifier"""

    def __init__(self, bands: ATHBands = ATHBands()):
        self.bands = bands

    def tier_for(self, pct_below_ath: Decimal) -> ATHTier:
        if pct_below_ath >= self.bands.strong_buy:
            return ATHTier.STRONG_BUY
        if pct_below_ath >= self.bands.good_buy:
            return ATHTier.GOOD_BUY
        if pct_below_ath >= self.bands.consider:
            return ATHTier.CONSIDER
        return ATHTier.WATCH

    def evaluate(
        self,
        fund_code: str,
        current_price: Optional[Decimal],
        historical_max: Optional[Decimal],
    ) -> Optional[ATHSignal]:
        """
        Evaluate one fund

        Returns:
            ATHSignal, or None when the ATH or price is unknown or the fund is
            at / above its ATH
        """
        if historical_max is None or historical_max <= ZERO:
            return None
        if current_price is None or current_price <= ZERO:
            return None
        if current_price >= historical_max:
            return None

        pct_below = (historical_max - current_price) / historical_max * HUNDRED
        return ATHSignal(
            fund_code=fund_code,
            current_price=current_price,
            ath_price=historical_max,
            pct_below_ath=q_pct(pct_below),
            tier=self.tier_for(pct_below),
        )

    def scan(
        self,
        fund_codes: Iterable[str],
        prices: Mapping[str, Decimal],
        ath_table: Mapping[str, Decimal],
        min_pct_below: Decimal = ZERO,
    ) -> List[ATHSignal]:
        """Signals for many funds, deepest discount first."""
        signals = []
        for fund_code in dict.fromkeys(fund_codes):
            signal = self.evaluate(fund_code, prices.get(fund_code), ath_table.get(fund_code))
            if signal is not None and signal.pct_below_ath >= min_pct_below:
                signals.append(signal)
        signals.sort(key=lambda s: (-s.pct_below_ath, s.fund_code))
        return signals
