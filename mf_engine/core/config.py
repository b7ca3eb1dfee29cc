from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from mf_engine.config import Settings, settings as default_settings


@dataclass(frozen=True)
class ATHBands:
    """
    Lower bounds (% below ATH) of each buy-signal tier.
    Anything below `consider` is a Watch.
    """
    consider: Decimal = Decimal("5")
    good_buy: Decimal = Decimal("10")
    strong_buy: Decimal = Decimal("20")

    def __post_init__(self):
        if not Decimal("0") <= self.consider <= self.good_buy <= self.strong_buy:
            raise ValueError("ATH bands must be ascending and non-negative")


@dataclass(frozen=True)
class EngineConfig:
    """
    Explicit engine configuration handed to the orchestrator.
    """
    default_rebalance_threshold_pct: Decimal = Decimal("5")
    cache_ttl_seconds: int = 300
    units_epsilon: Decimal = Decimal("0.0001")
    ath_bands: ATHBands = ATHBands()
    min_pct_below_ath: Decimal = Decimal("0")

    @staticmethod
    def load(source: Optional[Settings] = None) -> "EngineConfig":
        cfg = source or default_settings
        return EngineConfig(
            default_rebalance_threshold_pct=Decimal(str(cfg.DEFAULT_REBALANCE_THRESHOLD_PCT)),
            cache_ttl_seconds=cfg.CACHE_TTL_SECONDS,
            ath_bands=ATHBands(
                consider=Decimal(str(cfg.ATH_CONSIDER_PCT)),
                good_buy=Decimal(str(cfg.ATH_GOOD_BUY_PCT)),
                strong_buy=Decimal(str(cfg.ATH_STRONG_BUY_PCT)),
            ),
            min_pct_below_ath=Decimal(str(cfg.MIN_PCT_BELOW_ATH)),
        )
