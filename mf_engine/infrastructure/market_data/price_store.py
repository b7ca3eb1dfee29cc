"""
In-memory NAV store with all-time-high tracking.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from mf_engine.utils.decimals import ZERO, to_decimal
from mf_engine.utils.time import now_ist_naive, to_ist_iso_db, today_ist

logger = logging.getLogger(__name__)


@dataclass
class NavQuote:
    fund_code: str
    nav: Decimal
    as_of: date
    ts: datetime


class PriceStore:
    """Latest NAV and highest NAV seen per fund"""

    def __init__(self, ath_seed: Optional[Mapping[str, Any]] = None):
        self._last_navs: Dict[str, NavQuote] = {}
        self._ath: Dict[str, Decimal] = {}
        self._lock = threading.Lock()
        for fund_code, value in (ath_seed or {}).items():
            self._ath[fund_code] = to_decimal(value)

    def ingest_nav(self, fund_code: str, nav: Any, as_of: Optional[date] = None) -> bool:
        """
        Record a NAV

        Returns:
            True when the NAV set a new all-time high
        """
        if not fund_code:
            return False
        value = to_decimal(nav)
        if value <= ZERO:
            logger.warning(f"⚠️ Ignoring non-positive NAV {value} for {fund_code}")
            return False

        with self._lock:
            self._last_navs[fund_code] = NavQuote(
                fund_code=fund_code,
                nav=value,
                as_of=as_of or today_ist(),
                ts=now_ist_naive(),
            )
            previous = self._ath.get(fund_code)
            if previous is not None and value <= previous:
                return False
            self._ath[fund_code] = value

        if previous is not None:
            logger.info(f"🏔️ New ATH for {fund_code}: ₹{value} (was ₹{previous})")
        return True

    def ingest_many(self, navs: Mapping[str, Any], as_of: Optional[date] = None) -> int:
        """Returns the number of new highs."""
        return sum(1 for code, nav in navs.items() if self.ingest_nav(code, nav, as_of))

    def get_last_nav(self, fund_code: str) -> Optional[NavQuote]:
        with self._lock:
            return self._last_navs.get(fund_code)

    def current_prices(self, fund_codes: Optional[Iterable[str]] = None) -> Dict[str, Decimal]:
        with self._lock:
            codes = list(self._last_navs) if fund_codes is None else list(fund_codes)
            return {
                code: self._last_navs[code].nav
                for code in codes
                if code in self._last_navs
            }

    def ath_table(self, fund_codes: Optional[Iterable[str]] = None) -> Dict[str, Decimal]:
        with self._lock:
            codes = list(self._ath) if fund_codes is None else list(fund_codes)
            return {code: self._ath[code] for code in codes if code in self._ath}

    def get_status(self) -> Dict[str, object]:
        with self._lock:
            return {
                code: {
                    "nav": float(quote.nav),
                    "as_of": quote.as_of.isoformat(),
                    "ts": to_ist_iso_db(quote.ts),
                    "ath": float(self._ath.get(code, quote.nav)),
                }
                for code, quote in self._last_navs.items()
            }
