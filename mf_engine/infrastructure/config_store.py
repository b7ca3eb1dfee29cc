"""
Portfolio configuration stores and fund reference data.

YAML layout (config/portfolios.yml):

    portfolios:
      retirement:
        name: Retirement
        rebalance_threshold_pct: 5
        periodic_sip_budget: 20000
        lumpsum_budget: 50000
        target_allocations:
          PPFAS-FLEXI: 40
    funds:
      - code: PPFAS-FLEXI
        name: Parag Parikh Flexi Cap Fund
        category: Flexi Cap
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError as SchemaValidationError

from mf_engine.domain.models import FundInfo, PortfolioConfig
from mf_engine.domain.schemas.portfolio import PortfolioConfigSchema, PortfoliosFileSchema

logger = logging.getLogger(__name__)


class InMemoryPortfolioConfigStore:
    """Portfolio configs held in memory"""

    def __init__(self, configs: Iterable[PortfolioConfig] = ()):
        self._configs: Dict[str, PortfolioConfig] = {c.portfolio_id: c for c in configs}
        self._lock = threading.RLock()

    def get(self, portfolio_id: str) -> Optional[PortfolioConfig]:
        with self._lock:
            return self._configs.get(portfolio_id)

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._configs)

    def update_targets(
        self,
        portfolio_id: str,
        targets: Optional[Mapping[str, Decimal]] = None,
        removed: Iterable[str] = (),
    ) -> PortfolioConfig:
        """
        Merge `targets` and drop `removed` in one write.
        Memory only changes once the write has gone through.
        """
        with self._lock:
            current = self._require(portfolio_id)
            merged = dict(current.target_allocations)
            merged.update(targets or {})
            for fund_code in removed:
                merged.pop(fund_code, None)
            if merged == current.target_allocations:
                return current
            return self.put(replace(current, target_allocations=merged))

    def put(self, config: PortfolioConfig) -> PortfolioConfig:
        """Store a whole portfolio config (also used to roll a change back)."""
        with self._lock:
            configs = dict(self._configs)
            configs[config.portfolio_id] = config
            self._persist(configs)
            self._configs = configs
            return config

    def _require(self, portfolio_id: str) -> PortfolioConfig:
        config = self._configs.get(portfolio_id)
        if config is None:
            raise KeyError(f"Portfolio not configured: {portfolio_id}")
        return config

    def _persist(self, configs: Mapping[str, PortfolioConfig]) -> None:
        """Hook for durable subclasses."""


class YamlPortfolioConfigStore(InMemoryPortfolioConfigStore):
    """
    Portfolio configs loaded from YAML, written back on every change
    """

    def __init__(self, path: Union[str, Path], default_threshold_pct: Decimal = Decimal("5")):
        self.path = Path(path)
        self.default_threshold_pct = default_threshold_pct
        self._funds: List[Dict[str, str]] = []
        super().__init__(self._load())

    def _load(self) -> List[PortfolioConfig]:
        if not self.path.exists():
            logger.warning(f"⚠️ Portfolio config not found: {self.path}; starting empty")
            return []

        with open(self.path) as f:
            raw = yaml.safe_load(f) or {}

        try:
            parsed = PortfoliosFileSchema.model_validate(raw)
        except SchemaValidationError as exc:
            raise ValueError(f"Invalid portfolio config {self.path}: {exc}") from exc

        self._funds = [fund.model_dump() for fund in parsed.funds]
        configs = [
            self._to_domain(portfolio_id, schema)
            for portfolio_id, schema in parsed.portfolios.items()
        ]
        logger.info(f"✅ Loaded {len(configs)} portfolio(s) from {self.path}")
        return configs

    def _to_domain(self, portfolio_id: str, schema: PortfolioConfigSchema) -> PortfolioConfig:
        threshold = (
            schema.rebalance_threshold_pct
            if "rebalance_threshold_pct" in schema.model_fields_set
            else self.default_threshold_pct
        )
        return PortfolioConfig(
            portfolio_id=portfolio_id,
            name=schema.name or portfolio_id,
            rebalance_threshold_pct=threshold,
            periodic_sip_budget=schema.periodic_sip_budget,
            lumpsum_budget=schema.lumpsum_budget,
            target_allocations=dict(schema.target_allocations),
        )

    def _persist(self, configs: Mapping[str, PortfolioConfig]) -> None:
        data = {
            "portfolios": {
                pid: {
                    "name": c.name,
                    "rebalance_threshold_pct": _yaml_number(c.rebalance_threshold_pct),
                    "periodic_sip_budget": _yaml_number(c.periodic_sip_budget),
                    "lumpsum_budget": _yaml_number(c.lumpsum_budget),
                    "target_allocations": {
                        code: _yaml_number(pct) for code, pct in c.target_allocations.items()
                    },
                }
                for pid, c in configs.items()
            },
            "funds": self._funds,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        tmp.replace(self.path)
        logger.debug(f"Portfolio config written to {self.path}")

    def funds(self) -> List[FundInfo]:
        return [
            FundInfo(fund_code=f["code"], display_name=f["name"], category=f.get("category", ""))
            for f in self._funds
        ]


class InMemoryFundReference:
    """Fund code → display metadata"""

    def __init__(self, funds: Iterable[FundInfo] = ()):
        self._funds: Dict[str, FundInfo] = {f.fund_code: f for f in funds}

    def lookup(self, fund_code: str) -> Optional[FundInfo]:
        return self._funds.get(fund_code)

    def __len__(self) -> int:
        return len(self._funds)


def _yaml_number(value: Decimal) -> Union[int, float]:
    return int(value) if value == value.to_integral_value() else float(value)
