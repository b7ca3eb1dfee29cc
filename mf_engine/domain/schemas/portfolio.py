from decimal import Decimal
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator


class PortfolioConfigSchema(BaseModel):
    name: str = ""
    rebalance_threshold_pct: Decimal = Decimal("5")
    periodic_sip_budget: Decimal = Field(default=Decimal("0"), ge=0)
    lumpsum_budget: Decimal = Field(default=Decimal("0"), ge=0)
    target_allocations: Dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("target_allocations")
    @classmethod
    def _targets_in_range(cls, value: Dict[str, Decimal]) -> Dict[str, Decimal]:
        for fund_code, pct in value.items():
            if not 0 <= pct <= 100:
                raise ValueError(f"target for {fund_code} must be between 0 and 100")
        return value

    @model_validator(mode="after")
    def _total_within_100(self) -> "PortfolioConfigSchema":
        total = sum(self.target_allocations.values(), Decimal("0"))
        if total > 100:
            raise ValueError(f"target allocations sum to {total}%, above 100%")
        return self


class FundSchema(BaseModel):
    code: str
    name: str
    category: str = ""


class PortfoliosFileSchema(BaseModel):
    portfolios: Dict[str, PortfolioConfigSchema] = Field(default_factory=dict)
    funds: List[FundSchema] = Field(default_factory=list)
