"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from mf_engine.utils.decimals import HUNDRED, ZERO, q_money, to_decimal


class TransactionSide(str, Enum):
    """Ledger row direction"""
    BUY = "BUY"
    SELL = "SELL"


class TransactionSubtype(str, Enum):
    """Why the row was booked"""
    INITIAL = "INITIAL"
    SIP = "SIP"
    LUMPSUM = "LUMPSUM"
    WITHDRAWAL = "WITHDRAWAL"
    SWITCH = "SWITCH"


class IntentAction(str, Enum):
    """What the caller asked for"""
    BUY = "BUY"
    SELL = "SELL"
    SWITCH = "SWITCH"


BUY_SUBTYPES = frozenset({
    TransactionSubtype.INITIAL,
    TransactionSubtype.SIP,
    TransactionSubtype.LUMPSUM,
    TransactionSubtype.SWITCH,
})
SELL_SUBTYPES = frozenset({
    TransactionSubtype.WITHDRAWAL,
    TransactionSubtype.SWITCH,
})


@dataclass(frozen=True)
class Transaction:
    """Ledger row - Immutable audit record"""
    id: str
    portfolio_id: str
    fund_code: str
    trade_date: date
    side: TransactionSide
    subtype: TransactionSubtype
    units: Decimal
    price_per_unit: Decimal
    total_amount: Decimal
    realized_gain_loss: Decimal
    created_at: datetime
    notes: str = ""
    switch_group_id: Optional[str] = None

    def __post_init__(self):
        if self.units <= ZERO:
            raise ValueError("Transaction units must be positive")
        if self.price_per_unit <= ZERO:
            raise ValueError("Transaction price must be positive")
        allowed = BUY_SUBTYPES if self.side == TransactionSide.BUY else SELL_SUBTYPES
        if self.subtype not in allowed:
            raise ValueError(f"{self.subtype.value} is not a valid {self.side.value} subtype")
        if self.side == TransactionSide.BUY and self.realized_gain_loss != ZERO:
            raise ValueError("BUY rows carry no realized gain/loss")

    @property
    def is_buy(self) -> bool:
        return self.side == TransactionSide.BUY

    @property
    def is_sell(self) -> bool:
        return self.side == TransactionSide.SELL


@dataclass(frozen=True)
class TransactionDraft:
    """
    A row about to be appended. The ledger assigns id, total and gain/loss.

    `avg_cost_at_sale` is the pre-sale weighted average cost of the holding,
    required for SELL rows.
    """
    portfolio_id: str
    fund_code: str
    trade_date: date
    side: TransactionSide
    subtype: TransactionSubtype
    units: Decimal
    price_per_unit: Decimal
    notes: str = ""
    avg_cost_at_sale: Optional[Decimal] = None
    switch_group_id: Optional[str] = None


@dataclass(frozen=True)
class TransactionIntent:
    """
    Caller request to book a BUY, SELL or SWITCH.

    Amounts are not checked here; the validation guard reports bad amounts as
    structured errors.
    """
    action: IntentAction
    portfolio_id: str
    fund_code: str
    trade_date: date
    units: Decimal
    price: Decimal
    subtype: TransactionSubtype
    notes: str = ""
    target_allocation_pct: Optional[Decimal] = None
    to_fund_code: Optional[str] = None
    to_price: Optional[Decimal] = None

    def __post_init__(self):
        if not self.portfolio_id:
            raise ValueError("Portfolio id cannot be empty")
        if not self.fund_code:
            raise ValueError("Fund code cannot be empty")
        if self.action == IntentAction.SWITCH:
            if not self.to_fund_code or self.to_price is None:
                raise ValueError("SWITCH needs a destination fund and price")
            if self.subtype != TransactionSubtype.SWITCH:
                raise ValueError("SWITCH intents use the SWITCH subtype")
        elif self.action == IntentAction.BUY:
            if self.subtype not in BUY_SUBTYPES - {TransactionSubtype.SWITCH}:
                raise ValueError(f"{self.subtype.value} is not a BUY subtype")
        elif self.subtype != TransactionSubtype.WITHDRAWAL:
            raise ValueError("SELL intents use the WITHDRAWAL subtype")

    @property
    def destination_fund(self) -> str:
        """Fund that receives units (and possibly a new target allocation)."""
        if self.action == IntentAction.SWITCH:
            return self.to_fund_code
        return self.fund_code

    @classmethod
    def buy(
        cls,
        portfolio_id: str,
        fund_code: str,
        trade_date: date,
        units: Any,
        price: Any,
        subtype: TransactionSubtype = TransactionSubtype.LUMPSUM,
        target_allocation_pct: Any = None,
        notes: str = "",
    ) -> "TransactionIntent":
        return cls(
            action=IntentAction.BUY,
            portfolio_id=portfolio_id,
            fund_code=fund_code,
            trade_date=trade_date,
            units=to_decimal(units),
            price=to_decimal(price),
            subtype=subtype,
            notes=notes,
            target_allocation_pct=None if target_allocation_pct is None else to_decimal(target_allocation_pct),
        )

    @classmethod
    def sell(
        cls,
        portfolio_id: str,
        fund_code: str,
        trade_date: date,
        units: Any,
        price: Any,
        notes: str = "",
    ) -> "TransactionIntent":
        return cls(
            action=IntentAction.SELL,
            portfolio_id=portfolio_id,
            fund_code=fund_code,
            trade_date=trade_date,
            units=to_decimal(units),
            price=to_decimal(price),
            subtype=TransactionSubtype.WITHDRAWAL,
            notes=notes,
        )

    @classmethod
    def switch(
        cls,
        portfolio_id: str,
        from_fund_code: str,
        to_fund_code: str,
        trade_date: date,
        units: Any,
        from_price: Any,
        to_price: Any,
        target_allocation_pct: Any = None,
        notes: str = "",
    ) -> "TransactionIntent":
        return cls(
            action=IntentAction.SWITCH,
            portfolio_id=portfolio_id,
            fund_code=from_fund_code,
            trade_date=trade_date,
            units=to_decimal(units),
            price=to_decimal(from_price),
            subtype=TransactionSubtype.SWITCH,
            notes=notes,
            target_allocation_pct=None if target_allocation_pct is None else to_decimal(target_allocation_pct),
            to_fund_code=to_fund_code,
            to_price=to_decimal(to_price),
        )


@dataclass(frozen=True)
class TransactionPatch:
    """Editable fields of a booked transaction. None = keep."""
    trade_date: Optional[date] = None
    units: Optional[Decimal] = None
    price: Optional[Decimal] = None
    notes: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.trade_date, self.units, self.price, self.notes))


@dataclass(frozen=True)
class Holding:
    """Current position derived from the ledger - Immutable"""
    portfolio_id: str
    fund_code: str
    units: Decimal
    weighted_avg_cost: Decimal
    target_allocation_pct: Decimal = ZERO
    realized_gain_loss: Decimal = ZERO

    @property
    def investment(self) -> Decimal:
        return q_money(self.units * self.weighted_avg_cost)

    def to_dict(self) -> Dict[str, str]:
        return {
            "portfolio_id": self.portfolio_id,
            "fund_code": self.fund_code,
            "units": str(self.units),
            "weighted_avg_cost": str(self.weighted_avg_cost),
            "target_allocation_pct": str(self.target_allocation_pct),
            "realized_gain_loss": str(self.realized_gain_loss),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "Holding":
        return cls(
            portfolio_id=data["portfolio_id"],
            fund_code=data["fund_code"],
            units=Decimal(data["units"]),
            weighted_avg_cost=Decimal(data["weighted_avg_cost"]),
            target_allocation_pct=Decimal(data["target_allocation_pct"]),
            realized_gain_loss=Decimal(data["realized_gain_loss"]),
        )


@dataclass(frozen=True)
class PortfolioConfig:
    """Per-portfolio rebalancing configuration - Immutable"""
    portfolio_id: str
    name: str = ""
    rebalance_threshold_pct: Decimal = Decimal("5")
    periodic_sip_budget: Decimal = ZERO
    lumpsum_budget: Decimal = ZERO
    target_allocations: Dict[str, Decimal] = field(default_factory=dict)

    def __post_init__(self):
        if not self.portfolio_id:
            raise ValueError("Portfolio id cannot be empty")
        if self.rebalance_threshold_pct < ZERO:
            raise ValueError("Rebalance threshold cannot be negative")
        if self.periodic_sip_budget < ZERO or self.lumpsum_budget < ZERO:
            raise ValueError("Budgets cannot be negative")
        for fund_code, pct in self.target_allocations.items():
            if not ZERO <= pct <= HUNDRED:
                raise ValueError(f"Target allocation for {fund_code} must be between 0 and 100")
        if self.total_target_allocation > HUNDRED:
            raise ValueError(
                f"Target allocations must not exceed 100, got {self.total_target_allocation}"
            )

    @property
    def total_target_allocation(self) -> Decimal:
        return sum(self.target_allocations.values(), ZERO)

    def target_for(self, fund_code: str) -> Decimal:
        return self.target_allocations.get(fund_code, ZERO)


@dataclass(frozen=True)
class FundInfo:
    """Display metadata for a fund (labels only)"""
    fund_code: str
    display_name: str
    category: str = ""
