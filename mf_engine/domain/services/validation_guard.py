"""
VALIDATION GUARD
Reject malformed or invariant-violating requests before anything is written

RESPONSIBILITIES:
- Positive units and prices
- Units available for SELL / SWITCH-from
- No switching a fund into itself
- Portfolio target allocations never above 100%

RULES:
❌ No ledger writes
❌ No price data
✅ Pure function of request + holdings snapshot + portfolio config
✅ Structured errors carrying the exact numbers
"""

import logging
from decimal import Decimal
from typing import Callable, Mapping, Optional

from mf_engine.domain.errors import (
    ConsistencyError,
    ErrorKind,
    PortfolioEngineError,
    ValidationError,
)
from mf_engine.domain.models import (
    Holding,
    IntentAction,
    PortfolioConfig,
    TransactionIntent,
    TransactionPatch,
)
from mf_engine.utils.decimals import HUNDRED, ZERO, q_nav, q_units

logger = logging.getLogger(__name__)


def current_total_allocation(config: PortfolioConfig) -> Decimal:
    """
    Sum of configured target %. Targets of exited funds are dropped on
    pruning, so this covers active holdings plus any planned funds.
    """
    return config.total_target_allocation


class ValidationGuard:
    """
    Validation Guard
    Every mutating operation passes through here first
    """

    def __init__(self, units_epsilon: Decimal = Decimal("0.0001")):
        self.units_epsilon = units_epsilon

    def validate(
        self,
        intent: TransactionIntent,
        holdings: Mapping[str, Holding],
        config: PortfolioConfig,
    ) -> None:
        """
        Validate a transaction intent against the current state

        Args:
            intent: Requested BUY / SELL / SWITCH
            holdings: Active holdings of the portfolio keyed by fund code
            config: Portfolio configuration (target allocations)

        Raises:
            ValidationError: InvalidAmount, InsufficientUnits, NoSelfSwitch,
                AllocationExceeded
            ConsistencyError: FundNotHeld
        """
        if intent.action == IntentAction.SWITCH and intent.fund_code == intent.to_fund_code:
            raise ValidationError(
                ErrorKind.NO_SELF_SWITCH,
                "Cannot switch to the same fund",
                fund_code=intent.fund_code,
            )

        self._check_amounts(intent)

        if intent.action in (IntentAction.SELL, IntentAction.SWITCH):
            self._check_units_available(
                holdings.get(intent.fund_code),
                intent.fund_code,
                intent.units,
            )

        self._check_target_allocation(intent, holdings, config)

    def check(
        self,
        intent: TransactionIntent,
        holdings: Mapping[str, Holding],
        config: PortfolioConfig,
    ) -> Optional[PortfolioEngineError]:
        """Non-raising form: None when the intent is acceptable."""
        try:
            self.validate(intent, holdings, config)
        except (ValidationError, ConsistencyError) as exc:
            return exc
        return None

    def validate_patch(self, patch: TransactionPatch) -> None:
        if patch.units is not None:
            self._require_positive(patch.units, "Units", q_units)
        if patch.price is not None:
            self._require_positive(patch.price, "Price", q_nav)

    def validate_allocation_update(
        self,
        holdings: Mapping[str, Holding],
        config: PortfolioConfig,
        updates: Mapping[str, Decimal],
    ) -> None:
        """
        Validate a batch of target-allocation changes for held funds

        Raises:
            ConsistencyError: FundNotHeld for a fund without an active holding
            ValidationError: InvalidAmount / AllocationExceeded
        """
        for fund_code, pct in updates.items():
            if fund_code not in holdings:
                raise ConsistencyError(
                    ErrorKind.FUND_NOT_HELD,
                    f"Fund {fund_code} is not held in portfolio {config.portfolio_id}",
                    portfolio_id=config.portfolio_id,
                    fund_code=fund_code,
                )
            self._require_percentage(pct)

        current_total = current_total_allocation(config)
        delta = sum(
            (pct - config.target_for(code) for code, pct in updates.items()),
            ZERO,
        )
        self._require_within_budget(current_total, delta, config.portfolio_id)

    def validate_positions(self, positions: Mapping[str, Decimal]) -> None:
        """
        Ensure no fund would end up with negative units, e.g. after amending
        or retracting a BUY that later sells depend on.
        """
        for fund_code, units in positions.items():
            if units < -self.units_epsilon:
                raise ValidationError(
                    ErrorKind.INSUFFICIENT_UNITS,
                    f"Change would leave {fund_code} with {units} units",
                    fund_code=fund_code,
                    resulting_units=units,
                )

    # ------------------------------------------------------------------

    def _check_amounts(self, intent: TransactionIntent) -> None:
        self._require_positive(intent.units, "Units", q_units)
        self._require_positive(intent.price, "Price per unit", q_nav)
        if intent.action == IntentAction.SWITCH:
            self._require_positive(intent.to_price, "Destination price", q_nav)
        if intent.target_allocation_pct is not None:
            self._require_percentage(intent.target_allocation_pct)

    def _check_units_available(
        self,
        holding: Optional[Holding],
        fund_code: str,
        requested: Decimal,
    ) -> None:
        if holding is None:
            raise ConsistencyError(
                ErrorKind.FUND_NOT_HELD,
                f"Fund {fund_code} has no holding in this portfolio",
                fund_code=fund_code,
            )
        if requested > holding.units:
            raise ValidationError(
                ErrorKind.INSUFFICIENT_UNITS,
                f"Cannot sell {requested} units of {fund_code}; only {holding.units} held",
                fund_code=fund_code,
                held_units=holding.units,
                requested_units=requested,
            )

    def _check_target_allocation(
        self,
        intent: TransactionIntent,
        holdings: Mapping[str, Holding],
        config: PortfolioConfig,
    ) -> None:
        requested = intent.target_allocation_pct
        if requested is None or requested == ZERO:
            return

        destination = intent.destination_fund
        if destination in holdings:
            # Existing funds keep their target; use set_target_allocations to change it
            logger.debug(
                f"Ignoring target {requested}% for already-held fund {destination}"
            )
            return

        current_total = current_total_allocation(config)
        delta = requested - config.target_for(destination)
        self._require_within_budget(current_total, delta, config.portfolio_id)

    @staticmethod
    def _require_within_budget(current_total: Decimal, requested: Decimal, portfolio_id: str) -> None:
        new_total = current_total + requested
        if new_total > HUNDRED:
            raise ValidationError(
                ErrorKind.ALLOCATION_EXCEEDED,
                (
                    f"Total allocation would exceed 100%! "
                    f"Current total: {current_total:.2f}%, adding: {requested:.2f}%, "
                    f"new total: {new_total:.2f}%"
                ),
                portfolio_id=portfolio_id,
                current_total=current_total,
                requested=requested,
                new_total=new_total,
            )

    @staticmethod
    def _require_positive(
        value: Optional[Decimal],
        label: str,
        quantize: Callable[[Decimal], Decimal],
    ) -> None:
        """Positive both as given and once rounded to the stored precision"""
        if value is None or value <= ZERO or quantize(value) <= ZERO:
            raise ValidationError(
                ErrorKind.INVALID_AMOUNT,
                f"{label} must be greater than 0",
                field=label,
                value=value,
            )

    @staticmethod
    def _require_percentage(value: Decimal) -> None:
        if not ZERO <= value <= HUNDRED:
            raise ValidationError(
                ErrorKind.INVALID_AMOUNT,
                "Target allocation must be between 0 and 100",
                field="target_allocation_pct",
                value=value,
            )
