"""
PORTFOLIO ORCHESTRATOR
Single entry point for ledger mutations and derived reads

Mutation flow (serialized per portfolio):
    ValidationGuard → target changes → TransactionLedger → cache invalidation
    (a failed ledger write puts the target changes back)

Read flow (lock-free, pure over a ledger snapshot + caller prices):
    holdings, rebalance plan, portfolio summary, buy signals
"""

import logging
import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence

from mf_engine.core.config import EngineConfig
from mf_engine.domain.errors import (
    DependencyError,
    ErrorKind,
    NotFoundError,
    PortfolioEngineError,
    ValidationError,
)
from mf_engine.domain.models import (
    ATHSignal,
    FundInfo,
    FundPosition,
    Holding,
    IntentAction,
    PortfolioConfig,
    PortfolioSummary,
    RebalancePlan,
    Transaction,
    TransactionDraft,
    TransactionIntent,
    TransactionPatch,
    TransactionSide,
    TransactionSubtype,
)
from mf_engine.domain.services.allocation_engine import AllocationEngine
from mf_engine.domain.services.ath_signal_engine import ATHSignalEngine
from mf_engine.domain.services.holdings_aggregator import HoldingsAggregator
from mf_engine.domain.services.transaction_ledger import (
    LedgerStore,
    TransactionLedger,
    new_switch_group_id,
)
from mf_engine.domain.services.validation_guard import ValidationGuard, current_total_allocation
from mf_engine.utils.decimals import ZERO, q_nav, q_units, to_decimal

logger = logging.getLogger(__name__)


class PortfolioConfigStore(Protocol):
    """Protocol for portfolio configuration access"""

    def get(self, portfolio_id: str) -> Optional[PortfolioConfig]:
        ...

    def update_targets(
        self,
        portfolio_id: str,
        targets: Optional[Mapping[str, Decimal]] = None,
        removed: Iterable[str] = (),
    ) -> PortfolioConfig:
        """Merge and drop target allocations in one write; unchanged on failure"""
        ...

    def put(self, config: PortfolioConfig) -> PortfolioConfig:
        """Overwrite a portfolio's whole configuration"""
        ...


class FundReference(Protocol):
    """Protocol for fund display metadata"""

    def lookup(self, fund_code: str) -> Optional[FundInfo]:
        ...


class Cache(Protocol):
    """Key-value cache holding JSON-compatible values"""

    def get_json(self, key: str) -> Optional[Any]:
        ...

    def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def delete_prefix(self, prefix: str) -> None:
        ...


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of an accepted mutation"""
    transaction_ids: List[str]
    message: str
    pruned_funds: List[str] = field(default_factory=list)

    @property
    def transaction_id(self) -> str:
        return self.transaction_ids[0]


class PortfolioOrchestrator:
    """
    Portfolio Orchestrator
    Drives the ledger engines and exposes the read paths
    """

    def __init__(
        self,
        ledger_store: LedgerStore,
        config_store: PortfolioConfigStore,
        engine_config: Optional[EngineConfig] = None,
        fund_reference: Optional[FundReference] = None,
        cache: Optional[Cache] = None,
    ):
        self.engine_config = engine_config or EngineConfig()
        self.config_store = config_store
        self.fund_reference = fund_reference
        self.cache = cache

        epsilon = self.engine_config.units_epsilon
        self.ledger = TransactionLedger(ledger_store)
        self.aggregator = HoldingsAggregator(self.ledger, units_epsilon=epsilon)
        self.guard = ValidationGuard(units_epsilon=epsilon)
        self.allocation_engine = AllocationEngine(fund_label=self._fund_label)
        self.ath_engine = ATHSignalEngine(self.engine_config.ath_bands)

        self._locks: Dict[str, threading.Lock] = {}
        self._versions: Dict[str, int] = {}
        self._registry_lock = threading.Lock()

    # ==================================================================
    # Concurrency
    # ==================================================================

    @contextmanager
    def portfolio_lock(self, portfolio_id: str) -> Iterator[None]:
        """Mutual exclusion for mutations of one portfolio."""
        with self._registry_lock:
            lock = self._locks.setdefault(portfolio_id, threading.Lock())
        with lock:
            yield

    # ==================================================================
    # Mutations
    # ==================================================================

    def record_transaction(self, intent: TransactionIntent) -> TransactionResult:
        """
        Validate and book a BUY, SELL or SWITCH

        Returns:
            TransactionResult with the new transaction id(s)

        Raises:
            ValidationError / ConsistencyError: request rejected, nothing written
            NotFoundError: unknown portfolio
            DependencyError: ledger or config write failed, nothing written
        """
        portfolio_id = intent.portfolio_id
        with self.portfolio_lock(portfolio_id):
            try:
                config = self._portfolio_config(portfolio_id)
                holdings = self.aggregator.active_holdings(portfolio_id, config)
                self.guard.validate(intent, holdings, config)
                drafts = self._drafts_for(intent, holdings)
                exited = self._exited(self._positions_after(holdings, drafts))
                transaction_ids = self._commit(
                    config,
                    lambda: self.ledger.append_many(drafts),
                    targets=self._new_targets(intent, holdings),
                    exited=exited,
                )
            except PortfolioEngineError as exc:
                logger.warning(
                    f"🚫 {intent.action.value} rejected for {portfolio_id}/{intent.fund_code}: "
                    f"{exc.kind.value} - {exc.message}"
                )
                raise

        message = self._describe(intent, drafts)
        logger.info(f"✅ {message}")
        return TransactionResult(transaction_ids=transaction_ids, message=message, pruned_funds=exited)

    def amend_transaction(self, transaction_id: str, patch: TransactionPatch) -> Transaction:
        """
        Edit date, units, price or notes of a booked row

        Amending the SELL leg of a switch re-derives the destination units;
        a new trade date moves both legs.

        Raises:
            NotFoundError: TransactionNotFound
            ValidationError: bad amounts, or the edit would leave negative units
            DependencyError: ledger or config write failed, nothing written
        """
        self.guard.validate_patch(patch)
        portfolio_id = self.ledger.get(transaction_id).portfolio_id

        with self.portfolio_lock(portfolio_id):
            row = self.ledger.get(transaction_id)
            if patch.is_empty:
                return row

            changed = {r.id: r for r in self._amended_rows(row, patch)}
            touched = {r.fund_code for r in changed.values()}
            rows = [
                changed.get(r.id, r)
                for r in self.ledger.list_for(portfolio_id)
                if r.fund_code in touched
            ]
            positions = self.aggregator.net_units(rows)
            self.guard.validate_positions(positions)

            self._commit(
                self._portfolio_config(portfolio_id),
                lambda: self.ledger.replace(*changed.values()),
                exited=self._exited(positions),
            )
        return changed[transaction_id]

    def retract_transaction(self, transaction_id: str) -> List[str]:
        """
        Remove a booked row; both legs of a switch go together

        Returns:
            Ids of the retracted rows
        """
        portfolio_id = self.ledger.get(transaction_id).portfolio_id

        with self.portfolio_lock(portfolio_id):
            doomed = self.ledger.retraction_set(transaction_id)
            doomed_ids = {r.id for r in doomed}
            touched = {r.fund_code for r in doomed}

            remaining = [
                r for r in self.ledger.list_for(portfolio_id)
                if r.id not in doomed_ids and r.fund_code in touched
            ]
            positions = self.aggregator.net_units(remaining)
            self.guard.validate_positions(positions)

            return self._commit(
                self._portfolio_config(portfolio_id),
                lambda: self.ledger.delete(doomed),
                exited=self._exited({code: positions.get(code, ZERO) for code in touched}),
            )

    def set_target_allocations(
        self,
        portfolio_id: str,
        allocations: Mapping[str, Any],
    ) -> PortfolioConfig:
        """
        Update target % of held funds

        Raises:
            ConsistencyError: FundNotHeld
            ValidationError: InvalidAmount / AllocationExceeded
            DependencyError: ConfigWriteFailed
        """
        updates = {code: to_decimal(pct) for code, pct in allocations.items()}
        with self.portfolio_lock(portfolio_id):
            config = self._portfolio_config(portfolio_id)
            holdings = self.aggregator.active_holdings(portfolio_id, config)
            try:
                self.guard.validate_allocation_update(holdings, config, updates)
            except PortfolioEngineError as exc:
                logger.warning(f"🚫 Allocation update rejected for {portfolio_id}: {exc.message}")
                raise
            try:
                updated = self._write_config(
                    "update",
                    lambda: self.config_store.update_targets(portfolio_id, targets=updates),
                )
            finally:
                self._invalidate(portfolio_id)

        logger.info(
            f"🎯 Allocation saved for {portfolio_id}: {len(updates)} fund(s), "
            f"total {updated.total_target_allocation}%"
        )
        return updated

    # ==================================================================
    # Reads
    # ==================================================================

    def get_holdings(self, portfolio_id: str) -> List[Holding]:
        return list(self._holdings_map(portfolio_id).values())

    def get_holding(self, portfolio_id: str, fund_code: str) -> Holding:
        holding = self._holdings_map(portfolio_id).get(fund_code)
        if holding is None:
            raise NotFoundError(
                ErrorKind.FUND_NOT_FOUND,
                f"Fund {fund_code} is not an active holding of {portfolio_id}",
                portfolio_id=portfolio_id,
                fund_code=fund_code,
            )
        return holding

    def list_transactions(self, portfolio_id: str, fund_code: Optional[str] = None) -> List[Transaction]:
        self._portfolio_config(portfolio_id)
        return self.ledger.list_for(portfolio_id, fund_code)

    def get_total_target_allocation(self, portfolio_id: str) -> Decimal:
        return current_total_allocation(self._portfolio_config(portfolio_id))

    def get_rebalance_plan(self, portfolio_id: str, as_of_prices: Mapping[str, Any]) -> RebalancePlan:
        config = self._portfolio_config(portfolio_id)
        holdings = self._holdings_map(portfolio_id, config)
        return self.allocation_engine.build_plan(config, holdings, self._normalize(as_of_prices))

    def get_portfolio_summary(self, portfolio_id: str, as_of_prices: Mapping[str, Any]) -> PortfolioSummary:
        holdings = self._holdings_map(portfolio_id)
        prices = self._normalize(as_of_prices)
        positions = OrderedDict(
            (code, FundPosition(
                fund_code=code,
                units=h.units,
                avg_cost=h.weighted_avg_cost,
                invested_amount=h.investment,
                current_price=prices.get(code),
                display_name=self._fund_label(code),
            ))
            for code, h in holdings.items()
        )
        return PortfolioSummary(
            portfolio_id=portfolio_id,
            positions=positions,
            realized_gain_loss=self.aggregator.realized_gain_loss(portfolio_id),
        )

    def get_buy_signals(
        self,
        portfolio_ids: Iterable[str],
        as_of_prices: Mapping[str, Any],
        ath_table: Mapping[str, Any],
        min_pct_below_ath: Optional[Decimal] = None,
    ) -> List[ATHSignal]:
        """
        ATH signals for every fund held in the given portfolios,
        deepest discount first
        """
        held_by: Dict[str, List[str]] = OrderedDict()
        for portfolio_id in portfolio_ids:
            for fund_code in self._holdings_map(portfolio_id):
                held_by.setdefault(fund_code, []).append(portfolio_id)

        threshold = (
            self.engine_config.min_pct_below_ath if min_pct_below_ath is None else min_pct_below_ath
        )
        signals = self.ath_engine.scan(
            held_by.keys(),
            self._normalize(as_of_prices),
            self._normalize(ath_table),
            min_pct_below=threshold,
        )
        return [
            ATHSignal(
                fund_code=s.fund_code,
                current_price=s.current_price,
                ath_price=s.ath_price,
                pct_below_ath=s.pct_below_ath,
                tier=s.tier,
                display_name=self._fund_label(s.fund_code),
                portfolio_ids=tuple(held_by[s.fund_code]),
            )
            for s in signals
        ]

    # ==================================================================
    # Internals
    # ==================================================================

    def _portfolio_config(self, portfolio_id: str) -> PortfolioConfig:
        config = self.config_store.get(portfolio_id)
        if config is None:
            raise NotFoundError(
                ErrorKind.PORTFOLIO_NOT_FOUND,
                f"Portfolio not found: {portfolio_id}",
                portfolio_id=portfolio_id,
            )
        return config

    def _holdings_map(
        self,
        portfolio_id: str,
        config: Optional[PortfolioConfig] = None,
    ) -> Dict[str, Holding]:
        config = config or self._portfolio_config(portfolio_id)
        key = self._cache_key(portfolio_id)

        if self.cache is not None:
            cached = self.cache.get_json(key)
            if cached is not None:
                logger.debug(f"Holdings cache hit: {key}")
                return OrderedDict((d["fund_code"], Holding.from_dict(d)) for d in cached)

        holdings = self.aggregator.active_holdings(portfolio_id, config)
        if self.cache is not None:
            self.cache.set_json(
                key,
                [h.to_dict() for h in holdings.values()],
                self.engine_config.cache_ttl_seconds,
            )
        return holdings

    def _drafts_for(
        self,
        intent: TransactionIntent,
        holdings: Mapping[str, Holding],
    ) -> List[TransactionDraft]:
        common = dict(
            portfolio_id=intent.portfolio_id,
            trade_date=intent.trade_date,
            notes=intent.notes,
        )

        if intent.action == IntentAction.BUY:
            return [TransactionDraft(
                fund_code=intent.fund_code,
                side=TransactionSide.BUY,
                subtype=intent.subtype,
                units=intent.units,
                price_per_unit=intent.price,
                **common,
            )]

        sell = TransactionDraft(
            fund_code=intent.fund_code,
            side=TransactionSide.SELL,
            subtype=intent.subtype,
            units=intent.units,
            price_per_unit=intent.price,
            avg_cost_at_sale=holdings[intent.fund_code].weighted_avg_cost,
            **common,
        )
        if intent.action == IntentAction.SELL:
            return [sell]

        # SWITCH: sell proceeds buy the destination at its own price
        destination_units = self._switch_units(
            q_units(intent.units), q_nav(intent.price), q_nav(intent.to_price), intent.to_fund_code
        )

        group_id = new_switch_group_id()
        buy = TransactionDraft(
            fund_code=intent.to_fund_code,
            side=TransactionSide.BUY,
            subtype=TransactionSubtype.SWITCH,
            units=destination_units,
            price_per_unit=intent.to_price,
            switch_group_id=group_id,
            **common,
        )
        return [
            replace(sell, switch_group_id=group_id),
            buy,
        ]

    @staticmethod
    def _switch_units(units: Decimal, price: Decimal, to_price: Decimal, to_fund_code: str) -> Decimal:
        destination_units = q_units(units * price / to_price)
        if destination_units <= ZERO:
            raise ValidationError(
                ErrorKind.INVALID_AMOUNT,
                "Switch amount buys no units of the destination fund",
                fund_code=to_fund_code,
                destination_units=destination_units,
            )
        return destination_units

    def _amended_rows(self, row: Transaction, patch: TransactionPatch) -> List[Transaction]:
        """
        Rows to write back for an amendment.

        A switch leg drags its partner along: the destination BUY always holds
        the source proceeds at the destination NAV, and both legs share a date.
        """
        amended = self.ledger.amended(row, patch)
        partners = [r for r in self.ledger.retraction_set(row.id) if r.id != row.id]
        if not partners:
            return [amended]
        partner = partners[0]

        if amended.is_sell:
            destination_units = self._switch_units(
                amended.units, amended.price_per_unit, partner.price_per_unit, partner.fund_code
            )
            buy = self.ledger.amended(
                partner, TransactionPatch(trade_date=patch.trade_date, units=destination_units)
            )
            return [amended, buy]

        if patch.units is not None:
            raise ValidationError(
                ErrorKind.INVALID_AMOUNT,
                "Units of a switch destination follow the source leg; amend the SELL leg instead",
                transaction_id=row.id,
                switch_group_id=row.switch_group_id,
            )
        destination_units = self._switch_units(
            partner.units, partner.price_per_unit, amended.price_per_unit, amended.fund_code
        )
        buy = self.ledger.amended(amended, TransactionPatch(units=destination_units))
        if patch.trade_date is None:
            return [buy]
        return [self.ledger.amended(partner, TransactionPatch(trade_date=patch.trade_date)), buy]

    @staticmethod
    def _positions_after(
        holdings: Mapping[str, Holding],
        drafts: Iterable[TransactionDraft],
    ) -> Dict[str, Decimal]:
        """Units per touched fund once the drafts are booked"""
        positions: Dict[str, Decimal] = {}
        for draft in drafts:
            held = holdings[draft.fund_code].units if draft.fund_code in holdings else ZERO
            units = q_units(draft.units)
            delta = units if draft.side == TransactionSide.BUY else -units
            positions[draft.fund_code] = positions.get(draft.fund_code, held) + delta
        return positions

    def _exited(self, positions: Mapping[str, Decimal]) -> List[str]:
        return sorted(
            code for code, units in positions.items() if units < self.aggregator.units_epsilon
        )

    @staticmethod
    def _new_targets(intent: TransactionIntent, holdings: Mapping[str, Holding]) -> Dict[str, Decimal]:
        destination = intent.destination_fund
        if (
            intent.action == IntentAction.SELL
            or destination in holdings
            or not intent.target_allocation_pct
        ):
            return {}
        return {destination: intent.target_allocation_pct}

    def _commit(
        self,
        config: PortfolioConfig,
        ledger_write: Callable[[], Any],
        targets: Optional[Mapping[str, Decimal]] = None,
        exited: Sequence[str] = (),
    ) -> Any:
        """
        Apply target changes and a ledger write as one unit

        Targets go first in a single config write; if the ledger write then
        fails they are put back. Cached holdings are dropped either way.

        Args:
            config: Portfolio config before the change
            ledger_write: Append / replace / delete on the ledger
            targets: Target % to set for newly held funds
            exited: Funds left with no units; their targets are dropped

        Returns:
            Whatever ledger_write returns
        """
        portfolio_id = config.portfolio_id
        targets = dict(targets or {})
        removed = [code for code in exited if code in config.target_allocations]
        config_changed = bool(targets or removed)

        try:
            if config_changed:
                self._write_config(
                    "update",
                    lambda: self.config_store.update_targets(
                        portfolio_id, targets=targets, removed=removed
                    ),
                )
            try:
                result = ledger_write()
            except Exception:
                if config_changed:
                    self._restore_config(config)
                raise
        finally:
            self._invalidate(portfolio_id)

        for code, pct in targets.items():
            logger.info(f"🎯 Target for {code} set to {pct}%")
        for code in exited:
            logger.info(f"🧹 {code} has 0 units; removed from {portfolio_id} active holdings")
        return result

    @staticmethod
    def _write_config(label: str, operation: Callable[[], PortfolioConfig]) -> PortfolioConfig:
        try:
            return operation()
        except PortfolioEngineError:
            raise
        except Exception as exc:
            logger.error(f"❌ Portfolio config {label} failed: {exc}")
            raise DependencyError(
                ErrorKind.CONFIG_WRITE_FAILED,
                f"Portfolio config {label} failed: {exc}",
                operation=label,
            ) from exc

    def _restore_config(self, config: PortfolioConfig) -> None:
        try:
            self.config_store.put(config)
            logger.info(f"↩️ Targets of {config.portfolio_id} restored after failed ledger write")
        except Exception as exc:
            logger.error(f"❌ Could not restore targets of {config.portfolio_id}: {exc}")

    def _invalidate(self, portfolio_id: str) -> None:
        with self._registry_lock:
            self._versions[portfolio_id] = self._versions.get(portfolio_id, 0) + 1
        if self.cache is not None:
            self.cache.delete_prefix(f"holdings:{portfolio_id}:")

    def _cache_key(self, portfolio_id: str) -> str:
        with self._registry_lock:
            version = self._versions.get(portfolio_id, 0)
        return f"holdings:{portfolio_id}:v{version}"

    def _fund_label(self, fund_code: str) -> Optional[str]:
        if self.fund_reference is None:
            return None
        info = self.fund_reference.lookup(fund_code)
        return info.display_name if info else None

    @staticmethod
    def _normalize(values: Mapping[str, Any]) -> Dict[str, Decimal]:
        return {code: to_decimal(v) for code, v in values.items() if v is not None}

    def _describe(self, intent: TransactionIntent, drafts: List[TransactionDraft]) -> str:
        name = self._fund_label(intent.fund_code) or intent.fund_code
        if intent.action == IntentAction.SWITCH:
            to_name = self._fund_label(intent.to_fund_code) or intent.to_fund_code
            return (
                f"Switch recorded: {intent.units:.4f} units of {name} switched to "
                f"{drafts[1].units:.4f} units of {to_name} in {intent.portfolio_id}"
            )
        if intent.action == IntentAction.SELL:
            return (
                f"Redemption recorded: {intent.units:.4f} units of {name} redeemed from "
                f"{intent.portfolio_id} for ₹{intent.units * intent.price:,.2f}"
            )
        verb = "Existing holdings added" if intent.subtype == TransactionSubtype.INITIAL else "Investment recorded"
        return f"{verb}: {intent.units:.4f} units of {name} added to {intent.portfolio_id}"
