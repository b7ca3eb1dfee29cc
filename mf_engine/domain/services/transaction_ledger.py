"""
TRANSACTION LEDGER
Append-only record of BUY / SELL rows per (portfolio, fund)

RESPONSIBILITIES:
- Assign transaction ids and derive total amount
- Book realized gain/loss on SELL rows at append time
- Append multi-row operations (SWITCH) all-or-nothing
- Explicit amend / retract, nothing else mutates a row

RULES:
❌ No holdings math beyond the single sale being booked
❌ No validation of business invariants (see ValidationGuard)
✅ Storage is an injected LedgerStore
✅ Storage failures surface as DependencyError with nothing committed
"""

import logging
import uuid
from dataclasses import replace
from decimal import Decimal
from typing import Callable, List, Optional, Protocol, Sequence

from mf_engine.domain.errors import (
    DependencyError,
    ErrorKind,
    NotFoundError,
    PortfolioEngineError,
)
from mf_engine.domain.models import (
    Transaction,
    TransactionDraft,
    TransactionPatch,
    TransactionSide,
)
from mf_engine.utils.decimals import ZERO, q_money, q_nav, q_units
from mf_engine.utils.time import now_ist_naive

logger = logging.getLogger(__name__)


class LedgerStore(Protocol):
    """Durable storage of ledger rows"""

    def append_batch(self, transactions: Sequence[Transaction]) -> None:
        """Persist all rows or none of them"""
        ...

    def get(self, transaction_id: str) -> Optional[Transaction]:
        ...

    def replace_batch(self, transactions: Sequence[Transaction]) -> None:
        """Overwrite rows with the same ids, all or none"""
        ...

    def delete_batch(self, transaction_ids: Sequence[str]) -> None:
        """Delete all rows or none of them"""
        ...

    def list_for(self, portfolio_id: str, fund_code: Optional[str] = None) -> List[Transaction]:
        """Rows in insertion order"""
        ...

    def list_group(self, switch_group_id: str) -> List[Transaction]:
        ...


def new_transaction_id() -> str:
    return f"TXN-{uuid.uuid4().hex[:12].upper()}"


def new_switch_group_id() -> str:
    return f"SWG-{uuid.uuid4().hex[:12].upper()}"


def realized_gain(price: Decimal, avg_cost: Decimal, units: Decimal) -> Decimal:
    """(sell price - average buy price) x units sold"""
    return q_money((price - avg_cost) * units)


class TransactionLedger:
    """
    Transaction Ledger
    The only writer of ledger rows
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def build(self, draft: TransactionDraft) -> Transaction:
        """
        Turn a draft into a ledger row

        Raises:
            ValueError: SELL draft without the pre-sale average cost
        """
        units = q_units(draft.units)
        price = q_nav(draft.price_per_unit)
        gain = ZERO
        if draft.side == TransactionSide.SELL:
            if draft.avg_cost_at_sale is None:
                raise ValueError("SELL rows need the pre-sale average cost")
            gain = realized_gain(price, draft.avg_cost_at_sale, units)

        return Transaction(
            id=new_transaction_id(),
            portfolio_id=draft.portfolio_id,
            fund_code=draft.fund_code,
            trade_date=draft.trade_date,
            side=draft.side,
            subtype=draft.subtype,
            units=units,
            price_per_unit=price,
            total_amount=q_money(units * price),
            realized_gain_loss=gain,
            created_at=now_ist_naive(),
            notes=draft.notes,
            switch_group_id=draft.switch_group_id,
        )

    def append(self, draft: TransactionDraft) -> str:
        return self.append_many([draft])[0]

    def append_many(self, drafts: Sequence[TransactionDraft]) -> List[str]:
        """
        Append rows as one atomic unit

        Returns:
            Transaction ids in draft order
        """
        rows = [self.build(d) for d in drafts]
        self._write(lambda: self.store.append_batch(rows), "append")

        for row in rows:
            logger.info(
                f"📒 {row.id} {row.side.value}-{row.subtype.value} {row.fund_code} "
                f"{row.units} @ ₹{row.price_per_unit} = ₹{row.total_amount}"
                + (f" | Gain/Loss: ₹{row.realized_gain_loss}" if row.is_sell else "")
            )
        return [row.id for row in rows]

    # ------------------------------------------------------------------
    # Amend / retract
    # ------------------------------------------------------------------

    def get(self, transaction_id: str) -> Transaction:
        row = self.store.get(transaction_id)
        if row is None:
            raise NotFoundError(
                ErrorKind.TRANSACTION_NOT_FOUND,
                f"Transaction not found: {transaction_id}",
                transaction_id=transaction_id,
            )
        return row

    @staticmethod
    def amended(row: Transaction, patch: TransactionPatch) -> Transaction:
        """
        Apply a patch without touching storage.

        SELL gains are re-measured against the average cost implied by the
        originally booked gain, not against today's holding.
        """
        units = q_units(patch.units) if patch.units is not None else row.units
        price = q_nav(patch.price) if patch.price is not None else row.price_per_unit

        gain = row.realized_gain_loss
        if row.is_sell and row.units > ZERO and row.price_per_unit > ZERO:
            avg_buy_price = row.price_per_unit - row.realized_gain_loss / row.units
            gain = realized_gain(price, avg_buy_price, units)

        return replace(
            row,
            trade_date=patch.trade_date if patch.trade_date is not None else row.trade_date,
            units=units,
            price_per_unit=price,
            total_amount=q_money(units * price),
            realized_gain_loss=gain,
            notes=patch.notes if patch.notes is not None else row.notes,
        )

    def replace(self, *rows: Transaction) -> List[Transaction]:
        """Write amended rows back as one atomic unit"""
        self._write(lambda: self.store.replace_batch(rows), "amend")
        for row in rows:
            logger.info(f"✏️ Amended {row.id}: {row.units} @ ₹{row.price_per_unit} = ₹{row.total_amount}")
        return list(rows)

    def amend(self, transaction_id: str, patch: TransactionPatch) -> Transaction:
        return self.replace(self.amended(self.get(transaction_id), patch))[0]

    def retraction_set(self, transaction_id: str) -> List[Transaction]:
        """Rows removed together with this one (both legs of a switch)."""
        row = self.get(transaction_id)
        if row.switch_group_id:
            return self.store.list_group(row.switch_group_id) or [row]
        return [row]

    def delete(self, rows: Sequence[Transaction]) -> List[str]:
        ids = [row.id for row in rows]
        self._write(lambda: self.store.delete_batch(ids), "retract")
        logger.info(f"🗑️ Retracted {', '.join(ids)}")
        return ids

    def retract(self, transaction_id: str) -> List[str]:
        return self.delete(self.retraction_set(transaction_id))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_for(self, portfolio_id: str, fund_code: Optional[str] = None) -> List[Transaction]:
        return list(self.store.list_for(portfolio_id, fund_code))

    # ------------------------------------------------------------------

    @staticmethod
    def _write(operation: Callable[[], None], label: str) -> None:
        try:
            operation()
        except PortfolioEngineError:
            raise
        except Exception as exc:
            logger.error(f"❌ Ledger {label} failed: {exc}")
            raise DependencyError(
                ErrorKind.LEDGER_WRITE_FAILED,
                f"Ledger {label} failed: {exc}",
                operation=label,
            ) from exc
