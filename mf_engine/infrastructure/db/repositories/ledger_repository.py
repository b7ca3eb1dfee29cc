"""
Ledger Transaction Repository
SQL-backed LedgerStore; every call runs in its own DB transaction
"""

from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from mf_engine.domain.models import Transaction
from mf_engine.infrastructure.db.models import LedgerTransactionModel


class SqlLedgerStore:
    """Repository for ledger rows"""

    def __init__(self, session_factory: sessionmaker):
        """Initialize with a session factory"""
        self.session_factory = session_factory

    def append_batch(self, transactions: Sequence[Transaction]) -> None:
        """
        Insert rows in one commit

        Args:
            transactions: Rows in booking order (a SWITCH has two)
        """
        with self.session_factory.begin() as session:
            for transaction in transactions:
                session.add(self._to_model(transaction))

    def get(self, transaction_id: str) -> Optional[Transaction]:
        with self.session_factory() as session:
            model = session.execute(
                select(LedgerTransactionModel)
                .where(LedgerTransactionModel.transaction_id == transaction_id)
            ).scalar_one_or_none()
            return self._to_domain(model) if model else None

    def replace_batch(self, transactions: Sequence[Transaction]) -> None:
        """
        Overwrite the editable columns of existing rows in one commit

        Args:
            transactions: Amended rows (both legs when a switch is edited)
        """
        by_id = {t.id: t for t in transactions}
        with self.session_factory.begin() as session:
            models = session.execute(
                select(LedgerTransactionModel)
                .where(LedgerTransactionModel.transaction_id.in_(list(by_id)))
            ).scalars().all()
            if len(models) != len(by_id):
                # Raising inside begin() rolls the batch back
                raise KeyError(f"Unknown transactions among {list(by_id)}")

            for model in models:
                transaction = by_id[model.transaction_id]
                model.trade_date = transaction.trade_date
                model.units = transaction.units
                model.price_per_unit = transaction.price_per_unit
                model.total_amount = transaction.total_amount
                model.realized_gain_loss = transaction.realized_gain_loss
                model.notes = transaction.notes

    def delete_batch(self, transaction_ids: Sequence[str]) -> None:
        with self.session_factory.begin() as session:
            result = session.execute(
                delete(LedgerTransactionModel)
                .where(LedgerTransactionModel.transaction_id.in_(list(transaction_ids)))
            )
            if result.rowcount != len(transaction_ids):
                # Raising inside begin() rolls the delete back
                raise KeyError(f"Unknown transactions among {list(transaction_ids)}")

    def list_for(self, portfolio_id: str, fund_code: Optional[str] = None) -> List[Transaction]:
        query = (
            select(LedgerTransactionModel)
            .where(LedgerTransactionModel.portfolio_id == portfolio_id)
            .order_by(LedgerTransactionModel.seq)
        )
        if fund_code is not None:
            query = query.where(LedgerTransactionModel.fund_code == fund_code)

        with self.session_factory() as session:
            return [self._to_domain(m) for m in session.execute(query).scalars().all()]

    def list_group(self, switch_group_id: str) -> List[Transaction]:
        with self.session_factory() as session:
            models = session.execute(
                select(LedgerTransactionModel)
                .where(LedgerTransactionModel.switch_group_id == switch_group_id)
                .order_by(LedgerTransactionModel.seq)
            ).scalars().all()
            return [self._to_domain(m) for m in models]

    @staticmethod
    def _to_model(transaction: Transaction) -> LedgerTransactionModel:
        return LedgerTransactionModel(
            transaction_id=transaction.id,
            portfolio_id=transaction.portfolio_id,
            fund_code=transaction.fund_code,
            trade_date=transaction.trade_date,
            side=transaction.side,
            subtype=transaction.subtype,
            units=transaction.units,
            price_per_unit=transaction.price_per_unit,
            total_amount=transaction.total_amount,
            realized_gain_loss=transaction.realized_gain_loss,
            switch_group_id=transaction.switch_group_id,
            notes=transaction.notes,
            created_at=transaction.created_at,
        )

    @staticmethod
    def _to_domain(model: LedgerTransactionModel) -> Transaction:
        """Convert ORM model to domain object"""
        return Transaction(
            id=model.transaction_id,
            portfolio_id=model.portfolio_id,
            fund_code=model.fund_code,
            trade_date=model.trade_date,
            side=model.side,
            subtype=model.subtype,
            units=Decimal(str(model.units)),
            price_per_unit=Decimal(str(model.price_per_unit)),
            total_amount=Decimal(str(model.total_amount)),
            realized_gain_loss=Decimal(str(model.realized_gain_loss)),
            created_at=model.created_at,
            notes=model.notes or "",
            switch_group_id=model.switch_group_id,
        )
