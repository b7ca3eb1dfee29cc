"""
Database Models (SQLAlchemy ORM)
Ledger rows; changed only by explicit amend / retract
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime, Text, Enum as SQLEnum, Index
)

from mf_engine.domain.models import TransactionSide, TransactionSubtype
from mf_engine.infrastructure.db.database import Base
from mf_engine.utils.time import now_ist_naive


class LedgerTransactionModel(Base):
    """One BUY or SELL row of a portfolio's ledger"""
    __tablename__ = "ledger_transaction"

    # Surrogate key keeps insertion order
    seq = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(32), nullable=False, unique=True, index=True)

    portfolio_id = Column(String(64), nullable=False)
    fund_code = Column(String(64), nullable=False)
    trade_date = Column(Date, nullable=False)

    side = Column(SQLEnum(TransactionSide), nullable=False)
    subtype = Column(SQLEnum(TransactionSubtype), nullable=False)

    units = Column(Numeric(18, 4), nullable=False)
    price_per_unit = Column(Numeric(14, 4), nullable=False)
    total_amount = Column(Numeric(16, 2), nullable=False)
    realized_gain_loss = Column(Numeric(16, 2), nullable=False, default=0)

    switch_group_id = Column(String(32), nullable=True, index=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=now_ist_naive)

    __table_args__ = (
        Index("ix_ledger_portfolio_fund", "portfolio_id", "fund_code"),
    )
