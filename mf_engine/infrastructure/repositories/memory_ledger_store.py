"""
In-memory ledger store.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import List, Optional, Sequence

from mf_engine.domain.models import Transaction


class InMemoryLedgerStore:
    """Thread-safe ledger rows kept in insertion order."""

    def __init__(self):
        self._rows: "OrderedDict[str, Transaction]" = OrderedDict()
        self._lock = threading.RLock()

    def append_batch(self, transactions: Sequence[Transaction]) -> None:
        with self._lock:
            ids = [t.id for t in transactions]
            if len(set(ids)) != len(ids) or any(i in self._rows for i in ids):
                raise KeyError(f"Duplicate transaction id in batch: {ids}")
            for transaction in transactions:
                self._rows[transaction.id] = transaction

    def get(self, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            return self._rows.get(transaction_id)

    def replace_batch(self, transactions: Sequence[Transaction]) -> None:
        with self._lock:
            missing = [t.id for t in transactions if t.id not in self._rows]
            if missing:
                raise KeyError(f"Unknown transactions: {missing}")
            for transaction in transactions:
                self._rows[transaction.id] = transaction

    def delete_batch(self, transaction_ids: Sequence[str]) -> None:
        with self._lock:
            missing = [i for i in transaction_ids if i not in self._rows]
            if missing:
                raise KeyError(f"Unknown transactions: {missing}")
            for transaction_id in transaction_ids:
                del self._rows[transaction_id]

    def list_for(self, portfolio_id: str, fund_code: Optional[str] = None) -> List[Transaction]:
        with self._lock:
            return [
                row for row in self._rows.values()
                if row.portfolio_id == portfolio_id
                and (fund_code is None or row.fund_code == fund_code)
            ]

    def list_group(self, switch_group_id: str) -> List[Transaction]:
        with self._lock:
            return [row for row in self._rows.values() if row.switch_group_id == switch_group_id]

    def count(self) -> int:
        with self._lock:
            return len(self._rows)
