"""
Engine error taxonomy.

Every rejected operation raises one of these with a machine-readable kind and
the numbers a caller needs to render an actionable message.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict


class ErrorKind(str, Enum):
    # ValidationError
    INVALID_AMOUNT = "InvalidAmount"
    INSUFFICIENT_UNITS = "InsufficientUnits"
    NO_SELF_SWITCH = "NoSelfSwitch"
    ALLOCATION_EXCEEDED = "AllocationExceeded"
    # NotFoundError
    PORTFOLIO_NOT_FOUND = "PortfolioNotFound"
    FUND_NOT_FOUND = "FundNotFound"
    TRANSACTION_NOT_FOUND = "TransactionNotFound"
    # ConsistencyError
    FUND_NOT_HELD = "FundNotHeld"
    # DependencyError
    PRICE_UNAVAILABLE = "PriceUnavailable"
    LEDGER_WRITE_FAILED = "LedgerWriteFailed"
    CONFIG_WRITE_FAILED = "ConfigWriteFailed"


class PortfolioEngineError(Exception):
    """Base class for all engine errors."""

    category = "EngineError"

    def __init__(self, kind: ErrorKind, message: str, **details: Any):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "kind": self.kind.value,
            "message": self.message,
            "details": {
                k: (str(v) if isinstance(v, Decimal) else v)
                for k, v in self.details.items()
            },
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}: {self.message})"


class ValidationError(PortfolioEngineError):
    """Malformed or invariant-violating request. Never retried."""

    category = "ValidationError"


class NotFoundError(PortfolioEngineError):
    category = "NotFoundError"


class ConsistencyError(PortfolioEngineError):
    """Request contradicts the current ledger state."""

    category = "ConsistencyError"


class DependencyError(PortfolioEngineError):
    """An injected collaborator (ledger store, config store, price feed) failed."""

    category = "DependencyError"
