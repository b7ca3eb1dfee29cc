"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    IntentAction,
    TransactionSide,
    TransactionSubtype,

    # Entities
    FundInfo,
    Holding,
    PortfolioConfig,
    Transaction,
    TransactionDraft,
    TransactionIntent,
    TransactionPatch,
)
from .plan import (
    ATHSignal,
    ATHTier,
    FundPlan,
    PriceStatus,
    RebalancePlan,
)
from .portfolio import FundPosition, PortfolioSummary

__all__ = [
    # Enums
    "ATHTier",
    "IntentAction",
    "PriceStatus",
    "TransactionSide",
    "TransactionSubtype",

    # Entities
    "ATHSignal",
    "FundInfo",
    "FundPlan",
    "FundPosition",
    "Holding",
    "PortfolioConfig",
    "PortfolioSummary",
    "RebalancePlan",
    "Transaction",
    "TransactionDraft",
    "TransactionIntent",
    "TransactionPatch",
]
