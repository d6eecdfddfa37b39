"""
Core data models for the finsync pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .canonical import (
    CanonicalRow,
    CreditMemo,
    ErpTransaction,
    Invoice,
    Opportunity,
    Order,
    Payment,
    Quote,
)
from .relationships import ApplyRelationship, InvoiceLineItem
from .run_result import RunError, RunResult, RunStatus
from .sync_request import SyncRequest

__all__ = [
    "CanonicalRow",
    "ErpTransaction",
    "Invoice",
    "Payment",
    "CreditMemo",
    "Opportunity",
    "Order",
    "Quote",
    "ApplyRelationship",
    "InvoiceLineItem",
    "SyncRequest",
    "RunResult",
    "RunError",
    "RunStatus",
]
