"""
Record transformation and relationship extraction.
"""

from .relationships import (
    APPLY_KEY,
    LINE_ITEM_KEY,
    days_between,
    dedupe_rows,
    extract_apply_relationships,
    extract_line_items,
)
from .transformers import (
    TRANSFORMERS,
    transform,
    transform_credit_memo,
    transform_invoice,
    transform_opportunity,
    transform_order,
    transform_payment,
    transform_quote,
)

__all__ = [
    "transform",
    "TRANSFORMERS",
    "transform_invoice",
    "transform_payment",
    "transform_credit_memo",
    "transform_opportunity",
    "transform_order",
    "transform_quote",
    "extract_apply_relationships",
    "extract_line_items",
    "dedupe_rows",
    "days_between",
    "APPLY_KEY",
    "LINE_ITEM_KEY",
]
