"""
Per-entity sync strategies.

A strategy bundles everything that differs between entity types: which
upstream system serves it, where its rows go, how a raw record is
transformed and which related rows it yields. The orchestrator itself is
entity-agnostic.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel

from finsync.core.transform import (
    APPLY_KEY,
    LINE_ITEM_KEY,
    extract_apply_relationships,
    extract_line_items,
    transform_credit_memo,
    transform_invoice,
    transform_opportunity,
    transform_order,
    transform_payment,
    transform_quote,
)
from finsync.core.transform.transformers import Transformer

CANONICAL_KEY = ("upstream_id", "tenant_id")

RelatedExtractor = Callable[[dict[str, Any], str], list[BaseModel]]


@dataclass(frozen=True)
class EntityStrategy:
    """
    How one entity type is synced.

    Attributes:
        entity: Entity name used on the command line and in results
        system: Upstream system serving the entity ("erp" or "crm")
        table: Target table of canonical rows
        conflict_key: Unique key of the canonical table
        transform: Raw record -> canonical row
        extract_related: Raw record -> related rows, if the entity has any
        related_table: Target table of related rows
        related_conflict_key: Unique key of the related table
        related_label: Name of related rows in results and snapshot labels
        related_parent_key: Columns of a related row holding its parent's
            conflict-key values, in conflict_key order
    """

    entity: str
    system: Literal["erp", "crm"]
    table: str
    transform: Transformer
    conflict_key: tuple[str, ...] = CANONICAL_KEY
    extract_related: RelatedExtractor | None = None
    related_table: str | None = None
    related_conflict_key: tuple[str, ...] | None = None
    related_label: str | None = None
    related_parent_key: tuple[str, ...] | None = None

    def __post_init__(self):
        related = (
            self.extract_related,
            self.related_table,
            self.related_conflict_key,
            self.related_label,
            self.related_parent_key,
        )
        if any(part is not None for part in related) and not all(part is not None for part in related):
            raise ValueError(
                f"Strategy {self.entity!r}: extract_related, related_table, "
                "related_conflict_key, related_label and related_parent_key must be set together"
            )

    @property
    def has_related(self) -> bool:
        return self.extract_related is not None


STRATEGIES: dict[str, EntityStrategy] = {
    "invoices": EntityStrategy(
        entity="invoices",
        system="erp",
        table="erp_invoices",
        transform=transform_invoice,
        extract_related=extract_line_items,
        related_table="erp_invoice_line_items",
        related_conflict_key=LINE_ITEM_KEY,
        related_label="line_items",
        related_parent_key=("invoice_upstream_id", "tenant_id"),
    ),
    "payments": EntityStrategy(
        entity="payments",
        system="erp",
        table="erp_payments",
        transform=transform_payment,
        extract_related=extract_apply_relationships,
        related_table="erp_payment_applications",
        related_conflict_key=APPLY_KEY,
        related_label="apply_relationships",
        related_parent_key=("payment_upstream_id", "tenant_id"),
    ),
    "credit_memos": EntityStrategy(
        entity="credit_memos",
        system="erp",
        table="erp_credit_memos",
        transform=transform_credit_memo,
    ),
    "opportunities": EntityStrategy(
        entity="opportunities",
        system="crm",
        table="crm_opportunities",
        transform=transform_opportunity,
    ),
    "orders": EntityStrategy(
        entity="orders",
        system="crm",
        table="crm_orders",
        transform=transform_order,
    ),
    "quotes": EntityStrategy(
        entity="quotes",
        system="crm",
        table="crm_quotes",
        transform=transform_quote,
    ),
}


def get_strategy(entity: str) -> EntityStrategy:
    """
    Raises:
        ValueError: If no strategy is registered for the entity
    """
    try:
        return STRATEGIES[entity]
    except KeyError:
        raise ValueError(
            f"Unknown entity {entity!r}; expected one of {', '.join(sorted(STRATEGIES))}"
        ) from None
