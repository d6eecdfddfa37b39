"""
Relationship extraction: related rows derived from a parent raw record.

Payments carry their invoice applications (attached by the ERP client as
`applyRelationships`); invoices carry their line items under `item.items`.
"""

import math
from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel

from finsync.core.models import ApplyRelationship, InvoiceLineItem
from finsync.observability.logger import get_logger

from .parsing import parse_amount, parse_datetime, ref_id, ref_name, to_str

logger = get_logger(__name__)

APPLY_KEY = ("payment_upstream_id", "invoice_upstream_id", "tenant_id")
LINE_ITEM_KEY = ("invoice_upstream_id", "line_number", "tenant_id")

SECONDS_PER_DAY = 86400

RowT = TypeVar("RowT")


def days_between(later: Any, earlier: Any) -> int | None:
    """
    Whole days from `earlier` to `later`, rounded down.

    Returns None when either side is absent or unparseable.

    Examples:
        >>> days_between("2024-03-10", "2024-03-01")
        9
        >>> days_between("2024-03-10", None) is None
        True
    """
    later_dt = parse_datetime(later)
    earlier_dt = parse_datetime(earlier)
    if later_dt is None or earlier_dt is None:
        return None
    return math.floor((later_dt - earlier_dt).total_seconds() / SECONDS_PER_DAY)


def _row_key(row: Any, key: Sequence[str]) -> tuple:
    if isinstance(row, BaseModel):
        return tuple(getattr(row, field) for field in key)
    return tuple(row.get(field) for field in key)


def dedupe_rows(rows: Iterable[RowT], key: Sequence[str]) -> list[RowT]:
    """
    Drop rows whose key repeats an earlier row; the first occurrence wins.

    Args:
        rows: Models or dicts
        key: Field names forming the unique key
    """
    seen: set[tuple] = set()
    unique: list[RowT] = []
    for row in rows:
        row_key = _row_key(row, key)
        if row_key in seen:
            continue
        seen.add(row_key)
        unique.append(row)
    return unique


def extract_apply_relationships(raw_payment: dict[str, Any], tenant_id: str) -> list[ApplyRelationship]:
    """
    Build the payment -> invoice applications of one payment.

    Entries without an invoice id cannot be keyed and are skipped. Payment-side
    fields missing from an entry fall back to the payment record itself.

    Args:
        raw_payment: Raw payment, possibly with an `applyRelationships` list
        tenant_id: Owning tenant

    Returns:
        Applications, unique on (payment, invoice, tenant), first occurrence kept
    """
    entries = raw_payment.get("applyRelationships") or []
    if not isinstance(entries, list):
        return []

    payment_id = to_str(raw_payment.get("id"))
    relationships = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue

        invoice_id = to_str(entry.get("invoiceId"))
        entry_payment_id = to_str(entry.get("paymentId")) or payment_id
        if not invoice_id or not entry_payment_id:
            logger.debug(
                "Skipping apply entry without payment or invoice id",
                extra={"payment_id": payment_id},
            )
            continue

        payment_date = entry.get("paymentDate") or raw_payment.get("tranDate")
        apply_date = entry.get("applyDate")

        relationships.append(
            ApplyRelationship(
                payment_upstream_id=entry_payment_id,
                payment_number=to_str(entry.get("paymentNumber") or raw_payment.get("tranId")),
                payment_date=to_str(payment_date),
                payment_amount=parse_amount(entry.get("paymentAmount", raw_payment.get("total"))),
                payment_customer=to_str(entry.get("paymentCustomer")) or ref_name(raw_payment.get("customer")),
                invoice_upstream_id=invoice_id,
                invoice_number=to_str(entry.get("invoiceNumber")),
                invoice_date=to_str(apply_date),
                invoice_customer=to_str(entry.get("invoiceCustomer")),
                apply_date=to_str(apply_date),
                apply_amount=parse_amount(entry.get("applyAmount")),
                days_to_settle=days_between(payment_date, apply_date),
                tenant_id=tenant_id,
            )
        )

    return dedupe_rows(relationships, APPLY_KEY)


def extract_line_items(raw_invoice: dict[str, Any], tenant_id: str) -> list[InvoiceLineItem]:
    """
    Build the line items of one invoice from `item.items`.

    The upstream `line` number is used when present, otherwise the 1-based
    position in the list. Invoices without an id yield no lines.
    """
    invoice_id = to_str(raw_invoice.get("id"))
    container = raw_invoice.get("item")
    items = container.get("items") if isinstance(container, dict) else None
    if not invoice_id or not isinstance(items, list):
        return []

    lines = []
    for position, line in enumerate(items, start=1):
        if not isinstance(line, dict):
            continue
        line_number = line.get("line")
        if isinstance(line_number, bool) or not isinstance(line_number, int) or line_number < 1:
            line_number = position

        item = line.get("item")
        item_name = ref_name(item)
        if item_name is None and isinstance(item, dict):
            item_name = to_str(item.get("name"))

        lines.append(
            InvoiceLineItem(
                invoice_upstream_id=invoice_id,
                line_number=line_number,
                item_id=ref_id(item),
                item_name=item_name,
                description=to_str(line.get("description")),
                quantity=parse_amount(line.get("quantity")),
                rate=parse_amount(line.get("rate")),
                amount=parse_amount(line.get("amount")),
                tax_code=to_str(line.get("taxCode")) or ref_name(line.get("taxCode")),
                tax_rate=parse_amount(line.get("taxRate")),
                tax_amount=parse_amount(line.get("taxAmount")),
                raw_data=line,
                tenant_id=tenant_id,
            )
        )

    return dedupe_rows(lines, LINE_ITEM_KEY)
