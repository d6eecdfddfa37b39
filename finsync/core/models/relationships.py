"""
Related rows derived from parent records: payment applications and invoice
line items.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class ApplyRelationship(BaseModel):
    """
    Application of (part of) a payment to an invoice.

    `(payment_upstream_id, invoice_upstream_id, tenant_id)` is unique.

    Attributes:
        payment_upstream_id: Upstream id of the payment
        invoice_upstream_id: Upstream id of the invoice paid
        invoice_date: Date reported for the invoice side of the application
        apply_date: Date the payment was applied
        apply_amount: Amount applied to this invoice
        days_to_settle: Whole days between apply_date and payment_date, if both parse
    """

    payment_upstream_id: str = Field(..., min_length=1)
    payment_number: str | None = None
    payment_date: str | None = None
    payment_amount: Decimal = Decimal("0")
    payment_customer: str | None = None
    invoice_upstream_id: str = Field(..., min_length=1)
    invoice_number: str | None = None
    invoice_date: str | None = None
    invoice_customer: str | None = None
    apply_date: str | None = None
    apply_amount: Decimal = Decimal("0")
    days_to_settle: int | None = None
    tenant_id: str = Field(..., min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "payment_upstream_id": "90211",
                "payment_number": "PYMT-220",
                "payment_date": "2024-03-10",
                "payment_amount": "1200.00",
                "payment_customer": "Globex Corporation",
                "invoice_upstream_id": "81234",
                "invoice_number": "INV-1001",
                "invoice_date": "2024-03-01",
                "invoice_customer": "Globex Corporation",
                "apply_date": "2024-03-01",
                "apply_amount": "1200.00",
                "days_to_settle": 9,
                "tenant_id": "acme"
            }
        }

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()


class InvoiceLineItem(BaseModel):
    """
    One line of an invoice.

    Lines reference their invoice by `(invoice_upstream_id, tenant_id)` and
    are unique on `(invoice_upstream_id, line_number, tenant_id)`.
    """

    invoice_upstream_id: str = Field(..., min_length=1)
    line_number: int = Field(..., ge=1)
    item_id: str | None = None
    item_name: str | None = None
    description: str | None = None
    quantity: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    tax_code: str | None = None
    tax_rate: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    raw_data: dict[str, Any] = Field(default_factory=dict)
    tenant_id: str = Field(..., min_length=1)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()
