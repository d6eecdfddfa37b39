"""
Canonical row models: upstream records normalized into the warehouse shape.

`(upstream_id, tenant_id)` is the idempotency key of every canonical row.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class CanonicalRow(BaseModel):
    """
    Base for every row persisted from an upstream record.

    Attributes:
        upstream_id: Identifier assigned by the upstream system; empty when
            the upstream record carried none (such rows are never persisted)
        tenant_id: Tenant that owns the row
        raw_data: The upstream record, verbatim
    """

    upstream_id: str = ""
    tenant_id: str = Field(..., min_length=1)
    raw_data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_keyed(self) -> bool:
        return bool(self.upstream_id)

    def to_row(self) -> dict[str, Any]:
        """Column -> value mapping handed to the storage backend."""
        return self.model_dump()


class ErpTransaction(CanonicalRow):
    """
    Fields shared by ERP transaction documents.

    Dates are kept exactly as the ERP reported them. `exchange_rate` is
    always 1; conversion happens downstream with independently sourced rates.
    """

    tran_id: str | None = None
    tran_date: str | None = None
    entity_name: str | None = None
    entity_id: str | None = None
    total: Decimal = Decimal("0")
    status: str | None = None
    memo: str | None = None
    currency_code: str = "USD"
    exchange_rate: Decimal = Decimal("1")
    created_date: str | None = None
    last_modified_date: str | None = None


class Invoice(ErpTransaction):
    """Customer invoice, with cross-references to the CRM order it bills."""

    subtotal: Decimal = Decimal("0")
    tax_total: Decimal = Decimal("0")
    discount_total: Decimal = Decimal("0")
    crm_order_number: str | None = None
    crm_opportunity: str | None = None
    crm_quote: str | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "upstream_id": "81234",
                "tenant_id": "acme",
                "tran_id": "INV-1001",
                "tran_date": "2024-03-01",
                "entity_name": "Globex Corporation",
                "entity_id": "512",
                "total": "1200.00",
                "status": "Open",
                "currency_code": "EUR",
                "exchange_rate": "1",
                "subtotal": "1000.00",
                "tax_total": "200.00",
                "discount_total": "0",
                "crm_order_number": "00001042",
                "raw_data": {"id": "81234", "tranId": "INV-1001"}
            }
        }


class Payment(ErpTransaction):
    """Customer payment received against one or more invoices."""

    payment_method: str | None = None
    reference_number: str | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "upstream_id": "90211",
                "tenant_id": "acme",
                "tran_id": "PYMT-220",
                "tran_date": "2024-03-10",
                "entity_name": "Globex Corporation",
                "entity_id": "512",
                "total": "1200.00",
                "status": "Deposited",
                "currency_code": "EUR",
                "payment_method": "Operating Account",
                "reference_number": "Wire 0310",
                "raw_data": {"id": "90211", "tranId": "PYMT-220"}
            }
        }


class CreditMemo(ErpTransaction):
    """Credit issued to a customer."""

    subtotal: Decimal = Decimal("0")
    tax_total: Decimal = Decimal("0")


class Opportunity(CanonicalRow):
    """CRM sales opportunity."""

    name: str | None = None
    created_date: str | None = None
    close_date: str | None = None
    last_modified_date: str | None = None
    amount: Decimal = Decimal("0")
    stage_name: str | None = None
    opportunity_type: str | None = None
    lead_source: str | None = None
    probability: Decimal | None = None
    is_closed: bool = False
    is_won: bool = False
    account_id: str | None = None
    owner_id: str | None = None
    currency_code: str | None = None
    customer_tier: str | None = None
    market_segment: str | None = None
    channel: str | None = None
    customer_country: str | None = None
    description: str | None = None
    is_renewal: bool | None = None
    auto_renew_quote: bool | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "upstream_id": "0065g00000XyZabAAF",
                "tenant_id": "acme",
                "name": "Globex renewal 2024",
                "close_date": "2024-06-30",
                "amount": "48000.00",
                "stage_name": "Closed Won",
                "is_closed": True,
                "is_won": True,
                "currency_code": "USD",
                "raw_data": {"Id": "0065g00000XyZabAAF"}
            }
        }


class Order(CanonicalRow):
    """CRM order, linked to its opportunity and quote."""

    order_number: str | None = None
    status: str | None = None
    effective_date: str | None = None
    total_amount: Decimal = Decimal("0")
    order_type: str | None = None
    account_id: str | None = None
    owner_id: str | None = None
    opportunity_upstream_id: str | None = None
    quote_upstream_id: str | None = None
    billing_frequency: str | None = None
    shipping_country_code: str | None = None
    currency_code: str | None = None
    created_date: str | None = None
    last_modified_date: str | None = None


class Quote(CanonicalRow):
    """
    Primary CPQ quote of a CRM opportunity.

    Orders and ERP invoices reference quotes by upstream id
    (`Order.quote_upstream_id`, `Invoice.crm_quote`).
    """

    name: str | None = None
    status: str | None = None
    quote_type: str | None = None
    created_date: str | None = None
    expiration_date: str | None = None
    end_date: str | None = None
    last_modified_date: str | None = None
    net_amount: Decimal = Decimal("0")
    quote_total: Decimal = Decimal("0")
    total_arr: Decimal | None = None
    new_arr: Decimal | None = None
    account_id: str | None = None
    owner_id: str | None = None
    primary_contact_id: str | None = None
    opportunity_upstream_id: str | None = None
    billing_country: str | None = None
    shipping_country: str | None = None
    customer_country: str | None = None
    payment_terms: str | None = None
    billing_frequency: str | None = None
    contracting_method: str | None = None
    approval_status: str | None = None
    subsidiary: str | None = None
    is_primary: bool = False
    is_ordered: bool | None = None
    is_renewal: bool | None = None
    is_amendment: bool | None = None
    is_cancellation: bool | None = None
    currency_code: str | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "upstream_id": "a0q5g000001AbCdAAK",
                "tenant_id": "acme",
                "name": "Q-01042",
                "status": "Approved",
                "net_amount": "48000.00",
                "quote_total": "48000.00",
                "opportunity_upstream_id": "0065g00000XyZabAAF",
                "billing_frequency": "Annual",
                "is_primary": True,
                "currency_code": "USD",
                "raw_data": {"Id": "a0q5g000001AbCdAAK"}
            }
        }
