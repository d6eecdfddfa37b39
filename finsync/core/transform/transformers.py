"""
Record transformers: one raw upstream record -> one canonical row.

Transformers never raise on malformed input. Numbers default to zero, missing
references to None, and dates pass through exactly as the upstream sent them.
The raw record is kept verbatim in `raw_data`.
"""

from collections.abc import Callable
from typing import Any

from finsync.core.currency import DEFAULT_CURRENCY_NAME, CurrencyNormalizer
from finsync.core.models import (
    CanonicalRow,
    CreditMemo,
    Invoice,
    Opportunity,
    Order,
    Payment,
    Quote,
)

from .parsing import (
    parse_amount,
    parse_bool,
    parse_optional_amount,
    ref_id,
    ref_name,
    to_str,
)

Transformer = Callable[[dict[str, Any], str, CurrencyNormalizer], CanonicalRow]


def _erp_currency(raw: dict[str, Any], normalizer: CurrencyNormalizer) -> str:
    return normalizer.normalize(ref_name(raw.get("currency")) or DEFAULT_CURRENCY_NAME)


def _erp_common(raw: dict[str, Any], tenant_id: str, normalizer: CurrencyNormalizer) -> dict[str, Any]:
    """Fields every ERP transaction document shares."""
    return {
        "upstream_id": to_str(raw.get("id")) or "",
        "tenant_id": tenant_id,
        "tran_id": to_str(raw.get("tranId")),
        "tran_date": to_str(raw.get("tranDate")),
        "total": parse_amount(raw.get("total")),
        "status": ref_name(raw.get("status")),
        "memo": to_str(raw.get("memo")),
        "currency_code": _erp_currency(raw, normalizer),
        "created_date": to_str(raw.get("createdDate")),
        "last_modified_date": to_str(raw.get("lastModifiedDate")),
        "raw_data": raw,
    }


def transform_invoice(raw: dict[str, Any], tenant_id: str, normalizer: CurrencyNormalizer) -> Invoice:
    """
    Map an ERP invoice.

    The billed customer is the `entity` reference. The custbody_cw_sfdc*
    custom fields link the invoice to its CRM order, opportunity and quote.
    """
    return Invoice(
        **_erp_common(raw, tenant_id, normalizer),
        entity_name=ref_name(raw.get("entity")),
        entity_id=ref_id(raw.get("entity")),
        subtotal=parse_amount(raw.get("subTotal")),
        tax_total=parse_amount(raw.get("taxTotal")),
        discount_total=parse_amount(raw.get("discountTotal")),
        crm_order_number=to_str(raw.get("custbody_cw_sfdcordernumber")),
        crm_opportunity=to_str(raw.get("custbody_cw_sfdcopportunity")),
        crm_quote=to_str(raw.get("custbody_cw_sfdcquote")),
    )


def transform_payment(raw: dict[str, Any], tenant_id: str, normalizer: CurrencyNormalizer) -> Payment:
    """
    Map an ERP customer payment.

    Payments reference the payer as `customer` and the receiving account as
    `account`; the memo doubles as the reference number.
    """
    memo = to_str(raw.get("memo"))
    return Payment(
        **_erp_common(raw, tenant_id, normalizer),
        entity_name=ref_name(raw.get("customer")),
        entity_id=ref_id(raw.get("customer")),
        payment_method=ref_name(raw.get("account")),
        reference_number=memo,
    )


def transform_credit_memo(raw: dict[str, Any], tenant_id: str, normalizer: CurrencyNormalizer) -> CreditMemo:
    return CreditMemo(
        **_erp_common(raw, tenant_id, normalizer),
        entity_name=ref_name(raw.get("entity")),
        entity_id=ref_id(raw.get("entity")),
        subtotal=parse_amount(raw.get("subTotal")),
        tax_total=parse_amount(raw.get("taxTotal")),
    )


def _crm_currency(raw: dict[str, Any], normalizer: CurrencyNormalizer) -> str | None:
    code = to_str(raw.get("CurrencyIsoCode"))
    return normalizer.normalize(code) if code else None


def transform_opportunity(raw: dict[str, Any], tenant_id: str, normalizer: CurrencyNormalizer) -> Opportunity:
    """Map a CRM opportunity (SOQL field names)."""
    return Opportunity(
        upstream_id=to_str(raw.get("Id")) or "",
        tenant_id=tenant_id,
        name=to_str(raw.get("Name")),
        created_date=to_str(raw.get("CreatedDate")),
        close_date=to_str(raw.get("CloseDate")),
        last_modified_date=to_str(raw.get("LastModifiedDate")),
        amount=parse_amount(raw.get("Amount")),
        stage_name=to_str(raw.get("StageName")),
        opportunity_type=to_str(raw.get("Type")),
        lead_source=to_str(raw.get("LeadSource")),
        probability=parse_optional_amount(raw.get("Probability")),
        is_closed=bool(parse_bool(raw.get("IsClosed"))),
        is_won=bool(parse_bool(raw.get("IsWon"))),
        account_id=to_str(raw.get("AccountId")),
        owner_id=to_str(raw.get("OwnerId")),
        currency_code=_crm_currency(raw, normalizer),
        customer_tier=to_str(raw.get("Customer_Tier__c")),
        market_segment=to_str(raw.get("Market_Segment__c")),
        channel=to_str(raw.get("Channel__c")),
        customer_country=to_str(raw.get("CustomerCountry__c")),
        description=to_str(raw.get("Description")),
        is_renewal=parse_bool(raw.get("SBQQ__Renewal__c")),
        auto_renew_quote=parse_bool(raw.get("Auto_Renew_Quote__c")),
        raw_data=raw,
    )


def transform_order(raw: dict[str, Any], tenant_id: str, normalizer: CurrencyNormalizer) -> Order:
    """Map a CRM order; opportunity and quote stay as upstream ids."""
    return Order(
        upstream_id=to_str(raw.get("Id")) or "",
        tenant_id=tenant_id,
        order_number=to_str(raw.get("OrderNumber")),
        status=to_str(raw.get("Status")),
        effective_date=to_str(raw.get("EffectiveDate")),
        total_amount=parse_amount(raw.get("TotalAmount")),
        order_type=to_str(raw.get("Type")),
        account_id=to_str(raw.get("AccountId")),
        owner_id=to_str(raw.get("OwnerId")),
        opportunity_upstream_id=to_str(raw.get("OpportunityId")),
        quote_upstream_id=to_str(raw.get("SBQQ__Quote__c")),
        billing_frequency=to_str(raw.get("Billing_Frequency__c")),
        shipping_country_code=to_str(raw.get("Shipping_Address_Country_Code__c")),
        currency_code=_crm_currency(raw, normalizer),
        created_date=to_str(raw.get("CreatedDate")),
        last_modified_date=to_str(raw.get("LastModifiedDate")),
        raw_data=raw,
    )


def transform_quote(raw: dict[str, Any], tenant_id: str, normalizer: CurrencyNormalizer) -> Quote:
    """
    Map a CPQ quote (SBQQ__Quote__c).

    ARR figures stay None when absent.
    """
    return Quote(
        upstream_id=to_str(raw.get("Id")) or "",
        tenant_id=tenant_id,
        name=to_str(raw.get("Name")),
        status=to_str(raw.get("SBQQ__Status__c")),
        quote_type=to_str(raw.get("SBQQ__Type__c")),
        created_date=to_str(raw.get("CreatedDate")),
        expiration_date=to_str(raw.get("SBQQ__ExpirationDate__c")),
        end_date=to_str(raw.get("SBQQ__EndDate__c")),
        last_modified_date=to_str(raw.get("LastModifiedDate")),
        net_amount=parse_amount(raw.get("SBQQ__NetAmount__c")),
        quote_total=parse_amount(raw.get("Quote_Total__c")),
        total_arr=parse_optional_amount(raw.get("Total_ARR__c")),
        new_arr=parse_optional_amount(raw.get("New_ARR__c")),
        account_id=to_str(raw.get("SBQQ__Account__c")),
        owner_id=to_str(raw.get("OwnerId")),
        primary_contact_id=to_str(raw.get("SBQQ__PrimaryContact__c")),
        opportunity_upstream_id=to_str(raw.get("SBQQ__Opportunity2__c")),
        billing_country=to_str(raw.get("SBQQ__BillingCountry__c")),
        shipping_country=to_str(raw.get("SBQQ__ShippingCountry__c")),
        customer_country=to_str(raw.get("CustomerCountry__c")),
        payment_terms=to_str(raw.get("SBQQ__PaymentTerms__c")),
        billing_frequency=to_str(raw.get("SBQQ__BillingFrequency__c")),
        contracting_method=to_str(raw.get("SBQQ__ContractingMethod__c")),
        approval_status=to_str(raw.get("ApprovalStatus__c")),
        subsidiary=to_str(raw.get("Subsidiary__c")),
        is_primary=bool(parse_bool(raw.get("SBQQ__Primary__c"))),
        is_ordered=parse_bool(raw.get("SBQQ__Ordered__c")),
        is_renewal=parse_bool(raw.get("Renewal__c")),
        is_amendment=parse_bool(raw.get("Amendment__c")),
        is_cancellation=parse_bool(raw.get("Cancellation_Quote__c")),
        currency_code=_crm_currency(raw, normalizer),
        raw_data=raw,
    )


TRANSFORMERS: dict[str, Transformer] = {
    "invoices": transform_invoice,
    "payments": transform_payment,
    "credit_memos": transform_credit_memo,
    "opportunities": transform_opportunity,
    "orders": transform_order,
    "quotes": transform_quote,
}


def transform(
    entity: str,
    raw: dict[str, Any],
    tenant_id: str,
    normalizer: CurrencyNormalizer | None = None,
) -> CanonicalRow:
    """
    Transform one raw record of the given entity type.

    Args:
        entity: A key of TRANSFORMERS
        raw: Upstream record
        tenant_id: Owning tenant
        normalizer: Currency normalizer (a default one when omitted)

    Raises:
        KeyError: If the entity type is unknown
    """
    try:
        transformer = TRANSFORMERS[entity]
    except KeyError:
        raise KeyError(f"Unknown entity type: {entity}") from None
    return transformer(raw, tenant_id, normalizer or CurrencyNormalizer())
