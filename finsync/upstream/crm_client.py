"""
CRM query API adapter (SOQL over REST).
"""

from typing import Any

import httpx

from finsync.config.settings import CrmSettings
from finsync.observability.logger import get_logger

from .base import HttpUpstreamClient, UpstreamPage, as_int, clamp_page_size

logger = get_logger(__name__)

OPPORTUNITY_FIELDS = [
    "Id", "Name", "CreatedDate", "CloseDate", "Amount", "StageName", "Type",
    "LeadSource", "Description", "Probability", "IsClosed", "IsWon", "AccountId",
    "OwnerId", "CurrencyIsoCode", "LastModifiedDate", "Customer_Tier__c",
    "Market_Segment__c", "Channel__c", "CustomerCountry__c", "SBQQ__Renewal__c",
    "Auto_Renew_Quote__c",
]

ORDER_FIELDS = [
    "Id", "OrderNumber", "OpportunityId", "Status", "EffectiveDate", "TotalAmount",
    "CreatedDate", "Type", "SBQQ__Quote__c", "Billing_Frequency__c",
    "Shipping_Address_Country_Code__c", "CurrencyIsoCode", "LastModifiedDate",
    "AccountId", "OwnerId",
]

QUOTE_FIELDS = [
    "Id", "Name", "SBQQ__Status__c", "SBQQ__ExpirationDate__c", "CreatedDate", "SBQQ__EndDate__c",
    "SBQQ__NetAmount__c", "SBQQ__Type__c", "SBQQ__Account__c", "SBQQ__PrimaryContact__c",
    "SBQQ__BillingCountry__c", "SBQQ__ShippingCountry__c", "SBQQ__PaymentTerms__c",
    "SBQQ__BillingFrequency__c", "SBQQ__ContractingMethod__c", "SBQQ__Ordered__c", "SBQQ__Primary__c",
    "Renewal__c", "Amendment__c", "Cancellation_Quote__c", "ApprovalStatus__c", "Subsidiary__c",
    "CustomerCountry__c", "Quote_Total__c", "Total_ARR__c", "New_ARR__c", "CurrencyIsoCode",
    "OwnerId", "SBQQ__Opportunity2__c", "LastModifiedDate",
]

# entity -> (sObject, fields, extra WHERE condition)
SOBJECTS: dict[str, tuple[str, list[str], str | None]] = {
    "opportunities": ("Opportunity", OPPORTUNITY_FIELDS, None),
    "orders": ("Order", ORDER_FIELDS, None),
    "quotes": ("SBQQ__Quote__c", QUOTE_FIELDS, "SBQQ__Primary__c = true"),
}


def build_soql(
    sobject: str,
    fields: list[str],
    date_from: str,
    date_to: str,
    limit: int,
    offset: int,
    condition: str | None = None,
) -> str:
    """
    Query records created within [date_from, date_to], newest first.

    An extra condition is ANDed to the date filter.

    Examples:
        >>> build_soql("Order", ["Id"], "2024-01-01", "2024-01-31", 50, 0)
        'SELECT Id FROM Order WHERE CreatedDate >= 2024-01-01T00:00:00Z AND CreatedDate <= 2024-01-31T23:59:59Z ORDER BY CreatedDate DESC LIMIT 50 OFFSET 0'
    """
    where = f"CreatedDate >= {date_from}T00:00:00Z AND CreatedDate <= {date_to}T23:59:59Z"
    if condition:
        where = f"{where} AND {condition}"
    return (
        f"SELECT {', '.join(fields)} FROM {sobject} "
        f"WHERE {where} "
        f"ORDER BY CreatedDate DESC LIMIT {limit} OFFSET {offset}"
    )


class CrmClient(HttpUpstreamClient):
    """Fetches opportunities, orders and primary quotes."""

    system = "crm"

    def __init__(self, settings: CrmSettings, http: httpx.AsyncClient | None = None):
        super().__init__(
            http=http,
            headers={"Authorization": f"Bearer {settings.access_token}"},
        )
        self.query_url = f"{settings.instance_url}/services/data/{settings.api_version}/query/"

    async def fetch_page(
        self,
        entity: str,
        date_from: str,
        date_to: str,
        page_size: int,
        offset: int,
    ) -> UpstreamPage:
        """
        Fetch one page of records.

        Raises:
            ValueError: If the entity is not served by the CRM
            UpstreamError: If the query fails
        """
        try:
            sobject, fields, condition = SOBJECTS[entity]
        except KeyError:
            raise ValueError(f"Entity {entity!r} is not available from the CRM") from None

        soql = build_soql(
            sobject, fields, date_from, date_to, clamp_page_size(page_size), offset, condition
        )
        payload = await self._get_json(self.query_url, {"q": soql})
        records: list[dict[str, Any]] = [
            record for record in payload.get("records") or [] if isinstance(record, dict)
        ]

        logger.debug(
            "CRM page fetched",
            extra={"entity": entity, "offset": offset, "records": len(records)},
        )
        return UpstreamPage(items=records, total_estimate=as_int(payload.get("totalSize")))
