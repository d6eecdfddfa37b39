"""
ERP REST record API adapter.

A page is fetched in two steps: a list call returning record summaries with
`self` links, then one sequential detail call per record. Payments also
follow their `apply` sub-resource; the applications are attached to the raw
payment as `applyRelationships`.
"""

import asyncio
from datetime import date
from typing import Any

import httpx

from finsync.config.settings import ErpSettings
from finsync.core.transform.parsing import ref_name
from finsync.observability.logger import get_logger
from finsync.sync.retry import Sleep

from .base import HttpUpstreamClient, UpstreamPage, as_int, clamp_page_size
from .oauth import OAuth1Auth

logger = get_logger(__name__)

RECORD_TYPES = {
    "invoices": "invoice",
    "payments": "customerpayment",
    "credit_memos": "creditmemo",
}


def format_erp_date(value: str) -> str:
    """
    ISO date to the ERP query format yy/MM/dd.

    Examples:
        >>> format_erp_date("2024-03-01")
        '24/03/01'
    """
    return date.fromisoformat(value).strftime("%y/%m/%d")


def build_date_query(date_from: str | None, date_to: str | None) -> str | None:
    conditions = []
    if date_from:
        conditions.append(f'tranDate ON_OR_AFTER "{format_erp_date(date_from)}"')
    if date_to:
        conditions.append(f'tranDate ON_OR_BEFORE "{format_erp_date(date_to)}"')
    return " AND ".join(conditions) or None


def self_link(resource: Any) -> str | None:
    """href of the rel=self link of a resource, if any."""
    if not isinstance(resource, dict):
        return None
    for link in resource.get("links") or []:
        if isinstance(link, dict) and link.get("rel") == "self" and link.get("href"):
            return link["href"]
    return None


def _first_link(resource: dict[str, Any]) -> str | None:
    links = resource.get("links") or []
    if links and isinstance(links[0], dict):
        return links[0].get("href")
    return None


class ErpClient(HttpUpstreamClient):
    """
    Fetches invoices, customer payments and credit memos.

    Attributes:
        base_url: Record API root for the configured account
        detail_delay_s: Pause between per-record detail calls
    """

    system = "erp"

    def __init__(
        self,
        settings: ErpSettings,
        http: httpx.AsyncClient | None = None,
        detail_delay_s: float = 0.05,
        sleep: Sleep = asyncio.sleep,
        auth: httpx.Auth | None = None,
    ):
        super().__init__(
            http=http,
            auth=auth or OAuth1Auth(
                consumer_key=settings.consumer_key,
                consumer_secret=settings.consumer_secret,
                token_id=settings.token_id,
                token_secret=settings.token_secret,
                realm=settings.realm,
            ),
        )
        self.base_url = settings.base_url
        self.detail_delay_s = detail_delay_s
        self.sleep = sleep

    async def fetch_page(
        self,
        entity: str,
        date_from: str,
        date_to: str,
        page_size: int,
        offset: int,
    ) -> UpstreamPage:
        """
        Fetch one page of fully detailed records.

        Args:
            entity: invoices, payments or credit_memos
            date_from: Inclusive start date (YYYY-MM-DD)
            date_to: Inclusive end date (YYYY-MM-DD)
            page_size: Records requested (clamped to 1..100)
            offset: Records to skip

        Raises:
            ValueError: If the entity is not served by the ERP
            UpstreamError: If any list or detail call fails
        """
        try:
            record_type = RECORD_TYPES[entity]
        except KeyError:
            raise ValueError(f"Entity {entity!r} is not available from the ERP") from None

        params = {"limit": str(clamp_page_size(page_size)), "offset": str(offset)}
        query = build_date_query(date_from, date_to)
        if query:
            params["q"] = query

        listing = await self._get_json(f"{self.base_url}/{record_type}", params)
        summaries = [item for item in listing.get("items") or [] if isinstance(item, dict)]

        records = []
        for index, summary in enumerate(summaries):
            records.append(await self._fetch_detail(record_type, summary))
            if index < len(summaries) - 1 and self.detail_delay_s > 0:
                await self.sleep(self.detail_delay_s)

        logger.debug(
            "ERP page fetched",
            extra={"entity": entity, "offset": offset, "records": len(records)},
        )
        return UpstreamPage(items=records, total_estimate=as_int(listing.get("totalResults")))

    async def _fetch_detail(self, record_type: str, summary: dict[str, Any]) -> dict[str, Any]:
        link = self_link(summary)
        if link is None:
            logger.warning("No self link for record, keeping summary", extra={"record_id": summary.get("id")})
            return summary

        params = {"expandSubResources": "true"} if record_type == "invoice" else None
        detail = await self._get_json(link, params)
        if record_type == "customerpayment":
            detail["applyRelationships"] = await self._fetch_applications(detail)
        return detail

    async def _fetch_applications(self, payment: dict[str, Any]) -> list[dict[str, Any]]:
        """Invoice applications of a payment, in the shape the extractor reads."""
        link = self_link(payment.get("apply"))
        if link is None:
            return []

        listing = await self._get_json(link)
        applications = []
        for entry in listing.get("items") or []:
            if not isinstance(entry, dict):
                continue
            detail_link = _first_link(entry)
            if detail_link is None:
                continue
            detail = await self._get_json(detail_link)
            if detail.get("apply"):
                doc = detail.get("doc")
                invoice_id = doc.get("id") if isinstance(doc, dict) else doc
                applications.append({
                    "invoiceNumber": detail.get("refNum"),
                    "applyDate": detail.get("applyDate"),
                    "applyAmount": detail.get("amount"),
                    "invoiceId": str(invoice_id) if invoice_id is not None else None,
                    "paymentId": payment.get("id"),
                    "paymentNumber": payment.get("tranId"),
                    "paymentDate": payment.get("tranDate"),
                    "paymentAmount": payment.get("total"),
                    "paymentCustomer": ref_name(payment.get("customer")),
                    "invoiceCustomer": ref_name(detail.get("entity")),
                })
        return applications
