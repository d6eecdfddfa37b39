"""
Pytest configuration and fixtures for finsync tests

This module provides shared fixtures for unit, integration, and E2E tests:
in-memory doubles for the upstream clients and the storage backend, raw
record factories, and a PostgreSQL container for the warehouse tests.
"""
import asyncio
from collections import defaultdict
from typing import Any, Generator

import pytest
from testcontainers.postgres import PostgresContainer

from finsync.upstream.base import UpstreamPage
from finsync.warehouse import TABLES, DatabaseConnectionPool, ensure_schema


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# TEST DOUBLES
# =======================

class FakeStore:
    """
    In-memory RowStore.

    Rows are kept per table, keyed by their conflict key, so replays
    overwrite instead of duplicating. Failures are scripted per table with
    `fail_next`; each queued entry is consumed by one upsert_rows call.
    """

    def __init__(self):
        self.tables: dict[str, dict[tuple, dict[str, Any]]] = defaultdict(dict)
        self.calls: list[tuple[str, int]] = []
        self._failures: dict[str, list[Exception | None]] = defaultdict(list)

    def fail_next(self, table: str, *errors: Exception | None) -> None:
        """Queue outcomes for the next calls on a table; None lets a call through."""
        self._failures[table].extend(errors)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table].values())

    async def upsert_rows(self, table, rows, conflict_key) -> int:
        self.calls.append((table, len(rows)))
        queue = self._failures.get(table)
        if queue:
            error = queue.pop(0)
            if error is not None:
                raise error
        for row in rows:
            key = tuple(row[column] for column in conflict_key)
            self.tables[table][key] = dict(row)
        return len(rows)


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeUpstreamClient:
    """
    UpstreamClient serving a fixed list of records by offset.

    Attributes:
        errors: offset -> exception raised when that offset is requested
        hang_at: offset from which fetches block until cancelled
        calls: Arguments of every fetch_page call
    """

    def __init__(
        self,
        records: list[dict[str, Any]],
        system: str = "erp",
        errors: dict[int, Exception] | None = None,
        hang_at: int | None = None,
    ):
        self.records = list(records)
        self.system = system
        self.errors = dict(errors or {})
        self.hang_at = hang_at
        self.calls: list[dict[str, Any]] = []

    async def fetch_page(self, entity, date_from, date_to, page_size, offset) -> UpstreamPage:
        self.calls.append({
            "entity": entity,
            "date_from": date_from,
            "date_to": date_to,
            "page_size": page_size,
            "offset": offset,
        })
        if offset in self.errors:
            raise self.errors[offset]
        if self.hang_at is not None and offset >= self.hang_at:
            await asyncio.sleep(3600)
        return UpstreamPage(
            items=self.records[offset:offset + page_size],
            total_estimate=len(self.records),
        )


# =======================
# RAW RECORD FACTORIES
# =======================

def make_erp_invoice(n: int, lines: int = 2, currency: str = "Euro") -> dict[str, Any]:
    """ERP invoice detail as returned with expandSubResources=true."""
    return {
        "id": str(1000 + n),
        "tranId": f"INV-{1000 + n}",
        "tranDate": "2024-03-01",
        "entity": {"id": "512", "refName": "Globex Corporation"},
        "total": "1200.00",
        "subTotal": "1000.00",
        "taxTotal": "200.00",
        "discountTotal": 0,
        "status": {"id": "A", "refName": "Open"},
        "memo": f"Invoice {n}",
        "currency": {"id": "2", "refName": currency},
        "createdDate": "2024-03-01T09:15:00Z",
        "lastModifiedDate": "2024-03-02T10:00:00Z",
        "custbody_cw_sfdcordernumber": f"0000{n}",
        "item": {
            "items": [
                {
                    "line": i,
                    "item": {"id": str(70 + i), "refName": f"Subscription tier {i}"},
                    "description": f"Line {i}",
                    "quantity": 1,
                    "rate": "500.00",
                    "amount": "500.00",
                    "taxCode": {"id": "5", "refName": "VAT 20%"},
                    "taxRate": "20",
                    "taxAmount": "100.00",
                }
                for i in range(1, lines + 1)
            ]
        },
    }


def make_erp_payment(n: int, invoice_ids: list[str] | None = None) -> dict[str, Any]:
    """ERP customer payment with the applications the ERP client attaches."""
    payment_id = str(5000 + n)
    invoice_ids = invoice_ids if invoice_ids is not None else [str(1000 + n)]
    return {
        "id": payment_id,
        "tranId": f"PYMT-{n}",
        "tranDate": "2024-03-10",
        "customer": {"id": "512", "refName": "Globex Corporation"},
        "account": {"id": "1", "refName": "Operating Account"},
        "total": "1200.00",
        "status": {"refName": "Deposited"},
        "memo": f"Wire {n}",
        "currency": {"refName": "US Dollar"},
        "applyRelationships": [
            {
                "invoiceId": invoice_id,
                "invoiceNumber": f"INV-{invoice_id}",
                "applyDate": "2024-03-01",
                "applyAmount": "600.00",
                "paymentId": payment_id,
                "paymentNumber": f"PYMT-{n}",
                "paymentDate": "2024-03-10",
                "paymentAmount": "1200.00",
                "paymentCustomer": "Globex Corporation",
                "invoiceCustomer": "Globex Corporation",
            }
            for invoice_id in invoice_ids
        ],
    }


def make_crm_opportunity(n: int) -> dict[str, Any]:
    """CRM opportunity as returned by a SOQL query."""
    return {
        "attributes": {"type": "Opportunity"},
        "Id": f"0065g00000{n:08d}",
        "Name": f"Opportunity {n}",
        "CreatedDate": "2024-02-01T12:00:00.000+0000",
        "CloseDate": "2024-06-30",
        "Amount": 48000.0,
        "StageName": "Closed Won",
        "Type": "Renewal",
        "Probability": 100,
        "IsClosed": True,
        "IsWon": True,
        "AccountId": "0015g00000AbCdE",
        "CurrencyIsoCode": "USD",
        "SBQQ__Renewal__c": True,
    }


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def invoice_factory():
    return make_erp_invoice


@pytest.fixture
def payment_factory():
    return make_erp_payment


@pytest.fixture
def opportunity_factory():
    return make_crm_opportunity


@pytest.fixture
def upstream_factory():
    """Build a FakeUpstreamClient: upstream_factory(records, system="erp", errors=..., hang_at=...)."""
    return FakeUpstreamClient


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_finsync",
        password="test_password",
        dbname="test_finsync",
    ) as postgres:
        yield postgres


@pytest.fixture
async def db_pool(postgres_container):
    """
    Open pool on the test database with the schema in place and every
    sync table empty

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_finsync",
        user="test_finsync",
        password="test_password",
        min_size=1,
        max_size=3,
    )
    await pool.open()
    await ensure_schema(pool)

    for table in reversed(list(TABLES)):
        await pool.execute_command(f"TRUNCATE TABLE {table} CASCADE")

    yield pool

    await pool.close()
