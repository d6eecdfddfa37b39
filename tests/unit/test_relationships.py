"""
Unit tests for relationship extraction: payment applications and invoice
line items.
"""

from decimal import Decimal

import pytest

from finsync.core.models import ApplyRelationship, InvoiceLineItem
from finsync.core.transform import (
    APPLY_KEY,
    LINE_ITEM_KEY,
    days_between,
    dedupe_rows,
    extract_apply_relationships,
    extract_line_items,
)


@pytest.mark.unit
class TestDaysBetween:
    """Tests for whole-day differences"""

    def test_whole_days(self):
        assert days_between("2024-03-10", "2024-03-01") == 9

    def test_rounds_down(self):
        """Test that partial days are floored"""
        assert days_between("2024-03-10T23:00:00Z", "2024-03-10T01:00:00Z") == 0
        assert days_between("2024-03-01", "2024-03-10T12:00:00Z") == -10

    def test_negative_when_applied_after_payment(self):
        assert days_between("2024-03-01", "2024-03-05") == -4

    @pytest.mark.parametrize("later,earlier", [
        (None, "2024-03-01"),
        ("2024-03-01", None),
        ("garbage", "2024-03-01"),
    ])
    def test_missing_or_invalid(self, later, earlier):
        assert days_between(later, earlier) is None


@pytest.mark.unit
class TestDedupeRows:
    """Tests for first-occurrence deduplication"""

    def test_first_occurrence_wins_for_dicts(self):
        rows = [
            {"id": "1", "tenant_id": "acme", "v": "first"},
            {"id": "1", "tenant_id": "acme", "v": "second"},
            {"id": "1", "tenant_id": "other", "v": "third"},
        ]
        unique = dedupe_rows(rows, ("id", "tenant_id"))
        assert [r["v"] for r in unique] == ["first", "third"]

    def test_models(self):
        rows = [
            ApplyRelationship(payment_upstream_id="p", invoice_upstream_id="i", apply_amount="1", tenant_id="acme"),
            ApplyRelationship(payment_upstream_id="p", invoice_upstream_id="i", apply_amount="2", tenant_id="acme"),
        ]
        unique = dedupe_rows(rows, APPLY_KEY)
        assert len(unique) == 1
        assert unique[0].apply_amount == Decimal("1")


@pytest.mark.unit
class TestExtractApplyRelationships:
    """Tests for payment -> invoice applications"""

    def test_extracts_each_application(self, payment_factory):
        """Test one row per applied invoice"""
        raw = payment_factory(1, invoice_ids=["1001", "1002"])

        relationships = extract_apply_relationships(raw, "acme")

        assert len(relationships) == 2
        first = relationships[0]
        assert first.payment_upstream_id == "5001"
        assert first.invoice_upstream_id == "1001"
        assert first.payment_number == "PYMT-1"
        assert first.payment_amount == Decimal("1200.00")
        assert first.apply_amount == Decimal("600.00")
        assert first.apply_date == "2024-03-01"
        assert first.invoice_date == "2024-03-01"
        assert first.invoice_number == "INV-1001"
        assert first.days_to_settle == 9
        assert first.tenant_id == "acme"

    def test_no_applications(self):
        assert extract_apply_relationships({"id": "5001"}, "acme") == []
        assert extract_apply_relationships({"id": "5001", "applyRelationships": None}, "acme") == []
        assert extract_apply_relationships({"id": "5001", "applyRelationships": "bad"}, "acme") == []

    def test_entries_without_invoice_are_skipped(self):
        raw = {
            "id": "5001",
            "applyRelationships": [
                {"applyAmount": "10"},
                {"invoiceId": "", "applyAmount": "20"},
                "not-a-dict",
                {"invoiceId": "1001", "applyAmount": "30"},
            ],
        }
        relationships = extract_apply_relationships(raw, "acme")
        assert [r.invoice_upstream_id for r in relationships] == ["1001"]

    def test_payment_fields_fall_back_to_payment_record(self):
        """Test that sparse entries inherit the payment's own fields"""
        raw = {
            "id": "5001",
            "tranId": "PYMT-1",
            "tranDate": "2024-03-10",
            "total": "75.00",
            "customer": {"refName": "Initech"},
            "applyRelationships": [{"invoiceId": "1001", "applyDate": "2024-03-04"}],
        }
        relationship = extract_apply_relationships(raw, "acme")[0]

        assert relationship.payment_upstream_id == "5001"
        assert relationship.payment_number == "PYMT-1"
        assert relationship.payment_date == "2024-03-10"
        assert relationship.payment_amount == Decimal("75.00")
        assert relationship.payment_customer == "Initech"
        assert relationship.days_to_settle == 6

    def test_unparseable_dates_leave_days_empty(self):
        raw = {"id": "5001", "applyRelationships": [{"invoiceId": "1001", "applyDate": "soon"}]}
        assert extract_apply_relationships(raw, "acme")[0].days_to_settle is None

    def test_duplicate_invoice_keeps_first(self, payment_factory):
        raw = payment_factory(1, invoice_ids=["1001", "1001"])
        raw["applyRelationships"][1]["applyAmount"] = "999"

        relationships = extract_apply_relationships(raw, "acme")

        assert len(relationships) == 1
        assert relationships[0].apply_amount == Decimal("600.00")


@pytest.mark.unit
class TestExtractLineItems:
    """Tests for invoice line items"""

    def test_extracts_lines(self, invoice_factory):
        lines = extract_line_items(invoice_factory(1, lines=3), "acme")

        assert len(lines) == 3
        assert all(isinstance(line, InvoiceLineItem) for line in lines)
        first = lines[0]
        assert first.invoice_upstream_id == "1001"
        assert first.line_number == 1
        assert first.item_id == "71"
        assert first.item_name == "Subscription tier 1"
        assert first.quantity == Decimal("1")
        assert first.amount == Decimal("500.00")
        assert first.tax_code == "VAT 20%"
        assert first.tax_rate == Decimal("20")
        assert first.raw_data["description"] == "Line 1"

    def test_position_used_when_line_missing(self):
        raw = {
            "id": "1001",
            "item": {"items": [
                {"item": {"name": "Setup fee"}, "amount": 100},
                {"line": 0, "amount": 50},
                {"line": "7", "amount": 25},
            ]},
        }
        lines = extract_line_items(raw, "acme")

        assert [line.line_number for line in lines] == [1, 2, 3]
        assert lines[0].item_name == "Setup fee"

    def test_plain_string_tax_code(self):
        raw = {"id": "1001", "item": {"items": [{"line": 1, "taxCode": "S"}]}}
        assert extract_line_items(raw, "acme")[0].tax_code == "S"

    def test_invoice_without_lines_or_id(self, invoice_factory):
        assert extract_line_items({"id": "1001"}, "acme") == []
        assert extract_line_items({"id": "1001", "item": {"items": None}}, "acme") == []

        no_id = invoice_factory(1)
        del no_id["id"]
        assert extract_line_items(no_id, "acme") == []

    def test_duplicate_line_numbers_keep_first(self):
        raw = {"id": "1001", "item": {"items": [
            {"line": 1, "amount": 10},
            {"line": 1, "amount": 20},
        ]}}
        lines = extract_line_items(raw, "acme")

        assert len(lines) == 1
        assert lines[0].amount == Decimal("10")
        assert LINE_ITEM_KEY == ("invoice_upstream_id", "line_number", "tenant_id")
