"""
Unit tests for record transformers and payload parsing helpers.
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from finsync.core.currency import CurrencyNormalizer
from finsync.core.models import CreditMemo, Invoice, Opportunity, Order, Payment, Quote
from finsync.core.transform import (
    TRANSFORMERS,
    transform,
    transform_credit_memo,
    transform_invoice,
    transform_opportunity,
    transform_order,
    transform_payment,
    transform_quote,
)
from finsync.core.transform.parsing import (
    parse_amount,
    parse_bool,
    parse_datetime,
    parse_optional_amount,
    ref_id,
    ref_name,
    to_str,
)

NORMALIZER = CurrencyNormalizer()

json_scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-10**12, max_value=10**12),
    st.floats(allow_nan=True, allow_infinity=True),
    st.text(max_size=20),
)
json_values = st.recursive(
    json_scalars,
    lambda children: st.one_of(
        st.lists(children, max_size=3),
        st.dictionaries(st.text(max_size=10), children, max_size=3),
    ),
    max_leaves=10,
)
known_keys = st.sampled_from([
    "id", "tranId", "tranDate", "total", "subTotal", "taxTotal", "discountTotal",
    "status", "memo", "currency", "entity", "customer", "account", "createdDate",
    "Id", "Name", "Amount", "Probability", "IsClosed", "IsWon", "CurrencyIsoCode",
    "TotalAmount", "OrderNumber", "SBQQ__Renewal__c", "item", "applyRelationships",
    "SBQQ__NetAmount__c", "Total_ARR__c", "SBQQ__Primary__c",
])
raw_records = st.dictionaries(st.one_of(known_keys, st.text(max_size=10)), json_values, max_size=12)


@pytest.mark.unit
class TestParsing:
    """Tests for the tolerant field accessors"""

    @pytest.mark.parametrize("value,expected", [
        ("1,234.50", Decimal("1234.50")),
        ("  99.9 ", Decimal("99.9")),
        (12, Decimal("12")),
        (0.1, Decimal("0.1")),
        (Decimal("5.25"), Decimal("5.25")),
        (None, Decimal("0")),
        ("", Decimal("0")),
        ("n/a", Decimal("0")),
        (True, Decimal("0")),
        (float("nan"), Decimal("0")),
        ("Infinity", Decimal("0")),
        ({"value": 1}, Decimal("0")),
    ])
    def test_parse_amount(self, value, expected):
        assert parse_amount(value) == expected

    def test_parse_optional_amount_keeps_absence(self):
        assert parse_optional_amount(None) is None
        assert parse_optional_amount("") is None
        assert parse_optional_amount("75") == Decimal("75")

    @pytest.mark.parametrize("value,expected", [
        (True, True),
        ("true", True),
        ("Yes", True),
        ("0", False),
        ("false", False),
        (None, None),
        ("maybe", None),
    ])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected

    def test_to_str(self):
        assert to_str(81234) == "81234"
        assert to_str("") is None
        assert to_str(None) is None
        assert to_str({"id": "1"}) is None

    def test_references(self):
        ref = {"id": "512", "refName": "Globex Corporation"}
        assert ref_name(ref) == "Globex Corporation"
        assert ref_id(ref) == "512"
        assert ref_name("Globex") is None
        assert ref_id(None) is None

    def test_parse_datetime(self):
        parsed = parse_datetime("2024-03-10")
        assert parsed.year == 2024 and parsed.tzinfo is not None

        with_offset = parse_datetime("2024-02-01T12:00:00.000+0000")
        assert with_offset.hour == 12

        assert parse_datetime("not a date") is None
        assert parse_datetime(None) is None
        assert parse_datetime("") is None


@pytest.mark.unit
class TestErpTransformers:
    """Tests for invoice, payment and credit memo transformers"""

    def test_invoice(self, invoice_factory):
        """Test mapping a detailed ERP invoice"""
        raw = invoice_factory(1)

        invoice = transform_invoice(raw, "acme", NORMALIZER)

        assert isinstance(invoice, Invoice)
        assert invoice.upstream_id == "1001"
        assert invoice.tenant_id == "acme"
        assert invoice.tran_id == "INV-1001"
        assert invoice.tran_date == "2024-03-01"
        assert invoice.entity_name == "Globex Corporation"
        assert invoice.entity_id == "512"
        assert invoice.total == Decimal("1200.00")
        assert invoice.subtotal == Decimal("1000.00")
        assert invoice.tax_total == Decimal("200.00")
        assert invoice.discount_total == Decimal("0")
        assert invoice.status == "Open"
        assert invoice.currency_code == "EUR"
        assert invoice.exchange_rate == Decimal("1")
        assert invoice.crm_order_number == "00001"
        assert invoice.raw_data == raw

    def test_invoice_missing_currency_defaults_to_usd(self):
        invoice = transform_invoice({"id": "7"}, "acme", NORMALIZER)
        assert invoice.currency_code == "USD"
        assert invoice.total == Decimal("0")
        assert invoice.entity_name is None

    def test_unknown_currency_kept_verbatim(self):
        raw = {"id": "7", "currency": {"refName": "Galactic Credit"}}
        assert transform_invoice(raw, "acme", NORMALIZER).currency_code == "Galactic Credit"

    def test_dates_pass_through_unchanged(self):
        """Test that upstream date strings are not reformatted"""
        raw = {"id": "7", "tranDate": "3/1/2024", "createdDate": "2024-03-01T09:15:00Z"}
        invoice = transform_invoice(raw, "acme", NORMALIZER)
        assert invoice.tran_date == "3/1/2024"
        assert invoice.created_date == "2024-03-01T09:15:00Z"

    def test_payment(self, payment_factory):
        """Test that payments read the customer and account references"""
        payment = transform_payment(payment_factory(3), "acme", NORMALIZER)

        assert isinstance(payment, Payment)
        assert payment.upstream_id == "5003"
        assert payment.entity_name == "Globex Corporation"
        assert payment.entity_id == "512"
        assert payment.payment_method == "Operating Account"
        assert payment.reference_number == "Wire 3"
        assert payment.currency_code == "USD"

    def test_credit_memo(self):
        raw = {
            "id": "300",
            "tranId": "CM-1",
            "entity": {"id": "9", "refName": "Initech"},
            "total": "-50.00",
            "subTotal": "-50.00",
            "currency": {"refName": "Pound Sterling"},
        }
        memo = transform_credit_memo(raw, "acme", NORMALIZER)

        assert isinstance(memo, CreditMemo)
        assert memo.total == Decimal("-50.00")
        assert memo.subtotal == Decimal("-50.00")
        assert memo.entity_name == "Initech"
        assert memo.currency_code == "GBP"

    def test_missing_id_yields_unkeyed_row(self):
        """Test that a record without id is transformed but not keyed"""
        row = transform_invoice({"tranId": "INV-9"}, "acme", NORMALIZER)
        assert row.upstream_id == ""
        assert row.is_keyed is False


@pytest.mark.unit
class TestCrmTransformers:
    """Tests for opportunity, order and quote transformers"""

    def test_opportunity(self, opportunity_factory):
        opportunity = transform_opportunity(opportunity_factory(4), "acme", NORMALIZER)

        assert isinstance(opportunity, Opportunity)
        assert opportunity.upstream_id == "0065g0000000000004"
        assert opportunity.name == "Opportunity 4"
        assert opportunity.amount == Decimal("48000.0")
        assert opportunity.probability == Decimal("100")
        assert opportunity.is_closed is True
        assert opportunity.is_won is True
        assert opportunity.is_renewal is True
        assert opportunity.auto_renew_quote is None
        assert opportunity.currency_code == "USD"
        assert opportunity.created_date == "2024-02-01T12:00:00.000+0000"

    def test_opportunity_without_currency(self):
        opportunity = transform_opportunity({"Id": "006x"}, "acme", NORMALIZER)
        assert opportunity.currency_code is None
        assert opportunity.is_closed is False
        assert opportunity.probability is None

    def test_order(self):
        raw = {
            "Id": "8015g000001",
            "OrderNumber": "00001042",
            "OpportunityId": "0065g00000XyZ",
            "SBQQ__Quote__c": "a0q5g000001",
            "Status": "Activated",
            "EffectiveDate": "2024-03-01",
            "TotalAmount": 48000,
            "Billing_Frequency__c": "Annual",
            "Shipping_Address_Country_Code__c": "DE",
            "CurrencyIsoCode": "EUR",
        }
        order = transform_order(raw, "acme", NORMALIZER)

        assert isinstance(order, Order)
        assert order.order_number == "00001042"
        assert order.opportunity_upstream_id == "0065g00000XyZ"
        assert order.quote_upstream_id == "a0q5g000001"
        assert order.total_amount == Decimal("48000")
        assert order.billing_frequency == "Annual"
        assert order.shipping_country_code == "DE"
        assert order.currency_code == "EUR"


    def test_quote(self):
        raw = {
            "Id": "a0q5g000001",
            "Name": "Q-01042",
            "SBQQ__Status__c": "Approved",
            "SBQQ__NetAmount__c": 48000,
            "Quote_Total__c": "48000.00",
            "Total_ARR__c": None,
            "New_ARR__c": 12000.5,
            "SBQQ__Opportunity2__c": "0065g00000XyZ",
            "SBQQ__Primary__c": True,
            "Renewal__c": False,
            "SBQQ__BillingFrequency__c": "Annual",
            "CurrencyIsoCode": "EUR",
        }
        quote = transform_quote(raw, "acme", NORMALIZER)

        assert isinstance(quote, Quote)
        assert quote.upstream_id == "a0q5g000001"
        assert quote.status == "Approved"
        assert quote.net_amount == Decimal("48000")
        assert quote.quote_total == Decimal("48000.00")
        assert quote.total_arr is None
        assert quote.new_arr == Decimal("12000.5")
        assert quote.opportunity_upstream_id == "0065g00000XyZ"
        assert quote.is_primary is True
        assert quote.is_renewal is False
        assert quote.is_ordered is None
        assert quote.currency_code == "EUR"
        assert quote.raw_data == raw


@pytest.mark.unit
class TestTransformDispatch:
    """Tests for the entity -> transformer registry"""

    def test_registry_covers_every_entity(self):
        assert set(TRANSFORMERS) == {"invoices", "payments", "credit_memos", "opportunities", "orders", "quotes"}

    def test_transform_dispatches(self):
        row = transform("orders", {"Id": "801"}, "acme")
        assert isinstance(row, Order)

    def test_unknown_entity(self):
        with pytest.raises(KeyError, match="Unknown entity type"):
            transform("vendor_bills", {}, "acme")

    @given(st.sampled_from(sorted(TRANSFORMERS)), raw_records)
    def test_transformers_never_raise(self, entity, raw):
        """Property: any JSON-shaped record transforms without raising"""
        row = transform(entity, raw, "acme", NORMALIZER)
        assert row.tenant_id == "acme"
