"""Tests for the validator, cleaner and revenue annotator."""

import logging
from datetime import datetime
from decimal import Decimal

import pytest

from retail_rfm.foundation.cleaning import (
    CleaningReport,
    RejectionReason,
    annotate_revenue,
    clean,
    clean_with_report,
    is_valid,
    rejection_reason,
)
from retail_rfm.foundation.transactions import (
    CleanTransaction,
    Transaction,
    parse_invoice_timestamp,
)


def make_txn(
    customer_id="A",
    quantity=1,
    unit_price="5.0",
    invoice_id="I1",
    invoice_timestamp="1/1/2020 10:00",
    stock_code="85123A",
    country="United Kingdom",
):
    return Transaction(
        invoice_id=invoice_id,
        stock_code=stock_code,
        description="WHITE HANGING HEART T-LIGHT HOLDER",
        quantity=quantity,
        invoice_timestamp=invoice_timestamp,
        unit_price=Decimal(unit_price),
        customer_id=customer_id,
        country=country,
    )


@pytest.fixture
def mixed_transactions():
    """One valid row per customer plus one row breaking each rule."""
    return [
        make_txn(customer_id="A", invoice_id="I1"),
        make_txn(customer_id="", invoice_id="I2"),
        make_txn(customer_id="B", invoice_id="C3", quantity=-3),
        make_txn(customer_id="C", invoice_id="I4", unit_price="0"),
        make_txn(customer_id="D", invoice_id="I5", invoice_timestamp="2020-01-01 10:00"),
        make_txn(customer_id="E", invoice_id="I6", quantity=2, unit_price="1.25"),
    ]


class TestValidator:
    """Test is_valid and rejection_reason."""

    def test_valid_transaction(self):
        assert is_valid(make_txn())
        assert rejection_reason(make_txn()) is None

    @pytest.mark.parametrize("customer_id", [None, "", "   ", "\t"])
    def test_missing_customer_id(self, customer_id):
        txn = make_txn(customer_id=customer_id)
        assert not is_valid(txn)
        assert rejection_reason(txn) is RejectionReason.MISSING_CUSTOMER_ID

    @pytest.mark.parametrize("quantity", [0, -1, -3])
    def test_non_positive_quantity(self, quantity):
        txn = make_txn(quantity=quantity)
        assert rejection_reason(txn) is RejectionReason.NON_POSITIVE_QUANTITY

    @pytest.mark.parametrize("price", ["0", "0.00", "-11062.06"])
    def test_non_positive_unit_price(self, price):
        txn = make_txn(unit_price=price)
        assert rejection_reason(txn) is RejectionReason.NON_POSITIVE_UNIT_PRICE

    def test_malformed_timestamp(self):
        txn = make_txn(invoice_timestamp="31/12/2010 10:00")
        assert rejection_reason(txn) is RejectionReason.MALFORMED_TIMESTAMP

    def test_first_failing_rule_reported(self):
        """Rules are checked in order: customer, quantity, price, timestamp."""
        txn = make_txn(customer_id=None, quantity=-1, unit_price="0", invoice_timestamp="bad")
        assert rejection_reason(txn) is RejectionReason.MISSING_CUSTOMER_ID
        txn = make_txn(quantity=-1, unit_price="0", invoice_timestamp="bad")
        assert rejection_reason(txn) is RejectionReason.NON_POSITIVE_QUANTITY
        txn = make_txn(unit_price="0", invoice_timestamp="bad")
        assert rejection_reason(txn) is RejectionReason.NON_POSITIVE_UNIT_PRICE

    def test_whitespace_padded_customer_is_valid(self):
        assert is_valid(make_txn(customer_id=" 17850 "))


class TestClean:
    """Test clean and clean_with_report."""

    def test_only_valid_records_kept(self, mixed_transactions):
        cleaned = clean(mixed_transactions)
        assert [t.invoice_id for t in cleaned] == ["I1", "I6"]
        assert all(isinstance(t, CleanTransaction) for t in cleaned)

    def test_output_satisfies_every_rule(self, mixed_transactions):
        cleaned = clean(mixed_transactions)
        for txn in cleaned:
            assert txn.customer_id and txn.customer_id.strip() == txn.customer_id
            assert txn.quantity > 0
            assert txn.unit_price > 0
            assert txn.invoice_ts == parse_invoice_timestamp(txn.invoice_timestamp)

    def test_every_valid_record_kept(self, mixed_transactions):
        cleaned_ids = {t.invoice_id for t in clean(mixed_transactions)}
        valid_ids = {t.invoice_id for t in mixed_transactions if is_valid(t)}
        assert cleaned_ids == valid_ids

    def test_order_preserved(self):
        txns = [make_txn(invoice_id=f"I{i}", customer_id=str(10 - i)) for i in range(10)]
        assert [t.invoice_id for t in clean(txns)] == [f"I{i}" for i in range(10)]

    def test_input_not_mutated(self, mixed_transactions):
        snapshot = list(mixed_transactions)
        clean(mixed_transactions)
        assert mixed_transactions == snapshot

    def test_customer_id_trimmed(self):
        cleaned = clean([make_txn(customer_id="  17850 ")])
        assert cleaned[0].customer_id == "17850"

    def test_returns_excluded(self):
        """Scenario: a record with negative quantity never reaches the output."""
        cleaned = clean([make_txn(quantity=-3)])
        assert cleaned == []

    def test_empty_customer_excluded(self):
        cleaned = clean([make_txn(customer_id="")])
        assert cleaned == []

    def test_empty_input(self):
        cleaned, report = clean_with_report([])
        assert cleaned == []
        assert report.total_records == 0
        assert report.rejected == 0

    def test_accepts_generator(self):
        cleaned = clean(make_txn(invoice_id=f"I{i}") for i in range(3))
        assert len(cleaned) == 3

    def test_report_counts(self, mixed_transactions):
        _, report = clean_with_report(mixed_transactions)
        assert report.total_records == 6
        assert report.accepted == 2
        assert report.rejected == 4
        assert report.rejected_by_reason == {
            RejectionReason.MISSING_CUSTOMER_ID: 1,
            RejectionReason.NON_POSITIVE_QUANTITY: 1,
            RejectionReason.NON_POSITIVE_UNIT_PRICE: 1,
            RejectionReason.MALFORMED_TIMESTAMP: 1,
        }

    def test_report_as_dict(self, mixed_transactions):
        _, report = clean_with_report(mixed_transactions)
        payload = report.as_dict()
        assert payload["rejected"] == 4
        assert payload["rejected_by_reason"]["malformed_timestamp"] == 1

    def test_rejections_logged(self, mixed_transactions, caplog):
        with caplog.at_level(logging.WARNING, logger="retail_rfm.foundation.cleaning"):
            clean_with_report(mixed_transactions)
        assert "Rejected 4 of 6 transactions" in caplog.text

    def test_report_rejects_inconsistent_counts(self):
        with pytest.raises(ValueError, match="total_records"):
            CleaningReport(
                total_records=3,
                accepted=1,
                rejected_by_reason={RejectionReason.MISSING_CUSTOMER_ID: 1},
            )


class TestAnnotateRevenue:
    """Test annotate_revenue."""

    def test_revenue_is_quantity_times_price(self):
        cleaned = clean([make_txn(quantity=2, unit_price="5.0")])
        [annotated] = annotate_revenue(cleaned)
        assert annotated.revenue == 2 * Decimal("5.0")
        assert annotated.revenue == cleaned[0].quantity * cleaned[0].unit_price

    def test_no_rounding_applied(self):
        cleaned = clean([make_txn(quantity=3, unit_price="0.425")])
        [annotated] = annotate_revenue(cleaned)
        assert annotated.revenue == Decimal("1.275")

    def test_same_invoice_lines(self):
        """Scenario: two lines on one invoice give revenues 10.0 and 5.0."""
        raw = [
            make_txn(quantity=2, unit_price="5.0", invoice_id="I1"),
            make_txn(quantity=1, unit_price="5.0", invoice_id="I1"),
        ]
        annotated = annotate_revenue(clean(raw))
        assert [t.revenue for t in annotated] == [Decimal("10.0"), Decimal("5.0")]
        assert [float(t.revenue) for t in annotated] == [10.0, 5.0]

    def test_fields_carried_over(self):
        cleaned = clean([make_txn(customer_id=" A", stock_code="POST", country="France")])
        [annotated] = annotate_revenue(cleaned)
        assert annotated.customer_id == "A"
        assert annotated.stock_code == "POST"
        assert annotated.country == "France"
        assert annotated.invoice_ts == datetime(2020, 1, 1, 10, 0)

    def test_revenue_always_positive(self, mixed_transactions):
        for txn in annotate_revenue(clean(mixed_transactions)):
            assert txn.revenue > 0

    def test_empty_input(self):
        assert annotate_revenue([]) == []
