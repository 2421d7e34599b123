from datetime import date

import pytest

from retail_rfm.foundation.cleaning import RejectionReason, clean_with_report
from retail_rfm.foundation.transactions import parse_invoice_timestamp
from retail_rfm.pipeline import PipelineConfig, run_pipeline
from retail_rfm.synthetic import (
    CLEAN_SCENARIO,
    RetailScenario,
    generate_customers,
    generate_raw_transactions,
    generate_transactions,
)

START = date(2010, 12, 1)
END = date(2011, 12, 9)


def test_generate_customers_and_transactions_basic() -> None:
    customers = generate_customers(50, START, END, seed=7)
    assert len(customers) == 50
    assert customers[0].customer_id == "12346"
    assert all(START <= c.acquisition_date <= END for c in customers)

    txns = generate_transactions(
        customers, START, END, scenario=RetailScenario(seed=11)
    )
    assert isinstance(txns, list)
    # Not asserting an exact count; ensure plausible volume
    assert len(txns) > 0


def test_clean_scenario_passes_validation() -> None:
    scenario = RetailScenario(
        return_rate=0.0,
        missing_customer_rate=0.0,
        zero_price_rate=0.0,
        malformed_timestamp_rate=0.0,
        seed=3,
    )
    txns = generate_raw_transactions(30, START, END, scenario=scenario)
    cleaned, report = clean_with_report(txns)
    assert report.rejected == 0
    assert len(cleaned) == len(txns)


def test_timestamps_within_window_and_after_acquisition() -> None:
    customers = generate_customers(20, START, END, seed=5)
    acquired = {c.customer_id: c.acquisition_date for c in customers}
    txns = generate_transactions(customers, START, END, scenario=RetailScenario(
        return_rate=0.0,
        missing_customer_rate=0.0,
        zero_price_rate=0.0,
        malformed_timestamp_rate=0.0,
        seed=5,
    ))
    for txn in txns:
        ts = parse_invoice_timestamp(txn.invoice_timestamp).date()
        assert START <= ts <= END
        assert ts >= acquired[txn.customer_id]


def test_dirty_rows_produce_every_rejection_reason() -> None:
    scenario = RetailScenario(
        return_rate=0.1,
        missing_customer_rate=0.1,
        zero_price_rate=0.1,
        malformed_timestamp_rate=0.1,
        seed=42,
    )
    txns = generate_raw_transactions(60, START, END, scenario=scenario)
    _, report = clean_with_report(txns)

    assert report.accepted > 0
    for reason in RejectionReason:
        assert report.rejected_by_reason.get(reason, 0) > 0


def test_returns_use_credit_invoices() -> None:
    scenario = RetailScenario(
        return_rate=1.0,
        missing_customer_rate=0.0,
        zero_price_rate=0.0,
        malformed_timestamp_rate=0.0,
        seed=1,
    )
    txns = generate_raw_transactions(5, START, END, scenario=scenario)
    assert txns
    assert all(t.quantity < 0 and t.invoice_id.startswith("C") for t in txns)


def test_same_seed_is_reproducible() -> None:
    scenario = RetailScenario(seed=99)
    first = generate_raw_transactions(10, START, END, scenario=scenario)
    second = generate_raw_transactions(10, START, END, scenario=scenario)
    assert first == second


def test_pipeline_on_synthetic_data() -> None:
    txns = generate_raw_transactions(40, START, END, scenario=RetailScenario(seed=8))
    result = run_pipeline(txns, PipelineConfig(parallel=False))

    assert result.summary.customer_count == len(result.rfm)
    assert all(r.recency >= 0 for r in result.rfm)
    assert all(r.frequency >= 1 for r in result.rfm)
    assert min(r.recency for r in result.rfm) == 0


def test_empty_inputs_are_handled() -> None:
    assert generate_customers(0, START, END) == []
    assert generate_transactions([], START, END) == []


def test_scenario_validation() -> None:
    with pytest.raises(ValueError, match="return_rate"):
        RetailScenario(return_rate=1.5)
    with pytest.raises(ValueError, match="Combined dirty-row rates"):
        RetailScenario(return_rate=0.6, missing_customer_rate=0.6)
    with pytest.raises(ValueError, match="max_lines_per_invoice"):
        RetailScenario(max_lines_per_invoice=0)
    with pytest.raises(ValueError):
        generate_customers(3, END, START)


def test_clean_scenario_constant_has_no_dirty_rates() -> None:
    assert CLEAN_SCENARIO.return_rate == 0.0
    assert CLEAN_SCENARIO.missing_customer_rate == 0.0
    assert CLEAN_SCENARIO.zero_price_rate == 0.0
    assert CLEAN_SCENARIO.malformed_timestamp_rate == 0.0
