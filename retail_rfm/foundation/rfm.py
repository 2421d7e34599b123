"""RFM (Recency-Frequency-Monetary) aggregation over business transactions.

RFM analysis describes each customer along three dimensions:
- Recency: How many days before the latest sale in the dataset did the
  customer last buy?
- Frequency: How many distinct invoices did they place?
- Monetary: How much revenue did they generate in total?

All three are measured against a single reference date, the latest invoice
timestamp across the whole dataset, so every customer's recency is >= 0.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence

from retail_rfm.foundation.transactions import BusinessTransaction

logger = logging.getLogger(__name__)

MONETARY_PRECISION = Decimal("0.01")


class EmptyDatasetError(ValueError):
    """Raised when an aggregation receives no records to work on.

    This signals "no data after cleaning" rather than a crash. Re-running on
    the same input cannot succeed; the input itself has to change.
    """


@dataclass(frozen=True)
class RFMRecord:
    """RFM values for a single customer.

    Attributes
    ----------
    customer_id:
        Customer identifier
    recency:
        Calendar days between the customer's last purchase and the
        dataset-wide reference date
    frequency:
        Number of distinct invoices placed by the customer
    monetary:
        Total revenue from the customer, rounded to 2 decimal places
    last_purchase_ts:
        Timestamp of the customer's latest invoice
    reference_date:
        Latest invoice timestamp across the whole dataset
    """

    customer_id: str
    recency: int
    frequency: int
    monetary: Decimal
    last_purchase_ts: datetime
    reference_date: datetime

    def __post_init__(self) -> None:
        """Validate RFM values."""
        if self.recency < 0:
            raise ValueError(
                f"Recency cannot be negative: {self.recency} (customer_id={self.customer_id})"
            )
        if self.frequency <= 0:
            raise ValueError(
                f"Frequency must be positive: {self.frequency} (customer_id={self.customer_id})"
            )
        if self.monetary < 0:
            raise ValueError(
                f"Monetary value cannot be negative: {self.monetary} (customer_id={self.customer_id})"
            )
        if self.last_purchase_ts > self.reference_date:
            raise ValueError(
                f"Last purchase ({self.last_purchase_ts}) is after reference date "
                f"({self.reference_date}) (customer_id={self.customer_id})"
            )


@dataclass
class CustomerAccumulator:
    """Partial RFM state for one customer.

    Accumulators built from disjoint slices of the input can be merged in
    any order and grouping: latest timestamp is a max, invoices a set union
    and revenue a sum.
    """

    last_purchase_ts: datetime
    invoice_ids: set[str] = field(default_factory=set)
    revenue: Decimal = Decimal("0")

    def add(self, transaction: BusinessTransaction) -> None:
        if transaction.invoice_ts > self.last_purchase_ts:
            self.last_purchase_ts = transaction.invoice_ts
        self.invoice_ids.add(transaction.invoice_id)
        self.revenue += transaction.revenue

    def merge(self, other: "CustomerAccumulator") -> None:
        if other.last_purchase_ts > self.last_purchase_ts:
            self.last_purchase_ts = other.last_purchase_ts
        self.invoice_ids |= other.invoice_ids
        self.revenue += other.revenue


def accumulate_customers(
    transactions: Iterable[BusinessTransaction],
) -> dict[str, CustomerAccumulator]:
    """Fold transactions into one accumulator per customer.

    Module-level so multiprocessing workers can pickle it.
    """
    accumulators: dict[str, CustomerAccumulator] = {}
    for txn in transactions:
        acc = accumulators.get(txn.customer_id)
        if acc is None:
            acc = CustomerAccumulator(last_purchase_ts=txn.invoice_ts)
            accumulators[txn.customer_id] = acc
        acc.add(txn)
    return accumulators


def merge_accumulators(
    partials: Iterable[dict[str, CustomerAccumulator]],
) -> dict[str, CustomerAccumulator]:
    """Merge per-chunk accumulator maps into a single map."""
    merged: dict[str, CustomerAccumulator] = {}
    for partial in partials:
        for customer_id, acc in partial.items():
            existing = merged.get(customer_id)
            if existing is None:
                merged[customer_id] = acc
            else:
                existing.merge(acc)
    return merged


def reference_date_of(transactions: Sequence[BusinessTransaction]) -> datetime:
    """Return the latest invoice timestamp in ``transactions``.

    Raises
    ------
    EmptyDatasetError
        If ``transactions`` is empty.
    """
    if not transactions:
        raise EmptyDatasetError(
            "Cannot determine a reference date: no business transactions"
        )
    return max(txn.invoice_ts for txn in transactions)


def _days_between(later: datetime, earlier: datetime) -> int:
    # Calendar-day difference; the time of day does not count.
    return (later.date() - earlier.date()).days


def _records_from_accumulators(
    accumulators: dict[str, CustomerAccumulator], reference_date: datetime
) -> list[RFMRecord]:
    records: list[RFMRecord] = []
    for customer_id, acc in accumulators.items():
        records.append(
            RFMRecord(
                customer_id=customer_id,
                recency=_days_between(reference_date, acc.last_purchase_ts),
                frequency=len(acc.invoice_ids),
                monetary=acc.revenue.quantize(
                    MONETARY_PRECISION, rounding=ROUND_HALF_UP
                ),
                last_purchase_ts=acc.last_purchase_ts,
                reference_date=reference_date,
            )
        )
    return records


def aggregate_rfm(
    transactions: Sequence[BusinessTransaction],
    *,
    parallel: bool = True,
    parallel_threshold: int = 1_000_000,
    n_workers: Optional[int] = None,
) -> list[RFMRecord]:
    """Compute one RFM record per customer.

    The reference date is the latest invoice timestamp across *all*
    transactions, so each customer's recency is measured against the same
    anchor and is never negative. Frequency counts distinct invoices, not
    line items: one invoice with five lines is a frequency of 1.

    **Parallel Processing**: When ``parallel`` is enabled and the input holds
    at least ``parallel_threshold`` transactions, the input is split into
    contiguous chunks that worker processes fold into partial per-customer
    accumulators. The partial maps are merged in the parent process, which is
    the only synchronisation point. Results are identical to the serial path.

    Parameters
    ----------
    transactions:
        Revenue-annotated transactions from :func:`annotate_revenue`.
    parallel:
        Enable parallel processing (default: True) for inputs at or above
        ``parallel_threshold``.
    parallel_threshold:
        Number of transactions above which to fan out to worker processes
        (default: 1,000,000).
    n_workers:
        Number of worker processes. If None (default), uses CPU count.
        Ignored if parallel=False.

    Returns
    -------
    list[RFMRecord]
        One record per customer, sorted by customer_id

    Raises
    ------
    EmptyDatasetError
        If ``transactions`` is empty.

    Examples
    --------
    >>> from decimal import Decimal
    >>> from retail_rfm.foundation.cleaning import annotate_revenue, clean
    >>> from retail_rfm.foundation.transactions import Transaction
    >>> raw = [
    ...     Transaction("I1", "85123A", "MUG", 2, "1/1/2020 10:00", Decimal("5.0"), "A", "UK"),
    ...     Transaction("I1", "71053", "LANTERN", 1, "1/1/2020 10:00", Decimal("5.0"), "A", "UK"),
    ... ]
    >>> rfm = aggregate_rfm(annotate_revenue(clean(raw)))
    >>> rfm[0].frequency, rfm[0].monetary, rfm[0].recency
    (1, Decimal('15.00'), 0)
    """
    if not transactions:
        raise EmptyDatasetError("Cannot compute RFM metrics: no business transactions")

    num_transactions = len(transactions)
    use_parallel = parallel and num_transactions >= parallel_threshold

    if use_parallel:
        if n_workers is None:
            workers = os.cpu_count() or 1
        else:
            workers = max(1, n_workers)

        chunk_size = max(1, -(-num_transactions // workers))
        chunks = [
            list(transactions[i : i + chunk_size])
            for i in range(0, num_transactions, chunk_size)
        ]
        workers = min(workers, len(chunks))
        logger.info(
            f"Aggregating {num_transactions} transactions in {len(chunks)} chunks "
            f"across {workers} workers"
        )
        with multiprocessing.Pool(processes=workers) as pool:
            partials = pool.map(accumulate_customers, chunks)
        accumulators = merge_accumulators(partials)
    else:
        accumulators = accumulate_customers(transactions)

    reference_date = max(acc.last_purchase_ts for acc in accumulators.values())
    records = _records_from_accumulators(accumulators, reference_date)

    records.sort(key=lambda r: r.customer_id)
    logger.info(
        f"Computed RFM for {len(records)} customers (reference date {reference_date.isoformat()})"
    )
    return records
