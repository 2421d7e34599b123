"""Validation, cleaning and revenue annotation of raw transactions.

A raw row is kept only when all of the following hold:

1. ``customer_id`` is present and not blank (whitespace-only counts as blank).
2. ``quantity > 0``; returns and zero-quantity adjustments are excluded.
3. ``unit_price > 0``.
4. ``invoice_timestamp`` parses as ``month/day/year hour:minute``.

Rejected rows are not errors. They are dropped from the output and counted
in a :class:`CleaningReport` so callers can monitor data quality.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

from retail_rfm.foundation.transactions import (
    BusinessTransaction,
    CleanTransaction,
    MalformedTimestampError,
    Transaction,
    parse_invoice_timestamp,
)

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    """Why a raw transaction was excluded, in the order rules are checked."""

    MISSING_CUSTOMER_ID = "missing_customer_id"
    NON_POSITIVE_QUANTITY = "non_positive_quantity"
    NON_POSITIVE_UNIT_PRICE = "non_positive_unit_price"
    MALFORMED_TIMESTAMP = "malformed_timestamp"


@dataclass(frozen=True)
class CleaningReport:
    """Counts describing one cleaning run.

    Attributes
    ----------
    total_records:
        Number of raw records inspected
    accepted:
        Number of records that passed every rule
    rejected_by_reason:
        Rejected record count keyed by the first rule each record failed
    """

    total_records: int
    accepted: int
    rejected_by_reason: dict[RejectionReason, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.accepted + self.rejected != self.total_records:
            raise ValueError(
                f"accepted ({self.accepted}) + rejected ({self.rejected}) "
                f"!= total_records ({self.total_records})"
            )

    @property
    def rejected(self) -> int:
        return sum(self.rejected_by_reason.values())

    def as_dict(self) -> dict[str, object]:
        return {
            "total_records": self.total_records,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "rejected_by_reason": {
                reason.value: count for reason, count in self.rejected_by_reason.items()
            },
        }


def rejection_reason(transaction: Transaction) -> RejectionReason | None:
    """Return the first rule ``transaction`` breaks, or ``None`` if it is valid."""
    customer_id = transaction.customer_id
    if customer_id is None or not customer_id.strip():
        return RejectionReason.MISSING_CUSTOMER_ID
    if transaction.quantity <= 0:
        return RejectionReason.NON_POSITIVE_QUANTITY
    if transaction.unit_price <= 0:
        return RejectionReason.NON_POSITIVE_UNIT_PRICE
    try:
        parse_invoice_timestamp(transaction.invoice_timestamp)
    except MalformedTimestampError:
        return RejectionReason.MALFORMED_TIMESTAMP
    return None


def is_valid(transaction: Transaction) -> bool:
    """Return True when ``transaction`` satisfies every validity rule."""
    return rejection_reason(transaction) is None


def clean_with_report(
    transactions: Iterable[Transaction],
) -> tuple[list[CleanTransaction], CleaningReport]:
    """Filter raw transactions down to valid ones and count the rejections.

    Relative input order is preserved. The input is not modified.

    Parameters
    ----------
    transactions:
        Raw transactions. Any iterable is accepted and consumed once.

    Returns
    -------
    tuple[list[CleanTransaction], CleaningReport]
        Valid transactions with trimmed customer ids and parsed timestamps,
        and the counts for this run.
    """
    cleaned: list[CleanTransaction] = []
    rejected: Counter[RejectionReason] = Counter()
    total = 0

    for transaction in transactions:
        total += 1
        reason = rejection_reason(transaction)
        if reason is not None:
            rejected[reason] += 1
            continue
        cleaned.append(
            CleanTransaction.from_transaction(
                transaction, parse_invoice_timestamp(transaction.invoice_timestamp)
            )
        )

    report = CleaningReport(
        total_records=total,
        accepted=len(cleaned),
        rejected_by_reason={
            reason: rejected[reason] for reason in RejectionReason if rejected[reason]
        },
    )
    if report.rejected:
        breakdown = ", ".join(
            f"{reason.value}={count}" for reason, count in report.rejected_by_reason.items()
        )
        logger.warning(
            f"Rejected {report.rejected} of {total} transactions ({breakdown})"
        )
    logger.info(f"Cleaning kept {report.accepted} of {total} transactions")
    return cleaned, report


def clean(transactions: Iterable[Transaction]) -> list[CleanTransaction]:
    """Return only the valid transactions, in input order."""
    cleaned, _ = clean_with_report(transactions)
    return cleaned


def annotate_revenue(
    transactions: Sequence[CleanTransaction],
) -> list[BusinessTransaction]:
    """Attach ``revenue = quantity * unit_price`` to each clean transaction.

    No rounding happens here; revenue keeps the full Decimal precision of
    its inputs and is only rounded when aggregated or reported.
    """
    return [
        BusinessTransaction(
            invoice_id=txn.invoice_id,
            stock_code=txn.stock_code,
            description=txn.description,
            quantity=txn.quantity,
            invoice_timestamp=txn.invoice_timestamp,
            unit_price=txn.unit_price,
            customer_id=txn.customer_id,
            country=txn.country,
            invoice_ts=txn.invoice_ts,
            revenue=txn.quantity * txn.unit_price,
        )
        for txn in transactions
    ]
