"""Summary statistics over an RFM table."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

from retail_rfm.foundation.rfm import EmptyDatasetError, RFMRecord

AVERAGE_PRECISION = Decimal("0.01")

Number = Union[int, Decimal]


@dataclass(frozen=True)
class MetricSummary:
    """Min, max and average of one RFM dimension.

    ``average`` is rounded to 2 decimal places; ``minimum`` and ``maximum``
    keep the type of the underlying metric.
    """

    minimum: Number
    maximum: Number
    average: Decimal

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise ValueError(
                f"Minimum ({self.minimum}) cannot exceed maximum ({self.maximum})"
            )

    def as_dict(self) -> dict[str, float]:
        return {
            "min": float(self.minimum),
            "max": float(self.maximum),
            "avg": float(self.average),
        }


@dataclass(frozen=True)
class RFMSummary:
    """Summary of an RFM table across all customers."""

    customer_count: int
    recency: MetricSummary
    frequency: MetricSummary
    monetary: MetricSummary

    def as_dict(self) -> dict[str, object]:
        return {
            "customer_count": self.customer_count,
            "recency": self.recency.as_dict(),
            "frequency": self.frequency.as_dict(),
            "monetary": self.monetary.as_dict(),
        }


class _RunningStats:
    """Running min/max/sum over one metric."""

    def __init__(self) -> None:
        self.minimum: Number | None = None
        self.maximum: Number | None = None
        self.total = Decimal("0")

    def add(self, value: Number) -> None:
        if self.minimum is None or value < self.minimum:
            self.minimum = value
        if self.maximum is None or value > self.maximum:
            self.maximum = value
        self.total += value

    def summary(self, count: int) -> MetricSummary:
        average = (self.total / count).quantize(
            AVERAGE_PRECISION, rounding=ROUND_HALF_UP
        )
        return MetricSummary(minimum=self.minimum, maximum=self.maximum, average=average)


def summarize_rfm(records: Iterable[RFMRecord]) -> RFMSummary:
    """Reduce RFM records to min/max/average per dimension in a single pass.

    Parameters
    ----------
    records:
        RFM records, typically from :func:`aggregate_rfm`.

    Returns
    -------
    RFMSummary
        Per-dimension statistics plus the number of customers summarised

    Raises
    ------
    EmptyDatasetError
        If ``records`` is empty, since min/max/average are undefined.

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> ts = datetime(2020, 1, 10)
    >>> summary = summarize_rfm([
    ...     RFMRecord("A", 0, 2, Decimal("15.00"), ts, ts),
    ...     RFMRecord("B", 5, 1, Decimal("10.00"), datetime(2020, 1, 5), ts),
    ... ])
    >>> summary.recency.average
    Decimal('2.50')
    """
    recency = _RunningStats()
    frequency = _RunningStats()
    monetary = _RunningStats()
    count = 0

    for record in records:
        recency.add(record.recency)
        frequency.add(record.frequency)
        monetary.add(record.monetary)
        count += 1

    if count == 0:
        raise EmptyDatasetError("Cannot summarise an empty RFM table")

    return RFMSummary(
        customer_count=count,
        recency=recency.summary(count),
        frequency=frequency.summary(count),
        monetary=monetary.summary(count),
    )
