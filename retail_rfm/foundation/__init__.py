"""Foundational building blocks of the transaction-to-RFM pipeline.

This package exposes the transaction models, the validity rules and cleaner,
revenue annotation, RFM aggregation and the summary reducer.
"""

from .cleaning import (
    CleaningReport,
    RejectionReason,
    annotate_revenue,
    clean,
    clean_with_report,
    is_valid,
    rejection_reason,
)
from .rfm import (
    CustomerAccumulator,
    EmptyDatasetError,
    RFMRecord,
    aggregate_rfm,
    reference_date_of,
)
from .summary import MetricSummary, RFMSummary, summarize_rfm
from .transactions import (
    INVOICE_TIMESTAMP_FORMAT,
    BusinessTransaction,
    CleanTransaction,
    MalformedTimestampError,
    Transaction,
    parse_invoice_timestamp,
)

__all__ = [
    "INVOICE_TIMESTAMP_FORMAT",
    "BusinessTransaction",
    "CleanTransaction",
    "CleaningReport",
    "CustomerAccumulator",
    "EmptyDatasetError",
    "MalformedTimestampError",
    "MetricSummary",
    "RFMRecord",
    "RFMSummary",
    "RejectionReason",
    "Transaction",
    "aggregate_rfm",
    "annotate_revenue",
    "clean",
    "clean_with_report",
    "is_valid",
    "parse_invoice_timestamp",
    "reference_date_of",
    "rejection_reason",
    "summarize_rfm",
]
