"""Pandas DataFrame adapters for raw and business transactions."""

from typing import List, Sequence, Tuple

import pandas as pd  # type: ignore

from retail_rfm.foundation.cleaning import (
    CleaningReport,
    annotate_revenue,
    clean_with_report,
)
from retail_rfm.foundation.transactions import BusinessTransaction, Transaction
from ._utils import decimal_to_float

TRANSACTION_COLUMNS = [
    "invoice_id",
    "stock_code",
    "description",
    "quantity",
    "invoice_timestamp",
    "unit_price",
    "customer_id",
    "country",
    "invoice_ts",
    "revenue",
]


def transactions_to_dataframe(
    transactions: Sequence[BusinessTransaction],
) -> pd.DataFrame:
    """Convert business transactions to a pandas DataFrame.

    Args:
        transactions: Revenue-annotated transactions

    Returns:
        DataFrame with the columns in ``TRANSACTION_COLUMNS``, in input
        order. ``unit_price`` and ``revenue`` are floats; ``invoice_ts``
        is datetime64.

    Example:
        >>> df = transactions_to_dataframe(result.transactions)
        >>> df.groupby("country")["revenue"].sum()
    """
    if not transactions:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS)

    rows = [
        {
            "invoice_id": t.invoice_id,
            "stock_code": t.stock_code,
            "description": t.description,
            "quantity": t.quantity,
            "invoice_timestamp": t.invoice_timestamp,
            "unit_price": decimal_to_float(t.unit_price),
            "customer_id": t.customer_id,
            "country": t.country,
            "invoice_ts": t.invoice_ts,
            "revenue": decimal_to_float(t.revenue),
        }
        for t in transactions
    ]
    return pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)


def dataframe_to_transactions(raw_df: pd.DataFrame) -> List[Transaction]:
    """Convert a DataFrame of raw rows to Transaction objects.

    Column names may be the Online Retail headers (``InvoiceNo``,
    ``UnitPrice``...) or the snake_case field names. ``InvoiceDate`` must
    still hold the raw ``month/day/year hour:minute`` strings; do not let
    ``read_csv`` parse it.

    Args:
        raw_df: DataFrame with one raw line item per row

    Returns:
        List of Transaction objects, one per row, in row order

    Raises:
        ValueError: If a row lacks quantity/unit_price/timestamp or holds
            non-numeric values in those columns

    Example:
        >>> raw_df = pd.read_csv("online_retail.csv", dtype={"CustomerID": str})
        >>> transactions = dataframe_to_transactions(raw_df)
    """
    if raw_df.empty:
        return []

    # NaN -> None so missing customer ids and descriptions read as absent
    records = raw_df.astype(object).where(raw_df.notna(), None).to_dict("records")
    return [
        Transaction.from_mapping(record, index=idx) for idx, record in enumerate(records)
    ]


def clean_dataframe(raw_df: pd.DataFrame) -> Tuple[pd.DataFrame, CleaningReport]:
    """Clean a DataFrame of raw rows and annotate revenue.

    Convenience function that combines conversion, cleaning and revenue
    annotation.

    Args:
        raw_df: DataFrame with raw line items

    Returns:
        Tuple of (business transaction DataFrame, cleaning report)

    Example:
        >>> business_df, report = clean_dataframe(raw_df)
        >>> report.rejected
        135080
    """
    cleaned, report = clean_with_report(dataframe_to_transactions(raw_df))
    return transactions_to_dataframe(annotate_revenue(cleaned)), report
