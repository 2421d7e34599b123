"""Pandas DataFrame adapters for RFM records and summaries."""

from typing import List, Optional, Tuple

import pandas as pd  # type: ignore

from retail_rfm.foundation.cleaning import (
    CleaningReport,
    annotate_revenue,
    clean_with_report,
)
from retail_rfm.foundation.rfm import RFMRecord, aggregate_rfm
from retail_rfm.foundation.summary import RFMSummary
from ._utils import decimal_to_float, float_to_decimal
from .transactions import dataframe_to_transactions

RFM_COLUMNS = [
    "customer_id",
    "recency",
    "frequency",
    "monetary",
    "last_purchase_ts",
    "reference_date",
]


def rfm_to_dataframe(records: List[RFMRecord]) -> pd.DataFrame:
    """Convert RFM records to pandas DataFrame.

    Args:
        records: Sequence of RFMRecord objects

    Returns:
        DataFrame with columns: customer_id, recency, frequency, monetary,
        last_purchase_ts, reference_date, sorted by customer_id

    Example:
        >>> rfm_df = rfm_to_dataframe(result.rfm)
        >>> rfm_df.sort_values("monetary", ascending=False).head()
    """
    if not records:
        return pd.DataFrame(columns=RFM_COLUMNS)

    rows = [
        {
            "customer_id": r.customer_id,
            "recency": r.recency,
            "frequency": r.frequency,
            "monetary": decimal_to_float(r.monetary),
            "last_purchase_ts": r.last_purchase_ts,
            "reference_date": r.reference_date,
        }
        for r in records
    ]

    df = pd.DataFrame(rows, columns=RFM_COLUMNS)
    df = df.sort_values("customer_id").reset_index(drop=True)
    return df


def dataframe_to_rfm(rfm_df: pd.DataFrame) -> List[RFMRecord]:
    """Convert pandas DataFrame to RFM records.

    Args:
        rfm_df: DataFrame with RFM columns

    Returns:
        List of validated RFMRecord objects with schema:
        - customer_id: str
        - recency: int
        - frequency: int
        - monetary: float (converted to Decimal)
        - last_purchase_ts: datetime64[ns] (converted to datetime)
        - reference_date: datetime64[ns] (converted to datetime)

    Raises:
        ValueError: If DataFrame missing required columns, has null values, or invalid data

    Note:
        Output is sorted by customer_id (lexicographic order).
    """
    missing_cols = set(RFM_COLUMNS) - set(rfm_df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {missing_cols}")

    if rfm_df.empty:
        return []

    null_cols = rfm_df[RFM_COLUMNS].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(
            f"Null/NaN values found in columns: {null_col_names}. "
            "RFM records require complete data."
        )

    records = []
    for record in rfm_df.to_dict("records"):
        records.append(
            RFMRecord(
                customer_id=str(record["customer_id"]),
                recency=int(record["recency"]),
                frequency=int(record["frequency"]),
                monetary=float_to_decimal(float(record["monetary"])),
                last_purchase_ts=pd.to_datetime(
                    record["last_purchase_ts"]
                ).to_pydatetime(),
                reference_date=pd.to_datetime(record["reference_date"]).to_pydatetime(),
            )
        )

    records.sort(key=lambda r: r.customer_id)
    return records


def summary_to_dataframe(summary: RFMSummary) -> pd.DataFrame:
    """Convert an RFM summary to a 3-row DataFrame.

    Returns:
        DataFrame indexed by metric (recency, frequency, monetary) with
        columns min, max, avg
    """
    data = {
        "recency": summary.recency.as_dict(),
        "frequency": summary.frequency.as_dict(),
        "monetary": summary.monetary.as_dict(),
    }
    df = pd.DataFrame.from_dict(data, orient="index", columns=["min", "max", "avg"])
    df.index.name = "metric"
    return df


def calculate_rfm_df(
    raw_df: pd.DataFrame,
    parallel: bool = True,
    parallel_threshold: int = 1_000_000,
    n_workers: Optional[int] = None,
) -> Tuple[pd.DataFrame, CleaningReport]:
    """Calculate RFM metrics from a DataFrame of raw transactions.

    Convenience function that combines conversion, cleaning, revenue
    annotation and aggregation.

    Args:
        raw_df: DataFrame with raw line items
        parallel: Enable parallel processing (default: True)
        parallel_threshold: Transaction count threshold for parallel processing
        n_workers: Number of worker processes (default: CPU count)

    Returns:
        Tuple of (RFM DataFrame, cleaning report)

    Raises:
        EmptyDatasetError: If no row survives cleaning

    Example:
        >>> raw_df = pd.read_csv("online_retail.csv", dtype={"CustomerID": str})
        >>> rfm_df, report = calculate_rfm_df(raw_df)
        >>> rfm_df[rfm_df["recency"] <= 30]
    """
    cleaned, report = clean_with_report(dataframe_to_transactions(raw_df))
    records = aggregate_rfm(
        annotate_revenue(cleaned),
        parallel=parallel,
        parallel_threshold=parallel_threshold,
        n_workers=n_workers,
    )
    return rfm_to_dataframe(records), report
