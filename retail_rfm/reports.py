"""Read-only revenue reports over the cleaned pipeline output.

Each report is a group-by / sort / limit over business transactions or the
RFM table. Revenue columns are rounded to 2 decimal places. Empty inputs give
an empty DataFrame with the documented columns.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import pandas as pd

from retail_rfm.foundation.rfm import RFMRecord
from retail_rfm.foundation.transactions import BusinessTransaction
from retail_rfm.pandas import rfm_to_dataframe, transactions_to_dataframe

logger = logging.getLogger(__name__)

REVENUE_PRECISION = 2

RFM_SORT_METRICS = ("recency", "frequency", "monetary")


def _check_top_n(top_n: Optional[int]) -> None:
    if top_n is not None and top_n < 1:
        raise ValueError(f"top_n must be positive: {top_n}")


def revenue_by_month(transactions: Sequence[BusinessTransaction]) -> pd.DataFrame:
    """Total revenue per calendar month.

    Returns
    -------
    pd.DataFrame
        Columns ``month`` (``YYYY-MM``) and ``revenue``, oldest month first.
    """
    columns = ["month", "revenue"]
    if not transactions:
        return pd.DataFrame(columns=columns)

    df = transactions_to_dataframe(transactions)
    df["month"] = pd.to_datetime(df["invoice_ts"]).dt.strftime("%Y-%m")
    report = df.groupby("month", as_index=False)["revenue"].sum()
    report["revenue"] = report["revenue"].round(REVENUE_PRECISION)
    return report.sort_values("month").reset_index(drop=True)[columns]


def revenue_by_product(
    transactions: Sequence[BusinessTransaction], top_n: Optional[int] = 10
) -> pd.DataFrame:
    """Best-selling products by revenue.

    Parameters
    ----------
    transactions:
        Business transactions
    top_n:
        Number of products to keep (default: 10). None keeps all.

    Returns
    -------
    pd.DataFrame
        Columns ``stock_code``, ``description`` (first seen for the code),
        ``quantity`` and ``revenue``, highest revenue first.
    """
    _check_top_n(top_n)
    columns = ["stock_code", "description", "quantity", "revenue"]
    if not transactions:
        return pd.DataFrame(columns=columns)

    df = transactions_to_dataframe(transactions)
    report = df.groupby("stock_code", as_index=False, sort=False).agg(
        description=("description", "first"),
        quantity=("quantity", "sum"),
        revenue=("revenue", "sum"),
    )
    report["revenue"] = report["revenue"].round(REVENUE_PRECISION)
    report = report.sort_values(
        ["revenue", "stock_code"], ascending=[False, True]
    ).reset_index(drop=True)
    if top_n is not None:
        report = report.head(top_n)
    return report[columns]


def revenue_by_country(
    transactions: Sequence[BusinessTransaction], top_n: Optional[int] = None
) -> pd.DataFrame:
    """Revenue and distinct customer count per country.

    Returns
    -------
    pd.DataFrame
        Columns ``country``, ``revenue`` and ``customers``, highest revenue
        first. ``top_n`` limits the number of rows (default: all).
    """
    _check_top_n(top_n)
    columns = ["country", "revenue", "customers"]
    if not transactions:
        return pd.DataFrame(columns=columns)

    df = transactions_to_dataframe(transactions)
    report = df.groupby("country", as_index=False).agg(
        revenue=("revenue", "sum"),
        customers=("customer_id", "nunique"),
    )
    report["revenue"] = report["revenue"].round(REVENUE_PRECISION)
    report = report.sort_values(
        ["revenue", "country"], ascending=[False, True]
    ).reset_index(drop=True)
    if top_n is not None:
        report = report.head(top_n)
    return report[columns]


def top_customers(
    records: Sequence[RFMRecord], top_n: Optional[int] = 10, by: str = "monetary"
) -> pd.DataFrame:
    """Rank customers by one RFM dimension.

    ``recency`` ranks ascending (most recent first); ``frequency`` and
    ``monetary`` rank descending. Ties are broken by customer_id.

    Raises
    ------
    ValueError
        If ``by`` is not an RFM metric or ``top_n`` is not positive.
    """
    if by not in RFM_SORT_METRICS:
        raise ValueError(f"by must be one of {RFM_SORT_METRICS}, got {by!r}")
    _check_top_n(top_n)

    df = rfm_to_dataframe(list(records))
    if df.empty:
        return df

    ascending = by == "recency"
    report = df.sort_values(
        [by, "customer_id"], ascending=[ascending, True]
    ).reset_index(drop=True)
    if top_n is not None:
        report = report.head(top_n)
    logger.debug(f"Ranked {len(df)} customers by {by}")
    return report
