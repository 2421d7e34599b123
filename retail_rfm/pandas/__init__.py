"""Pandas DataFrame adapters for the transaction and RFM pipeline."""

from .rfm import (
    calculate_rfm_df,
    dataframe_to_rfm,
    rfm_to_dataframe,
    summary_to_dataframe,
)
from .transactions import (
    TRANSACTION_COLUMNS,
    clean_dataframe,
    dataframe_to_transactions,
    transactions_to_dataframe,
)

__all__ = [
    # Transaction adapters
    "TRANSACTION_COLUMNS",
    "clean_dataframe",
    "dataframe_to_transactions",
    "transactions_to_dataframe",
    # RFM adapters
    "calculate_rfm_df",
    "dataframe_to_rfm",
    "rfm_to_dataframe",
    "summary_to_dataframe",
]
