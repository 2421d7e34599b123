"""Tests for transaction pandas adapters."""

from datetime import datetime
from decimal import Decimal

import pandas as pd
import pytest

from retail_rfm.foundation.cleaning import RejectionReason
from retail_rfm.pandas import (
    TRANSACTION_COLUMNS,
    clean_dataframe,
    dataframe_to_transactions,
    transactions_to_dataframe,
)
from retail_rfm.pandas._utils import float_to_decimal


class TestDataFrameToTransactions:
    """Test dataframe_to_transactions conversion."""

    def test_online_retail_columns(self):
        df = pd.DataFrame(
            {
                "InvoiceNo": ["536365"],
                "StockCode": ["85123A"],
                "Description": ["WHITE HANGING HEART T-LIGHT HOLDER"],
                "Quantity": [6],
                "InvoiceDate": ["12/1/2010 8:26"],
                "UnitPrice": [2.55],
                "CustomerID": [17850.0],
                "Country": ["United Kingdom"],
            }
        )

        [txn] = dataframe_to_transactions(df)

        assert txn.invoice_id == "536365"
        assert txn.quantity == 6
        assert txn.unit_price == Decimal("2.55")
        assert txn.customer_id == "17850"

    def test_nan_becomes_missing(self):
        df = pd.DataFrame(
            {
                "quantity": [1, 2],
                "unit_price": [1.0, 2.0],
                "invoice_timestamp": ["1/1/2020 10:00", "1/1/2020 11:00"],
                "customer_id": ["A", None],
                "description": [None, "MUG"],
            }
        )

        txns = dataframe_to_transactions(df)

        assert txns[0].description == ""
        assert txns[1].customer_id is None

    def test_empty_dataframe(self):
        assert dataframe_to_transactions(pd.DataFrame()) == []

    def test_missing_quantity_raises_with_row(self):
        df = pd.DataFrame(
            {
                "quantity": [1.0, None],
                "unit_price": [1.0, 2.0],
                "invoice_timestamp": ["1/1/2020 10:00", "1/1/2020 11:00"],
            }
        )
        with pytest.raises(ValueError, match="row 1"):
            dataframe_to_transactions(df)


class TestCleanDataFrame:
    """Test clean_dataframe and transactions_to_dataframe."""

    def test_cleaned_frame(self):
        df = pd.DataFrame(
            {
                "invoice_id": ["I1", "I1", "I2", "I3"],
                "quantity": [2, 1, -3, 4],
                "unit_price": [5.0, 5.0, 5.0, 1.25],
                "invoice_timestamp": [
                    "1/1/2020 10:00",
                    "1/1/2020 10:00",
                    "1/2/2020 10:00",
                    "2020-01-03 10:00",
                ],
                "customer_id": ["A", "A", "B", "C"],
            }
        )

        business_df, report = clean_dataframe(df)

        assert list(business_df.columns) == TRANSACTION_COLUMNS
        assert list(business_df["revenue"]) == [10.0, 5.0]
        assert business_df["invoice_ts"].iloc[0] == pd.Timestamp(datetime(2020, 1, 1, 10))
        assert report.rejected_by_reason == {
            RejectionReason.NON_POSITIVE_QUANTITY: 1,
            RejectionReason.MALFORMED_TIMESTAMP: 1,
        }

    def test_empty_result_keeps_columns(self):
        df = pd.DataFrame(
            {
                "quantity": [-1],
                "unit_price": [1.0],
                "invoice_timestamp": ["1/1/2020 10:00"],
                "customer_id": ["A"],
            }
        )
        business_df, report = clean_dataframe(df)
        assert business_df.empty
        assert list(business_df.columns) == TRANSACTION_COLUMNS
        assert report.accepted == 0

    def test_transactions_to_dataframe_empty(self):
        assert list(transactions_to_dataframe([]).columns) == TRANSACTION_COLUMNS


class TestFloatToDecimal:
    """Test float_to_decimal helper."""

    def test_keeps_printed_value(self):
        assert float_to_decimal(2.55) == Decimal("2.55")

    @pytest.mark.parametrize("value", [True, "2.55", None])
    def test_non_numeric_raises(self, value):
        with pytest.raises(TypeError):
            float_to_decimal(value)
