"""Export pipeline output to CSV and JSON files.

These writers back the command line tools and give downstream reporting,
dashboards and audit trails a stable file layout.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from retail_rfm.foundation.cleaning import CleaningReport
from retail_rfm.foundation.rfm import RFMRecord
from retail_rfm.foundation.summary import RFMSummary
from retail_rfm.foundation.transactions import BusinessTransaction
from retail_rfm.pandas import rfm_to_dataframe, transactions_to_dataframe

logger = logging.getLogger(__name__)


def export_transactions_csv(
    transactions: Sequence[BusinessTransaction],
    output_path: str | Path,
) -> None:
    """Export business transactions (with revenue) to CSV.

    ``invoice_ts`` is written in ISO format next to the raw
    ``invoice_timestamp`` string.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = transactions_to_dataframe(transactions)
    df.to_csv(output_path, index=False, date_format="%Y-%m-%dT%H:%M:%S")

    logger.info(f"Exported {len(df)} transactions to {output_path}")


def export_rfm_csv(records: Sequence[RFMRecord], output_path: str | Path) -> None:
    """Export the RFM table to CSV, one row per customer.

    Examples
    --------
    >>> from retail_rfm.pipeline import run_pipeline
    >>> result = run_pipeline(transactions)
    >>> export_rfm_csv(result.rfm, "rfm_2011-12.csv")
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = rfm_to_dataframe(list(records))
    df.to_csv(output_path, index=False, date_format="%Y-%m-%dT%H:%M:%S")

    logger.info(f"Exported RFM for {len(df)} customers to {output_path}")


def build_summary_payload(
    summary: RFMSummary,
    report: CleaningReport | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the JSON-serialisable summary document."""
    payload: dict[str, Any] = {
        "metadata": metadata or {},
        "timestamp": datetime.now().isoformat(),
        "summary": summary.as_dict(),
    }
    if report is not None:
        payload["cleaning"] = report.as_dict()
    return payload


def export_summary_json(
    summary: RFMSummary,
    output_path: str | Path,
    report: CleaningReport | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Export the RFM summary, optionally with the cleaning report, to JSON.

    Parameters
    ----------
    summary:
        Summary from :func:`summarize_rfm`
    output_path:
        Path where the JSON file will be saved
    report:
        Optional cleaning report to include under ``"cleaning"``
    metadata:
        Optional metadata (e.g., source file name) to include in the document
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(build_summary_payload(summary, report, metadata), f, indent=2)

    logger.info(f"RFM summary exported to {output_path}")
