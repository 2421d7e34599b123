"""Readers that materialise raw :class:`Transaction` records from files.

Sources are context managers: the file is opened on entry and closed on
exit whether or not every record was consumed.

Usage::

    with open_transaction_source(Path("online_retail.csv")) as records:
        cleaned = clean(records)
"""

from __future__ import annotations

import csv
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator

from retail_rfm.foundation.transactions import COLUMN_ALIASES, Transaction

logger = logging.getLogger(__name__)

MAX_JSON_BYTES = 25 * 1024 * 1024  # 25 MiB cap; JSON is loaded whole

REQUIRED_COLUMNS = ("quantity", "invoice_timestamp", "unit_price")


def _iter_csv(fh: IO[str], path: Path) -> Iterator[Transaction]:
    reader = csv.DictReader(fh)
    header = [COLUMN_ALIASES.get(name, name) for name in reader.fieldnames or []]
    missing = [name for name in REQUIRED_COLUMNS if name not in header]
    if missing:
        raise ValueError(f"CSV file {path} missing required columns: {missing}")

    # Data rows start on line 2; index by data row so messages match editors.
    for idx, row in enumerate(reader, start=2):
        yield Transaction.from_mapping(_blank_to_none(row), index=idx)


def _iter_json(fh: IO[str], path: Path) -> Iterator[Transaction]:
    payload = json.load(fh)
    if not isinstance(payload, list):
        raise ValueError(f"Expected a list of transactions in {path}")
    for idx, item in enumerate(payload):
        if not isinstance(item, dict):
            raise TypeError(
                f"Each transaction must be a JSON object, got "
                f"{type(item).__name__} (row {idx})"
            )
        yield Transaction.from_mapping(item, index=idx)


def _blank_to_none(row: dict[str, Any]) -> dict[str, Any]:
    # csv yields "" for empty cells; treat them as missing values
    return {key: (value if value != "" else None) for key, value in row.items()}


@contextmanager
def open_transaction_source(
    path: Path | str, *, encoding: str = "utf-8"
) -> Iterator[Iterator[Transaction]]:
    """Open a CSV or JSON file of raw transactions.

    Parameters
    ----------
    path:
        ``.csv`` file with a header row, or ``.json`` file holding a list of
        objects. Column names may be the Online Retail headers
        (``InvoiceNo``, ``StockCode``, ``InvoiceDate``...) or snake_case.
    encoding:
        Text encoding of the file. The public Online Retail export is often
        ``latin-1``.

    Yields
    ------
    Iterator[Transaction]
        Lazily parsed transactions. Only valid while the context is open.

    Raises
    ------
    ValueError
        For unsupported suffixes, oversized JSON files, missing CSV columns
        or rows whose numeric fields cannot be parsed.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".csv", ".json"):
        raise ValueError(f"Unsupported transaction file type: {path.suffix or path.name}")

    if suffix == ".json":
        size = path.resolve().stat().st_size
        if size > MAX_JSON_BYTES:
            raise ValueError(
                f"Input file {path} is {size} bytes; exceeds limit of {MAX_JSON_BYTES} bytes"
            )

    logger.info(f"Opening transaction source {path}")
    fh = path.open("r", encoding=encoding, newline="")
    try:
        if suffix == ".csv":
            yield _iter_csv(fh, path)
        else:
            yield _iter_json(fh, path)
    finally:
        fh.close()
        logger.debug(f"Closed transaction source {path}")
