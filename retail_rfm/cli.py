"""Command line entry points for the retail RFM toolkit."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from retail_rfm.exports import (
    build_summary_payload,
    export_rfm_csv,
    export_summary_json,
    export_transactions_csv,
)
from retail_rfm.foundation.cleaning import annotate_revenue, clean_with_report
from retail_rfm.foundation.rfm import EmptyDatasetError
from retail_rfm.pandas import rfm_to_dataframe
from retail_rfm.pipeline import PipelineConfig, run_pipeline_from_path
from retail_rfm.reports import (
    RFM_SORT_METRICS,
    revenue_by_country,
    revenue_by_month,
    revenue_by_product,
    top_customers,
)
from retail_rfm.sources import open_transaction_source

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "input", type=Path, help="Path to a CSV or JSON file with raw transactions"
    )
    parser.add_argument(
        "--encoding",
        type=str,
        help="Input file encoding (default: RETAIL_RFM_ENCODING or utf-8)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="INFO",
        help="Logging verbosity (default: INFO)",
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _config_from_args(args: argparse.Namespace) -> PipelineConfig:
    base = PipelineConfig.from_env()
    return PipelineConfig(
        parallel=base.parallel and not getattr(args, "no_parallel", False),
        parallel_threshold=(
            args.parallel_threshold
            if getattr(args, "parallel_threshold", None) is not None
            else base.parallel_threshold
        ),
        n_workers=(
            args.workers if getattr(args, "workers", None) is not None else base.n_workers
        ),
        encoding=args.encoding or base.encoding,
    )


def clean_transactions_cli(argv: list[str] | None = None) -> int:
    """Clean raw transactions and write them, with revenue, to CSV.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success)
    """
    parser = argparse.ArgumentParser(
        description="Filter raw transactions to valid ones and annotate revenue"
    )
    _add_common_arguments(parser)
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Path for the cleaned transaction CSV",
    )
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    config = _config_from_args(args)

    logger.info(f"Loading transactions from {args.input}")
    with open_transaction_source(args.input, encoding=config.encoding) as records:
        cleaned, report = clean_with_report(records)

    if not cleaned:
        logger.warning("No transactions passed validation; writing an empty file")

    export_transactions_csv(annotate_revenue(cleaned), args.output)
    logger.info(
        f"Kept {report.accepted} of {report.total_records} transactions "
        f"({report.rejected} rejected)"
    )
    return 0


def rfm_cli(argv: list[str] | None = None) -> int:
    """Compute per-customer RFM metrics and their summary statistics.

    The RFM table goes to ``--output`` or, when omitted, to stdout as CSV so
    the command can be piped. The summary is written to ``--summary-json``
    when given, and printed to stdout when the table went to a file.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 when no transaction survives cleaning)
    """
    parser = argparse.ArgumentParser(
        description="Calculate RFM metrics from raw transaction data"
    )
    _add_common_arguments(parser)
    parser.add_argument("--output", type=Path, help="Path for the RFM CSV file")
    parser.add_argument(
        "--summary-json", type=Path, help="Path for the RFM summary JSON file"
    )
    parser.add_argument(
        "--no-parallel",
        action="store_true",
        help="Always aggregate in a single process",
    )
    parser.add_argument(
        "--parallel-threshold",
        type=int,
        help="Transaction count at which aggregation fans out to workers",
    )
    parser.add_argument(
        "--workers", type=int, help="Number of worker processes (default: CPU count)"
    )
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    config = _config_from_args(args)

    logger.info(f"Running RFM pipeline on {args.input}")
    try:
        result = run_pipeline_from_path(args.input, config)
    except EmptyDatasetError as exc:
        logger.error(f"No RFM output for {args.input}: {exc}")
        return 1

    metadata = {"source": str(args.input)}
    if args.summary_json:
        export_summary_json(
            result.summary, args.summary_json, report=result.report, metadata=metadata
        )

    if args.output:
        export_rfm_csv(result.rfm, args.output)
        json.dump(
            build_summary_payload(result.summary, result.report, metadata),
            fp=sys.stdout,
            indent=2,
        )
        print()
    else:  # stdout fallback for piping
        rfm_to_dataframe(result.rfm).to_csv(
            sys.stdout, index=False, date_format="%Y-%m-%dT%H:%M:%S"
        )

    logger.info(
        f"RFM computed for {result.summary.customer_count} customers; "
        f"average monetary {result.summary.monetary.average}"
    )
    return 0


def report_cli(argv: list[str] | None = None) -> int:
    """Print a revenue report over the cleaned transactions.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 when no transaction survives cleaning)
    """
    parser = argparse.ArgumentParser(description="Print revenue reports")
    _add_common_arguments(parser)
    parser.add_argument(
        "--kind",
        choices=["month", "product", "country", "customers"],
        default="month",
        help="Report to print (default: month)",
    )
    parser.add_argument(
        "--top", type=int, default=10, help="Row limit for ranked reports (default: 10)"
    )
    parser.add_argument(
        "--by",
        choices=RFM_SORT_METRICS,
        default="monetary",
        help="RFM metric used to rank customers (default: monetary)",
    )
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    config = _config_from_args(args)

    try:
        result = run_pipeline_from_path(args.input, config)
    except EmptyDatasetError as exc:
        logger.error(f"No report for {args.input}: {exc}")
        return 1

    if args.kind == "month":
        table = revenue_by_month(result.transactions)
    elif args.kind == "product":
        table = revenue_by_product(result.transactions, top_n=args.top)
    elif args.kind == "country":
        table = revenue_by_country(result.transactions, top_n=args.top)
    else:
        table = top_customers(result.rfm, top_n=args.top, by=args.by)

    print(table.to_string(index=False))
    return 0


def main() -> None:
    raise SystemExit(rfm_cli())


def clean_main() -> None:
    raise SystemExit(clean_transactions_cli())


def report_main() -> None:
    raise SystemExit(report_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
