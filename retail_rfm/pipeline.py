"""End-to-end batch run: raw records -> clean -> revenue -> RFM -> summary."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional

from retail_rfm.foundation.cleaning import (
    CleaningReport,
    annotate_revenue,
    clean_with_report,
)
from retail_rfm.foundation.rfm import RFMRecord, aggregate_rfm
from retail_rfm.foundation.summary import RFMSummary, summarize_rfm
from retail_rfm.foundation.transactions import (
    BusinessTransaction,
    CleanTransaction,
    Transaction,
)
from retail_rfm.sources import open_transaction_source

logger = logging.getLogger(__name__)

ENV_PREFIX = "RETAIL_RFM_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class PipelineConfig:
    """Settings for a pipeline run.

    Attributes
    ----------
    parallel:
        Allow the RFM aggregation to fan out to worker processes.
    parallel_threshold:
        Minimum number of business transactions before fanning out.
    n_workers:
        Worker process count; None uses the CPU count.
    encoding:
        Text encoding used when reading transaction files.
    """

    parallel: bool = True
    parallel_threshold: int = 1_000_000
    n_workers: Optional[int] = None
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        if self.parallel_threshold < 0:
            raise ValueError(
                f"parallel_threshold cannot be negative: {self.parallel_threshold}"
            )
        if self.n_workers is not None and self.n_workers < 1:
            raise ValueError(f"n_workers must be at least 1: {self.n_workers}")
        if not self.encoding:
            raise ValueError("encoding must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineConfig":
        """Build a config from ``RETAIL_RFM_*`` environment variables.

        Recognised variables are ``RETAIL_RFM_PARALLEL``,
        ``RETAIL_RFM_PARALLEL_THRESHOLD``, ``RETAIL_RFM_N_WORKERS`` and
        ``RETAIL_RFM_ENCODING``. Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        parallel = defaults.parallel
        raw_parallel = env.get(f"{ENV_PREFIX}PARALLEL")
        if raw_parallel is not None:
            lowered = raw_parallel.strip().lower()
            if lowered in _TRUE_VALUES:
                parallel = True
            elif lowered in _FALSE_VALUES:
                parallel = False
            else:
                raise ValueError(
                    f"{ENV_PREFIX}PARALLEL must be a boolean, got {raw_parallel!r}"
                )

        return cls(
            parallel=parallel,
            parallel_threshold=_env_int(
                env, "PARALLEL_THRESHOLD", defaults.parallel_threshold
            ),
            n_workers=_env_int(env, "N_WORKERS", defaults.n_workers),
            encoding=env.get(f"{ENV_PREFIX}ENCODING", defaults.encoding),
        )


def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class PipelineResult:
    """Everything one pipeline run produces."""

    report: CleaningReport
    transactions: list[BusinessTransaction]
    rfm: list[RFMRecord]
    summary: RFMSummary


def _run_stages(
    cleaned: list[CleanTransaction], report: CleaningReport, config: PipelineConfig
) -> PipelineResult:
    business = annotate_revenue(cleaned)
    rfm = aggregate_rfm(
        business,
        parallel=config.parallel,
        parallel_threshold=config.parallel_threshold,
        n_workers=config.n_workers,
    )
    summary = summarize_rfm(rfm)
    logger.info(
        f"Pipeline finished: {report.accepted} business transactions, "
        f"{summary.customer_count} customers"
    )
    return PipelineResult(
        report=report, transactions=business, rfm=rfm, summary=summary
    )


def run_pipeline(
    transactions: Iterable[Transaction], config: PipelineConfig | None = None
) -> PipelineResult:
    """Run every stage over an in-memory batch of raw transactions.

    Raises
    ------
    EmptyDatasetError
        If no transaction survives cleaning.
    """
    cleaned, report = clean_with_report(transactions)
    return _run_stages(cleaned, report, config or PipelineConfig())


def run_pipeline_from_path(
    path: Path | str, config: PipelineConfig | None = None
) -> PipelineResult:
    """Run the pipeline over a CSV or JSON file of raw transactions.

    The file is open only while its records are being cleaned and is closed
    even if reading or cleaning fails.
    """
    config = config or PipelineConfig()
    with open_transaction_source(path, encoding=config.encoding) as records:
        cleaned, report = clean_with_report(records)
    return _run_stages(cleaned, report, config)
