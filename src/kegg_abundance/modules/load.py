"""Persist the module database to DuckDB with provenance tracking."""

from pathlib import Path

import polars as pl
import structlog

from kegg_abundance.modules.fetch import ModuleBatchReport
from kegg_abundance.modules.models import MODULE_TABLE_NAME
from kegg_abundance.modules.transform import summarize_module_records
from kegg_abundance.persistence import PipelineStore, ProvenanceTracker

logger = structlog.get_logger()


def load_to_duckdb(
    df: pl.DataFrame,
    store: PipelineStore,
    provenance: ProvenanceTracker,
    report: ModuleBatchReport | None = None,
    description: str = "",
) -> None:
    """Save module records to DuckDB and record a provenance step.

    Creates or replaces the module_records table (idempotent).

    Args:
        df: Flattened module records
        store: PipelineStore instance
        provenance: ProvenanceTracker instance
        report: Fetch batch report, recorded alongside the row summary
        description: Optional checkpoint description
    """
    summary = summarize_module_records(df)
    logger.info("module_load_start", row_count=df.height)

    store.save_dataframe(
        df=df,
        table_name=MODULE_TABLE_NAME,
        description=description or "Flattened KEGG module records (orthology, pathway, reaction, compound)",
        config_hash=provenance.config_hash,
    )

    details = dict(summary)
    if report is not None:
        details.update({
            "requested": report.requested,
            "succeeded": report.succeeded,
            "failed": report.failed,
            "empty_modules": len(report.empty_modules),
            "failed_modules": sorted(report.failures),
        })
    provenance.record_step("load_module_records", details)

    logger.info("module_load_complete", **summary)


def load_module_records(store: PipelineStore) -> pl.DataFrame | None:
    """Load the persisted module database, or None if it was never built."""
    return store.load_dataframe(MODULE_TABLE_NAME)


def write_module_tsv(df: pl.DataFrame, output_path: Path) -> Path:
    """Write the module database as a reusable tab-delimited artifact."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.sort(["module_id", "row_seq"]).write_csv(output_path, separator="\t")
    return output_path
