"""Persist read-depth tables to DuckDB with provenance tracking."""

import polars as pl
import structlog

from kegg_abundance.persistence import PipelineStore, ProvenanceTracker
from kegg_abundance.read_depth.models import READ_DEPTH_TABLE_NAME, READ_FILE_TABLE_NAME

logger = structlog.get_logger()


def load_to_duckdb(
    per_file: pl.DataFrame,
    per_sample: pl.DataFrame,
    store: PipelineStore,
    provenance: ProvenanceTracker,
    verified: bool = True,
) -> None:
    """Save per-file and per-sample read counts (idempotent replace)."""
    logger.info("read_depth_load_start", file_count=per_file.height, sample_count=per_sample.height)

    store.save_dataframe(
        df=per_file,
        table_name=READ_FILE_TABLE_NAME,
        description="Reads per raw sequence file",
        config_hash=provenance.config_hash,
    )
    store.save_dataframe(
        df=per_sample,
        table_name=READ_DEPTH_TABLE_NAME,
        description="Total reads per sample",
        config_hash=provenance.config_hash,
    )

    provenance.record_step("load_read_depth", {
        "file_count": per_file.height,
        "sample_count": per_sample.height,
        "total_reads": int(per_sample["n_reads"].sum()) if per_sample.height else 0,
        "verified": verified,
    })

    logger.info("read_depth_load_complete", sample_count=per_sample.height)


def load_read_depth(store: PipelineStore) -> pl.DataFrame | None:
    """Load the per-sample read-depth table, or None if it was never built."""
    return store.load_dataframe(READ_DEPTH_TABLE_NAME)
