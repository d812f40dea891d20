"""Persist normalized abundance to DuckDB with provenance tracking."""

import polars as pl
import structlog

from kegg_abundance.coverage.models import NORMALIZED_TABLE_NAME
from kegg_abundance.persistence import PipelineStore, ProvenanceTracker

logger = structlog.get_logger()


def load_to_duckdb(
    normalized: pl.DataFrame,
    totals: pl.DataFrame,
    store: PipelineStore,
    provenance: ProvenanceTracker,
) -> None:
    """Save the long normalized table and record per-sample totals."""
    store.save_dataframe(
        df=normalized,
        table_name=NORMALIZED_TABLE_NAME,
        description="Mapped reads per gene as percent of sample reads",
        config_hash=provenance.config_hash,
    )

    provenance.record_step("load_normalized_abundance", {
        "row_count": normalized.height,
        "sample_percent_totals": {
            row["sample_id"]: row["total_percent"] for row in totals.to_dicts()
        },
    })

    logger.info("normalized_load_complete", row_count=normalized.height)
