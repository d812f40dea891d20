"""Depth normalization of per-gene mapped-read counts."""

from kegg_abundance.coverage.load import load_to_duckdb
from kegg_abundance.coverage.models import (
    NORMALIZED_TABLE_NAME,
    GeneMappingCount,
    NormalizedAbundance,
)
from kegg_abundance.coverage.transform import (
    discover_mapping_tables,
    normalize_sample_counts,
    normalize_coverage,
    pivot_normalized,
    read_mapping_table,
    read_mapping_tables,
    sample_id_from_filename,
    sample_percent_totals,
)

__all__ = [
    "load_to_duckdb",
    "NORMALIZED_TABLE_NAME",
    "GeneMappingCount",
    "NormalizedAbundance",
    "discover_mapping_tables",
    "normalize_sample_counts",
    "normalize_coverage",
    "pivot_normalized",
    "read_mapping_table",
    "read_mapping_tables",
    "sample_id_from_filename",
    "sample_percent_totals",
]
