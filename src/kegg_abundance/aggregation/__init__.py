"""Category-level aggregation of normalized gene abundance."""

from kegg_abundance.aggregation.models import (
    CATEGORY_LEVEL_COLUMNS,
    ConservationCheck,
    SampleMetadata,
)
from kegg_abundance.aggregation.transform import (
    apply_sample_metadata,
    assign_gene_categories,
    build_category_matrix,
    check_conservation,
    read_sample_metadata,
)

__all__ = [
    "CATEGORY_LEVEL_COLUMNS",
    "ConservationCheck",
    "SampleMetadata",
    "apply_sample_metadata",
    "assign_gene_categories",
    "build_category_matrix",
    "check_conservation",
    "read_sample_metadata",
]
