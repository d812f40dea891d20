"""Data models for the category-by-sample matrix."""

from pydantic import BaseModel

# Annotated gene column holding each category level
CATEGORY_LEVEL_COLUMNS = {
    "type": "category_type",
    "class": "category_class",
    "group": "category_group",
}

# Columns every sample metadata table must carry (plus the sort key)
REQUIRED_METADATA_COLUMNS = ("sample_id", "depth")

# Absolute tolerance when comparing gene-level and category-level sums
CONSERVATION_TOLERANCE = 1e-6


class SampleMetadata(BaseModel):
    """One row of the external sample metadata table.

    Only sample_id and depth are required by name; the sort key column
    (temperature by default) and any other covariates are carried along
    and available to the label template.
    """

    sample_id: str
    depth: float
    temperature: float | None = None


class ConservationCheck(BaseModel):
    """Gene-level vs category-level totals for one sample."""

    sample_id: str
    gene_total: float
    category_total: float
    difference: float
