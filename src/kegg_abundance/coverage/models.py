"""Data models for depth-normalized gene abundance."""

from pydantic import BaseModel

# Table name for DuckDB storage (long form)
NORMALIZED_TABLE_NAME = "normalized_abundance"

# Percent totals above this indicate a wrong denominator
MAX_SAMPLE_PERCENT = 100.0


class GeneMappingCount(BaseModel):
    """Raw mapped-read count for one gene in one sample."""

    gene_identifier: str
    sample_id: str
    raw_count: float


class NormalizedAbundance(BaseModel):
    """Mapped reads of one gene as a percentage of its sample's reads.

    Attributes:
        gene_identifier: Gene key shared with the annotation join
        sample_id: Sample the reads came from
        raw_count: Reads mapped to the gene (>= 0)
        total_reads: Sequencing depth of the sample
        percent_of_sample_reads: raw_count / total_reads * 100
    """

    gene_identifier: str
    sample_id: str
    raw_count: float
    total_reads: int
    percent_of_sample_reads: float
