"""Pydantic models for pipeline configuration."""

import hashlib
import json
import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

# Illumina (sample_S1_L001_R1_001.fastq.gz), short paired (sample_R1.fq.gz,
# sample_1.fastq) and single-end (sample.fastq.gz) read file names.
DEFAULT_READ_FILENAME_PATTERN = (
    r"^(?P<sample>.+?)"
    r"(?:_S\d+)?"
    r"(?:_L(?P<lane>\d{3}))?"
    r"(?:_R?(?P<read>[12]))?"
    r"(?:_\d{3})?"
    r"\.(?:fastq|fq)(?:\.gz)?$"
)

# featureCounts / htseq style per-sample tables: <sample>.counts[.tsv|.txt]
DEFAULT_MAPPING_FILENAME_PATTERN = (
    r"^(?P<sample>.+?)\.(?:counts|featurecounts|featureCounts)(?:\.tsv|\.txt)?$"
)


def _check_sample_pattern(v: str) -> str:
    try:
        compiled = re.compile(v)
    except re.error as e:
        raise ValueError(f"Invalid regular expression: {e}") from e
    if "sample" not in compiled.groupindex:
        raise ValueError("Pattern must define a named group 'sample'")
    return v


class DataSourceVersions(BaseModel):
    """Version information for external data sources and tools."""

    kegg_release: str = Field(
        default="latest",
        description="KEGG MODULE release the catalog was fetched from",
    )
    annotation_tool: str = Field(
        default="prokka",
        description="Genome annotation tool (and version) producing annotation tables",
    )
    mapping_tool: str = Field(
        default="featureCounts",
        description="Read mapping/counting tool (and version) producing count tables",
    )


class APIConfig(BaseModel):
    """Configuration for the KEGG REST client."""

    base_url: str = Field(
        default="https://rest.kegg.jp",
        description="KEGG REST API base URL",
    )
    rate_limit_per_second: int = Field(
        default=3,
        ge=1,
        description="Maximum API requests per second",
    )
    max_retries: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum retry attempts for failed requests",
    )
    cache_ttl_seconds: int = Field(
        default=0,
        ge=0,
        description="Cache time-to-live in seconds (0 = infinite)",
    )
    timeout_seconds: int = Field(
        default=30,
        ge=1,
        description="Request timeout in seconds",
    )


class ModuleCatalogConfig(BaseModel):
    """Which modules to fetch and how many fetches run at once."""

    module_ids: list[str] = Field(
        default_factory=list,
        description="KEGG module identifiers (empty = every module in the catalog)",
    )
    workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Concurrent catalog fetches",
    )

    @field_validator("module_ids")
    @classmethod
    def check_module_ids(cls, v: list[str]) -> list[str]:
        """Module identifiers look like M00001."""
        bad = [m for m in v if not re.fullmatch(r"M\d{5}", m)]
        if bad:
            raise ValueError(f"Invalid module identifiers: {bad}")
        return v


class ReadDepthConfig(BaseModel):
    """Raw read file location and filename grammar."""

    fastq_dir: Path | None = Field(
        default=None,
        description="Directory of raw FASTQ files",
    )
    fastq_glob: str = Field(
        default="*.f*q*",
        description="Glob selecting read files inside fastq_dir",
    )
    seqkit_stats: Path | None = Field(
        default=None,
        description="Precomputed `seqkit stats -T` table (used instead of counting)",
    )
    filename_pattern: str = Field(
        default=DEFAULT_READ_FILENAME_PATTERN,
        description="Regex with named groups; 'sample' required, 'lane'/'read' optional",
    )
    sample_id_template: str = Field(
        default="{site_prefix}{sample}{site_suffix}",
        description="Template building the sample id from named groups and site markers",
    )
    site_prefix: str = Field(default="", description="Marker inserted before the sample name")
    site_suffix: str = Field(default="", description="Marker inserted after the sample name")
    verify: bool = Field(
        default=True,
        description="Cross-check record counts against line counts / 4",
    )
    workers: int = Field(default=4, ge=1, le=64, description="Concurrent file counts")

    @field_validator("filename_pattern")
    @classmethod
    def check_filename_pattern(cls, v: str) -> str:
        """Pattern compiles and defines a 'sample' group."""
        return _check_sample_pattern(v)


class AnnotationSchema(BaseModel):
    """Named-column contract for per-genome annotation tables."""

    table_dir: Path | None = Field(default=None, description="Directory of annotation tables")
    table_glob: str = Field(default="*.tsv", description="Glob selecting annotation tables")
    gene_column: str = Field(default="gene_name", description="Original gene name column")
    code_column: str = Field(default="ko", description="Functional code (KO) column")
    genome_column: str | None = Field(
        default="genome",
        description="Genome identifier column (null = use the table's file stem)",
    )
    scaffold_column: str = Field(default="scaffold", description="Scaffold identifier column")


class MappingSchema(BaseModel):
    """Named-column contract for per-sample mapping count tables."""

    table_dir: Path | None = Field(default=None, description="Directory of count tables")
    table_glob: str = Field(default="*.counts*", description="Glob selecting count tables")
    filename_pattern: str = Field(
        default=DEFAULT_MAPPING_FILENAME_PATTERN,
        description="Regex extracting the sample id (named group 'sample') from a filename",
    )
    gene_column: str = Field(default="Geneid", description="Gene identifier column")
    count_column: str | None = Field(
        default=None,
        description="Count column (null = last column, the featureCounts layout)",
    )
    workers: int = Field(default=4, ge=1, le=64, description="Concurrent table reads")

    @field_validator("filename_pattern")
    @classmethod
    def check_filename_pattern(cls, v: str) -> str:
        """Pattern compiles and defines a 'sample' group."""
        return _check_sample_pattern(v)


class AggregationConfig(BaseModel):
    """Category matrix layout."""

    metadata_path: Path | None = Field(default=None, description="Sample metadata TSV")
    category_level: Literal["type", "class", "group"] = Field(
        default="type",
        description="Category label the matrix rows are grouped by",
    )
    sort_key: str = Field(default="temperature", description="Metadata column ordering samples")
    descending: bool = Field(default=False, description="Sort samples in descending order")
    label_template: str = Field(
        default="{sample_id} ({depth} m)",
        description="Column label built from metadata fields",
    )
    float_precision: int | None = Field(
        default=None,
        ge=0,
        description="Decimal places written to TSV outputs (null = full precision)",
    )


class PipelineConfig(BaseModel):
    """Main pipeline configuration."""

    data_dir: Path = Field(
        ...,
        description="Directory for pipeline artifacts",
    )
    cache_dir: Path = Field(
        ...,
        description="Directory for API response caching",
    )
    duckdb_path: Path = Field(
        ...,
        description="Path to DuckDB database file",
    )
    output_dir: Path = Field(
        default=Path("results"),
        description="Directory for final matrix outputs",
    )
    versions: DataSourceVersions = Field(
        default_factory=DataSourceVersions,
        description="Data source version information",
    )
    api: APIConfig = Field(
        default_factory=APIConfig,
        description="API client configuration",
    )
    modules: ModuleCatalogConfig = Field(default_factory=ModuleCatalogConfig)
    reads: ReadDepthConfig = Field(default_factory=ReadDepthConfig)
    annotation: AnnotationSchema = Field(default_factory=AnnotationSchema)
    mapping: MappingSchema = Field(default_factory=MappingSchema)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)

    @field_validator("data_dir", "cache_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    def config_hash(self) -> str:
        """
        Compute SHA-256 hash of the configuration.

        Returns a deterministic hash based on all config values,
        useful for tracking config changes between runs.
        """
        config_dict = self.model_dump(mode="python")
        config_json = json.dumps(
            config_dict,
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(config_json.encode()).hexdigest()
