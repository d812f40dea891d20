"""Per-sample sequencing depth from raw read files."""

from kegg_abundance.read_depth.counting import (
    count_fastq_lines,
    count_fastq_records,
    count_read_file,
    count_read_files,
    discover_read_files,
    read_seqkit_stats,
    verify_read_counts,
)
from kegg_abundance.read_depth.filenames import ReadFileName, SampleNameGrammar
from kegg_abundance.read_depth.load import load_read_depth, load_to_duckdb
from kegg_abundance.read_depth.models import (
    READ_DEPTH_TABLE_NAME,
    READ_FILE_TABLE_NAME,
    ReadFileCount,
    SampleReadDepth,
)
from kegg_abundance.read_depth.transform import (
    aggregate_read_depth,
    assign_samples,
    read_read_depth_tsv,
    write_read_depth_tsv,
)

__all__ = [
    "count_fastq_lines",
    "count_fastq_records",
    "count_read_file",
    "count_read_files",
    "discover_read_files",
    "read_seqkit_stats",
    "verify_read_counts",
    "ReadFileName",
    "SampleNameGrammar",
    "load_read_depth",
    "load_to_duckdb",
    "READ_DEPTH_TABLE_NAME",
    "READ_FILE_TABLE_NAME",
    "ReadFileCount",
    "SampleReadDepth",
    "aggregate_read_depth",
    "assign_samples",
    "read_read_depth_tsv",
    "write_read_depth_tsv",
]
