"""Data models for per-file and per-sample read counts."""

from pydantic import BaseModel

# Table names for DuckDB storage
READ_FILE_TABLE_NAME = "read_file_counts"
READ_DEPTH_TABLE_NAME = "read_depth"


class ReadFileCount(BaseModel):
    """Read count for one raw sequence file.

    Attributes:
        file: File name as found on disk (or as listed by seqkit)
        n_reads: Records counted by parsing the FASTQ structure
        n_lines: Physical lines after decompression - NULL if not verified
        n_reads_check: n_lines // 4 - NULL if not verified
    """

    file: str
    n_reads: int
    n_lines: int | None = None
    n_reads_check: int | None = None


class SampleReadDepth(BaseModel):
    """Total sequencing depth of one sample.

    Attributes:
        sample_id: Identifier derived from the file names
        n_reads: Sum of n_reads over every file of the sample (R1 + R2, all lanes)
        n_files: Number of files contributing
    """

    sample_id: str
    n_reads: int
    n_files: int
