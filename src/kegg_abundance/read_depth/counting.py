"""Count reads per raw sequence file, with independent verification."""

import gzip
from pathlib import Path

import polars as pl
import structlog

from kegg_abundance.errors import (
    PipelineError,
    SchemaError,
    ShapeMismatchError,
    VerificationMismatchError,
)
from kegg_abundance.parallel import run_batch

logger = structlog.get_logger()

# Bytes read per chunk when counting lines; bounds memory per worker
CHUNK_SIZE = 1024 * 1024

READ_FILE_COUNT_SCHEMA = {
    "file": pl.Utf8,
    "n_reads": pl.Int64,
    "n_lines": pl.Int64,
    "n_reads_check": pl.Int64,
}


def _open_reads(path: Path):
    """Open a FASTQ file for binary reading, transparently decompressing .gz."""
    path = Path(path)
    if path.suffix == ".gz":
        return gzip.open(path, "rb")
    return open(path, "rb")


def discover_read_files(fastq_dir: Path, pattern: str = "*.f*q*") -> list[Path]:
    """List read files in a directory, sorted by name.

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    fastq_dir = Path(fastq_dir)
    if not fastq_dir.is_dir():
        raise FileNotFoundError(f"Read directory not found: {fastq_dir}")
    return sorted(p for p in fastq_dir.glob(pattern) if p.is_file())


def count_fastq_records(path: Path) -> int:
    """Count FASTQ records by walking the four-line record structure.

    Streams the file one record at a time. Every record must start with an
    ``@`` header and carry a ``+`` separator line.

    Raises:
        ShapeMismatchError: On a truncated or malformed record
    """
    n_records = 0
    with _open_reads(path) as handle:
        while True:
            header = handle.readline()
            if not header:
                break
            sequence = handle.readline()
            separator = handle.readline()
            quality = handle.readline()

            if (
                not header.startswith(b"@")
                or not sequence
                or not separator.startswith(b"+")
                or not quality
            ):
                raise ShapeMismatchError(
                    f"{Path(path).name}: malformed FASTQ record #{n_records + 1}"
                )
            n_records += 1

    return n_records


def count_fastq_lines(path: Path) -> int:
    """Count lines of the decompressed file in fixed-size chunks.

    A final line without a trailing newline is still counted.
    """
    n_lines = 0
    last_byte = b""
    with _open_reads(path) as handle:
        while True:
            chunk = handle.read(CHUNK_SIZE)
            if not chunk:
                break
            n_lines += chunk.count(b"\n")
            last_byte = chunk[-1:]

    if last_byte and last_byte != b"\n":
        n_lines += 1
    return n_lines


def count_read_file(path: Path, verify: bool = True) -> dict:
    """Count one file with the primary method and, optionally, verify it."""
    path = Path(path)
    n_reads = count_fastq_records(path)

    n_lines = None
    n_reads_check = None
    if verify:
        n_lines = count_fastq_lines(path)
        n_reads_check = n_lines // 4

    logger.debug("read_file_counted", file=path.name, n_reads=n_reads, n_lines=n_lines)

    return {
        "file": path.name,
        "n_reads": n_reads,
        "n_lines": n_lines,
        "n_reads_check": n_reads_check,
    }


def verify_read_counts(df: pl.DataFrame) -> None:
    """Require both counting methods to agree exactly for every verified file.

    A line count that is not a multiple of four is a disagreement too.

    Raises:
        VerificationMismatchError: Listing every disagreeing file
    """
    verified = df.filter(pl.col("n_lines").is_not_null())
    mismatched = verified.filter(
        (pl.col("n_reads") != pl.col("n_reads_check"))
        | ((pl.col("n_lines") % 4) != 0)
    )

    logger.info(
        "verify_read_counts",
        verified_files=verified.height,
        mismatched_files=mismatched.height,
    )

    if mismatched.height > 0:
        raise VerificationMismatchError(
            mismatched.select(["file", "n_reads", "n_reads_check"]).to_dicts()
        )


def count_read_files(
    paths: list[Path],
    workers: int = 4,
    verify: bool = True,
) -> pl.DataFrame:
    """Count reads for many files concurrently.

    Args:
        paths: Read files (plain or gzipped FASTQ)
        workers: Concurrent files
        verify: Cross-check each file with count_fastq_lines

    Returns:
        DataFrame with file, n_reads, n_lines, n_reads_check, in input order

    Raises:
        PipelineError: If any file could not be counted
        VerificationMismatchError: If verify is set and the methods disagree
    """
    paths = [Path(p) for p in paths]
    logger.info("count_read_files_start", file_count=len(paths), verify=verify)

    batch = run_batch(
        paths,
        lambda path: count_read_file(path, verify=verify),
        workers=workers,
        label="read_count",
    )

    if batch.failures:
        failed = sorted(p.name for p in batch.failures)
        first = batch.failures[next(k for k in batch.keys if k in batch.failures)]
        raise PipelineError(
            f"Could not count {len(failed)} read file(s): {', '.join(failed)}"
        ) from first

    df = pl.DataFrame(batch.ordered_results(), schema=READ_FILE_COUNT_SCHEMA)

    if verify:
        verify_read_counts(df)

    logger.info(
        "count_read_files_complete",
        file_count=df.height,
        total_reads=int(df["n_reads"].sum()) if df.height else 0,
    )
    return df


def read_seqkit_stats(path: Path) -> pl.DataFrame:
    """Load precomputed per-file counts from ``seqkit stats -T`` output.

    Args:
        path: Tab-delimited seqkit table with at least ``file`` and ``num_seqs``

    Returns:
        DataFrame with the count_read_files schema; verification columns NULL

    Raises:
        SchemaError: If a required column is missing
    """
    df = pl.read_csv(path, separator="\t", infer_schema_length=0)

    missing = [c for c in ("file", "num_seqs") if c not in df.columns]
    if missing:
        raise SchemaError(f"{Path(path).name}: missing seqkit columns {missing}")

    df = df.select(
        pl.col("file").str.replace(r"^.*/", ""),
        pl.col("num_seqs").str.replace_all(",", "").cast(pl.Int64).alias("n_reads"),
        pl.lit(None, dtype=pl.Int64).alias("n_lines"),
        pl.lit(None, dtype=pl.Int64).alias("n_reads_check"),
    )

    logger.info("read_seqkit_stats", path=str(path), file_count=df.height)
    return df
