"""Collapse per-file read counts to per-sample sequencing depth."""

from pathlib import Path

import polars as pl
import structlog

from kegg_abundance.read_depth.filenames import SampleNameGrammar

logger = structlog.get_logger()


def assign_samples(file_counts: pl.DataFrame, grammar: SampleNameGrammar) -> pl.DataFrame:
    """Add sample_id, lane and read columns parsed from each file name.

    Raises:
        SampleNameError: If any file name does not match the grammar
    """
    parsed = [grammar.parse(name) for name in file_counts["file"].to_list()]
    return file_counts.with_columns(
        pl.Series("sample_id", [p.sample_id for p in parsed], dtype=pl.Utf8),
        pl.Series("lane", [p.lane for p in parsed], dtype=pl.Utf8),
        pl.Series("read", [p.read for p in parsed], dtype=pl.Utf8),
    )


def aggregate_read_depth(
    file_counts: pl.DataFrame,
    grammar: SampleNameGrammar,
) -> tuple[pl.DataFrame, pl.DataFrame]:
    """Sum per-file counts into per-sample totals.

    Every file of a sample (both mates of a pair, every lane) contributes
    to the same total. A file listed more than once is counted once.

    Args:
        file_counts: DataFrame with file and n_reads columns
        grammar: Maps file names to sample identifiers

    Returns:
        (per-file table with sample_id/lane/read added,
         per-sample table with sample_id, n_reads, n_files sorted by sample_id)
    """
    logger.info("aggregate_read_depth_start", file_count=file_counts.height)

    deduplicated = file_counts.unique(subset="file", keep="first", maintain_order=True)
    duplicates = file_counts.height - deduplicated.height
    if duplicates:
        logger.warning("aggregate_read_depth_duplicate_files", duplicate_count=duplicates)

    per_file = assign_samples(deduplicated, grammar)

    per_sample = (
        per_file
        .group_by("sample_id")
        .agg(
            pl.col("n_reads").sum().cast(pl.Int64).alias("n_reads"),
            pl.len().cast(pl.Int64).alias("n_files"),
        )
        .sort("sample_id")
    )

    unpaired = per_file.filter(pl.col("read").is_not_null()).group_by("sample_id").agg(
        pl.col("read").n_unique().alias("n_directions")
    ).filter(pl.col("n_directions") < 2)
    if unpaired.height:
        logger.warning(
            "aggregate_read_depth_unpaired_samples",
            samples=unpaired["sample_id"].to_list(),
        )

    logger.info(
        "aggregate_read_depth_complete",
        sample_count=per_sample.height,
        total_reads=int(per_sample["n_reads"].sum()) if per_sample.height else 0,
    )
    return per_file, per_sample


def write_read_depth_tsv(per_sample: pl.DataFrame, output_path: Path) -> Path:
    """Write the sample_id / n_reads table consumed by normalization."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    per_sample.select(["sample_id", "n_reads"]).write_csv(output_path, separator="\t")
    return output_path


def read_read_depth_tsv(path: Path) -> pl.DataFrame:
    """Read a sample_id / n_reads table written by write_read_depth_tsv."""
    return pl.read_csv(
        path,
        separator="\t",
        schema_overrides={"sample_id": pl.Utf8, "n_reads": pl.Int64},
    )
