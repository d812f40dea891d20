"""Normalize per-gene mapped-read counts by per-sample sequencing depth."""

import re
from pathlib import Path

import polars as pl
import structlog

from kegg_abundance.config.schema import MappingSchema
from kegg_abundance.coverage.models import MAX_SAMPLE_PERCENT
from kegg_abundance.errors import MissingDenominatorError, SampleNameError, SchemaError
from kegg_abundance.parallel import run_batch

logger = structlog.get_logger()

COUNT_SCHEMA = {
    "gene_identifier": pl.Utf8,
    "sample_id": pl.Utf8,
    "raw_count": pl.Float64,
}


def sample_id_from_filename(path: Path, pattern: str) -> str:
    """Extract the sample id embedded in a mapping table's file name.

    Raises:
        SampleNameError: If the name does not match the pattern
    """
    name = Path(path).name
    match = re.fullmatch(pattern, name)
    if not match:
        raise SampleNameError(f"Mapping table {name!r} does not match pattern {pattern!r}")
    return match.group("sample")


def discover_mapping_tables(schema: MappingSchema) -> dict[str, Path]:
    """Map sample id -> count table for every table in schema.table_dir.

    Raises:
        FileNotFoundError: If table_dir is unset or missing
        SchemaError: If two tables resolve to the same sample id
    """
    if schema.table_dir is None or not Path(schema.table_dir).is_dir():
        raise FileNotFoundError(f"Mapping table directory not found: {schema.table_dir}")

    tables: dict[str, Path] = {}
    for path in sorted(Path(schema.table_dir).glob(schema.table_glob)):
        if path.name.endswith(".summary"):
            continue
        sample_id = sample_id_from_filename(path, schema.filename_pattern)
        if sample_id in tables:
            raise SchemaError(
                f"Sample {sample_id} has two mapping tables: {tables[sample_id].name}, {path.name}"
            )
        tables[sample_id] = path

    logger.info("discover_mapping_tables", sample_count=len(tables))
    return tables


def read_mapping_table(path: Path, sample_id: str, schema: MappingSchema) -> pl.DataFrame:
    """Read one per-sample count table.

    The gene column is selected by name. The count column is selected by
    name when ``schema.count_column`` is set; otherwise the last column is
    used, which is where featureCounts writes the count of its single BAM.
    Lines starting with ``#`` are skipped.

    Returns:
        DataFrame with gene_identifier, sample_id, raw_count

    Raises:
        SchemaError: If a declared column is absent, counts are non-numeric
            or negative, or a gene appears twice
    """
    path = Path(path)
    df = pl.read_csv(path, separator="\t", comment_prefix="#", infer_schema_length=0)

    if schema.gene_column not in df.columns:
        raise SchemaError(
            f"{path.name}: gene column {schema.gene_column!r} not found; columns: {df.columns}"
        )
    count_column = schema.count_column or df.columns[-1]
    if count_column not in df.columns or count_column == schema.gene_column:
        raise SchemaError(
            f"{path.name}: count column {count_column!r} not usable; columns: {df.columns}"
        )

    counts = df.select(
        pl.col(schema.gene_column).alias("gene_identifier"),
        pl.lit(sample_id, dtype=pl.Utf8).alias("sample_id"),
        pl.col(count_column).cast(pl.Float64, strict=False).alias("raw_count"),
        pl.col(count_column).alias("_raw"),
    )

    non_numeric = counts.filter(pl.col("raw_count").is_null() & pl.col("_raw").is_not_null())
    if non_numeric.height:
        raise SchemaError(
            f"{path.name}: non-numeric counts in {count_column!r} "
            f"(e.g. {non_numeric['_raw'].head(3).to_list()})"
        )
    counts = counts.drop("_raw")

    if counts.filter(pl.col("gene_identifier").is_null() | pl.col("raw_count").is_null()).height:
        raise SchemaError(f"{path.name}: rows with missing gene identifier or count")
    if counts.filter(pl.col("raw_count") < 0).height:
        raise SchemaError(f"{path.name}: negative read counts")
    duplicated = counts.filter(pl.col("gene_identifier").is_duplicated())
    if duplicated.height:
        raise SchemaError(
            f"{path.name}: {duplicated['gene_identifier'].n_unique()} gene(s) listed more than once"
        )

    logger.debug("read_mapping_table", path=str(path), sample_id=sample_id, gene_count=counts.height)
    return counts


def read_mapping_tables(
    tables: dict[str, Path],
    schema: MappingSchema,
) -> pl.DataFrame:
    """Read every sample's count table concurrently into one long table.

    Rows are ordered by sample id, then by table order.

    Raises:
        SchemaError, PipelineError: The first failing table's error, after
            every table has been attempted and failures logged
    """
    sample_ids = sorted(tables)
    batch = run_batch(
        sample_ids,
        lambda sample_id: read_mapping_table(tables[sample_id], sample_id, schema),
        workers=schema.workers,
        label="mapping_read",
    )

    if batch.failures:
        first = next(k for k in batch.keys if k in batch.failures)
        raise batch.failures[first]

    results = batch.ordered_results()
    if not results:
        return pl.DataFrame(schema=COUNT_SCHEMA)
    return pl.concat(results, how="vertical")


def normalize_sample_counts(counts: pl.DataFrame, read_depth: pl.DataFrame) -> pl.DataFrame:
    """Express raw counts as a percentage of each sample's total reads.

    Every sample in ``counts`` must have a positive read-depth total; all
    offending samples are reported together before anything is computed.

    Args:
        counts: Long table gene_identifier, sample_id, raw_count
        read_depth: sample_id, n_reads

    Returns:
        counts with total_reads and percent_of_sample_reads added

    Raises:
        MissingDenominatorError: If a sample has no (or a zero) read-depth total
    """
    depth = read_depth.select(
        pl.col("sample_id").cast(pl.Utf8),
        pl.col("n_reads").cast(pl.Int64).alias("total_reads"),
    )
    usable = set(depth.filter(pl.col("total_reads") > 0)["sample_id"].to_list())
    samples = counts["sample_id"].unique().to_list()
    missing = [s for s in samples if s not in usable]
    if missing:
        logger.error("normalize_counts_missing_denominator", samples=sorted(missing))
        raise MissingDenominatorError(missing)

    normalized = counts.join(depth, on="sample_id", how="left").with_columns(
        (pl.col("raw_count") / pl.col("total_reads") * 100.0).alias("percent_of_sample_reads")
    )

    logger.info(
        "normalize_counts_complete",
        sample_count=len(samples),
        row_count=normalized.height,
    )
    return normalized


def pivot_normalized(normalized: pl.DataFrame) -> pl.DataFrame:
    """Widen to one row per gene and one column per sample.

    A gene present in any sample gets a row; samples where it was not
    reported hold NULL (absent, not zero).
    """
    if normalized.height == 0:
        return pl.DataFrame(schema={"gene_identifier": pl.Utf8})

    wide = normalized.pivot(
        on="sample_id",
        index="gene_identifier",
        values="percent_of_sample_reads",
    )
    sample_columns = sorted(c for c in wide.columns if c != "gene_identifier")
    return wide.select(["gene_identifier", *sample_columns]).sort("gene_identifier")


def sample_percent_totals(wide: pl.DataFrame) -> pl.DataFrame:
    """Sum of per-gene percentages in each sample.

    Mapping rates are partial, so totals well below 100 are expected; a
    total above 100 means the denominator is wrong.

    Returns:
        DataFrame with sample_id, total_percent, n_genes
    """
    rows = []
    for sample_id in wide.columns:
        if sample_id == "gene_identifier":
            continue
        column = wide[sample_id]
        total = column.sum()
        rows.append({
            "sample_id": sample_id,
            "total_percent": float(total) if total is not None else 0.0,
            "n_genes": column.drop_nulls().len(),
        })

    totals = pl.DataFrame(
        rows,
        schema={"sample_id": pl.Utf8, "total_percent": pl.Float64, "n_genes": pl.Int64},
    )

    for row in totals.to_dicts():
        if row["total_percent"] > MAX_SAMPLE_PERCENT:
            logger.warning("sample_percent_total_exceeds_100", **row)
        else:
            logger.info("sample_percent_total", **row)

    return totals


def normalize_coverage(
    counts: pl.DataFrame,
    read_depth: pl.DataFrame,
) -> tuple[pl.DataFrame, pl.DataFrame, pl.DataFrame]:
    """End-to-end normalization.

    Returns:
        (long normalized table, wide normalized table, per-sample percent totals)
    """
    logger.info("normalize_coverage_start", row_count=counts.height)
    normalized = normalize_sample_counts(counts, read_depth)
    wide = pivot_normalized(normalized)
    totals = sample_percent_totals(wide)
    logger.info(
        "normalize_coverage_complete",
        gene_count=wide.height,
        sample_count=wide.width - 1,
    )
    return normalized, wide, totals
