"""Category matrix writers: wide TSV, Parquet, long TSV and a YAML sidecar."""

from datetime import datetime, timezone
from pathlib import Path

import polars as pl
import yaml

LONG_VALUE_COLUMN = "percent_of_sample_reads"


def matrix_to_long(df: pl.DataFrame) -> pl.DataFrame:
    """One row per (category, sample) pair, in matrix row then column order."""
    samples = [c for c in df.columns if c != "category"]
    if not samples:
        return pl.DataFrame(schema={
            "category": pl.Utf8,
            "sample": pl.Utf8,
            LONG_VALUE_COLUMN: pl.Float64,
        })
    return (
        df.with_row_index("_row")
        .unpivot(
            index=["_row", "category"],
            on=samples,
            variable_name="sample",
            value_name=LONG_VALUE_COLUMN,
        )
        .sort("_row", maintain_order=True)
        .select(["category", "sample", LONG_VALUE_COLUMN])
    )


def write_matrix_output(
    df: pl.DataFrame | pl.LazyFrame,
    output_dir: Path,
    filename_base: str = "category_matrix",
    metadata: dict | None = None,
    float_precision: int | None = None,
) -> dict:
    """
    Write the category-by-sample matrix.

    Rows and columns are written in the order given: categories sorted,
    sample labels in metadata order. Alongside the wide TSV and Parquet
    files a long TSV (category, sample, percent_of_sample_reads) is
    written for plotting tools, and a YAML sidecar records the shape,
    per-sample column totals and any extra ``metadata``.

    Args:
        df: DataFrame or LazyFrame whose first column is ``category``
        output_dir: Created if missing
        filename_base: Base name for every written file
        metadata: Extra sidecar entries (category level, sort key, diagnostics)
        float_precision: Decimal places in the TSV files (None = full precision)

    Returns:
        Dict with paths under "tsv", "parquet", "long_tsv", "provenance"

    Raises:
        ValueError: If the first column is not ``category``
    """
    if isinstance(df, pl.LazyFrame):
        df = df.collect()
    if not df.columns or df.columns[0] != "category":
        raise ValueError(f"Matrix must start with a 'category' column, got {df.columns[:1]}")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    tsv_path = output_dir / f"{filename_base}.tsv"
    parquet_path = output_dir / f"{filename_base}.parquet"
    long_path = output_dir / f"{filename_base}.long.tsv"
    provenance_path = output_dir / f"{filename_base}.provenance.yaml"

    df.write_csv(tsv_path, separator="\t", float_precision=float_precision)
    df.write_parquet(parquet_path, compression="snappy", use_pyarrow=True)
    matrix_to_long(df).write_csv(long_path, separator="\t", float_precision=float_precision)

    sample_columns = df.columns[1:]
    provenance = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "output_files": [tsv_path.name, parquet_path.name, long_path.name],
        "statistics": {
            "category_count": df.height,
            "sample_count": len(sample_columns),
        },
        "sample_totals": {s: float(df[s].sum()) for s in sample_columns},
        "column_names": df.columns,
    }
    if metadata:
        provenance["metadata"] = metadata

    with open(provenance_path, "w") as f:
        yaml.safe_dump(provenance, f, default_flow_style=False, sort_keys=False)

    return {
        "tsv": tsv_path,
        "parquet": parquet_path,
        "long_tsv": long_path,
        "provenance": provenance_path,
    }
