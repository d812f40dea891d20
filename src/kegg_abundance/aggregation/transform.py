"""Sum normalized gene abundance per functional category and sample."""

from pathlib import Path

import polars as pl
import structlog

from kegg_abundance.aggregation.models import (
    CATEGORY_LEVEL_COLUMNS,
    CONSERVATION_TOLERANCE,
    REQUIRED_METADATA_COLUMNS,
)
from kegg_abundance.errors import SchemaError

logger = structlog.get_logger()


def _sample_columns(df: pl.DataFrame, key: str) -> list[str]:
    return [c for c in df.columns if c != key]


def assign_gene_categories(annotated: pl.DataFrame, level: str = "type") -> pl.DataFrame:
    """Reduce the per-module fan-out to exactly one category per gene.

    A gene whose matched modules share a category keeps that category once.
    A gene whose modules fall in different categories is assigned the
    category of its lowest module_id, so no gene is counted twice.
    Uncategorised genes (NULL label) are dropped.

    Returns:
        DataFrame with gene_identifier, category
    """
    if level not in CATEGORY_LEVEL_COLUMNS:
        raise ValueError(
            f"Unknown category level {level!r}; expected one of {list(CATEGORY_LEVEL_COLUMNS)}"
        )
    category_column = CATEGORY_LEVEL_COLUMNS[level]

    categorised = (
        annotated
        .filter(pl.col(category_column).is_not_null())
        .select(
            "gene_identifier",
            "module_id",
            pl.col(category_column).alias("category"),
        )
    )

    ambiguous = (
        categorised
        .group_by("gene_identifier")
        .agg(pl.col("category").n_unique().alias("n_categories"))
        .filter(pl.col("n_categories") > 1)
    )
    if ambiguous.height:
        logger.warning(
            "genes_in_multiple_categories",
            level=level,
            gene_count=ambiguous.height,
            examples=ambiguous["gene_identifier"].sort().head(5).to_list(),
        )

    return (
        categorised
        .sort(["gene_identifier", "module_id"])
        .unique(subset=["gene_identifier"], keep="first", maintain_order=True)
        .select(["gene_identifier", "category"])
    )


def build_category_matrix(
    annotated: pl.DataFrame,
    wide: pl.DataFrame,
    level: str = "type",
) -> pl.DataFrame:
    """Sum per-gene percentages into a category-by-sample matrix.

    Args:
        annotated: Output of join_module_annotations
        wide: One row per gene_identifier, one column per sample
        level: Category label to group by ("type", "class" or "group")

    Returns:
        DataFrame with a ``category`` column followed by one Float64 column
        per sample (in the column order of ``wide``), rows sorted by category.
        Genes with no mapping data, and samples where a gene was not
        reported, contribute zero.
    """
    samples = _sample_columns(wide, "gene_identifier")
    genes = assign_gene_categories(annotated, level)

    logger.info(
        "build_category_matrix_start",
        level=level,
        gene_count=genes.height,
        sample_count=len(samples),
    )

    if not samples:
        return genes.select("category").unique().sort("category")

    joined = genes.join(wide, on="gene_identifier", how="left").with_columns(
        [pl.col(s).cast(pl.Float64).fill_null(0.0) for s in samples]
    )

    unmapped = joined.height - genes.join(wide, on="gene_identifier", how="semi").height
    if unmapped:
        logger.info("categorised_genes_without_mapping", gene_count=unmapped)

    matrix = (
        joined
        .group_by("category")
        .agg([pl.col(s).sum() for s in samples])
        .sort("category")
        .select(["category", *samples])
    )

    logger.info("build_category_matrix_complete", category_count=matrix.height)
    return matrix


def check_conservation(
    annotated: pl.DataFrame,
    wide: pl.DataFrame,
    matrix: pl.DataFrame,
    level: str = "type",
) -> pl.DataFrame:
    """Compare category-level totals with gene-level totals per sample.

    Both sides cover only genes that carry a category at ``level``; the
    totals should agree within CONSERVATION_TOLERANCE.

    Returns:
        DataFrame with sample_id, gene_total, category_total, difference
    """
    genes = assign_gene_categories(annotated, level).select("gene_identifier")
    categorised = wide.join(genes, on="gene_identifier", how="semi")

    rows = []
    for sample_id in _sample_columns(matrix, "category"):
        gene_total = 0.0
        if sample_id in categorised.columns:
            gene_total = float(categorised[sample_id].fill_null(0.0).sum())
        category_total = float(matrix[sample_id].sum())
        rows.append({
            "sample_id": sample_id,
            "gene_total": gene_total,
            "category_total": category_total,
            "difference": category_total - gene_total,
        })

    check = pl.DataFrame(
        rows,
        schema={
            "sample_id": pl.Utf8,
            "gene_total": pl.Float64,
            "category_total": pl.Float64,
            "difference": pl.Float64,
        },
    )

    violations = check.filter(pl.col("difference").abs() > CONSERVATION_TOLERANCE)
    if violations.height:
        logger.warning("category_conservation_violated", samples=violations.to_dicts())
    else:
        logger.info("category_conservation_ok", sample_count=check.height)
    return check


def read_sample_metadata(path: Path, sort_key: str = "temperature") -> pl.DataFrame:
    """Read the tab-delimited sample metadata table.

    Raises:
        FileNotFoundError: If the table does not exist
        SchemaError: If sample_id, depth or the sort key is missing, or a
            sample is listed twice
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sample metadata not found: {path}")

    df = pl.read_csv(
        path,
        separator="\t",
        null_values=["", "NA"],
        schema_overrides={"sample_id": pl.Utf8},
    )

    required = [*REQUIRED_METADATA_COLUMNS, sort_key]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaError(f"{path.name}: missing metadata column(s) {missing}")

    df = df.with_columns(pl.col("sample_id").cast(pl.Utf8))
    duplicated = df.filter(pl.col("sample_id").is_duplicated())
    if duplicated.height:
        raise SchemaError(
            f"{path.name}: sample(s) listed more than once: "
            f"{sorted(set(duplicated['sample_id'].to_list()))}"
        )

    logger.info("read_sample_metadata", path=str(path), sample_count=df.height)
    return df


def apply_sample_metadata(
    matrix: pl.DataFrame,
    metadata: pl.DataFrame,
    sort_key: str = "temperature",
    descending: bool = False,
    label_template: str = "{sample_id} ({depth} m)",
) -> pl.DataFrame:
    """Order sample columns by a metadata key and relabel them.

    Ties on the sort key (and NULL keys, placed last) are broken by
    sample_id. Labels are rendered from ``label_template`` with every
    metadata column of the sample available as a field.

    Raises:
        SchemaError: If a matrix sample has no metadata row, the template
            names an unknown column, or two samples get the same label
    """
    samples = _sample_columns(matrix, "category")

    known = set(metadata["sample_id"].to_list())
    missing = sorted(s for s in samples if s not in known)
    if missing:
        raise SchemaError(f"No sample metadata for: {', '.join(missing)}")

    ordered = (
        metadata
        .filter(pl.col("sample_id").is_in(samples))
        .sort([sort_key, "sample_id"], descending=[descending, False], nulls_last=True)
    )

    labels = {}
    for row in ordered.to_dicts():
        try:
            labels[row["sample_id"]] = label_template.format(**row)
        except KeyError as e:
            raise SchemaError(f"Label template refers to unknown metadata column {e}") from e

    if len(set(labels.values())) != len(labels):
        raise SchemaError(f"Label template {label_template!r} produces duplicate column labels")

    sample_order = ordered["sample_id"].to_list()
    logger.info(
        "apply_sample_metadata",
        sort_key=sort_key,
        descending=descending,
        sample_order=sample_order,
    )
    return matrix.select(["category", *sample_order]).rename(labels)
