"""Attach KEGG module and category labels to annotated genes."""

from pathlib import Path

import polars as pl
import structlog

from kegg_abundance.annotation.models import (
    CATEGORY_DELIMITER,
    CATEGORY_FIELDS,
    GENE_INDEX_PATTERN,
)
from kegg_abundance.config.schema import AnnotationSchema
from kegg_abundance.errors import SchemaError, ShapeMismatchError

logger = structlog.get_logger()


def read_annotation_table(path: Path, schema: AnnotationSchema) -> pl.DataFrame:
    """Read one per-genome annotation table through its named-column contract.

    Columns are selected by declared name, never by position. When
    ``schema.genome_column`` is None the genome id is the file stem.

    Returns:
        DataFrame with gene_name, functional_code, genome_id, scaffold_id

    Raises:
        SchemaError: If a declared column is absent
    """
    path = Path(path)
    df = pl.read_csv(
        path,
        separator="\t",
        infer_schema_length=0,
        null_values=["", "NA"],
        quote_char=None,
    )

    declared = [schema.gene_column, schema.code_column, schema.scaffold_column]
    if schema.genome_column:
        declared.append(schema.genome_column)
    missing = [c for c in declared if c not in df.columns]
    if missing:
        raise SchemaError(
            f"{path.name}: declared column(s) {missing} not found; "
            f"available columns: {df.columns}"
        )

    genome = pl.col(schema.genome_column) if schema.genome_column else pl.lit(path.stem)

    return df.select(
        pl.col(schema.gene_column).alias("gene_name"),
        pl.col(schema.code_column)
        .str.strip_chars()
        .str.replace(r"^ko:", "")
        .alias("functional_code"),
        genome.alias("genome_id"),
        pl.col(schema.scaffold_column).alias("scaffold_id"),
    ).with_columns(
        pl.when(pl.col("functional_code") == "")
        .then(pl.lit(None, dtype=pl.Utf8))
        .otherwise(pl.col("functional_code"))
        .alias("functional_code")
    )


def read_annotation_tables(paths: list[Path], schema: AnnotationSchema) -> pl.DataFrame:
    """Read and concatenate annotation tables (one per genome)."""
    if not paths:
        raise FileNotFoundError("No annotation tables to read")

    tables = [read_annotation_table(p, schema) for p in sorted(paths)]
    df = pl.concat(tables, how="vertical")

    logger.info(
        "read_annotation_tables",
        table_count=len(tables),
        gene_count=df.height,
        genome_count=df["genome_id"].n_unique(),
    )
    return df


def derive_gene_identifier(df: pl.DataFrame) -> pl.DataFrame:
    """Build gene_identifier = scaffold_id + "_" + trailing index of gene_name.

    Raises:
        ShapeMismatchError: If a gene name has no trailing _<integer>, a
            scaffold is missing, or two genes end up with the same identifier
    """
    index = pl.col("gene_name").str.extract(GENE_INDEX_PATTERN, 1)

    bad = df.filter(index.is_null() | pl.col("scaffold_id").is_null())
    if bad.height:
        examples = bad["gene_name"].head(5).to_list()
        raise ShapeMismatchError(
            f"{bad.height} gene(s) lack a trailing _<integer> index or scaffold id "
            f"(e.g. {examples})"
        )

    df = df.with_columns(
        pl.concat_str([pl.col("scaffold_id"), index], separator="_").alias("gene_identifier")
    )

    duplicated = df.filter(pl.col("gene_identifier").is_duplicated())
    if duplicated.height:
        examples = duplicated["gene_identifier"].unique().sort().head(5).to_list()
        raise ShapeMismatchError(
            f"{duplicated.height} rows share a gene identifier (e.g. {examples})"
        )

    return df


def split_category(df: pl.DataFrame, column: str = "module_class") -> pl.DataFrame:
    """Split a "type; class; group" string into three category columns.

    NULL input stays NULL in all three columns (uncategorised module).

    Raises:
        ShapeMismatchError: If a non-NULL value does not split into exactly
            three non-empty parts
    """
    parts = pl.col(column).str.split(CATEGORY_DELIMITER).list.eval(
        pl.element().str.strip_chars()
    )
    df = df.with_columns(parts.alias("_category_parts"))

    malformed = df.filter(
        pl.col(column).is_not_null()
        & (
            (pl.col("_category_parts").list.len() != len(CATEGORY_FIELDS))
            | pl.col("_category_parts").list.eval(pl.element() == "").list.any()
        )
    )
    if malformed.height:
        examples = malformed[column].unique().sort().head(5).to_list()
        raise ShapeMismatchError(
            f"{malformed.height} row(s) have a {column} that does not split into "
            f"{len(CATEGORY_FIELDS)} parts on {CATEGORY_DELIMITER!r}: {examples}"
        )

    return df.with_columns(
        [
            pl.col("_category_parts").list.get(i, null_on_oob=True).alias(name)
            for i, name in enumerate(CATEGORY_FIELDS)
        ]
    ).drop("_category_parts")


def join_module_annotations(
    annotations: pl.DataFrame,
    module_records: pl.DataFrame,
) -> pl.DataFrame:
    """Attach module and category labels to every annotated gene.

    Genes without a functional code, or whose code is in no module, are
    dropped. A gene matching several modules yields one row per module.

    Args:
        annotations: gene_name, functional_code, genome_id, scaffold_id
        module_records: Flattened module database

    Returns:
        DataFrame with AnnotatedGene columns, sorted by gene_identifier, module_id
    """
    logger.info("join_module_annotations_start", gene_count=annotations.height)

    coded = derive_gene_identifier(
        annotations.filter(pl.col("functional_code").is_not_null())
    )

    # A KO listed on two lines of one module must not fan out twice
    orthology = (
        module_records
        .filter(pl.col("attribute") == "orthology")
        .sort(["module_id", "row_seq"])
        .unique(subset=["module_id", "member_id"], keep="first", maintain_order=True)
        .select(["member_id", "module_id", "module_name", "module_class", "member_definition"])
    )

    joined = coded.join(
        orthology,
        left_on="functional_code",
        right_on="member_id",
        how="inner",
    )
    joined = split_category(joined).drop("module_class")

    joined = joined.select([
        "gene_identifier",
        "gene_name",
        "genome_id",
        "scaffold_id",
        "functional_code",
        "module_id",
        "module_name",
        "member_definition",
        *CATEGORY_FIELDS,
    ]).sort(["gene_identifier", "module_id"])

    matched_genes = joined["gene_identifier"].n_unique() if joined.height else 0
    logger.info(
        "join_module_annotations_complete",
        gene_count=annotations.height,
        unannotated=annotations.height - coded.height,
        unmatched=coded.height - matched_genes,
        matched_genes=matched_genes,
        joined_rows=joined.height,
    )
    return joined
