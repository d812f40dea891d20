"""Tests for the annotation table contract and the module join."""

import polars as pl
import pytest

from kegg_abundance.annotation import (
    CATEGORY_FIELDS,
    derive_gene_identifier,
    join_module_annotations,
    read_annotation_table,
    read_annotation_tables,
    split_category,
)
from kegg_abundance.config.schema import AnnotationSchema
from kegg_abundance.errors import SchemaError, ShapeMismatchError
from kegg_abundance.modules import flatten_module


def write_table(path, rows, header=("locus_tag", "scaffold", "ko", "gene_name", "genome", "product")):
    lines = ["\t".join(header)] + ["\t".join(row) for row in rows]
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def annotation_table(tmp_path):
    return write_table(tmp_path / "MAG1.tsv", [
        ("L1", "k141_5", "ko:K00844", "MAG1_00012", "MAG1", "hexokinase"),
        ("L2", "k141_5", "K01810", "MAG1_00013", "MAG1", "glucose-6-phosphate isomerase"),
        ("L3", "k141_9", "", "MAG1_00001", "MAG1", "hypothetical protein"),
        ("L4", "k141_9", "K99999", "MAG1_00002", "MAG1", "unknown function"),
    ])


@pytest.fixture
def annotations():
    return pl.DataFrame({
        "gene_name": ["MAG1_00012", "MAG1_00013", "MAG1_00001", "MAG1_00002"],
        "functional_code": ["K00844", "K01810", None, "K99999"],
        "genome_id": ["MAG1"] * 4,
        "scaffold_id": ["k141_5", "k141_5", "k141_9", "k141_9"],
    })


@pytest.fixture
def module_records(m00001_entry):
    # M00004: shares K00844 with M00001, different category
    m00004 = (
        "ENTRY       M00004\n"
        "NAME        Pentose phosphate pathway\n"
        "ORTHOLOGY   K00844  hexokinase\n"
        "            K00844  hexokinase (listed twice)\n"
        "CLASS       Pathway modules; Carbohydrate metabolism; Pentose phosphate cycle\n"
        "///\n"
    )
    return pl.concat([
        flatten_module("M00001", m00001_entry),
        flatten_module("M00004", m00004),
    ])


# ============================================================================
# Reading
# ============================================================================

def test_read_annotation_table_selects_by_name(annotation_table):
    df = read_annotation_table(annotation_table, AnnotationSchema())

    assert df.columns == ["gene_name", "functional_code", "genome_id", "scaffold_id"]
    assert df["functional_code"].to_list() == ["K00844", "K01810", None, "K99999"]
    assert df["scaffold_id"].to_list() == ["k141_5", "k141_5", "k141_9", "k141_9"]


def test_read_annotation_table_custom_columns(tmp_path):
    path = write_table(
        tmp_path / "MAG7.tsv",
        [("k141_1", "MAG7_00004", "K01810")],
        header=("contig", "Name", "KO"),
    )
    schema = AnnotationSchema(
        gene_column="Name",
        code_column="KO",
        genome_column=None,
        scaffold_column="contig",
    )

    df = read_annotation_table(path, schema)

    assert df.row(0, named=True) == {
        "gene_name": "MAG7_00004",
        "functional_code": "K01810",
        "genome_id": "MAG7",
        "scaffold_id": "k141_1",
    }


def test_read_annotation_table_missing_column(tmp_path):
    path = write_table(tmp_path / "MAG1.tsv", [("MAG1_00001", "k141_1")], header=("gene_name", "scaffold"))

    with pytest.raises(SchemaError) as exc_info:
        read_annotation_table(path, AnnotationSchema())

    assert "'ko'" in str(exc_info.value)
    assert "'genome'" in str(exc_info.value)


def test_read_annotation_tables_concatenates(annotation_table, tmp_path):
    other = write_table(tmp_path / "MAG2.tsv", [
        ("L1", "k99_1", "K00844", "MAG2_00003", "MAG2", "hexokinase"),
    ])

    df = read_annotation_tables([other, annotation_table], AnnotationSchema())

    assert df.height == 5
    assert df["genome_id"].unique(maintain_order=True).to_list() == ["MAG1", "MAG2"]


def test_read_annotation_tables_requires_input():
    with pytest.raises(FileNotFoundError):
        read_annotation_tables([], AnnotationSchema())


# ============================================================================
# Gene identifiers and categories
# ============================================================================

def test_derive_gene_identifier(annotations):
    df = derive_gene_identifier(annotations)

    assert df["gene_identifier"].to_list() == [
        "k141_5_00012", "k141_5_00013", "k141_9_00001", "k141_9_00002",
    ]


def test_derive_gene_identifier_requires_trailing_index():
    df = pl.DataFrame({
        "gene_name": ["MAG1_00001", "tRNA-Leu"],
        "functional_code": [None, None],
        "genome_id": ["MAG1", "MAG1"],
        "scaffold_id": ["k141_1", "k141_1"],
    })

    with pytest.raises(ShapeMismatchError, match="tRNA-Leu"):
        derive_gene_identifier(df)


def test_derive_gene_identifier_rejects_duplicates():
    df = pl.DataFrame({
        "gene_name": ["MAG1_00001", "MAG2_00001"],
        "functional_code": ["K00844", "K00844"],
        "genome_id": ["MAG1", "MAG2"],
        "scaffold_id": ["k141_1", "k141_1"],
    })

    with pytest.raises(ShapeMismatchError, match="k141_1_00001"):
        derive_gene_identifier(df)


def test_split_category():
    df = pl.DataFrame({
        "module_class": [
            "Pathway modules; Energy metabolism; Methane metabolism",
            None,
        ]
    })

    result = split_category(df)

    assert result.row(0, named=True) == {
        "module_class": "Pathway modules; Energy metabolism; Methane metabolism",
        "category_type": "Pathway modules",
        "category_class": "Energy metabolism",
        "category_group": "Methane metabolism",
    }
    assert result.row(1, named=True)["category_type"] is None


@pytest.mark.parametrize("module_class", [
    "Pathway modules; Energy metabolism",
    "Pathway modules; Energy metabolism; Methane metabolism; extra",
    "Pathway modules;; Methane metabolism",
])
def test_split_category_wrong_shape_raises(module_class):
    df = pl.DataFrame({"module_class": [module_class]})

    with pytest.raises(ShapeMismatchError):
        split_category(df)


# ============================================================================
# Join
# ============================================================================

def test_join_module_annotations_fans_out(annotations, module_records):
    joined = join_module_annotations(annotations, module_records)

    pairs = joined.select(["gene_identifier", "module_id"]).rows()
    assert pairs == [
        ("k141_5_00012", "M00001"),
        ("k141_5_00012", "M00004"),
        ("k141_5_00013", "M00001"),
    ]


def test_join_module_annotations_attaches_categories(annotations, module_records):
    joined = join_module_annotations(annotations, module_records)

    row = joined.filter(pl.col("module_id") == "M00004").row(0, named=True)
    assert row["category_type"] == "Pathway modules"
    assert row["category_group"] == "Pentose phosphate cycle"
    assert row["member_definition"] == "hexokinase"
    assert row["module_name"] == "Pentose phosphate pathway"
    assert set(CATEGORY_FIELDS) <= set(joined.columns)
    assert "module_class" not in joined.columns


def test_join_skips_uncoded_genes_without_index(module_records):
    """An RNA gene with no KO and no trailing index is dropped, not rejected."""
    genes = pl.DataFrame({
        "gene_name": ["MAG1_00012", "MAG1_tRNA-Leu"],
        "functional_code": ["K00844", None],
        "genome_id": ["MAG1", "MAG1"],
        "scaffold_id": ["k141_5", None],
    })

    joined = join_module_annotations(genes, module_records)

    assert joined["gene_name"].unique().to_list() == ["MAG1_00012"]
    assert joined["gene_identifier"].unique().to_list() == ["k141_5_00012"]


def test_join_ignores_non_orthology_members(annotations, module_records):
    """A gene code equal to a reaction or compound id does not match."""
    genes = annotations.with_columns(
        pl.when(pl.col("gene_name") == "MAG1_00002")
        .then(pl.lit("R00771"))
        .otherwise(pl.col("functional_code"))
        .alias("functional_code")
    )

    joined = join_module_annotations(genes, module_records)

    assert "k141_9_00002" not in joined["gene_identifier"].to_list()


def test_join_keeps_uncategorised_modules(annotations):
    records = flatten_module(
        "M00010",
        "ENTRY       M00010\nORTHOLOGY   K01810  isomerase\n///\n",
    )

    joined = join_module_annotations(annotations, records)

    assert joined.height == 1
    assert joined.row(0, named=True)["category_type"] is None
