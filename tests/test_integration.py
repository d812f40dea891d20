"""End-to-end tests through every stage with synthetic inputs."""

from unittest.mock import Mock

import polars as pl
import pytest

from kegg_abundance.aggregation import build_category_matrix, check_conservation
from kegg_abundance.annotation import join_module_annotations, read_annotation_tables
from kegg_abundance.config.schema import AnnotationSchema, MappingSchema
from kegg_abundance.coverage import (
    discover_mapping_tables,
    normalize_coverage,
    read_mapping_tables,
)
from kegg_abundance.errors import MissingDenominatorError
from kegg_abundance.modules import fetch_module_records
from kegg_abundance.read_depth import (
    SampleNameGrammar,
    aggregate_read_depth,
    count_read_files,
)

M1_ENTRY = """\
ENTRY       M1                Pathway   Module
NAME        Module one
ORTHOLOGY   K00001,K00002  first and second subunit
            K00003  third subunit
CLASS       X; X class; X group
///
"""

M2_ENTRY = """\
ENTRY       M2                Pathway   Module
NAME        Module two
///
"""


def write_fastq(path, n_reads):
    path.write_text("".join(f"@r{i}\nACGT\n+\nIIII\n" for i in range(n_reads)))
    return path


def write_counts(path, counts: dict):
    rows = "".join(f"{gene}\t900\t{count}\n" for gene, count in counts.items())
    path.write_text(f"Geneid\tLength\t{path.stem}.bam\n" + rows)
    return path


@pytest.fixture
def inputs(tmp_path):
    reads = tmp_path / "reads"
    reads.mkdir()
    write_fastq(reads / "S1_R1.fastq", 100)
    write_fastq(reads / "S1_R2.fastq", 50)
    write_fastq(reads / "S2.fastq", 200)

    annotation = tmp_path / "annotation"
    annotation.mkdir()
    (annotation / "MAG1.tsv").write_text(
        "gene_name\tko\tgenome\tscaffold\n"
        "MAG1_00001\tK00002\tMAG1\tc1\n"
        "MAG1_00002\t\tMAG1\tc1\n"
    )

    mapping = tmp_path / "mapping"
    mapping.mkdir()
    write_counts(mapping / "S1.counts", {"c1_00001": 15, "c1_00002": 40})
    write_counts(mapping / "S2.counts", {"c1_00001": 20})

    return {"reads": reads, "annotation": annotation, "mapping": mapping}


def _module_records():
    client = Mock()
    client.get_module.side_effect = {"M1": M1_ENTRY, "M2": M2_ENTRY}.get
    return fetch_module_records(["M1", "M2"], client, workers=2)


def _read_depth(reads_dir):
    file_counts = count_read_files(sorted(reads_dir.iterdir()), workers=3, verify=True)
    return aggregate_read_depth(file_counts, SampleNameGrammar())[1]


def test_module_database_scenario():
    """M1 (3 orthology members) and M2 (no sections) flatten to 3 rows of M1."""
    records, report = _module_records()

    assert records.height == 3
    assert records["module_id"].to_list() == ["M1", "M1", "M1"]
    assert records["member_id"].to_list() == ["K00001", "K00002", "K00003"]
    assert report.succeeded == 2
    assert report.empty_modules == ["M2"]


def test_read_depth_scenario(inputs):
    per_sample = _read_depth(inputs["reads"])

    assert dict(per_sample.select(["sample_id", "n_reads"]).iter_rows()) == {"S1": 150, "S2": 200}


def test_end_to_end_category_matrix(inputs):
    records, _ = _module_records()
    per_sample = _read_depth(inputs["reads"])

    annotations = read_annotation_tables(
        sorted(inputs["annotation"].glob("*.tsv")), AnnotationSchema()
    )
    annotated = join_module_annotations(annotations, records)
    assert annotated["gene_identifier"].to_list() == ["c1_00001"]

    schema = MappingSchema(table_dir=inputs["mapping"])
    counts = read_mapping_tables(discover_mapping_tables(schema), schema)
    _, wide, totals = normalize_coverage(counts, per_sample)

    g1 = wide.filter(pl.col("gene_identifier") == "c1_00001")
    assert g1["S1"].item() == pytest.approx(10.0)
    assert g1["S2"].item() == pytest.approx(10.0)
    # c1_00002 carries reads but no functional code
    assert totals["total_percent"].to_list() == [pytest.approx(55 / 150 * 100), pytest.approx(10.0)]

    matrix = build_category_matrix(annotated, wide)
    assert matrix.columns == ["category", "S1", "S2"]
    assert matrix.rows() == [("X", pytest.approx(10.0), pytest.approx(10.0))]

    check = check_conservation(annotated, wide, matrix)
    assert check["difference"].abs().max() < 1e-9


def test_missing_denominator_scenario(inputs):
    """S3 has mapping data but no read-depth entry: normalization fails loudly."""
    per_sample = _read_depth(inputs["reads"])
    write_counts(inputs["mapping"] / "S3.counts", {"c1_00001": 5})

    schema = MappingSchema(table_dir=inputs["mapping"])
    counts = read_mapping_tables(discover_mapping_tables(schema), schema)

    with pytest.raises(MissingDenominatorError) as exc_info:
        normalize_coverage(counts, per_sample)

    assert exc_info.value.sample_ids == ["S3"]
