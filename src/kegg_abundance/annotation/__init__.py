"""Join gene annotations against the KEGG module database."""

from kegg_abundance.annotation.models import (
    ANNOTATED_GENES_TABLE_NAME,
    CATEGORY_FIELDS,
    AnnotatedGene,
)
from kegg_abundance.annotation.transform import (
    derive_gene_identifier,
    join_module_annotations,
    read_annotation_table,
    read_annotation_tables,
    split_category,
)

__all__ = [
    "ANNOTATED_GENES_TABLE_NAME",
    "CATEGORY_FIELDS",
    "AnnotatedGene",
    "derive_gene_identifier",
    "join_module_annotations",
    "read_annotation_table",
    "read_annotation_tables",
    "split_category",
]
