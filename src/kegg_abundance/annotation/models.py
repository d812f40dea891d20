"""Data models for module-annotated genes."""

from pydantic import BaseModel

# Table name for DuckDB storage
ANNOTATED_GENES_TABLE_NAME = "annotated_genes"

# Delimiter between type, class and group in a KEGG CLASS string
CATEGORY_DELIMITER = ";"
CATEGORY_FIELDS = ("category_type", "category_class", "category_group")

# Trailing _<integer> of a gene name (prodigal/prokka numbering)
GENE_INDEX_PATTERN = r"_(\d+)$"


class AnnotatedGene(BaseModel):
    """One (gene, module) match.

    A gene whose functional code belongs to several modules appears once
    per module.

    Attributes:
        gene_identifier: scaffold_id + "_" + gene index, the key used by mapping tables
        gene_name: Gene name as written by the annotation tool
        genome_id: MAG the gene was called on
        scaffold_id: Scaffold (contig) carrying the gene
        functional_code: KO assigned to the gene
        module_id: Matching KEGG module
        module_name: Module NAME - NULL if the entry has none
        member_definition: ORTHOLOGY description for the KO in that module
        category_type: First CLASS field (e.g., "Pathway modules") - NULL if uncategorised
        category_class: Second CLASS field (e.g., "Carbohydrate metabolism")
        category_group: Third CLASS field (e.g., "Central carbohydrate metabolism")
    """

    gene_identifier: str
    gene_name: str
    genome_id: str
    scaffold_id: str
    functional_code: str
    module_id: str
    module_name: str | None = None
    member_definition: str | None = None
    category_type: str | None = None
    category_class: str | None = None
    category_group: str | None = None
