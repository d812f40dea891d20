"""Data models for the flattened KEGG module database."""

import polars as pl
from pydantic import BaseModel

# Table name for DuckDB storage
MODULE_TABLE_NAME = "module_records"

# Flat-file section keyword -> attribute label for member rows
MEMBER_SECTIONS = {
    "ORTHOLOGY": "orthology",
    "PATHWAY": "pathway",
    "REACTION": "reaction",
    "COMPOUND": "compound",
}

# Sections whose value field can hold several identifiers on one line
EXPLODED_SECTIONS = {"ORTHOLOGY", "REACTION"}

MODULE_RECORD_SCHEMA = {
    "module_id": pl.Utf8,
    "module_name": pl.Utf8,
    "module_definition": pl.Utf8,
    "module_class": pl.Utf8,
    "attribute": pl.Utf8,
    "member_id": pl.Utf8,
    "member_definition": pl.Utf8,
    "line_number": pl.Int64,
    "row_seq": pl.Int64,
}


class ModuleRecord(BaseModel):
    """One member of one KEGG module.

    Attributes:
        module_id: KEGG module identifier (e.g., M00001)
        module_name: NAME line - NULL if the entry has none
        module_definition: DEFINITION (block expression of KOs) - NULL if absent
        module_class: CLASS string "type; class; group", kept verbatim - NULL if absent
        attribute: Section the member came from: orthology, pathway, reaction, compound
        member_id: KO, map, R or C number
        member_definition: Description sharing the member's source line - NULL if none
        line_number: 1-based line within the section; rows exploded from one line share it
        row_seq: 1-based row number within the module, stable across runs

    member_id is unique within (module_id, attribute, line_number), not globally:
    the same KO appears in many modules.
    """

    module_id: str
    module_name: str | None = None
    module_definition: str | None = None
    module_class: str | None = None
    attribute: str
    member_id: str
    member_definition: str | None = None
    line_number: int
    row_seq: int


def empty_module_records() -> pl.DataFrame:
    """Zero-row frame with the module record schema."""
    return pl.DataFrame(schema=MODULE_RECORD_SCHEMA)
