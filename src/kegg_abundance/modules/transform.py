"""Parse KEGG MODULE flat-file entries into flat module records."""

import re

import polars as pl
import structlog

from kegg_abundance.errors import ShapeMismatchError
from kegg_abundance.modules.models import (
    EXPLODED_SECTIONS,
    MEMBER_SECTIONS,
    MODULE_RECORD_SCHEMA,
    empty_module_records,
)

logger = structlog.get_logger()

# Keywords occupy the first 12 columns of a KEGG flat-file line
KEYWORD_WIDTH = 12

# Identifier formats per member section
MEMBER_CODES = {
    "ORTHOLOGY": r"[KM]\d{5}",
    "PATHWAY": r"map\d{5}",
    "REACTION": r"R\d{5}",
    "COMPOUND": r"[CGD]\d{5}",
}

# Separators inside an identifier list: K00844,K12407 / (K00163,K00161+K00162)+K00627-K13997
ID_SEPARATORS = re.compile(r"[(),+\-]")


def _leading_ids_pattern(section: str) -> re.Pattern:
    """Identifier list at the start of a line, description is the remainder."""
    code = MEMBER_CODES[section]
    if section in EXPLODED_SECTIONS:
        ids = rf"[(]*{code}(?:[,+\-()]+{code})*[)]*"
    else:
        ids = code
    return re.compile(rf"^(?P<ids>{ids})(?:\s+(?P<desc>.*))?$")


LEADING_IDS = {section: _leading_ids_pattern(section) for section in MEMBER_CODES}


def parse_module_entry(text: str) -> dict[str, list[str]]:
    """Split one flat-file entry into its sections.

    Args:
        text: Body of a ``get/<module>`` response

    Returns:
        Section keyword -> value lines (keyword gutter stripped), in file order.
        Parsing stops at the ``///`` entry terminator.
    """
    sections: dict[str, list[str]] = {}
    current = None

    for raw in text.splitlines():
        if raw.startswith("///"):
            break
        if not raw.strip():
            continue

        keyword = raw[:KEYWORD_WIDTH].strip()
        value = raw[KEYWORD_WIDTH:].strip()

        if keyword:
            current = keyword
            sections.setdefault(current, [])
        if current is not None and value:
            sections[current].append(value)

    return sections


def split_member_line(section: str, line: str) -> tuple[list[str], str | None]:
    """Split one member line into identifiers and the shared description.

    Fields are normally separated by two or more spaces. REACTION lines are
    always read with the leading-identifier pattern because KEGG separates
    some of them with a single space; other sections fall back to it when
    the two-space split does not yield a well-formed identifier field.

    Args:
        section: Flat-file section keyword (ORTHOLOGY, PATHWAY, ...)
        line: Value text of the line

    Returns:
        (identifiers, description) - one identifier unless the section is exploded

    Raises:
        ShapeMismatchError: If no identifier can be read from the line
    """
    leading = LEADING_IDS[section]

    ids_field = None
    desc = None
    if section != "REACTION":
        fields = re.split(r"\s{2,}", line, maxsplit=1)
        if leading.match(fields[0]) and " " not in fields[0]:
            ids_field = fields[0]
            desc = fields[1] if len(fields) > 1 else None

    if ids_field is None:
        match = leading.match(line)
        if not match:
            raise ShapeMismatchError(
                f"Cannot read {section} identifiers from line: {line!r}"
            )
        ids_field = match.group("ids")
        desc = match.group("desc")

    if section in EXPLODED_SECTIONS:
        ids = [x for x in ID_SEPARATORS.split(ids_field) if x]
    else:
        ids = [ids_field]

    return ids, (desc.strip() if desc else None)


def flatten_module(module_id: str, text: str) -> pl.DataFrame:
    """Flatten one module entry into module records.

    Every section is optional. Absent member sections contribute no rows,
    so an entry without ORTHOLOGY/PATHWAY/REACTION/COMPOUND yields an empty
    frame rather than an error.

    Args:
        module_id: Requested module identifier
        text: Flat-file entry

    Returns:
        DataFrame with MODULE_RECORD_SCHEMA columns

    Raises:
        ShapeMismatchError: If the entry belongs to another module or a
            member line cannot be parsed
    """
    sections = parse_module_entry(text)

    entry = sections.get("ENTRY")
    if entry:
        entry_id = entry[0].split()[0]
        if entry_id != module_id:
            raise ShapeMismatchError(
                f"Requested {module_id} but entry is {entry_id}"
            )

    name = sections["NAME"][0] if sections.get("NAME") else None
    definition = " ".join(sections["DEFINITION"]) if sections.get("DEFINITION") else None
    module_class = sections["CLASS"][0] if sections.get("CLASS") else None

    rows = []
    for section, attribute in MEMBER_SECTIONS.items():
        for line_number, line in enumerate(sections.get(section, []), start=1):
            ids, desc = split_member_line(section, line)
            for member_id in ids:
                rows.append({
                    "module_id": module_id,
                    "module_name": name,
                    "module_definition": definition,
                    "module_class": module_class,
                    "attribute": attribute,
                    "member_id": member_id,
                    "member_definition": desc,
                    "line_number": line_number,
                    "row_seq": len(rows) + 1,
                })

    if not rows:
        logger.info("module_without_members", module_id=module_id)
        return empty_module_records()

    return pl.DataFrame(rows, schema=MODULE_RECORD_SCHEMA)


def summarize_module_records(df: pl.DataFrame) -> dict:
    """Row counts per attribute and number of distinct modules."""
    per_attribute = df.group_by("attribute").len().sort("attribute")
    return {
        "row_count": df.height,
        "module_count": df["module_id"].n_unique() if df.height else 0,
        "rows_per_attribute": {
            row["attribute"]: row["len"] for row in per_attribute.to_dicts()
        },
    }
