"""KEGG module database: fetch catalog entries and flatten them to records."""

from kegg_abundance.modules.fetch import (
    ModuleBatchReport,
    fetch_module_records,
    fetch_module_table,
)
from kegg_abundance.modules.load import (
    load_module_records,
    load_to_duckdb,
    write_module_tsv,
)
from kegg_abundance.modules.models import (
    MODULE_RECORD_SCHEMA,
    MODULE_TABLE_NAME,
    ModuleRecord,
)
from kegg_abundance.modules.transform import (
    flatten_module,
    parse_module_entry,
    split_member_line,
    summarize_module_records,
)

__all__ = [
    "ModuleBatchReport",
    "fetch_module_records",
    "fetch_module_table",
    "load_module_records",
    "load_to_duckdb",
    "write_module_tsv",
    "MODULE_RECORD_SCHEMA",
    "MODULE_TABLE_NAME",
    "ModuleRecord",
    "flatten_module",
    "parse_module_entry",
    "split_member_line",
    "summarize_module_records",
]
