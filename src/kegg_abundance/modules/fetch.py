"""Fetch KEGG module entries concurrently with per-module failure capture."""

from dataclasses import dataclass, field

import polars as pl
import structlog

from kegg_abundance.api_clients.kegg import KeggRestClient
from kegg_abundance.errors import ModuleFetchError, ShapeMismatchError
from kegg_abundance.modules.models import MODULE_RECORD_SCHEMA, empty_module_records
from kegg_abundance.modules.transform import flatten_module
from kegg_abundance.parallel import run_batch

logger = structlog.get_logger()


@dataclass
class ModuleBatchReport:
    """Aggregate outcome of a module fetch batch.

    Attributes:
        requested: Number of module ids requested
        succeeded: Modules fetched and flattened (including empty ones)
        failed: Modules whose fetch or flattening raised
        empty_modules: Succeeded modules that produced zero rows
        failures: module_id -> failure reason
    """
    requested: int
    succeeded: int
    failed: int
    empty_modules: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


def fetch_module_table(client: KeggRestClient, module_id: str) -> pl.DataFrame:
    """Fetch and flatten a single module.

    Raises:
        ModuleFetchError: If the entry cannot be retrieved or parsed
    """
    try:
        text = client.get_module(module_id)
    except Exception as e:
        raise ModuleFetchError(module_id, f"fetch failed: {e}") from e

    try:
        return flatten_module(module_id, text)
    except (ShapeMismatchError, ValueError) as e:
        raise ModuleFetchError(module_id, f"parse failed: {e}") from e


def fetch_module_records(
    module_ids: list[str],
    client: KeggRestClient,
    workers: int = 4,
) -> tuple[pl.DataFrame, ModuleBatchReport]:
    """Fetch and flatten many modules, isolating failures per module.

    One worker task per module id. A failed module is recorded in the report
    and excluded from the table; the remaining modules are still processed.
    Tables are concatenated in the order of ``module_ids``.

    Args:
        module_ids: KEGG module identifiers (duplicates are ignored)
        client: KEGG REST client
        workers: Concurrent fetches

    Returns:
        (module records DataFrame, ModuleBatchReport)
    """
    module_ids = list(dict.fromkeys(module_ids))
    logger.info("fetch_module_records_start", module_count=len(module_ids), workers=workers)

    batch = run_batch(
        module_ids,
        lambda module_id: fetch_module_table(client, module_id),
        workers=workers,
        label="module_fetch",
    )

    tables = batch.ordered_results()
    empty_modules = [
        module_id for module_id in module_ids
        if module_id in batch.results and batch.results[module_id].height == 0
    ]
    failures = {
        str(module_id): getattr(e, "reason", str(e))
        for module_id, e in batch.failures.items()
    }

    report = ModuleBatchReport(
        requested=len(module_ids),
        succeeded=batch.succeeded,
        failed=batch.failed,
        empty_modules=empty_modules,
        failures=dict(sorted(failures.items())),
    )

    if tables:
        df = pl.concat(tables, how="vertical")
    else:
        df = empty_module_records()
    df = df.select(list(MODULE_RECORD_SCHEMA))

    if report.failed:
        logger.warning(
            "fetch_module_records_failures",
            failed=report.failed,
            failed_modules=sorted(report.failures)[:20],
        )

    logger.info(
        "fetch_module_records_complete",
        succeeded=report.succeeded,
        failed=report.failed,
        empty=len(report.empty_modules),
        row_count=df.height,
    )

    return df, report
