"""Modules command: Build the flat KEGG module database.

Fetches every requested MODULE entry from the KEGG REST API, flattens the
orthology, pathway, reaction and compound sections into one table, and
persists it to DuckDB plus a reusable TSV artifact.
"""

import logging
import sys
from pathlib import Path

import click

from kegg_abundance.api_clients import KeggRestClient
from kegg_abundance.config.loader import load_config_with_overrides
from kegg_abundance.modules import (
    MODULE_TABLE_NAME,
    fetch_module_records,
    load_to_duckdb,
    summarize_module_records,
    write_module_tsv,
)
from kegg_abundance.persistence import PipelineStore, ProvenanceTracker

logger = logging.getLogger(__name__)


def _echo_summary(summary: dict) -> None:
    click.echo(click.style("=== Summary ===", bold=True))
    click.echo(f"Modules: {summary['module_count']}")
    click.echo(f"Records: {summary['row_count']}")
    for attribute, count in summary['rows_per_attribute'].items():
        click.echo(f"  {attribute}: {count}")


@click.command('modules')
@click.option(
    '--force',
    is_flag=True,
    help='Re-fetch and rebuild even if the module checkpoint exists'
)
@click.option(
    '--module',
    'module_ids',
    multiple=True,
    help='Module identifier to fetch (repeatable; default: config, then whole catalog)'
)
@click.option(
    '--workers',
    type=int,
    default=None,
    help='Concurrent fetches (default: modules.workers from config)'
)
@click.pass_context
def modules(ctx, force, module_ids, workers):
    """Fetch and flatten KEGG modules into the module database.

    Each module is fetched in its own worker; a module that cannot be
    fetched or parsed is reported and skipped without stopping the batch.

    Supports checkpoint-restart: skips processing if the module table
    already exists in DuckDB (use --force to re-run).

    Examples:

        # Whole catalog
        kegg-abundance modules

        # Two modules only, rebuilding the table
        kegg-abundance modules --force --module M00001 --module M00002
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== KEGG Module Database ===", bold=True))
    click.echo()

    store = None
    try:
        click.echo("Loading configuration...")
        config = load_config_with_overrides(config_path, {
            "modules.module_ids": list(module_ids) or None,
            "modules.workers": workers,
        })
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))
        click.echo(f"  KEGG Release: {config.versions.kegg_release}")
        click.echo()

        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)

        if store.has_checkpoint(MODULE_TABLE_NAME) and not force:
            click.echo(click.style(
                "Module checkpoint exists. Skipping fetch (use --force to re-run).",
                fg='yellow'
            ))
            if store.is_stale(MODULE_TABLE_NAME, provenance.config_hash):
                click.echo(click.style(
                    "  Checkpoint was built from a different configuration.",
                    fg='yellow'
                ))
            click.echo()
            df = store.load_dataframe(MODULE_TABLE_NAME)
            _echo_summary(summarize_module_records(df))
            click.echo(f"DuckDB Path: {config.duckdb_path}")
            click.echo()
            click.echo(click.style("Module database ready (used existing checkpoint)", fg='green'))
            return

        client = KeggRestClient.from_config(config)

        ids = list(config.modules.module_ids)
        if not ids:
            click.echo("Listing KEGG module catalog...")
            ids = client.list_modules()
        click.echo(f"Fetching {len(ids)} module(s)...")

        df, report = fetch_module_records(
            ids,
            client,
            workers=config.modules.workers,
        )
        click.echo(click.style(
            f"  Fetched {report.succeeded}/{report.requested} modules "
            f"({len(report.empty_modules)} without members)",
            fg='green'
        ))
        if report.failed:
            click.echo(click.style(f"  {report.failed} module(s) failed:", fg='yellow'))
            for module_id, reason in report.failures.items():
                click.echo(f"    {module_id}: {reason}")
        click.echo()

        if report.requested and not report.succeeded:
            click.echo(click.style("No module could be fetched; nothing saved.", fg='red'), err=True)
            sys.exit(1)

        provenance.record_step('fetch_module_records', {
            'base_url': config.api.base_url,
            'requested': report.requested,
            'succeeded': report.succeeded,
            'failed': report.failed,
        })

        click.echo("Loading to DuckDB...")
        load_to_duckdb(
            df=df,
            store=store,
            provenance=provenance,
            report=report,
            description=f"KEGG {config.versions.kegg_release} module records",
        )
        click.echo(click.style(f"  Saved to '{MODULE_TABLE_NAME}' table", fg='green'))

        tsv_path = write_module_tsv(df, Path(config.data_dir) / "modules" / "module_records.tsv")
        provenance_path = provenance.save_sidecar(tsv_path)
        click.echo(click.style(f"  Artifact: {tsv_path}", fg='green'))
        click.echo(click.style(f"  Provenance saved: {provenance_path}", fg='green'))
        click.echo()

        _echo_summary(summarize_module_records(df))
        click.echo(f"DuckDB Path: {config.duckdb_path}")
        click.echo()
        click.echo(click.style("Module database complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Modules command failed: {e}", fg='red'), err=True)
        logger.exception("Modules command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
