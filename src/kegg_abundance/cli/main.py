"""kegg-abundance command group.

Subcommands run the pipeline stages in order: ``modules`` and
``read-depth`` build the two checkpointed inputs, ``matrix`` joins,
normalizes and aggregates them. ``info`` summarizes the configuration.
"""

import logging
from pathlib import Path

import click
import structlog

from kegg_abundance import __version__
from kegg_abundance.config.loader import load_config
from kegg_abundance.cli.matrix_cmd import matrix
from kegg_abundance.cli.modules_cmd import modules
from kegg_abundance.cli.read_depth_cmd import read_depth
from kegg_abundance.persistence import PipelineStore


def configure_logging(verbose: bool = False) -> None:
    """Route stdlib and structlog output at INFO (DEBUG with --verbose)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.getLogger().setLevel(level)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


@click.group()
@click.option(
    '--config',
    type=click.Path(exists=True, path_type=Path),
    default='config/default.yaml',
    help='Path to pipeline configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.pass_context
def cli(ctx, config, verbose):
    """kegg-abundance: KEGG module category abundance across metagenome samples.

    Builds a flat KEGG module database, computes per-sample read depth,
    joins MAG gene annotations to modules, normalizes mapped reads by
    depth, and sums them into a category-by-sample matrix.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    configure_logging(verbose)
    if verbose:
        logging.debug("Verbose logging enabled")


def _echo_checkpoints(duckdb_path: Path, config_hash: str) -> None:
    click.echo(click.style("Checkpoints:", bold=True))
    if not Path(duckdb_path).exists():
        click.echo("  (no store yet)")
        return

    with PipelineStore(duckdb_path) as store:
        checkpoints = store.list_checkpoints()
    if not checkpoints:
        click.echo("  (none)")
    for cp in checkpoints:
        line = f"  {cp['table_name']}: {cp['row_count']} rows, {cp['created_at']}"
        if cp['config_hash'] and cp['config_hash'] != config_hash:
            click.echo(click.style(line + " (different config)", fg='yellow'))
        else:
            click.echo(line)


@cli.command()
@click.pass_context
def info(ctx):
    """Show versions, paths, API settings and stored checkpoints."""
    config_path = ctx.obj['config_path']

    click.echo(f"kegg-abundance v{__version__}")
    click.echo(f"Config: {config_path}")
    click.echo()

    try:
        config = load_config(config_path)

        config_hash = config.config_hash()
        click.echo(f"Config Hash: {config_hash[:16]}...")
        click.echo()

        click.echo(click.style("Data Source Versions:", bold=True))
        click.echo(f"  KEGG Release:    {config.versions.kegg_release}")
        click.echo(f"  Annotation Tool: {config.versions.annotation_tool}")
        click.echo(f"  Mapping Tool:    {config.versions.mapping_tool}")
        click.echo()

        click.echo(click.style("Inputs:", bold=True))
        click.echo(f"  Reads: {config.reads.seqkit_stats or config.reads.fastq_dir}")
        click.echo(f"  Annotation Tables: {config.annotation.table_dir}/{config.annotation.table_glob}")
        click.echo(f"  Mapping Tables: {config.mapping.table_dir}/{config.mapping.table_glob}")
        click.echo(f"  Sample Metadata: {config.aggregation.metadata_path}")
        click.echo()

        click.echo(click.style("Paths:", bold=True))
        click.echo(f"  Data Directory: {config.data_dir}")
        click.echo(f"  Cache Directory: {config.cache_dir}")
        click.echo(f"  DuckDB Path: {config.duckdb_path}")
        click.echo(f"  Output Directory: {config.output_dir}")
        click.echo()

        click.echo(click.style("KEGG REST API:", bold=True))
        click.echo(f"  Base URL: {config.api.base_url}")
        click.echo(f"  Rate Limit: {config.api.rate_limit_per_second} req/s")
        click.echo(f"  Max Retries: {config.api.max_retries}")
        click.echo(f"  Cache TTL: {config.api.cache_ttl_seconds}s")
        click.echo()

        click.echo(click.style("Aggregation:", bold=True))
        click.echo(f"  Category Level: {config.aggregation.category_level}")
        order = "descending" if config.aggregation.descending else "ascending"
        click.echo(f"  Sample Order: {config.aggregation.sort_key} ({order})")
        click.echo(f"  Column Labels: {config.aggregation.label_template}")
        click.echo()

        _echo_checkpoints(config.duckdb_path, config_hash)

    except Exception as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)


cli.add_command(modules)
cli.add_command(read_depth)
cli.add_command(matrix)


if __name__ == '__main__':
    cli()
