"""Matrix command: Build the category-by-sample abundance matrix.

Orchestrates the downstream stages:
- Joins MAG gene annotations to the module database
- Normalizes mapped-read counts by per-sample read depth
- Sums normalized abundance per functional category
- Orders and relabels samples from the metadata table
- Writes wide TSV, Parquet and long TSV outputs with provenance
"""

import logging
import sys
from pathlib import Path

import click

from kegg_abundance.aggregation import (
    apply_sample_metadata,
    build_category_matrix,
    check_conservation,
    read_sample_metadata,
)
from kegg_abundance.annotation import (
    ANNOTATED_GENES_TABLE_NAME,
    join_module_annotations,
    read_annotation_tables,
)
from kegg_abundance.config.loader import load_config, load_config_with_overrides
from kegg_abundance.coverage import (
    discover_mapping_tables,
    normalize_coverage,
    read_mapping_tables,
)
from kegg_abundance.coverage import load_to_duckdb as load_normalized
from kegg_abundance.errors import MissingDenominatorError
from kegg_abundance.modules import MODULE_TABLE_NAME, load_module_records
from kegg_abundance.output import write_matrix_output
from kegg_abundance.persistence import PipelineStore, ProvenanceTracker
from kegg_abundance.read_depth import READ_DEPTH_TABLE_NAME, load_read_depth

logger = logging.getLogger(__name__)


@click.command('matrix')
@click.option(
    '--output-dir',
    type=click.Path(path_type=Path),
    default=None,
    help='Output directory (default: output_dir from config)'
)
@click.option(
    '--level',
    type=click.Choice(['type', 'class', 'group']),
    default=None,
    help='Category level to aggregate by (default: aggregation.category_level)'
)
@click.pass_context
def matrix(ctx, output_dir, level):
    """Aggregate normalized gene abundance into a category matrix.

    Requires the module database ('kegg-abundance modules') and the
    read-depth table ('kegg-abundance read-depth') to be built first.

    Pipeline steps:
    1. Join annotation tables to module records (orthology members)
    2. Normalize mapping counts to percent of sample reads
    3. Sum per category, check conservation against gene-level sums
    4. Reorder and relabel sample columns from metadata
    5. Write TSV and Parquet outputs with provenance

    Examples:

        kegg-abundance matrix

        kegg-abundance matrix --level class --output-dir results/by_class
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Category Abundance Matrix ===", bold=True))
    click.echo()

    store = None
    try:
        click.echo("Loading configuration...")
        config = load_config_with_overrides(config_path, {
            "output_dir": output_dir,
            "aggregation.category_level": level,
        })
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))
        click.echo()

        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)
        agg = config.aggregation
        level = agg.category_level
        output_dir = Path(config.output_dir)

        module_records = load_module_records(store)
        read_depth = load_read_depth(store)
        if module_records is None or read_depth is None:
            missing = []
            if module_records is None:
                missing.append("'kegg-abundance modules'")
            if read_depth is None:
                missing.append("'kegg-abundance read-depth'")
            click.echo(click.style(
                f"Missing prerequisite checkpoint(s); run {' and '.join(missing)} first.",
                fg='red'
            ), err=True)
            sys.exit(1)

        # Upstream stages are built from the file config; matrix-only
        # overrides (--level, --output-dir) do not make them stale.
        file_hash = load_config(config_path).config_hash()
        for table_name in (MODULE_TABLE_NAME, READ_DEPTH_TABLE_NAME):
            if store.is_stale(table_name, file_hash):
                click.echo(click.style(
                    f"  Checkpoint '{table_name}' was built from a different configuration.",
                    fg='yellow'
                ))

        # Step 1: annotation join
        click.echo("Joining annotations to modules...")
        schema = config.annotation
        if schema.table_dir is None:
            raise FileNotFoundError("annotation.table_dir is not configured")
        paths = sorted(Path(schema.table_dir).glob(schema.table_glob))
        for path in paths:
            provenance.record_input(path, "annotation_table")
        annotations = read_annotation_tables(paths, schema)
        annotated = join_module_annotations(annotations, module_records)
        store.save_dataframe(
            annotated,
            ANNOTATED_GENES_TABLE_NAME,
            description="Annotated genes with module and category labels",
            config_hash=provenance.config_hash,
        )
        provenance.record_step('join_module_annotations', {
            'table_count': len(paths),
            'gene_count': annotations.height,
            'joined_rows': annotated.height,
        })
        click.echo(click.style(
            f"  {annotated['gene_identifier'].n_unique()} of {annotations.height} genes "
            f"matched {annotated['module_id'].n_unique()} modules",
            fg='green'
        ))
        click.echo()

        # Step 2: normalization
        click.echo("Normalizing mapped reads by read depth...")
        tables = discover_mapping_tables(config.mapping)
        for path in tables.values():
            provenance.record_input(path, "mapping_table")
        counts = read_mapping_tables(tables, config.mapping)
        try:
            normalized, wide, totals = normalize_coverage(counts, read_depth)
        except MissingDenominatorError as e:
            click.echo(click.style(
                f"  No read depth for sample(s): {', '.join(e.sample_ids)}",
                fg='red'
            ), err=True)
            logger.error("Missing read-depth denominator for %s", e.sample_ids)
            sys.exit(1)
        load_normalized(normalized, totals, store, provenance)
        click.echo(click.style(
            f"  {wide.height} genes across {len(tables)} sample(s)",
            fg='green'
        ))
        click.echo()

        # Step 3: aggregation
        click.echo(f"Aggregating by category {level}...")
        category_matrix = build_category_matrix(annotated, wide, level=level)
        conservation = check_conservation(annotated, wide, category_matrix, level=level)
        provenance.record_step('build_category_matrix', {
            'level': level,
            'category_count': category_matrix.height,
        })
        click.echo(click.style(f"  {category_matrix.height} categories", fg='green'))
        click.echo()

        # Step 4: sample order and labels
        if agg.metadata_path is not None:
            click.echo("Applying sample metadata...")
            metadata = read_sample_metadata(agg.metadata_path, sort_key=agg.sort_key)
            provenance.record_input(agg.metadata_path, "sample_metadata")
            labeled = apply_sample_metadata(
                category_matrix,
                metadata,
                sort_key=agg.sort_key,
                descending=agg.descending,
                label_template=agg.label_template,
            )
            click.echo(click.style(f"  Samples ordered by {agg.sort_key}", fg='green'))
        else:
            click.echo(click.style(
                "  No sample metadata configured; columns keep raw sample ids",
                fg='yellow'
            ))
            labeled = category_matrix
        click.echo()

        # Step 5: outputs
        click.echo("Writing outputs...")
        output_paths = write_matrix_output(
            labeled,
            output_dir,
            float_precision=agg.float_precision,
            metadata={
                'category_level': level,
                'sort_key': agg.sort_key,
                'sample_percent_totals': {
                    row['sample_id']: row['total_percent'] for row in totals.to_dicts()
                },
                'conservation_max_difference': (
                    float(conservation['difference'].abs().max()) if conservation.height else 0.0
                ),
            },
        )
        provenance.record_step('write_matrix_output', {
            'tsv': str(output_paths['tsv']),
            'parquet': str(output_paths['parquet']),
        })
        provenance_path = provenance.save_sidecar(output_paths['tsv'])
        provenance.save_to_store(store)
        click.echo(click.style(f"  TSV: {output_paths['tsv']}", fg='green'))
        click.echo(click.style(f"  Parquet: {output_paths['parquet']}", fg='green'))
        click.echo(click.style(f"  Long TSV: {output_paths['long_tsv']}", fg='green'))
        click.echo(click.style(f"  Provenance: {provenance_path}", fg='green'))
        click.echo()

        click.echo(click.style("=== Per-sample Diagnostics ===", bold=True))
        checks = {row['sample_id']: row for row in conservation.to_dicts()}
        for row in totals.to_dicts():
            line = f"  {row['sample_id']}: {row['total_percent']:.4f}% of reads on {row['n_genes']} genes"
            if row['sample_id'] in checks:
                line += f", {checks[row['sample_id']]['category_total']:.4f}% categorised"
            if row['total_percent'] > 100:
                click.echo(click.style(line + " (exceeds 100%)", fg='yellow'))
            else:
                click.echo(line)
        click.echo()
        click.echo(click.style("Category matrix complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Matrix command failed: {e}", fg='red'), err=True)
        logger.exception("Matrix command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
