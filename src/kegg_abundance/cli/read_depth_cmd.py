"""Read-depth command: Count reads per sample from raw sequence files.

Counts every FASTQ file (or loads a precomputed seqkit table), verifies
the counts with an independent line count, sums files into per-sample
totals, and writes the sample_id / n_reads table used for normalization.
"""

import logging
import sys
from pathlib import Path

import click

from kegg_abundance.config.loader import load_config_with_overrides
from kegg_abundance.errors import VerificationMismatchError
from kegg_abundance.persistence import PipelineStore, ProvenanceTracker
from kegg_abundance.read_depth import (
    READ_DEPTH_TABLE_NAME,
    SampleNameGrammar,
    aggregate_read_depth,
    count_read_files,
    discover_read_files,
    load_read_depth,
    load_to_duckdb,
    read_seqkit_stats,
    write_read_depth_tsv,
)

logger = logging.getLogger(__name__)


def _echo_samples(per_sample) -> None:
    click.echo(click.style("=== Summary ===", bold=True))
    click.echo(f"Samples: {per_sample.height}")
    for row in per_sample.iter_rows(named=True):
        click.echo(f"  {row['sample_id']}: {row['n_reads']:,} reads")


@click.command('read-depth')
@click.option(
    '--force',
    is_flag=True,
    help='Recount even if the read-depth checkpoint exists'
)
@click.option(
    '--verify/--no-verify',
    default=None,
    help='Cross-check record counts with line counts (default: reads.verify from config)'
)
@click.pass_context
def read_depth(ctx, force, verify):
    """Compute total sequencing reads per sample.

    Read files are matched to samples with the configured filename
    grammar; both mates and every lane of a sample are summed. A
    disagreement between the two counting methods stops the run.

    Examples:

        # Count and verify
        kegg-abundance read-depth

        # Recount without the verification pass
        kegg-abundance read-depth --force --no-verify
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== Sample Read Depth ===", bold=True))
    click.echo()

    store = None
    try:
        click.echo("Loading configuration...")
        config = load_config_with_overrides(config_path, {"reads.verify": verify})
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))
        click.echo()

        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)
        output_dir = Path(config.data_dir) / "read_depth"
        tsv_path = output_dir / "read_depth.tsv"

        if store.has_checkpoint(READ_DEPTH_TABLE_NAME) and not force:
            click.echo(click.style(
                "Read-depth checkpoint exists. Skipping counting (use --force to re-run).",
                fg='yellow'
            ))
            if store.is_stale(READ_DEPTH_TABLE_NAME, provenance.config_hash):
                click.echo(click.style(
                    "  Checkpoint was built from a different configuration.",
                    fg='yellow'
                ))
            click.echo()
            per_sample = load_read_depth(store)
            write_read_depth_tsv(per_sample, tsv_path)
            _echo_samples(per_sample)
            click.echo(f"Read depth: {tsv_path}")
            click.echo()
            click.echo(click.style("Read depth ready (used existing checkpoint)", fg='green'))
            return

        reads = config.reads
        verify = reads.verify
        grammar = SampleNameGrammar.from_config(reads)

        if reads.seqkit_stats is not None:
            click.echo(f"Loading precomputed counts: {reads.seqkit_stats}")
            file_counts = read_seqkit_stats(reads.seqkit_stats)
            provenance.record_input(reads.seqkit_stats, "seqkit_stats")
            verified = False
        elif reads.fastq_dir is not None:
            paths = discover_read_files(reads.fastq_dir, reads.fastq_glob)
            click.echo(f"Counting {len(paths)} read file(s) in {reads.fastq_dir}...")
            click.echo(f"  Verification: {'on' if verify else 'off'}")
            try:
                file_counts = count_read_files(paths, workers=reads.workers, verify=verify)
            except VerificationMismatchError as e:
                click.echo(click.style("  Read counts disagree between methods:", fg='red'), err=True)
                for m in e.mismatches:
                    click.echo(
                        f"    {m['file']}: records={m['n_reads']} lines/4={m['n_reads_check']}",
                        err=True,
                    )
                logger.error("Read-count verification failed for %d file(s)", len(e.mismatches))
                sys.exit(1)
            verified = verify
        else:
            click.echo(click.style(
                "Neither reads.fastq_dir nor reads.seqkit_stats is configured.",
                fg='red'
            ), err=True)
            sys.exit(1)

        click.echo(click.style(f"  Counted {file_counts.height} file(s)", fg='green'))
        click.echo()

        per_file, per_sample = aggregate_read_depth(file_counts, grammar)
        provenance.record_step('count_reads', {
            'source': str(reads.seqkit_stats or reads.fastq_dir),
            'file_count': per_file.height,
            'verified': verified,
        })

        click.echo("Loading to DuckDB...")
        load_to_duckdb(per_file, per_sample, store, provenance, verified=verified)
        click.echo(click.style(f"  Saved to '{READ_DEPTH_TABLE_NAME}' table", fg='green'))

        write_read_depth_tsv(per_sample, tsv_path)
        provenance_path = provenance.save_sidecar(tsv_path)
        click.echo(click.style(f"  Read depth: {tsv_path}", fg='green'))
        click.echo(click.style(f"  Provenance saved: {provenance_path}", fg='green'))
        click.echo()

        _echo_samples(per_sample)
        click.echo()
        click.echo(click.style("Read depth complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Read-depth command failed: {e}", fg='red'), err=True)
        logger.exception("Read-depth command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
