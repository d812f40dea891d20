"""Persistence layer for stage artifacts and provenance tracking."""

from kegg_abundance.persistence.duckdb_store import PipelineStore
from kegg_abundance.persistence.provenance import ProvenanceTracker

__all__ = ["PipelineStore", "ProvenanceTracker"]
