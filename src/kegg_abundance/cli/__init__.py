"""Command-line interface for the kegg-abundance pipeline."""
