"""KEGG module abundance pipeline for metagenome-assembled genomes."""

__version__ = "0.1.0"
