"""Output generation: category matrix files and their provenance sidecar."""

from kegg_abundance.output.writers import matrix_to_long, write_matrix_output

__all__ = ["matrix_to_long", "write_matrix_output"]
