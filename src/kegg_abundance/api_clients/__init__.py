"""HTTP clients for external catalogs."""

from kegg_abundance.api_clients.base import CachedAPIClient
from kegg_abundance.api_clients.kegg import KeggRestClient

__all__ = ["CachedAPIClient", "KeggRestClient"]
