"""KEGG REST API access for MODULE entries."""

import logging
import re
from pathlib import Path

from kegg_abundance.api_clients.base import CachedAPIClient

logger = logging.getLogger(__name__)

KEGG_REST_URL = "https://rest.kegg.jp"
MODULE_ID_RE = re.compile(r"M\d{5}")


class KeggRestClient(CachedAPIClient):
    """Cached client for the KEGG REST operations used by the pipeline.

    Only two operations are needed: ``list/module`` to enumerate the
    catalog and ``get/<module>`` to download one flat-file entry.
    """

    def __init__(self, cache_dir: Path, base_url: str = KEGG_REST_URL, **kwargs):
        super().__init__(cache_dir, base_url=base_url, **kwargs)

    def list_modules(self) -> list[str]:
        """Return every module identifier in the catalog, sorted."""
        text = self.get_text("list/module")
        module_ids = set()
        for line in text.splitlines():
            if not line.strip():
                continue
            # Lines look like "md:M00001\tGlycolysis ..." or "M00001\t..."
            match = MODULE_ID_RE.search(line.split("\t", 1)[0])
            if match:
                module_ids.add(match.group(0))
        logger.info(f"KEGG catalog lists {len(module_ids)} modules")
        return sorted(module_ids)

    def get_module(self, module_id: str) -> str:
        """Return the flat-file entry for one module.

        Raises:
            ValueError: If module_id is not a module identifier
            HTTPError: On HTTP error after retries (KEGG answers 404 for unknown ids)
        """
        if not MODULE_ID_RE.fullmatch(module_id):
            raise ValueError(f"Not a KEGG module identifier: {module_id!r}")
        return self.get_text(f"get/{module_id}")
