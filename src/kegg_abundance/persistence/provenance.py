"""Run provenance: what was computed, from which inputs, under which config."""

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Read size for input fingerprinting
HASH_BLOCK_SIZE = 1024 * 1024


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(HASH_BLOCK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


class ProvenanceTracker:
    """
    Provenance of one command run.

    Holds the package version, the configured KEGG release and tool
    versions, the config hash, every processing step with its summary
    counts, and a fingerprint of each input table the run read. The
    record is written next to every artifact and appended to the store.
    """

    def __init__(self, pipeline_version: str, config: "PipelineConfig"):
        self.pipeline_version = pipeline_version
        self.config_hash = config.config_hash()
        self.data_source_versions = config.versions.model_dump()
        self.processing_steps = []
        self.inputs = []
        self.created_at = datetime.now(timezone.utc)

    def record_step(self, step_name: str, details: Optional[dict] = None) -> None:
        """
        Append a processing step.

        Args:
            step_name: Step name, e.g. "load_read_depth"
            details: Summary counts for the step
        """
        step = {
            "step_name": step_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if details:
            step["details"] = details
        self.processing_steps.append(step)

    def record_input(self, path: Path, role: str) -> dict:
        """
        Fingerprint an input file (size and SHA-256).

        Args:
            path: Input file
            role: What the file is, e.g. "annotation_table"

        Returns:
            The recorded entry
        """
        path = Path(path)
        entry = {
            "role": role,
            "path": str(path),
            "size_bytes": path.stat().st_size,
            "sha256": file_sha256(path),
        }
        self.inputs.append(entry)
        return entry

    def get_steps(self) -> list[dict]:
        return self.processing_steps

    def create_metadata(self) -> dict:
        return {
            "pipeline_version": self.pipeline_version,
            "data_source_versions": self.data_source_versions,
            "config_hash": self.config_hash,
            "created_at": self.created_at.isoformat(),
            "processing_steps": self.processing_steps,
            "inputs": self.inputs,
        }

    def save_sidecar(self, output_path: Path) -> Path:
        """
        Write the record as ``<stem>.provenance.json`` beside an artifact.

        Returns:
            Path of the written sidecar
        """
        sidecar_path = Path(output_path).with_suffix(".provenance.json")
        sidecar_path.parent.mkdir(parents=True, exist_ok=True)

        with open(sidecar_path, "w") as f:
            json.dump(self.create_metadata(), f, indent=2, default=str)
        return sidecar_path

    def save_to_store(self, store: "PipelineStore") -> None:
        """Append this run to the store's _provenance table."""
        metadata = self.create_metadata()

        store.conn.execute("""
            CREATE TABLE IF NOT EXISTS _provenance (
                version VARCHAR,
                config_hash VARCHAR,
                created_at TIMESTAMP,
                steps_json VARCHAR,
                inputs_json VARCHAR
            )
        """)

        store.conn.execute("""
            INSERT INTO _provenance (version, config_hash, created_at, steps_json, inputs_json)
            VALUES (?, ?, ?, ?, ?)
        """, [
            metadata["pipeline_version"],
            metadata["config_hash"],
            metadata["created_at"],
            json.dumps(metadata["processing_steps"], default=str),
            json.dumps(metadata["inputs"]),
        ])

    @staticmethod
    def load_sidecar(sidecar_path: Path) -> dict:
        with open(sidecar_path) as f:
            return json.load(f)

    @classmethod
    def from_config(
        cls,
        config: "PipelineConfig",
        version: Optional[str] = None
    ) -> "ProvenanceTracker":
        """Tracker for ``config``; version defaults to kegg_abundance.__version__."""
        if version is None:
            from kegg_abundance import __version__
            version = __version__

        return cls(version, config)
