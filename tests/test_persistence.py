"""Tests for persistence layer (DuckDB store and provenance tracking)."""

import hashlib
import json

import polars as pl
import pytest

from kegg_abundance.persistence import PipelineStore, ProvenanceTracker


def _read_depth_frame():
    return pl.DataFrame({
        "sample_id": ["S1", "S2"],
        "n_reads": [150, 200],
        "n_files": [2, 1],
    })


# ============================================================================
# DuckDB Store Tests
# ============================================================================

def test_store_creates_database(tmp_path):
    """Test that PipelineStore creates .duckdb file (and parent dirs)."""
    db_path = tmp_path / "nested" / "test.duckdb"
    assert not db_path.exists()

    store = PipelineStore(db_path)
    store.close()

    assert db_path.exists()


def test_save_and_load_roundtrip_keeps_types(tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")
    df = _read_depth_frame()

    store.save_dataframe(df, "read_depth", "per-sample depth")
    loaded = store.load_dataframe("read_depth")

    assert loaded.columns == ["sample_id", "n_reads", "n_files"]
    assert loaded["sample_id"].to_list() == ["S1", "S2"]
    assert loaded["n_reads"].to_list() == [150, 200]
    assert loaded["n_reads"].dtype == pl.Int64

    store.close()


def test_save_replaces_existing_table(tmp_path):
    """Saving again leaves only the new rows and updates the checkpoint."""
    store = PipelineStore(tmp_path / "test.duckdb")

    store.save_dataframe(_read_depth_frame(), "read_depth")
    store.save_dataframe(_read_depth_frame().head(1), "read_depth")

    assert store.load_dataframe("read_depth").height == 1
    assert store.checkpoint_info("read_depth")["row_count"] == 1

    store.close()


def test_missing_checkpoint(tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")

    assert not store.has_checkpoint("module_records")
    assert store.checkpoint_info("module_records") is None
    assert store.load_dataframe("module_records") is None

    store.close()


def test_checkpoint_records_config_hash(tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")

    store.save_dataframe(
        pl.DataFrame({"module_id": ["M00001"]}),
        "module_records",
        description="test",
        config_hash="abc123",
    )

    info = store.checkpoint_info("module_records")
    assert info["config_hash"] == "abc123"
    assert info["description"] == "test"
    assert info["created_at"] is not None
    assert not store.is_stale("module_records", "abc123")
    assert store.is_stale("module_records", "def456")

    store.close()


def test_checkpoint_without_hash_is_never_stale(tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")
    store.save_dataframe(_read_depth_frame(), "read_depth")

    assert not store.is_stale("read_depth", "anything")
    assert not store.is_stale("never_saved", "anything")

    store.close()


def test_list_checkpoints_sorted_by_name(tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")

    for name in ["read_depth", "annotated_genes", "module_records"]:
        store.save_dataframe(pl.DataFrame({"val": [1]}), name, f"{name} table")

    checkpoints = store.list_checkpoints()
    assert [c["table_name"] for c in checkpoints] == [
        "annotated_genes",
        "module_records",
        "read_depth",
    ]
    assert checkpoints[0]["description"] == "annotated_genes table"

    store.close()


@pytest.mark.parametrize("name", ["read depth", "x; DROP TABLE y", "_checkpoints", "1abc"])
def test_invalid_table_names_rejected(tmp_path, name):
    store = PipelineStore(tmp_path / "test.duckdb")

    with pytest.raises(ValueError, match="Invalid stage table name"):
        store.save_dataframe(_read_depth_frame(), name)

    store.close()


def test_context_manager(tmp_path):
    """Data persists across connections opened with the context manager."""
    db_path = tmp_path / "test.duckdb"

    with PipelineStore(db_path) as store:
        store.save_dataframe(_read_depth_frame(), "read_depth")

    with PipelineStore(db_path) as store:
        loaded = store.load_dataframe("read_depth")
        assert loaded is not None
        assert loaded.height == 2


# ============================================================================
# Provenance Tests
# ============================================================================

def test_provenance_metadata_structure(test_config):
    tracker = ProvenanceTracker("0.1.0", test_config)

    metadata = tracker.create_metadata()

    assert metadata["pipeline_version"] == "0.1.0"
    assert metadata["config_hash"] == test_config.config_hash()
    assert metadata["data_source_versions"]["kegg_release"] == "latest"
    assert metadata["processing_steps"] == []
    assert metadata["inputs"] == []
    assert "created_at" in metadata


def test_provenance_records_steps(test_config):
    tracker = ProvenanceTracker("0.1.0", test_config)

    tracker.record_step("fetch_module_records")
    tracker.record_step("load_read_depth", {"sample_count": 2})

    steps = tracker.get_steps()
    assert [s["step_name"] for s in steps] == ["fetch_module_records", "load_read_depth"]
    assert "details" not in steps[0]
    assert steps[1]["details"]["sample_count"] == 2
    assert all("timestamp" in s for s in steps)


def test_provenance_records_input_fingerprint(test_config, tmp_path):
    table = tmp_path / "S1.tsv"
    table.write_bytes(b"gene\tcount\nG1\t5\n")
    tracker = ProvenanceTracker("0.1.0", test_config)

    entry = tracker.record_input(table, "mapping_table")

    assert entry["role"] == "mapping_table"
    assert entry["size_bytes"] == 16
    assert entry["sha256"] == hashlib.sha256(b"gene\tcount\nG1\t5\n").hexdigest()
    assert tracker.create_metadata()["inputs"] == [entry]


def test_provenance_sidecar_roundtrip(test_config, tmp_path):
    tracker = ProvenanceTracker("0.1.0", test_config)
    tracker.record_step("write_read_depth", {"path": "read_depth.tsv"})

    sidecar_path = tracker.save_sidecar(tmp_path / "read_depth.tsv")

    assert sidecar_path == tmp_path / "read_depth.provenance.json"
    loaded = ProvenanceTracker.load_sidecar(sidecar_path)
    assert loaded["config_hash"] == test_config.config_hash()
    assert loaded["processing_steps"][0]["step_name"] == "write_read_depth"


def test_provenance_from_config_uses_package_version(test_config):
    from kegg_abundance import __version__

    tracker = ProvenanceTracker.from_config(test_config)

    assert tracker.pipeline_version == __version__


def test_provenance_save_to_store(test_config, tmp_path):
    store = PipelineStore(tmp_path / "test.duckdb")
    tracker = ProvenanceTracker("0.1.0", test_config)
    tracker.record_step("build_category_matrix")

    tracker.save_to_store(store)

    rows = store.conn.execute("SELECT * FROM _provenance").fetchall()
    assert len(rows) == 1
    assert rows[0][0] == "0.1.0"
    assert rows[0][1] == test_config.config_hash()
    assert json.loads(rows[0][3])[0]["step_name"] == "build_category_matrix"
    assert json.loads(rows[0][4]) == []

    store.close()
