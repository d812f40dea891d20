"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from kegg_abundance.config import load_config, load_config_with_overrides
from kegg_abundance.config.schema import PipelineConfig, ReadDepthConfig


def test_load_valid_config():
    """Test loading valid default configuration."""
    config = load_config("config/default.yaml")

    assert isinstance(config, PipelineConfig)
    assert config.versions.annotation_tool == "prokka 1.14.6"
    assert config.api.base_url == "https://rest.kegg.jp"
    assert config.api.rate_limit_per_second == 3
    assert config.modules.module_ids == []
    assert config.reads.verify is True
    assert config.mapping.count_column is None
    assert config.aggregation.category_level == "type"
    assert config.aggregation.sort_key == "temperature"


def test_invalid_config_missing_field(tmp_path):
    """Test that missing required field raises ValidationError."""
    invalid_config = tmp_path / "invalid.yaml"
    invalid_config.write_text("""
api:
  rate_limit_per_second: 3
""")

    with pytest.raises(ValidationError) as exc_info:
        load_config(invalid_config)

    assert "data_dir" in str(exc_info.value)


def test_invalid_module_ids(tmp_path):
    """Module identifiers must look like M00001."""
    invalid_config = tmp_path / "invalid_modules.yaml"
    invalid_config.write_text(f"""
data_dir: {tmp_path / "data"}
cache_dir: {tmp_path / "cache"}
duckdb_path: {tmp_path / "test.duckdb"}
modules:
  module_ids: [M00001, K00844]
""")

    with pytest.raises(ValidationError) as exc_info:
        load_config(invalid_config)

    assert "K00844" in str(exc_info.value)


def test_invalid_category_level(tmp_path):
    """Only type, class and group are category levels."""
    invalid_config = tmp_path / "invalid_level.yaml"
    invalid_config.write_text(f"""
data_dir: {tmp_path / "data"}
cache_dir: {tmp_path / "cache"}
duckdb_path: {tmp_path / "test.duckdb"}
aggregation:
  category_level: pathway
""")

    with pytest.raises(ValidationError):
        load_config(invalid_config)


def test_filename_pattern_requires_sample_group():
    """A read filename pattern without a 'sample' group is rejected at load time."""
    with pytest.raises(ValidationError) as exc_info:
        ReadDepthConfig(filename_pattern=r"^(?P<name>.+)\.fastq$")

    assert "sample" in str(exc_info.value)


def test_filename_pattern_must_compile():
    with pytest.raises(ValidationError):
        ReadDepthConfig(filename_pattern=r"^(?P<sample>.+\.fastq$")


def test_config_hash_deterministic():
    """Test that config hash is deterministic and changes with config."""
    config1 = load_config("config/default.yaml")
    config2 = load_config("config/default.yaml")

    assert config1.config_hash() == config2.config_hash()
    assert len(config1.config_hash()) == 64

    config3 = load_config_with_overrides(
        "config/default.yaml",
        {"api.rate_limit_per_second": 10},
    )
    assert config3.config_hash() != config1.config_hash()


def test_overrides_nested_and_top_level(tmp_path):
    """Dotted keys reach into sections, plain keys replace top-level values."""
    config = load_config_with_overrides(
        "config/default.yaml",
        {
            "reads.verify": False,
            "modules.module_ids": ["M00001"],
            "output_dir": str(tmp_path / "out"),
        },
    )

    assert config.reads.verify is False
    assert config.modules.module_ids == ["M00001"]
    assert config.output_dir == tmp_path / "out"


def test_none_overrides_keep_file_values():
    config = load_config_with_overrides(
        "config/default.yaml",
        {"reads.verify": None, "modules.workers": None},
    )

    assert config.reads.verify is True
    assert config.modules.workers == 4


@pytest.mark.parametrize("key", ["reads.no_such_field", "nosection.workers", "api.base_url.extra"])
def test_unknown_override_key_rejected(key):
    with pytest.raises(KeyError):
        load_config_with_overrides("config/default.yaml", {key: 1})


def test_empty_config_rejected(tmp_path):
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("\n")

    with pytest.raises(ValueError, match="empty"):
        load_config(config_file)


def test_config_creates_directories(tmp_path):
    """Test that loading config creates data and cache directories."""
    config_file = tmp_path / "test_config.yaml"

    data_dir = tmp_path / "test_data"
    cache_dir = tmp_path / "test_cache"

    config_file.write_text(f"""
data_dir: {data_dir}
cache_dir: {cache_dir}
duckdb_path: {tmp_path / "test.duckdb"}
""")

    assert not data_dir.exists()
    assert not cache_dir.exists()

    load_config(config_file)

    assert data_dir.is_dir()
    assert cache_dir.is_dir()


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
