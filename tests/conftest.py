"""Shared fixtures: a tmp_path pipeline config and small KEGG entries."""

import pytest

from kegg_abundance.config.loader import load_config

M00001_ENTRY = """\
ENTRY       M00001            Pathway   Module
NAME        Glycolysis (Embden-Meyerhof pathway), glucose => pyruvate
DEFINITION  (K00844,K12407,K00845) (K01810,K06859)
ORTHOLOGY   K00844,K12407,K00845  hexokinase/glucokinase [EC:2.7.1.1 2.7.1.2]
            K01810  glucose-6-phosphate isomerase [EC:5.3.1.9]
CLASS       Pathway modules; Carbohydrate metabolism; Central carbohydrate metabolism
PATHWAY     map00010  Glycolysis / Gluconeogenesis
            map01100  Metabolic pathways
REACTION    R01786,R02189,R09085  C00267 -> C00668
            R00771 C00668 -> C05345
COMPOUND    C00267  alpha-D-Glucose
            C00668  alpha-D-Glucose 6-phosphate
///
"""

# Entry with identity fields only: no member sections
M00002_ENTRY = """\
ENTRY       M00002            Pathway   Module
NAME        Placeholder module without members
CLASS       Pathway modules; Carbohydrate metabolism; Central carbohydrate metabolism
///
"""


@pytest.fixture
def m00001_entry():
    return M00001_ENTRY


@pytest.fixture
def m00002_entry():
    return M00002_ENTRY


@pytest.fixture
def config_factory(tmp_path):
    """Write a config YAML under tmp_path and load it.

    Extra YAML (sections) is appended verbatim after the required paths.
    """
    def _make(extra: str = "", name: str = "test_config.yaml"):
        config_path = tmp_path / name
        config_path.write_text(
            f"data_dir: {tmp_path / 'data'}\n"
            f"cache_dir: {tmp_path / 'cache'}\n"
            f"duckdb_path: {tmp_path / 'test.duckdb'}\n"
            f"output_dir: {tmp_path / 'results'}\n"
            + extra
        )
        return config_path

    return _make


@pytest.fixture
def test_config(config_factory):
    """Minimal loaded PipelineConfig."""
    return load_config(config_factory())
