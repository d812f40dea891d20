"""Configuration loading with YAML parsing and validation."""

from pathlib import Path
from typing import Any

import pydantic_yaml

from .schema import PipelineConfig


def load_config(config_path: Path | str) -> PipelineConfig:
    """
    Load and validate pipeline configuration from a YAML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If the file is empty
        pydantic.ValidationError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    yaml_content = config_path.read_text()
    if not yaml_content.strip():
        raise ValueError(f"Config file is empty: {config_path}")

    return pydantic_yaml.parse_yaml_raw_as(PipelineConfig, yaml_content)


def load_config_with_overrides(
    config_path: Path | str,
    overrides: dict[str, Any],
) -> PipelineConfig:
    """
    Load config from YAML and apply command-line overrides.

    Keys are dotted paths into the config, e.g.
    ``{"reads.verify": False, "modules.workers": 8}``. A value of None
    means the option was not given and leaves the file's value in place,
    so click options can be passed through unchanged. The result is
    re-validated, and its config_hash reflects the overrides.

    Raises:
        FileNotFoundError: If config file doesn't exist
        KeyError: If a key does not name a config field
        pydantic.ValidationError: If final config is invalid
    """
    config = load_config(config_path)
    config_dict = config.model_dump()

    for key, value in overrides.items():
        if value is None:
            continue
        *sections, field = key.split(".")
        target = config_dict
        for section in sections:
            if not isinstance(target.get(section), dict):
                raise KeyError(f"Unknown config section in override: {key}")
            target = target[section]
        if field not in target:
            raise KeyError(f"Unknown config key in override: {key}")
        target[field] = value

    return PipelineConfig.model_validate(config_dict)
