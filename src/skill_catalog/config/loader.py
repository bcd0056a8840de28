"""Configuration loader with merge logic and precedence handling."""

import copy
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from skill_catalog.config.defaults import DEFAULT_CONFIG
from skill_catalog.config.schema import SkillCatalogConfig
from skill_catalog.utils.paths import expand_path

PROJECT_CONFIG_NAME = "skill-catalog.yaml"
USER_CONFIG_PATH = "~/.config/skill-catalog/config.yaml"


def find_config_files() -> list[Path]:
    """Find configuration files in standard locations.

    Searches for configuration files in order of precedence (lowest to highest):
    1. Project config (./skill-catalog.yaml in current directory)
    2. User config (~/.config/skill-catalog/config.yaml)

    Returns:
        List of Path objects for existing config files, ordered from lowest
        to highest precedence (so later configs override earlier ones)
    """
    config_files = []

    project_config = Path.cwd() / PROJECT_CONFIG_NAME
    if project_config.exists():
        config_files.append(project_config)

    user_config = expand_path(USER_CONFIG_PATH)
    if user_config.exists():
        config_files.append(user_config)

    return config_files


def load_yaml_file(file_path: Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        file_path: Path to the YAML file

    Returns:
        Dictionary containing the parsed YAML content

    Raises:
        yaml.YAMLError: If the file contains invalid YAML
        FileNotFoundError: If the file doesn't exist
    """
    with open(file_path, "r") as f:
        content = yaml.safe_load(f)
        return content if content is not None else {}


def merge_configs(configs: list[dict[str, Any]]) -> dict[str, Any]:
    """Deep merge multiple configuration dictionaries.

    Merges configs from lowest to highest precedence, where later configs
    override earlier ones. Nested dictionaries merge recursively; lists
    from a later config replace earlier ones entirely.

    Args:
        configs: List of configuration dictionaries in order from lowest to
                highest precedence

    Returns:
        Merged configuration dictionary
    """
    result: dict[str, Any] = {}
    for config in configs:
        result = _deep_merge(result, config)
    return result


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides to configuration.

    Supports the following environment variables:
    - SKILL_CATALOG_USER_SKILL_DIR: Override settings.user_skill_dir
    - SKILL_CATALOG_CACHE_TTL: Override settings.cache_ttl_seconds

    Args:
        config: Configuration dictionary to apply overrides to

    Returns:
        Configuration dictionary with environment overrides applied
    """
    result = copy.deepcopy(config)
    settings = result.setdefault("settings", {})

    if user_skill_dir := os.getenv("SKILL_CATALOG_USER_SKILL_DIR"):
        settings["user_skill_dir"] = user_skill_dir

    if cache_ttl := os.getenv("SKILL_CATALOG_CACHE_TTL"):
        # left as text; pydantic reports a non-numeric value
        settings["cache_ttl_seconds"] = cache_ttl

    return result


def load_config(config_path: Optional[Path] = None) -> SkillCatalogConfig:
    """Load and merge configuration from all sources.

    Configuration precedence (lowest to highest):
    1. Built-in defaults
    2. Project config (./skill-catalog.yaml)
    3. User config (~/.config/skill-catalog/config.yaml)
    4. Environment variables
    5. Explicitly provided config_path (if given)
    6. CLI flags (handled by caller)

    Args:
        config_path: Optional explicit path to a config file, merged on top
                    of everything except CLI flags

    Returns:
        Validated SkillCatalogConfig instance

    Raises:
        ValidationError: If the merged configuration is invalid
        yaml.YAMLError: If a config file contains invalid YAML
        FileNotFoundError: If config_path is provided but doesn't exist
    """
    configs_to_merge = [DEFAULT_CONFIG]

    for config_file in find_config_files():
        try:
            configs_to_merge.append(load_yaml_file(config_file))
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error loading {config_file}: {e}") from e

    merged_config = apply_env_overrides(merge_configs(configs_to_merge))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        merged_config = merge_configs([merged_config, load_yaml_file(config_path)])

    return SkillCatalogConfig(**merged_config)
