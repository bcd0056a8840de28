"""Configuration loading and management."""

from skill_catalog.config.loader import (
    find_config_files,
    load_config,
    merge_configs,
)
from skill_catalog.config.schema import (
    CatalogSourceConfig,
    GitIdentityConfig,
    SettingsConfig,
    SkillCatalogConfig,
)

__all__ = [
    # Loader functions
    "find_config_files",
    "load_config",
    "merge_configs",
    # Schema classes
    "CatalogSourceConfig",
    "GitIdentityConfig",
    "SettingsConfig",
    "SkillCatalogConfig",
]
