"""Core skill models, source resolution and repository operations."""

from skill_catalog.core.skill import CatalogItem, ScanResult, SkillManifest
from skill_catalog.core.source import RepoSource, resolve_source

__all__ = ["CatalogItem", "RepoSource", "ScanResult", "SkillManifest", "resolve_source"]
