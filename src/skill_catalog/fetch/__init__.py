"""Git access and scan caching."""

from skill_catalog.fetch.cache import ScanCache
from skill_catalog.fetch.git import GitResult, GitRunner, Identity

__all__ = ["GitResult", "GitRunner", "Identity", "ScanCache"]
