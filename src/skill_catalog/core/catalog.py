"""Catalog of skills offered by curated and configured repositories.

Scans go through a ``ScanCache`` so browsing the catalog does not clone
every repository on every request. Installed badges are computed when the
catalog is built, since a cached scan may predate the latest install.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from skill_catalog.config.defaults import CURATED_SOURCES
from skill_catalog.config.schema import CatalogSourceConfig, SkillCatalogConfig
from skill_catalog.core.identities import resolve_identity
from skill_catalog.core.installed import DiscoveredSkill, discover_installed_skills
from skill_catalog.core.scanner import RepositoryScanner, ScanRequest
from skill_catalog.core.skill import CatalogItem, ScanResult
from skill_catalog.core.source import resolve_source
from skill_catalog.errors import CatalogError, InvalidSourceError
from skill_catalog.fetch.cache import ScanCache
from skill_catalog.utils.paths import expand_path, normalize_repo_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """A scanned skill as listed under one catalog source."""

    source_id: str
    item: CatalogItem
    git_identity_id: Optional[str] = None
    installed: Optional[DiscoveredSkill] = None

    def to_dict(self) -> dict[str, Any]:
        data = self.item.to_dict()
        data["sourceId"] = self.source_id
        if self.git_identity_id:
            data["gitIdentityId"] = self.git_identity_id
        badge: dict[str, Any] = {"isInstalled": self.installed is not None}
        if self.installed is not None:
            badge["scope"] = self.installed.scope
        data["installed"] = badge
        return data


class CatalogService:
    """Curated catalog sources, cached scans and installed badges."""

    def __init__(
        self,
        config: SkillCatalogConfig,
        scanner: Optional[RepositoryScanner] = None,
        cache: Optional[ScanCache] = None,
    ):
        self.config = config
        self.scanner = scanner or RepositoryScanner(max_parallel=config.settings.max_parallel_reads)
        self.cache = cache or ScanCache(ttl_seconds=config.settings.cache_ttl_seconds)

    def sources(self) -> list[CatalogSourceConfig]:
        """Curated sources followed by configured ones, unique by id."""
        result = []
        seen = set()
        candidates = [CatalogSourceConfig(**raw) for raw in CURATED_SOURCES]
        candidates.extend(self.config.catalogs)
        for source in candidates:
            if source.id in seen:
                continue
            seen.add(source.id)
            result.append(source)
        return result

    async def scan(self, request: ScanRequest, refresh: bool = False) -> ScanResult:
        """Scan a repository, reusing a cached result unless ``refresh``.

        Raises:
            CatalogError: Any failure of the underlying scan
        """
        try:
            parsed = resolve_source(request.source, subpath=request.subpath)
        except InvalidSourceError:
            # no cache key; the scanner checks for git before parsing
            return await self.scanner.scan(request)
        subpath = parsed.subpath or normalize_repo_path(request.default_subpath)
        identity_id = request.identity.id if request.identity else None
        key = self.cache.key(parsed.normalized_repo, subpath, identity_id)

        if not refresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Scan cache hit for %s", key)
                return cached

        result = await self.scanner.scan(request)
        self.cache.set(key, result)
        return result

    def installed_skills(self, working_directory: Optional[Path] = None) -> dict[str, DiscoveredSkill]:
        settings = self.config.settings
        return discover_installed_skills(
            expand_path(settings.user_skill_dir),
            working_directory=working_directory,
            project_skill_dir=settings.project_skill_dir,
        )

    async def get_catalog(
        self, working_directory: Optional[Path] = None, refresh: bool = False
    ) -> dict[str, list[CatalogEntry]]:
        """Scan every catalog source.

        A source that cannot be parsed or scanned is listed with no skills
        rather than failing the whole catalog.

        Args:
            working_directory: Project root used for project-scope badges
            refresh: Bypass the scan cache

        Returns:
            Catalog entries keyed by source id, in source order
        """
        installed = self.installed_skills(working_directory)
        catalog: dict[str, list[CatalogEntry]] = {}

        for source in self.sources():
            request = ScanRequest(
                source=source.source,
                default_subpath=source.subpath,
                identity=resolve_identity(self.config, source.git_identity_id),
            )
            try:
                result = await self.scan(request, refresh=refresh)
            except CatalogError as e:
                logger.warning("Catalog source %s unavailable: %s", source.id, e.message)
                catalog[source.id] = []
                continue

            catalog[source.id] = [
                CatalogEntry(
                    source_id=source.id,
                    item=item,
                    git_identity_id=source.git_identity_id,
                    installed=installed.get(item.skill_name),
                )
                for item in result.items
            ]

        return catalog
