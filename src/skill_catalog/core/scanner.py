"""Repository scanner.

Clones a repository as narrowly as git allows, finds every SKILL.md under
the requested subpath and turns each enclosing directory into a
``CatalogItem``:

1. Check that git is available
2. Resolve the source and the effective subpath
3. Clone at depth one without blobs (falling back to a plain shallow clone)
4. Sparse-checkout only the manifests, or list the tree if that fails
5. Parse manifests concurrently and sort the items by skill name

The temporary clone is removed on every exit path.
"""

import asyncio
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from skill_catalog.core.skill import (
    INVALID_NAME_WARNING,
    MANIFEST_FILENAME,
    UNREADABLE_MANIFEST_WARNING,
    CatalogItem,
    ScanResult,
    SkillManifest,
    validate_skill_name,
)
from skill_catalog.core.source import resolve_source
from skill_catalog.fetch.git import GitRunner, Identity
from skill_catalog.utils.fs import safe_rmtree
from skill_catalog.utils.paths import normalize_repo_path, repo_path_to_fs

logger = logging.getLogger(__name__)

MAX_PARALLEL_READS = 10
SCAN_CLONE_TIMEOUT = 60.0
SPARSE_INIT_TIMEOUT = 15.0
SPARSE_SET_TIMEOUT = 30.0
CHECKOUT_TIMEOUT = 60.0
LIST_TIMEOUT = 30.0
SHOW_TIMEOUT = 15.0

TEMP_PREFIX = "skill-catalog-scan-"


@dataclass
class ScanRequest:
    """Parameters of one repository scan."""

    source: str
    subpath: Optional[str] = None
    default_subpath: Optional[str] = None
    identity: Optional[Identity] = None


def _is_manifest_path(path: str) -> bool:
    return path == MANIFEST_FILENAME or path.endswith("/" + MANIFEST_FILENAME)


def _under_subpath(path: str, subpath: Optional[str]) -> bool:
    if not subpath:
        return True
    return path == subpath or path.startswith(subpath + "/")


def manifest_paths_from_listing(output: str, subpath: Optional[str]) -> list[str]:
    """Extract manifest paths under ``subpath`` from git file-listing output."""
    paths = []
    for line in output.splitlines():
        path = line.strip()
        if path and _is_manifest_path(path) and _under_subpath(path, subpath):
            paths.append(path)
    return paths


def skill_dirs_from_manifests(paths: list[str]) -> list[str]:
    """Distinct parent directories of manifest paths, in first-seen order.

    A manifest at the repository root has no directory to name the skill
    after, so it is left out.
    """
    dirs: dict[str, None] = {}
    for path in paths:
        if path == MANIFEST_FILENAME:
            continue
        dirs.setdefault(str(PurePosixPath(path).parent), None)
    return list(dirs)


class RepositoryScanner:
    """Builds a catalog of the skills in a remote repository."""

    def __init__(self, runner: Optional[GitRunner] = None, max_parallel: int = MAX_PARALLEL_READS):
        """Initialize the scanner.

        Args:
            runner: Git runner used for every subprocess call
            max_parallel: Upper bound on concurrent manifest reads
        """
        self.runner = runner or GitRunner()
        self.max_parallel = max(1, min(max_parallel, MAX_PARALLEL_READS))

    async def scan(self, request: ScanRequest) -> ScanResult:
        """Scan a repository for skills.

        Args:
            request: Source, subpath options and identity

        Returns:
            ScanResult with items sorted by skill name

        Raises:
            ToolUnavailableError: If git cannot be run
            InvalidSourceError: If the source cannot be parsed
            AuthRequiredError: If cloning failed for lack of credentials
            NetworkError: If cloning failed for any other reason
        """
        await self.runner.assert_available()

        parsed = resolve_source(request.source, subpath=request.subpath)
        effective_subpath = parsed.subpath or normalize_repo_path(request.default_subpath)
        identity = request.identity

        workdir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX))
        try:
            await self.runner.shallow_clone(
                parsed.clone_url(identity), workdir, identity=identity, timeout=SCAN_CLONE_TIMEOUT
            )

            manifest_paths = await self._sparse_manifest_paths(workdir, effective_subpath, identity)
            if manifest_paths is None:
                logger.debug("Sparse checkout unavailable for %s, listing tree", parsed.normalized_repo)
                manifest_paths = await self._listed_manifest_paths(workdir, effective_subpath, identity)

            skill_dirs = skill_dirs_from_manifests(manifest_paths)
            items = await self._read_items(workdir, skill_dirs, request.source, effective_subpath, identity)
            items.sort(key=lambda item: item.skill_name)

            logger.info(
                "Scanned %s%s: %d skill(s)",
                parsed.normalized_repo,
                f"/{effective_subpath}" if effective_subpath else "",
                len(items),
            )
            return ScanResult(
                normalized_repo=parsed.normalized_repo,
                effective_subpath=effective_subpath,
                items=tuple(items),
            )
        finally:
            await asyncio.to_thread(safe_rmtree, workdir)

    async def _sparse_manifest_paths(
        self, workdir: Path, subpath: Optional[str], identity: Optional[Identity]
    ) -> Optional[list[str]]:
        """Check out only manifest files; None if any step fails."""
        if subpath:
            patterns = [f"/{subpath}/{MANIFEST_FILENAME}", f"/{subpath}/**/{MANIFEST_FILENAME}"]
        else:
            patterns = [f"/{MANIFEST_FILENAME}", f"**/{MANIFEST_FILENAME}"]

        steps = [
            (["sparse-checkout", "init", "--no-cone"], SPARSE_INIT_TIMEOUT),
            (["sparse-checkout", "set", *patterns], SPARSE_SET_TIMEOUT),
            (["checkout", "--force", "HEAD"], CHECKOUT_TIMEOUT),
        ]
        for args, timeout in steps:
            result = await self.runner.run(
                ["-C", str(workdir), *args], identity=identity, timeout=timeout
            )
            if not result.ok:
                logger.debug("git %s failed: %s", args[0], result.error_text)
                return None

        listed = await self.runner.run(
            ["-C", str(workdir), "ls-files"], identity=identity, timeout=LIST_TIMEOUT
        )
        if not listed.ok:
            return None
        return manifest_paths_from_listing(listed.stdout, subpath)

    async def _listed_manifest_paths(
        self, workdir: Path, subpath: Optional[str], identity: Optional[Identity]
    ) -> list[str]:
        """List manifests from the fetched tree without a working copy."""
        args = ["-C", str(workdir), "ls-tree", "-r", "--name-only", "HEAD"]
        if subpath:
            args.extend(["--", subpath])

        result = await self.runner.run(args, identity=identity, timeout=LIST_TIMEOUT)
        if not result.ok:
            # a subpath that does not exist is an empty catalog, not an error
            logger.debug("ls-tree failed: %s", result.error_text)
            return []
        return manifest_paths_from_listing(result.stdout, subpath)

    async def _read_manifest(
        self, workdir: Path, manifest_path: str, identity: Optional[Identity]
    ) -> Optional[str]:
        try:
            path = repo_path_to_fs(workdir, manifest_path)
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            pass

        result = await self.runner.run(
            ["-C", str(workdir), "show", f"HEAD:{manifest_path}"],
            identity=identity,
            timeout=SHOW_TIMEOUT,
        )
        if not result.ok:
            logger.warning("Could not read %s: %s", manifest_path, result.error_text)
            return None
        return result.stdout

    async def _read_item(
        self,
        workdir: Path,
        skill_dir: str,
        repo_source: str,
        subpath: Optional[str],
        identity: Optional[Identity],
    ) -> CatalogItem:
        skill_name = PurePosixPath(skill_dir).name
        warnings: list[str] = []

        content = await self._read_manifest(workdir, f"{skill_dir}/{MANIFEST_FILENAME}", identity)
        if content is None:
            warnings.append(UNREADABLE_MANIFEST_WARNING)

        manifest = SkillManifest.parse(content or "")
        warnings.extend(manifest.warnings)

        installable = validate_skill_name(skill_name)
        if not installable:
            warnings.append(INVALID_NAME_WARNING)

        return CatalogItem(
            repo_source=repo_source,
            repo_subpath=subpath,
            skill_dir=skill_dir,
            skill_name=skill_name,
            frontmatter_name=manifest.name,
            description=manifest.description,
            installable=installable,
            warnings=tuple(warnings),
        )

    async def _read_items(
        self,
        workdir: Path,
        skill_dirs: list[str],
        repo_source: str,
        subpath: Optional[str],
        identity: Optional[Identity],
    ) -> list[CatalogItem]:
        if not skill_dirs:
            return []

        semaphore = asyncio.Semaphore(min(self.max_parallel, len(skill_dirs)))

        async def bounded(skill_dir: str) -> CatalogItem:
            async with semaphore:
                return await self._read_item(workdir, skill_dir, repo_source, subpath, identity)

        return list(await asyncio.gather(*(bounded(d) for d in skill_dirs)))
