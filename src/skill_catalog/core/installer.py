"""Installer for skills selected from a repository scan.

An install runs in two phases. The pre-flight phase validates the request,
plans every selection and checks install targets for conflicts without
cloning or writing anything. If any conflict is unresolved the call
fails with ``ConflictsError`` and the caller asks the user before calling
again with decisions. Once cloning starts, each skill succeeds or fails on
its own and the partial outcome is returned.
"""

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from skill_catalog.core.conflicts import ConflictPolicy, ConflictResolver, Decision
from skill_catalog.core.skill import MANIFEST_FILENAME, validate_skill_name
from skill_catalog.core.source import resolve_source
from skill_catalog.errors import ConflictsError, InvalidSourceError, SkillConflict, UnknownError
from skill_catalog.fetch.git import GitRunner, Identity
from skill_catalog.utils.fs import copy_tree, remove_path, safe_rmtree
from skill_catalog.utils.paths import ensure_dir, normalize_repo_path, repo_path_basename, repo_path_to_fs

logger = logging.getLogger(__name__)

SCOPES = ("user", "project")
DEFAULT_PROJECT_SKILL_DIR = ".opencode/skill"

INSTALL_CLONE_TIMEOUT = 90.0
SPARSE_INIT_TIMEOUT = 15.0
SPARSE_SET_TIMEOUT = 30.0
CHECKOUT_TIMEOUT = 60.0

TEMP_PREFIX = "skill-catalog-install-"

INVALID_NAME_REASON = "Invalid skill name (directory basename)"
MISSING_MANIFEST_REASON = f"{MANIFEST_FILENAME} not found in selected directory"
ALREADY_INSTALLED_REASON = "Already installed (skipped)"


@dataclass
class InstallRequest:
    """Parameters of one install call.

    Attributes:
        source: Repository reference, as accepted by ``resolve_source``
        scope: ``user`` or ``project``
        user_skill_dir: Skill store for the ``user`` scope
        selections: Repository-relative skill directories to install
        working_directory: Project root, required for the ``project`` scope
        project_skill_dir: Skill store relative to the project root
        conflict_policy: Batch default for existing targets
        conflict_decisions: Per-skill decisions for existing targets
    """

    source: str
    scope: str
    user_skill_dir: Optional[Path]
    selections: list[str]
    subpath: Optional[str] = None
    default_subpath: Optional[str] = None
    identity: Optional[Identity] = None
    working_directory: Optional[Path] = None
    project_skill_dir: str = DEFAULT_PROJECT_SKILL_DIR
    conflict_policy: Optional[ConflictPolicy] = None
    conflict_decisions: Mapping[str, Decision] = field(default_factory=dict)


@dataclass(frozen=True)
class InstallPlan:
    """One selection, planned before anything is cloned."""

    skill_dir: str
    skill_name: str
    installable: bool


@dataclass(frozen=True)
class InstalledSkill:
    skill_name: str
    scope: str

    def to_dict(self) -> dict[str, str]:
        return {"skillName": self.skill_name, "scope": self.scope}


@dataclass(frozen=True)
class SkippedSkill:
    skill_name: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"skillName": self.skill_name, "reason": self.reason}


@dataclass
class InstallOutcome:
    """Skills installed and skipped by one install call."""

    installed: list[InstalledSkill] = field(default_factory=list)
    skipped: list[SkippedSkill] = field(default_factory=list)

    def add_installed(self, skill_name: str, scope: str) -> None:
        self.installed.append(InstalledSkill(skill_name, scope))

    def add_skipped(self, skill_name: str, reason: str) -> None:
        logger.info("Skipped %s: %s", skill_name, reason)
        self.skipped.append(SkippedSkill(skill_name, reason))

    def to_dict(self) -> dict[str, Any]:
        return {
            "installed": [entry.to_dict() for entry in self.installed],
            "skipped": [entry.to_dict() for entry in self.skipped],
        }


def plan_selections(selections: list[str]) -> list[InstallPlan]:
    """Derive skill names from selected directories.

    Pure: no I/O. A directory with ``.`` or ``..`` segments is never
    installable, whatever its basename.
    """
    plans = []
    for raw in selections:
        skill_dir = normalize_repo_path(raw) or ""
        skill_name = repo_path_basename(skill_dir)
        segments_ok = all(part not in (".", "..") for part in skill_dir.split("/"))
        plans.append(
            InstallPlan(
                skill_dir=skill_dir,
                skill_name=skill_name,
                installable=segments_ok and validate_skill_name(skill_name),
            )
        )
    return plans


def target_skill_dir(request: InstallRequest, skill_name: str) -> Path:
    """Directory a skill is installed into for the request's scope."""
    if request.scope == "user":
        return Path(request.user_skill_dir) / skill_name
    return repo_path_to_fs(Path(request.working_directory), request.project_skill_dir) / skill_name


class Installer:
    """Installs selected skills from a repository into a skill store."""

    def __init__(self, runner: Optional[GitRunner] = None):
        self.runner = runner or GitRunner()

    def validate(self, request: InstallRequest) -> None:
        """Check scope and destination parameters.

        Raises:
            InvalidSourceError: For an unknown scope or a project install
                without a working directory
            UnknownError: If no user skill directory is configured
        """
        if request.scope not in SCOPES:
            raise InvalidSourceError("Invalid scope")
        if not request.user_skill_dir:
            raise UnknownError("user_skill_dir is required")
        if request.scope == "project" and not request.working_directory:
            raise InvalidSourceError("Project installs require a working directory")

    def preflight(self, request: InstallRequest, plans: list[InstallPlan], resolver: ConflictResolver) -> None:
        """Fail with ConflictsError if any existing target is unresolved."""
        conflicts = []
        for plan in plans:
            if not plan.installable:
                continue
            exists = os.path.lexists(target_skill_dir(request, plan.skill_name))
            if resolver.is_conflict(plan.skill_name, exists):
                conflicts.append(SkillConflict(skill_name=plan.skill_name, scope=request.scope))

        if conflicts:
            raise ConflictsError(conflicts)

    async def install(self, request: InstallRequest) -> InstallOutcome:
        """Install the selected skills.

        Args:
            request: Source, selections, scope and conflict decisions

        Returns:
            InstallOutcome listing installed and skipped skills

        Raises:
            ToolUnavailableError: If git cannot be run
            InvalidSourceError: For a bad source, scope or empty selection
            ConflictsError: If existing targets have no decision; nothing
                is cloned or written in that case
            AuthRequiredError: If cloning failed for lack of credentials
            NetworkError: If cloning failed for any other reason
            UnknownError: If the sparse checkout could not be set up
        """
        await self.runner.assert_available()
        self.validate(request)

        parsed = resolve_source(request.source, subpath=request.subpath)
        clone_url = parsed.clone_url(request.identity)

        selections = [s for s in (normalize_repo_path(s) for s in request.selections) if s]
        if not selections:
            raise InvalidSourceError("No skills selected for installation")

        plans = plan_selections(selections)
        resolver = ConflictResolver(request.conflict_decisions, request.conflict_policy)
        self.preflight(request, plans, resolver)

        outcome = InstallOutcome()
        wanted = [plan.skill_dir for plan in plans if plan.installable]
        if not wanted:
            for plan in plans:
                outcome.add_skipped(plan.skill_name, INVALID_NAME_REASON)
            return outcome

        workdir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX))
        try:
            await self.runner.shallow_clone(
                clone_url, workdir, identity=request.identity, timeout=INSTALL_CLONE_TIMEOUT
            )
            await self._checkout(workdir, sorted(set(wanted)), request.identity)

            for plan in plans:
                await self._install_one(request, plan, workdir, resolver, outcome)

            logger.info(
                "Installed %d skill(s) from %s, skipped %d",
                len(outcome.installed),
                parsed.normalized_repo,
                len(outcome.skipped),
            )
            return outcome
        finally:
            await asyncio.to_thread(safe_rmtree, workdir)

    async def _checkout(self, workdir: Path, skill_dirs: list[str], identity: Optional[Identity]) -> None:
        init = await self.runner.run(
            ["-C", str(workdir), "sparse-checkout", "init", "--cone"],
            identity=identity,
            timeout=SPARSE_INIT_TIMEOUT,
        )
        if not init.ok:
            logger.debug("sparse-checkout init failed: %s", init.error_text)

        result = await self.runner.run(
            ["-C", str(workdir), "sparse-checkout", "set", *skill_dirs],
            identity=identity,
            timeout=SPARSE_SET_TIMEOUT,
        )
        if not result.ok:
            raise UnknownError(result.stderr or result.message or "Failed to configure sparse checkout")

        result = await self.runner.run(
            ["-C", str(workdir), "checkout", "--force", "HEAD"],
            identity=identity,
            timeout=CHECKOUT_TIMEOUT,
        )
        if not result.ok:
            raise UnknownError(result.stderr or result.message or "Failed to checkout repository")

    async def _install_one(
        self,
        request: InstallRequest,
        plan: InstallPlan,
        workdir: Path,
        resolver: ConflictResolver,
        outcome: InstallOutcome,
    ) -> None:
        if not plan.installable:
            outcome.add_skipped(plan.skill_name, INVALID_NAME_REASON)
            return

        src_dir = repo_path_to_fs(workdir, plan.skill_dir)
        if not (src_dir / MANIFEST_FILENAME).is_file():
            outcome.add_skipped(plan.skill_name, MISSING_MANIFEST_REASON)
            return

        target = target_skill_dir(request, plan.skill_name)
        # a dangling symlink is still an existing target
        exists = os.path.lexists(target)
        decision = resolver(plan.skill_name, exists)

        # the target may have appeared after the pre-flight check
        if decision is None or (exists and decision is Decision.SKIP):
            outcome.add_skipped(plan.skill_name, ALREADY_INSTALLED_REASON)
            return

        if exists:
            try:
                await asyncio.to_thread(remove_path, target)
            except OSError as e:
                logger.warning("Could not remove existing %s: %s", target, e)
                outcome.add_skipped(plan.skill_name, f"Failed to remove existing skill: {e}")
                return

        try:
            ensure_dir(target.parent)
        except OSError as e:
            outcome.add_skipped(plan.skill_name, f"Failed to create {target.parent}: {e}")
            return

        copied = await asyncio.to_thread(copy_tree, src_dir, target)
        if not copied.ok:
            logger.warning("Copy of %s failed at %s: %s", plan.skill_name, copied.path, copied.error)
            await asyncio.to_thread(safe_rmtree, target)
            outcome.add_skipped(plan.skill_name, copied.error or "Failed to copy skill files")
            return

        outcome.add_installed(plan.skill_name, request.scope)
