"""Tests for installing skills from a repository."""

import tempfile
from pathlib import Path

import pytest

from skill_catalog.core import installer as installer_module
from skill_catalog.core.conflicts import ConflictPolicy, Decision
from skill_catalog.core.installer import (
    ALREADY_INSTALLED_REASON,
    INVALID_NAME_REASON,
    MISSING_MANIFEST_REASON,
    TEMP_PREFIX,
    InstallRequest,
    Installer,
    plan_selections,
    target_skill_dir,
)
from skill_catalog.errors import (
    AuthRequiredError,
    ConflictsError,
    InvalidSourceError,
    NetworkError,
    UnknownError,
)
from skill_catalog.fetch.git import GitResult, GitRunner

from conftest import PDF_SKILL


def make_request(user_dir: Path, *selections: str, **kwargs) -> InstallRequest:
    kwargs.setdefault("source", "acme/skills")
    kwargs.setdefault("scope", "user")
    return InstallRequest(user_skill_dir=user_dir, selections=list(selections), **kwargs)


class BrokenSparseRunner(GitRunner):
    """Runner on which ``sparse-checkout set`` always fails."""

    async def run(self, args, **kwargs):
        if "sparse-checkout" in args and "set" in args:
            return GitResult(ok=False, stderr="fatal: cannot set sparse-checkout patterns")
        return await super().run(args, **kwargs)


def _leftover_install_dirs() -> set[str]:
    return {p.name for p in Path(tempfile.gettempdir()).glob(f"{TEMP_PREFIX}*")}


@pytest.fixture
def user_dir(tmp_path):
    """Empty user skill store."""
    return tmp_path / "home" / ".config" / "opencode" / "skill"


class TestPlanSelections:
    """Test selection planning."""

    def test_names_from_basenames(self):
        """Test that the skill name is the directory basename."""
        plans = plan_selections(["skills/pdf", "/skills/docx/", "Bad_Name"])
        assert [(p.skill_dir, p.skill_name, p.installable) for p in plans] == [
            ("skills/pdf", "pdf", True),
            ("skills/docx", "docx", True),
            ("Bad_Name", "Bad_Name", False),
        ]

    def test_dot_segments_not_installable(self):
        """Test that relative segments are never installable."""
        plans = plan_selections(["skills/../pdf", "skills/./docx"])
        assert [p.installable for p in plans] == [False, False]


class TestValidate:
    """Test request validation."""

    def test_invalid_scope(self, user_dir):
        """Test an unknown scope."""
        with pytest.raises(InvalidSourceError, match="Invalid scope"):
            Installer().validate(make_request(user_dir, "skills/pdf", scope="global"))

    def test_missing_user_dir(self):
        """Test a request without a user skill directory."""
        with pytest.raises(UnknownError):
            Installer().validate(make_request(None, "skills/pdf"))

    def test_project_requires_working_directory(self, user_dir):
        """Test a project install without a project root."""
        with pytest.raises(InvalidSourceError):
            Installer().validate(make_request(user_dir, "skills/pdf", scope="project"))

    def test_target_dirs(self, user_dir, tmp_path):
        """Test where each scope installs."""
        assert target_skill_dir(make_request(user_dir, "x"), "pdf") == user_dir / "pdf"
        request = make_request(
            user_dir, "x", scope="project", working_directory=tmp_path / "proj", project_skill_dir=".agents/skills"
        )
        assert target_skill_dir(request, "pdf") == tmp_path / "proj" / ".agents" / "skills" / "pdf"


@pytest.mark.anyio
class TestInstall:
    """Test installs from local repositories through the URL rewrite."""

    async def test_install_user_scope(self, skills_repo, git_runner, user_dir):
        """Test installing two skills into an empty store."""
        outcome = await Installer(git_runner).install(make_request(user_dir, "skills/pdf", "skills/docx"))

        assert outcome.to_dict() == {
            "installed": [
                {"skillName": "pdf", "scope": "user"},
                {"skillName": "docx", "scope": "user"},
            ],
            "skipped": [],
        }
        assert (user_dir / "pdf" / "SKILL.md").read_text() == PDF_SKILL
        assert (user_dir / "pdf" / "scripts" / "fill.py").is_file()
        assert (user_dir / "docx" / "SKILL.md").is_file()
        assert not (user_dir / "Bad_Name").exists()

    async def test_install_project_scope(self, skills_repo, git_runner, user_dir, tmp_path):
        """Test installing into the project store."""
        project = tmp_path / "project"
        project.mkdir()
        request = make_request(user_dir, "skills/nested/deep", scope="project", working_directory=project)

        outcome = await Installer(git_runner).install(request)

        assert [s.skill_name for s in outcome.installed] == ["deep"]
        assert outcome.installed[0].scope == "project"
        assert (project / ".opencode" / "skill" / "deep" / "SKILL.md").is_file()
        assert not user_dir.exists()

    async def test_conflict_blocks_install(self, skills_repo, git_runner, user_dir):
        """Test that an existing target without a decision fails pre-flight."""
        (user_dir / "pdf").mkdir(parents=True)
        (user_dir / "pdf" / "SKILL.md").write_text("old")

        with pytest.raises(ConflictsError) as exc_info:
            await Installer(git_runner).install(make_request(user_dir, "skills/pdf", "skills/docx"))

        assert exc_info.value.to_dict() == {
            "kind": "conflicts",
            "message": "Some skills already exist in the selected scope",
            "conflicts": [{"skillName": "pdf", "scope": "user"}],
        }
        assert (user_dir / "pdf" / "SKILL.md").read_text() == "old"
        assert not (user_dir / "docx").exists()

    async def test_overwrite_all(self, skills_repo, git_runner, user_dir):
        """Test that overwriteAll replaces the existing directory."""
        (user_dir / "pdf").mkdir(parents=True)
        (user_dir / "pdf" / "stale.txt").write_text("stale")

        request = make_request(user_dir, "skills/pdf", conflict_policy=ConflictPolicy.OVERWRITE_ALL)
        outcome = await Installer(git_runner).install(request)

        assert [s.skill_name for s in outcome.installed] == ["pdf"]
        assert not (user_dir / "pdf" / "stale.txt").exists()
        assert (user_dir / "pdf" / "SKILL.md").read_text() == PDF_SKILL

    async def test_skip_all(self, skills_repo, git_runner, user_dir):
        """Test that skipAll keeps existing skills and installs the rest."""
        (user_dir / "pdf").mkdir(parents=True)
        (user_dir / "pdf" / "SKILL.md").write_text("mine")

        request = make_request(
            user_dir, "skills/pdf", "skills/docx", conflict_policy=ConflictPolicy.SKIP_ALL
        )
        outcome = await Installer(git_runner).install(request)

        assert [s.skill_name for s in outcome.installed] == ["docx"]
        assert [(s.skill_name, s.reason) for s in outcome.skipped] == [("pdf", ALREADY_INSTALLED_REASON)]
        assert (user_dir / "pdf" / "SKILL.md").read_text() == "mine"

    async def test_decision_beats_policy(self, skills_repo, git_runner, user_dir):
        """Test that a per-skill decision overrides the batch policy."""
        for name in ("pdf", "docx"):
            (user_dir / name).mkdir(parents=True)
            (user_dir / name / "SKILL.md").write_text("mine")

        request = make_request(
            user_dir,
            "skills/pdf",
            "skills/docx",
            conflict_policy=ConflictPolicy.SKIP_ALL,
            conflict_decisions={"pdf": Decision.OVERWRITE},
        )
        outcome = await Installer(git_runner).install(request)

        assert [s.skill_name for s in outcome.installed] == ["pdf"]
        assert [s.skill_name for s in outcome.skipped] == ["docx"]
        assert (user_dir / "pdf" / "SKILL.md").read_text() == PDF_SKILL
        assert (user_dir / "docx" / "SKILL.md").read_text() == "mine"

    async def test_invalid_name_skipped(self, skills_repo, git_runner, user_dir):
        """Test that an invalid directory name is skipped."""
        outcome = await Installer(git_runner).install(make_request(user_dir, "skills/Bad_Name", "skills/pdf"))
        assert [s.skill_name for s in outcome.installed] == ["pdf"]
        assert [(s.skill_name, s.reason) for s in outcome.skipped] == [("Bad_Name", INVALID_NAME_REASON)]

    async def test_nothing_installable_does_not_clone(self, git_runner, user_dir):
        """Test that no clone happens when every selection is invalid."""
        # acme/unknown does not exist, so a clone attempt would raise
        request = make_request(user_dir, "skills/Bad_Name", source="acme/unknown")
        outcome = await Installer(git_runner).install(request)
        assert outcome.installed == []
        assert [s.reason for s in outcome.skipped] == [INVALID_NAME_REASON]

    async def test_missing_manifest_skipped(self, skills_repo, git_runner, user_dir):
        """Test a selected directory without SKILL.md."""
        outcome = await Installer(git_runner).install(make_request(user_dir, "skills/nested"))
        assert [(s.skill_name, s.reason) for s in outcome.skipped] == [("nested", MISSING_MANIFEST_REASON)]
        assert not (user_dir / "nested").exists()

    async def test_symlink_rejected(self, make_remote, git_runner, user_dir):
        """Test that a skill containing a symlink is not installed."""
        make_remote(
            "acme/linked",
            {"skills/linky/SKILL.md": "---\nname: linky\n---\n"},
            symlinks={"skills/linky/escape": "../../../../etc/passwd"},
        )

        request = make_request(user_dir, "skills/linky", source="acme/linked")
        outcome = await Installer(git_runner).install(request)

        assert outcome.installed == []
        assert [(s.skill_name, s.reason) for s in outcome.skipped] == [
            ("linky", "Symlinks are not supported in skills")
        ]
        assert not (user_dir / "linky").exists()

    async def test_nested_symlink_fails_alone(self, make_remote, git_runner, user_dir):
        """Test that a deep symlink rejects only its own skill."""
        make_remote(
            "acme/mixed",
            {
                "skills/linky/SKILL.md": "---\nname: linky\n---\n",
                "skills/ok/SKILL.md": "---\nname: ok\n---\n",
            },
            symlinks={"skills/linky/sub/escape": "../../../../etc/passwd"},
        )

        request = make_request(user_dir, "skills/linky", "skills/ok", source="acme/mixed")
        outcome = await Installer(git_runner).install(request)

        assert [s.skill_name for s in outcome.installed] == ["ok"]
        assert [(s.skill_name, s.reason) for s in outcome.skipped] == [
            ("linky", "Symlinks are not supported in skills")
        ]
        assert not (user_dir / "linky").exists()
        assert (user_dir / "ok" / "SKILL.md").is_file()

    async def test_overwrite_symlinked_target(self, skills_repo, git_runner, user_dir, tmp_path):
        """Test that overwriting a linked target replaces the link, not its contents."""
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        (elsewhere / "stale.txt").write_text("stale")
        user_dir.mkdir(parents=True)
        (user_dir / "pdf").symlink_to(elsewhere, target_is_directory=True)

        request = make_request(user_dir, "skills/pdf", conflict_policy=ConflictPolicy.OVERWRITE_ALL)
        outcome = await Installer(git_runner).install(request)

        assert [s.skill_name for s in outcome.installed] == ["pdf"]
        assert not (user_dir / "pdf").is_symlink()
        assert (user_dir / "pdf" / "SKILL.md").read_text() == PDF_SKILL
        assert sorted(p.name for p in elsewhere.iterdir()) == ["stale.txt"]

    async def test_overwrite_file_target(self, skills_repo, git_runner, user_dir):
        """Test that a plain file in the way is replaced."""
        user_dir.mkdir(parents=True)
        (user_dir / "pdf").write_text("not a skill")

        request = make_request(user_dir, "skills/pdf", conflict_policy=ConflictPolicy.OVERWRITE_ALL)
        outcome = await Installer(git_runner).install(request)

        assert [s.skill_name for s in outcome.installed] == ["pdf"]
        assert (user_dir / "pdf" / "SKILL.md").read_text() == PDF_SKILL

    async def test_dangling_symlink_is_conflict(self, skills_repo, git_runner, user_dir, tmp_path):
        """Test that a link to nothing still counts as an existing target."""
        user_dir.mkdir(parents=True)
        (user_dir / "pdf").symlink_to(tmp_path / "gone")

        with pytest.raises(ConflictsError):
            await Installer(git_runner).install(make_request(user_dir, "skills/pdf"))

        assert (user_dir / "pdf").is_symlink()

    async def test_failed_removal_skipped(self, skills_repo, git_runner, user_dir, monkeypatch):
        """Test that a target that cannot be removed is skipped, not written into."""
        (user_dir / "pdf").mkdir(parents=True)
        (user_dir / "pdf" / "SKILL.md").write_text("mine")

        def refuse(path):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr(installer_module, "remove_path", refuse)
        request = make_request(
            user_dir, "skills/pdf", "skills/docx", conflict_policy=ConflictPolicy.OVERWRITE_ALL
        )
        outcome = await Installer(git_runner).install(request)

        assert [s.skill_name for s in outcome.installed] == ["docx"]
        [skipped] = outcome.skipped
        assert skipped.skill_name == "pdf"
        assert skipped.reason.startswith("Failed to remove existing skill")
        assert (user_dir / "pdf" / "SKILL.md").read_text() == "mine"

    async def test_clone_dir_removed_after_install(self, skills_repo, git_runner, user_dir):
        """Test that the temporary clone is gone after a successful install."""
        before = _leftover_install_dirs()
        await Installer(git_runner).install(make_request(user_dir, "skills/pdf"))
        assert _leftover_install_dirs() == before

    async def test_clone_dir_removed_after_clone_failure(self, git_runner, user_dir):
        """Test that the temporary clone is gone when cloning fails."""
        before = _leftover_install_dirs()
        with pytest.raises((AuthRequiredError, NetworkError)):
            await Installer(git_runner).install(make_request(user_dir, "skills/pdf", source="acme/missing"))
        assert _leftover_install_dirs() == before

    async def test_clone_dir_removed_after_sparse_failure(self, skills_repo, git_runner, user_dir):
        """Test that a failed sparse checkout raises and cleans up."""
        before = _leftover_install_dirs()
        installer = Installer(BrokenSparseRunner(env=git_runner.env))

        with pytest.raises(UnknownError, match="sparse-checkout"):
            await installer.install(make_request(user_dir, "skills/pdf"))

        assert _leftover_install_dirs() == before
        assert not user_dir.exists()

    async def test_empty_selection(self, git_runner, user_dir):
        """Test that blank selections are rejected."""
        with pytest.raises(InvalidSourceError, match="No skills selected"):
            await Installer(git_runner).install(make_request(user_dir, " ", "/"))

    async def test_invalid_scope_rejected(self, git_runner, user_dir):
        """Test that validation runs before any clone."""
        with pytest.raises(InvalidSourceError):
            await Installer(git_runner).install(make_request(user_dir, "skills/pdf", scope="global"))

