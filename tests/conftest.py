"""Shared pytest fixtures for skill catalog tests."""

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from skill_catalog.config.schema import SkillCatalogConfig
from skill_catalog.fetch.git import GitRunner


PDF_SKILL = """---
name: pdf
description: Fill and extract PDF forms
---

# PDF

Use the scripts in this directory.
"""

DOCX_SKILL = """---
name: docx
description: Edit Word documents
---

# DOCX
"""


@pytest.fixture
def anyio_backend():
    """Run async tests on asyncio only."""
    return "asyncio"


def run_git(cwd: Path, *args: str) -> None:
    subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
    )


@pytest.fixture
def remotes_dir(tmp_path):
    """Directory standing in for https://github.com/ (skips without git)."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    remotes = tmp_path / "remotes"
    remotes.mkdir()
    return remotes


@pytest.fixture
def git_runner(remotes_dir):
    """GitRunner whose https://github.com/ URLs resolve to local bare repos."""
    return GitRunner(
        env={
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": f"url.{remotes_dir.as_uri()}/.insteadOf",
            "GIT_CONFIG_VALUE_0": "https://github.com/",
        }
    )


@pytest.fixture
def make_remote(remotes_dir, tmp_path):
    """Factory creating a bare repository served as ``owner/repo``.

    Args (of the returned callable):
        name: ``owner/repo``
        files: Repository-relative path to file content
        symlinks: Repository-relative path to symlink target
    """

    def _make(name: str, files: dict[str, str], symlinks: dict[str, str] = None) -> Path:
        owner, repo = name.split("/")
        work = tmp_path / "work" / owner / repo
        work.mkdir(parents=True)

        for rel, content in files.items():
            path = work / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        for rel, target in (symlinks or {}).items():
            path = work / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            os.symlink(target, path)

        run_git(work, "init", "-q")
        run_git(work, "add", "-A")
        run_git(
            work,
            "-c", "user.name=Test",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            "commit", "-q", "-m", "initial",
        )

        bare = remotes_dir / owner / f"{repo}.git"
        bare.parent.mkdir(parents=True, exist_ok=True)
        run_git(tmp_path, "clone", "-q", "--bare", str(work), str(bare))
        return bare

    return _make


@pytest.fixture
def skills_repo(make_remote):
    """``acme/skills`` with a mix of valid, invalid and nested skills."""
    return make_remote(
        "acme/skills",
        {
            "README.md": "# Skills\n",
            "SKILL.md": "---\nname: root\n---\n",
            "skills/pdf/SKILL.md": PDF_SKILL,
            "skills/pdf/scripts/fill.py": "print('fill')\n",
            "skills/docx/SKILL.md": DOCX_SKILL,
            "skills/Bad_Name/SKILL.md": "---\nname: bad\n---\n",
            "skills/broken/SKILL.md": "no frontmatter here\n",
            "skills/nested/deep/SKILL.md": "---\ndescription: Deeply nested\n---\n",
            "skills/nested/notes.txt": "not a skill\n",
            "other/misc/SKILL.md": "---\nname: misc\n---\n",
        },
    )


@pytest.fixture
def config():
    """Configuration with one extra catalog and one identity."""
    return SkillCatalogConfig(
        version="1.0",
        catalogs=[
            {
                "id": "acme",
                "label": "Acme",
                "source": "acme/skills",
                "subpath": "skills",
                "git_identity_id": "work",
            }
        ],
        identities=[{"id": "work", "name": "Work", "ssh_key": "~/.ssh/id_work"}],
    )
