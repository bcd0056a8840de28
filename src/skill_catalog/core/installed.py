"""Discovery of skills already present in the user and project stores."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from skill_catalog.core.skill import MANIFEST_FILENAME
from skill_catalog.utils.paths import repo_path_to_fs


@dataclass(frozen=True)
class DiscoveredSkill:
    """A skill directory found in a skill store."""

    name: str
    scope: str
    path: Path


def _list_store(store: Path, scope: str) -> list[DiscoveredSkill]:
    if not store.is_dir():
        return []
    skills = []
    for child in sorted(store.iterdir()):
        if child.is_dir() and (child / MANIFEST_FILENAME).is_file():
            skills.append(DiscoveredSkill(name=child.name, scope=scope, path=child))
    return skills


def discover_installed_skills(
    user_skill_dir: Path,
    working_directory: Optional[Path] = None,
    project_skill_dir: str = ".opencode/skill",
) -> dict[str, DiscoveredSkill]:
    """Installed skills by name.

    A project skill shadows a user skill with the same name.

    Args:
        user_skill_dir: User-scope skill store
        working_directory: Project root, if project skills should be included
        project_skill_dir: Project skill store relative to the project root

    Returns:
        Mapping of skill name to the installed skill that wins
    """
    found = {skill.name: skill for skill in _list_store(Path(user_skill_dir), "user")}
    if working_directory is not None:
        project_store = repo_path_to_fs(Path(working_directory), project_skill_dir)
        for skill in _list_store(project_store, "project"):
            found[skill.name] = skill
    return found
