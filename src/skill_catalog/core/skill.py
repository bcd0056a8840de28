"""Core skill models, manifest parsing and name validation."""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

MANIFEST_FILENAME = "SKILL.md"
MAX_SKILL_NAME_LENGTH = 64

SKILL_NAME_PATTERN = re.compile(r"^(?:[a-z0-9][a-z0-9-]*[a-z0-9]|[a-z0-9])$")

# Match YAML frontmatter: --- at start, content, --- to close, then the body
_FRONTMATTER_RE = re.compile(r"^---\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n(.*))?$", re.DOTALL)

MISSING_FRONTMATTER_WARNING = "Invalid SKILL.md: missing YAML frontmatter delimiter"
INVALID_FRONTMATTER_WARNING = "Invalid SKILL.md: failed to parse YAML frontmatter"
UNREADABLE_MANIFEST_WARNING = "Failed to read SKILL.md"
INVALID_NAME_WARNING = "Skill directory name is not a valid skill name"


def validate_skill_name(name: Any) -> bool:
    """Check a skill directory name.

    Valid names are 1-64 characters of lowercase letters, digits and
    hyphens, and neither start nor end with a hyphen.
    """
    if not isinstance(name, str):
        return False
    if not 1 <= len(name) <= MAX_SKILL_NAME_LENGTH:
        return False
    return SKILL_NAME_PATTERN.match(name) is not None


@dataclass
class SkillManifest:
    """A parsed SKILL.md file.

    Parsing never fails: problems are reported in ``warnings`` and the
    frontmatter is left empty.
    """

    frontmatter: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    warnings: list[str] = field(default_factory=list)

    @property
    def name(self) -> Optional[str]:
        value = self.frontmatter.get("name")
        return value if isinstance(value, str) else None

    @property
    def description(self) -> Optional[str]:
        value = self.frontmatter.get("description")
        return value if isinstance(value, str) else None

    @classmethod
    def parse(cls, content: Optional[str]) -> "SkillManifest":
        """Parse manifest text into frontmatter and body."""
        text = content if isinstance(content, str) else ""
        match = _FRONTMATTER_RE.match(text)
        if not match:
            return cls(body=text, warnings=[MISSING_FRONTMATTER_WARNING])

        body = match.group(2) or ""
        try:
            data = yaml.safe_load(match.group(1))
        except yaml.YAMLError:
            return cls(body=body, warnings=[INVALID_FRONTMATTER_WARNING])

        if data is None:
            data = {}
        if not isinstance(data, dict):
            return cls(body=body, warnings=[INVALID_FRONTMATTER_WARNING])
        return cls(frontmatter=data, body=body)


@dataclass(frozen=True)
class CatalogItem:
    """One skill discovered while scanning a repository.

    Attributes:
        repo_source: The repository reference the scan was given
        repo_subpath: Effective subpath of the scan, if any
        skill_dir: Directory of the skill within the repository
        skill_name: Basename of ``skill_dir``
        frontmatter_name: ``name`` field from the manifest frontmatter
        description: ``description`` field from the manifest frontmatter
        installable: Whether ``skill_name`` is a valid skill name
        warnings: Problems found while reading the manifest
    """

    repo_source: str
    skill_dir: str
    skill_name: str
    installable: bool
    repo_subpath: Optional[str] = None
    frontmatter_name: Optional[str] = None
    description: Optional[str] = None
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "repoSource": self.repo_source,
            "skillDir": self.skill_dir,
            "skillName": self.skill_name,
            "installable": self.installable,
        }
        if self.repo_subpath:
            data["repoSubpath"] = self.repo_subpath
        if self.frontmatter_name is not None:
            data["frontmatterName"] = self.frontmatter_name
        if self.description is not None:
            data["description"] = self.description
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


@dataclass(frozen=True)
class ScanResult:
    """Catalog of one repository scan."""

    normalized_repo: str
    effective_subpath: Optional[str] = None
    items: tuple[CatalogItem, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "normalizedRepo": self.normalized_repo,
            "effectiveSubpath": self.effective_subpath,
            "items": [item.to_dict() for item in self.items],
        }
