"""Pydantic models for skill catalog configuration."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SettingsConfig(BaseModel):
    """Global settings for the skill catalog."""

    user_skill_dir: str = Field(
        default="~/.config/opencode/skill",
        description="Skill store used for user-scope installs",
    )
    project_skill_dir: str = Field(
        default=".opencode/skill",
        description="Skill store, relative to the project root, for project-scope installs",
    )
    cache_ttl_seconds: float = Field(
        default=1800, ge=0, description="How long repository scans stay cached"
    )
    max_parallel_reads: int = Field(
        default=10, ge=1, le=10, description="Concurrent manifest reads per scan"
    )

    @field_validator("project_skill_dir")
    @classmethod
    def validate_project_skill_dir(cls, v: str) -> str:
        """Project skill directory must stay inside the project."""
        parts = [p for p in v.replace("\\", "/").split("/") if p]
        if not parts or v.startswith(("/", "~")) or ".." in parts:
            raise ValueError("project_skill_dir must be a relative path inside the project")
        return "/".join(parts)


class CatalogSourceConfig(BaseModel):
    """A repository listed in the skill catalog."""

    id: str = Field(description="Unique catalog source identifier")
    label: str = Field(description="Display name")
    source: str = Field(description="Repository reference (owner/repo, HTTPS or SSH URL)")
    subpath: Optional[str] = Field(
        default=None, description="Directory within the repository holding skills"
    )
    description: Optional[str] = Field(default=None, description="Human-readable description")
    git_identity_id: Optional[str] = Field(
        default=None, description="Git identity used to clone this source"
    )

    @field_validator("id", "label", "source")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Required text fields cannot be blank."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("subpath", "git_identity_id")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank optional fields as unset."""
        if v is None:
            return None
        v = v.strip()
        return v or None


class GitIdentityConfig(BaseModel):
    """A named git credential profile."""

    id: str = Field(description="Unique identity identifier")
    name: str = Field(description="Display name")
    ssh_key: Optional[str] = Field(default=None, description="Path to an SSH private key")


class SkillCatalogConfig(BaseModel):
    """Root configuration for the skill catalog."""

    version: str = Field(description="Config schema version")
    settings: SettingsConfig = Field(default_factory=SettingsConfig)
    catalogs: list[CatalogSourceConfig] = Field(
        default_factory=list, description="Additional catalog sources"
    )
    identities: list[GitIdentityConfig] = Field(
        default_factory=list, description="Git identities available for cloning"
    )

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate version format."""
        if not v.startswith("1."):
            raise ValueError(
                f"Unsupported config version: {v}. Only version 1.x is supported."
            )
        return v

    @field_validator("catalogs")
    @classmethod
    def validate_unique_catalog_ids(cls, v: list[CatalogSourceConfig]) -> list[CatalogSourceConfig]:
        """Catalog source ids must be unique."""
        seen = set()
        for catalog in v:
            if catalog.id in seen:
                raise ValueError(f"Duplicate catalog id: {catalog.id}")
            seen.add(catalog.id)
        return v
