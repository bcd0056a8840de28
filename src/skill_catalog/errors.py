"""Error taxonomy for catalog scans and installs.

Every failure that aborts a whole scan or install is raised as a
``CatalogError`` subclass. The ``kind`` attribute is the stable identifier
sent to callers in the ``{"ok": false, "error": {...}}`` payload.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class SkillConflict:
    """A selected skill whose install target already exists."""

    skill_name: str
    scope: str

    def to_dict(self) -> dict[str, str]:
        return {"skillName": self.skill_name, "scope": self.scope}


class CatalogError(Exception):
    """Base class for errors that abort a scan or install."""

    kind = "unknown"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Return the error object sent back to callers."""
        return {"kind": self.kind, "message": self.message}


class InvalidSourceError(CatalogError):
    """The repository reference or request parameters are malformed."""

    kind = "invalidSource"


class ToolUnavailableError(CatalogError):
    """The git executable is missing or not runnable."""

    kind = "toolUnavailable"


class AuthRequiredError(CatalogError):
    """Cloning failed in a way that looks like missing credentials."""

    kind = "authRequired"

    def __init__(
        self,
        message: str = "Authentication required to access this repository",
        identities: Optional[list[dict[str, str]]] = None,
    ):
        super().__init__(message)
        self.ssh_only = True
        self.identities = identities

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["sshOnly"] = self.ssh_only
        if self.identities:
            data["identities"] = self.identities
        return data


class NetworkError(CatalogError):
    """Cloning failed for a reason other than authentication."""

    kind = "networkError"


class ConflictsError(CatalogError):
    """Install targets already exist and no decision resolves them."""

    kind = "conflicts"

    def __init__(
        self,
        conflicts: list[SkillConflict],
        message: str = "Some skills already exist in the selected scope",
    ):
        super().__init__(message)
        self.conflicts = conflicts

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["conflicts"] = [c.to_dict() for c in self.conflicts]
        return data


class UnknownError(CatalogError):
    """Any other failure, carrying the underlying message."""

    kind = "unknown"
