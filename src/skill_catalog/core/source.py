"""Resolver for repository references.

Accepts three forms, tried in order:
- SSH: ``git@host:owner/repo[.git]``
- HTTPS: ``https://host/owner/repo[.git]``
- Shorthand: ``owner/repo[/subpath...]`` (GitHub)
"""

import re
from dataclasses import dataclass
from typing import Optional

from skill_catalog.errors import InvalidSourceError
from skill_catalog.fetch.git import Identity
from skill_catalog.utils.paths import normalize_repo_path

DEFAULT_HOST = "github.com"

_SSH_RE = re.compile(r"^git@([^:/\s]+):([^/\s]+)/([^/\s#]+?)/?$", re.IGNORECASE)
_HTTPS_RE = re.compile(r"^https?://([^/\s]+)/([^/\s]+)/([^/\s#]+?)/?$", re.IGNORECASE)
_SHORTHAND_RE = re.compile(r"^([^/\s]+)/([^/\s]+)(?:/(.+))?$")
_GIT_SUFFIX_RE = re.compile(r"\.git$", re.IGNORECASE)


@dataclass(frozen=True)
class RepoSource:
    """A parsed repository reference.

    Attributes:
        host: Git host, e.g. ``github.com``
        owner: Repository owner
        repo: Repository name without ``.git``
        subpath: Directory within the repository to scan, if any
        clone_url_ssh: ``git@host:owner/repo.git``
        clone_url_https: ``https://host/owner/repo.git``
        normalized_repo: ``owner/repo``
    """

    host: str
    owner: str
    repo: str
    clone_url_ssh: str
    clone_url_https: str
    normalized_repo: str
    subpath: Optional[str] = None

    def clone_url(self, identity: Optional[Identity] = None) -> str:
        """Pick the SSH URL when an SSH key is available, HTTPS otherwise."""
        if identity is not None and identity.ssh_key:
            return self.clone_url_ssh
        return self.clone_url_https


def _build(host: str, owner: str, repo: str, subpath: Optional[str]) -> Optional[RepoSource]:
    owner = owner.strip()
    repo = _GIT_SUFFIX_RE.sub("", repo.strip())
    if not owner or not repo:
        return None
    host = host.lower()
    return RepoSource(
        host=host,
        owner=owner,
        repo=repo,
        subpath=subpath,
        clone_url_ssh=f"git@{host}:{owner}/{repo}.git",
        clone_url_https=f"https://{host}/{owner}/{repo}.git",
        normalized_repo=f"{owner}/{repo}",
    )


def resolve_source(raw: Optional[str], subpath: Optional[str] = None) -> RepoSource:
    """Parse a repository reference.

    Args:
        raw: SSH URL, HTTPS URL or ``owner/repo[/subpath]`` shorthand
        subpath: Explicit subpath; overrides one embedded in the shorthand

    Returns:
        RepoSource with both clone URLs filled in

    Raises:
        InvalidSourceError: If the reference matches none of the forms or
            is missing an owner or repository name
    """
    text = raw.strip() if isinstance(raw, str) else ""
    if not text:
        raise InvalidSourceError("Repository source is required")

    explicit_subpath = normalize_repo_path(subpath)

    match = _SSH_RE.match(text)
    if match:
        parsed = _build(match.group(1), match.group(2), match.group(3), explicit_subpath)
        if parsed is None:
            raise InvalidSourceError("Invalid SSH repository URL")
        return parsed

    match = _HTTPS_RE.match(text)
    if match:
        parsed = _build(match.group(1), match.group(2), match.group(3), explicit_subpath)
        if parsed is None:
            raise InvalidSourceError("Invalid HTTPS repository URL")
        return parsed

    if "://" not in text and not text.startswith("git@"):
        match = _SHORTHAND_RE.match(text)
        if match:
            embedded = normalize_repo_path(match.group(3))
            parsed = _build(DEFAULT_HOST, match.group(1), match.group(2), explicit_subpath or embedded)
            if parsed is None:
                raise InvalidSourceError("Invalid repository source")
            return parsed

    raise InvalidSourceError("Unsupported repository source format")
