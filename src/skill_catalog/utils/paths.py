"""Path utilities for expanding paths and mapping repository paths to disk."""

from pathlib import Path, PurePosixPath
from typing import Optional


def expand_path(path: str) -> Path:
    """Expand and normalize a path, resolving ~ and relative paths.

    Args:
        path: Path string that may contain ~ or be relative

    Returns:
        Absolute Path object
    """
    return Path(path).expanduser().resolve()


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The path that was ensured
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def normalize_repo_path(path: Optional[str]) -> Optional[str]:
    """Normalize a repository-relative POSIX path.

    Strips surrounding whitespace and slashes and drops empty segments.
    Returns None when nothing is left.
    """
    if path is None:
        return None
    parts = [part.strip() for part in str(path).split("/")]
    parts = [part for part in parts if part]
    if not parts:
        return None
    return "/".join(parts)


def repo_path_basename(path: str) -> str:
    """Return the last segment of a repository-relative POSIX path."""
    return PurePosixPath(normalize_repo_path(path) or "").name


def repo_path_to_fs(base: Path, path: str) -> Path:
    """Map a repository-relative POSIX path onto a checkout directory."""
    normalized = normalize_repo_path(path)
    if normalized is None:
        return base
    return base.joinpath(*normalized.split("/"))
