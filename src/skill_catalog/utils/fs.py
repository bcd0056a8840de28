"""Filesystem helpers for copying untrusted skill directories."""

import logging
import os
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from skill_catalog.utils.paths import ensure_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyPolicy:
    """Rules applied to every entry while walking a source tree.

    Attributes:
        reject_symlinks: Fail the copy when any symbolic link is found
        confine_to_source: Fail the copy when an entry's real parent
            directory escapes the real source root
    """

    reject_symlinks: bool = True
    confine_to_source: bool = True


@dataclass(frozen=True)
class CopyResult:
    """Outcome of a tree copy.

    Attributes:
        ok: True if every entry was copied
        error: Why the copy stopped, when ok is False
        path: The source entry that caused the failure
    """

    ok: bool
    error: Optional[str] = None
    path: Optional[Path] = None


_COPIED = CopyResult(ok=True)


def safe_rmtree(path: Path) -> None:
    """Remove a directory tree, ignoring any error."""
    shutil.rmtree(path, ignore_errors=True)


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree at ``path``.

    A symlink is unlinked and never followed, so nothing outside ``path``
    is touched.

    Raises:
        OSError: If an existing entry could not be removed
    """
    if path.is_symlink() or not path.is_dir():
        path.unlink(missing_ok=True)
    else:
        shutil.rmtree(path)


def _is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def _check_entry(entry: Path, st: os.stat_result, real_root: str, policy: CopyPolicy) -> CopyResult:
    if policy.reject_symlinks and stat.S_ISLNK(st.st_mode):
        return CopyResult(ok=False, error="Symlinks are not supported in skills", path=entry)

    if policy.confine_to_source:
        real_parent = os.path.realpath(entry.parent)
        if not _is_within(real_parent, real_root):
            return CopyResult(ok=False, error="Invalid source path traversal detected", path=entry)

    return _COPIED


def _copy_file(src: Path, dst: Path, mode: int) -> None:
    ensure_dir(dst.parent)
    shutil.copyfile(src, dst)
    try:
        os.chmod(dst, stat.S_IMODE(mode) & 0o777)
    except OSError:
        logger.debug("Could not preserve permissions on %s", dst)


def _walk(src: Path, dst: Path, real_root: str, policy: CopyPolicy) -> CopyResult:
    for entry in sorted(src.iterdir()):
        st = entry.lstat()
        checked = _check_entry(entry, st, real_root, policy)
        if not checked.ok:
            return checked

        target = dst / entry.name
        if stat.S_ISDIR(st.st_mode):
            ensure_dir(target)
            result = _walk(entry, target, real_root, policy)
            if not result.ok:
                return result
        elif stat.S_ISREG(st.st_mode):
            _copy_file(entry, target, st.st_mode)
        # sockets, fifos and devices are not part of a skill

    return _COPIED


def copy_tree(src: Path, dst: Path, policy: CopyPolicy = CopyPolicy()) -> CopyResult:
    """Recursively copy ``src`` into ``dst`` under ``policy``.

    The walk stops at the first entry the policy rejects; files already
    written are left in place so the caller decides how to clean up.
    OS errors raised while reading or writing are reported as a failed
    result rather than propagated.

    Args:
        src: Source directory
        dst: Destination directory (created if missing)
        policy: Entry rules, symlinks and escapes rejected by default

    Returns:
        CopyResult describing success or the first failure
    """
    try:
        if policy.reject_symlinks and src.is_symlink():
            return CopyResult(ok=False, error="Symlinks are not supported in skills", path=src)
        real_root = os.path.realpath(src)
        ensure_dir(dst)
        return _walk(src, dst, real_root, policy)
    except OSError as e:
        return CopyResult(ok=False, error=f"Failed to copy skill files: {e}", path=src)
