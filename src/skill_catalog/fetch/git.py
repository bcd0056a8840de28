"""Non-interactive git subprocess runner."""

import asyncio
import logging
import os
import re
import shlex
import shutil
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from skill_catalog.errors import AuthRequiredError, NetworkError, ToolUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_BUFFER = 4 * 1024 * 1024
PROBE_TIMEOUT = 5.0
CLONE_TIMEOUT = 90.0

_AUTH_ERROR_RE = re.compile(
    r"permission denied"
    r"|publickey"
    r"|could not read from remote repository"
    r"|authentication failed"
    r"|fatal: could not",
    re.IGNORECASE,
)


def looks_like_auth_error(text: Optional[str]) -> bool:
    """Return True if a git failure message points at missing credentials."""
    return bool(_AUTH_ERROR_RE.search(text or ""))


@dataclass(frozen=True)
class Identity:
    """Credential reference used for every git call of one request.

    Attributes:
        id: Identifier of the configured git identity, if any
        ssh_key_path: Private key passed to ssh for git transports
    """

    id: Optional[str] = None
    ssh_key_path: Optional[str] = None

    @property
    def ssh_key(self) -> Optional[str]:
        key = (self.ssh_key_path or "").strip()
        return key or None


@dataclass
class GitResult:
    """Outcome of one git invocation."""

    ok: bool
    stdout: str = ""
    stderr: str = ""
    message: Optional[str] = None
    exit_code: Optional[int] = None
    signal: Optional[str] = None

    @property
    def error_text(self) -> str:
        """Combined stderr and failure message, for classification and display."""
        return f"{self.stderr}\n{self.message or ''}".strip()


class _OutputLimitExceeded(Exception):
    pass


class _Capture:
    """Collects stdout and stderr under one shared byte ceiling."""

    def __init__(self, limit: int):
        self.limit = limit
        self.stdout = bytearray()
        self.stderr = bytearray()

    async def drain(self, stream: asyncio.StreamReader, sink: bytearray) -> None:
        while True:
            chunk = await stream.read(65536)
            if not chunk:
                return
            sink.extend(chunk)
            if len(self.stdout) + len(self.stderr) > self.limit:
                raise _OutputLimitExceeded()

    def decoded(self) -> tuple[str, str]:
        return (
            self.stdout.decode("utf-8", errors="replace"),
            self.stderr.decode("utf-8", errors="replace"),
        )


def _signal_name(returncode: Optional[int]) -> Optional[str]:
    if returncode is None or returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return str(-returncode)


class GitRunner:
    """Runs git without ever prompting.

    Terminal and credential prompts are disabled through the per-call
    environment, so a stalled network call ends at its timeout instead of
    waiting for input.
    """

    def __init__(self, executable: str = "git", env: Optional[dict[str, str]] = None):
        """Initialize the runner.

        Args:
            executable: git executable name or path
            env: Extra environment variables applied to every call, on top
                of the inherited process environment
        """
        self.executable = executable
        self.env = dict(env or {})

    def build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    def build_args(self, args: list[str], identity: Optional[Identity] = None) -> list[str]:
        """Prepend the ssh transport override when the identity has a key."""
        key = identity.ssh_key if identity else None
        if not key:
            return list(args)
        ssh_command = (
            f"ssh -i {shlex.quote(key)} -o BatchMode=yes -o StrictHostKeyChecking=accept-new"
        )
        return ["-c", f"core.sshCommand={ssh_command}", *args]

    async def run(
        self,
        args: list[str],
        *,
        cwd: Optional[Path] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_buffer_bytes: int = DEFAULT_MAX_BUFFER,
        identity: Optional[Identity] = None,
    ) -> GitResult:
        """Run one git command.

        Never raises for a failing command: a non-zero exit, a timeout, an
        output overflow or a missing executable all produce ``ok=False``.

        Args:
            args: Arguments after the executable
            cwd: Working directory
            timeout: Seconds before the process is killed
            max_buffer_bytes: Ceiling on combined stdout and stderr
            identity: Optional credential reference

        Returns:
            GitResult with decoded output
        """
        argv = [self.executable, *self.build_args(args, identity)]
        command = " ".join(argv)
        logger.debug("Running %s", command)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd) if cwd else None,
                env=self.build_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return GitResult(ok=False, message=str(e))

        capture = _Capture(max_buffer_bytes)
        tasks = [
            asyncio.ensure_future(capture.drain(proc.stdout, capture.stdout)),
            asyncio.ensure_future(capture.drain(proc.stderr, capture.stderr)),
        ]

        failure: Optional[str] = None
        try:
            await asyncio.wait_for(asyncio.gather(*tasks, proc.wait()), timeout)
        except asyncio.TimeoutError:
            failure = f"Command timed out after {timeout:g}s: {command}"
        except _OutputLimitExceeded:
            failure = f"Output exceeded {max_buffer_bytes} bytes: {command}"

        if failure is not None:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            stdout, stderr = capture.decoded()
            logger.debug(failure)
            return GitResult(
                ok=False,
                stdout=stdout,
                stderr=stderr,
                message=failure,
                exit_code=proc.returncode if proc.returncode and proc.returncode > 0 else None,
                signal=_signal_name(proc.returncode),
            )

        stdout, stderr = capture.decoded()
        if proc.returncode != 0:
            return GitResult(
                ok=False,
                stdout=stdout,
                stderr=stderr,
                message=f"Command failed: {command}",
                exit_code=proc.returncode if proc.returncode > 0 else None,
                signal=_signal_name(proc.returncode),
            )
        return GitResult(ok=True, stdout=stdout, stderr=stderr)

    async def assert_available(self) -> None:
        """Raise ToolUnavailableError unless ``git --version`` succeeds."""
        result = await self.run(["--version"], timeout=PROBE_TIMEOUT)
        if not result.ok:
            logger.debug("git probe failed: %s", result.error_text)
            raise ToolUnavailableError("Git is not available in PATH")

    async def shallow_clone(
        self,
        url: str,
        dest: Path,
        *,
        identity: Optional[Identity] = None,
        timeout: float = CLONE_TIMEOUT,
    ) -> None:
        """Clone ``url`` into ``dest`` at depth one without checking out.

        A blob-filtered clone is tried first; some hosts reject filters, so
        an unfiltered clone is tried once more before giving up.

        Raises:
            AuthRequiredError: If the failure looks like missing credentials
            NetworkError: For any other clone failure
        """
        filtered = ["clone", "--depth", "1", "--filter=blob:none", "--no-checkout", url, str(dest)]
        result = await self.run(filtered, identity=identity, timeout=timeout)
        if result.ok:
            return

        logger.debug("Filtered clone of %s failed, retrying without filter", url)
        # a failed clone may leave a partial directory behind
        _clear_dir(dest)
        unfiltered = ["clone", "--depth", "1", "--no-checkout", url, str(dest)]
        result = await self.run(unfiltered, identity=identity, timeout=timeout)
        if result.ok:
            return

        text = result.error_text
        if looks_like_auth_error(text):
            raise AuthRequiredError()
        raise NetworkError(text or "Failed to clone repository")


def _clear_dir(path: Path) -> None:
    if not path.exists():
        return
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child, ignore_errors=True)
        else:
            child.unlink(missing_ok=True)
