"""Subprocess execution with rich error context.

This is the only module in cowpatch that spawns processes. Every git, npm and
gh invocation goes through one of the functions below, so failures carry the
full argument vector, captured stderr and the caller's intent, and tests have a
single seam to patch.

No retry or timeout logic lives here. Retrying is a business decision made by
the patch engine.
"""

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from cowpatch.core.errors import CommandError, VcsCommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryResult:
    """Outcome of a command whose failure is an expected answer, not an error."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_subprocess_with_context(
    cmd: Sequence[str],
    operation_context: str,
    cwd: Path | None = None,
    *,
    error_type: type[CommandError] = CommandError,
) -> subprocess.CompletedProcess[str]:
    """Execute subprocess with enriched error reporting.

    Wraps subprocess.run() and re-raises failures as CommandError (or the
    given subclass) carrying the operation context, argv and captured output.

    Args:
        cmd: Command and arguments to execute
        operation_context: Human-readable description of the operation,
            phrased to follow "Failed to ..."
        cwd: Working directory for command execution
        error_type: CommandError subclass to raise on failure

    Returns:
        CompletedProcess instance from subprocess.run()

    Raises:
        CommandError: If the command exits non-zero or cannot be found
    """
    logger.debug("run %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        return subprocess.run(
            list(cmd),
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise error_type(
            cmd,
            operation_context,
            e.returncode,
            stderr=e.stderr or "",
            stdout=e.stdout or "",
        ) from e
    except FileNotFoundError as e:
        raise error_type(cmd, operation_context, None) from e


def run_git(args: Sequence[str], operation_context: str, cwd: Path) -> str:
    """Run `git <args>` in cwd and return its trimmed stdout.

    Raises:
        VcsCommandError: If git exits non-zero
    """
    result = run_subprocess_with_context(
        ["git", *args],
        operation_context=operation_context,
        cwd=cwd,
        error_type=VcsCommandError,
    )
    return result.stdout.strip()


def query_git(args: Sequence[str], cwd: Path) -> QueryResult:
    """Run `git <args>` without raising on a non-zero exit.

    Used for look-before-you-leap queries (does this ref exist, is this config
    key set) and for commands whose failure the caller handles as an outcome,
    such as a conflicting cherry-pick.
    """
    cmd = ["git", *args]
    logger.debug("query %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=False,
        )
    except FileNotFoundError as e:
        raise VcsCommandError(cmd, "run git", None) from e
    return QueryResult(
        returncode=result.returncode,
        stdout=result.stdout.strip(),
        stderr=result.stderr.strip(),
    )
