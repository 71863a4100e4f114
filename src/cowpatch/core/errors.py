"""Error taxonomy for cowpatch.

Every error carries structured fields in addition to its message so callers
can branch on the failure without parsing strings. The CLI boundary catches
CowpatchError, prints the message and exits non-zero; anything else is a bug
and propagates.
"""

from collections.abc import Sequence
from pathlib import Path


class CowpatchError(Exception):
    """Base class for all expected cowpatch failures."""


class CommandError(CowpatchError):
    """An external command exited non-zero (or could not be started)."""

    def __init__(
        self,
        argv: Sequence[str],
        operation_context: str,
        returncode: int | None,
        stderr: str = "",
        stdout: str = "",
    ):
        self.argv = tuple(argv)
        self.operation_context = operation_context
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout

        cmd_str = " ".join(self.argv)
        if returncode is None:
            message = f"Command not found while trying to {operation_context}: {self.argv[0]}"
            message += f"\nFull command: {cmd_str}"
        else:
            message = f"Failed to {operation_context}"
            message += f"\nCommand: {cmd_str}"
            message += f"\nExit code: {returncode}"
            if stdout.strip():
                message += f"\nstdout: {stdout.strip()}"
            if stderr.strip():
                message += f"\nstderr: {stderr.strip()}"
        super().__init__(message)


class VcsCommandError(CommandError):
    """A git invocation exited non-zero."""


class PatchNotFoundError(CowpatchError):
    """No portable commit exists for a patch, or the patch is not applied."""

    def __init__(self, patch_name: str, reason: str, repository: str | None = None):
        self.patch_name = patch_name
        self.reason = reason
        self.repository = repository
        super().__init__(f"Patch '{patch_name}' not found: {reason}")


class RepositoryError(CowpatchError):
    """A remote is missing, duplicated, misnamed or points at the wrong URL."""

    def __init__(self, message: str, repository: str | None = None):
        self.repository = repository
        super().__init__(message)


class MergeConflictError(CowpatchError):
    """Conflicts outside the lockfile set survived the cherry-pick fallback."""

    def __init__(self, patch_name: str, conflicted_paths: Sequence[str]):
        self.patch_name = patch_name
        self.conflicted_paths = tuple(conflicted_paths)
        paths = "\n".join(f"  {path}" for path in self.conflicted_paths)
        super().__init__(f"Unresolved merge conflicts while porting '{patch_name}':\n{paths}")


class ConfigError(CowpatchError):
    """Persisted local state or configuration could not be parsed."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"Invalid configuration at {path}: {message}")


class ProtectedBranchError(CowpatchError):
    """A mutating operation was attempted directly on a protected branch."""

    def __init__(self, branch: str, operation: str):
        self.branch = branch
        self.operation = operation
        super().__init__(
            f"Refusing to {operation} on protected branch '{branch}'. "
            f"Check out a working branch first."
        )


class IllegalTransitionError(CowpatchError):
    """The port state machine was asked to make a transition it does not allow."""

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Illegal port transition: {from_state} -> {to_state}")
