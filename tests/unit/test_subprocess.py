"""Tests for subprocess wrapper with rich error context."""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from cowpatch.core.errors import CommandError, VcsCommandError
from cowpatch.core.subprocess import query_git, run_git, run_subprocess_with_context


def test_success_case_returns_completed_process() -> None:
    """Test that successful subprocess execution returns CompletedProcess."""
    with patch("cowpatch.core.subprocess.subprocess.run") as mock_run:
        mock_result = Mock(spec=subprocess.CompletedProcess)
        mock_result.returncode = 0
        mock_result.stdout = "success output"
        mock_result.stderr = ""
        mock_run.return_value = mock_result

        result = run_subprocess_with_context(
            ["git", "status"],
            operation_context="check git status",
            cwd=Path("/repo"),
        )

        assert result == mock_result
        mock_run.assert_called_once_with(
            ["git", "status"],
            cwd=Path("/repo"),
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=True,
        )


def test_failure_with_stderr_includes_stderr_in_error() -> None:
    """Test that subprocess failure with stderr includes stderr in error message."""
    with patch("cowpatch.core.subprocess.subprocess.run") as mock_run:
        mock_run.side_effect = subprocess.CalledProcessError(
            returncode=1,
            cmd=["git", "checkout", "nonexistent"],
            stderr="error: pathspec 'nonexistent' did not match any file(s) known to git",
        )

        with pytest.raises(CommandError) as exc_info:
            run_subprocess_with_context(
                ["git", "checkout", "nonexistent"],
                operation_context="checkout branch 'nonexistent'",
                cwd=Path("/repo"),
            )

        error_message = str(exc_info.value)
        assert "Failed to checkout branch 'nonexistent'" in error_message
        assert "Command: git checkout nonexistent" in error_message
        assert "Exit code: 1" in error_message
        assert (
            "stderr: error: pathspec 'nonexistent' did not match any file(s) known to git"
            in error_message
        )
        assert exc_info.value.returncode == 1
        assert exc_info.value.argv == ("git", "checkout", "nonexistent")


def test_failure_with_empty_stderr_omits_stderr_line() -> None:
    """Test that subprocess failure with whitespace stderr omits the stderr line."""
    with patch("cowpatch.core.subprocess.subprocess.run") as mock_run:
        mock_run.side_effect = subprocess.CalledProcessError(
            returncode=1,
            cmd=["command"],
            stderr="   \n  ",
        )

        with pytest.raises(CommandError) as exc_info:
            run_subprocess_with_context(["command"], operation_context="run command")

        error_message = str(exc_info.value)
        assert "Failed to run command" in error_message
        assert "stderr:" not in error_message


def test_missing_executable_reports_command_not_found() -> None:
    with patch("cowpatch.core.subprocess.subprocess.run") as mock_run:
        mock_run.side_effect = FileNotFoundError("npm")

        with pytest.raises(CommandError) as exc_info:
            run_subprocess_with_context(
                ["npm", "install"], operation_context="regenerate package-lock.json"
            )

        assert exc_info.value.returncode is None
        assert "Command not found while trying to regenerate package-lock.json: npm" in str(
            exc_info.value
        )


def test_exception_chaining_preserved() -> None:
    """Test that original CalledProcessError is preserved via exception chaining."""
    with patch("cowpatch.core.subprocess.subprocess.run") as mock_run:
        original_error = subprocess.CalledProcessError(
            returncode=1,
            cmd=["git", "status"],
            stderr="fatal: not a git repository",
        )
        mock_run.side_effect = original_error

        with pytest.raises(CommandError) as exc_info:
            run_subprocess_with_context(["git", "status"], operation_context="check git status")

        assert exc_info.value.__cause__ is original_error


def test_run_git_raises_vcs_error_and_strips_output() -> None:
    """run_git prefixes git, trims stdout and raises VcsCommandError."""
    with patch("cowpatch.core.subprocess.subprocess.run") as mock_run:
        mock_result = Mock(spec=subprocess.CompletedProcess)
        mock_result.stdout = "main\n"
        mock_run.return_value = mock_result

        assert run_git(["branch", "--show-current"], "get branch", Path("/repo")) == "main"
        assert mock_run.call_args.args[0] == ["git", "branch", "--show-current"]

        mock_run.side_effect = subprocess.CalledProcessError(
            returncode=128, cmd=["git"], stderr="fatal"
        )
        with pytest.raises(VcsCommandError):
            run_git(["status"], "check status", Path("/repo"))


def test_query_git_reports_failure_without_raising() -> None:
    with patch("cowpatch.core.subprocess.subprocess.run") as mock_run:
        mock_result = Mock(spec=subprocess.CompletedProcess)
        mock_result.returncode = 1
        mock_result.stdout = ""
        mock_result.stderr = "error: could not apply abc123\n"
        mock_run.return_value = mock_result

        result = query_git(["cherry-pick", "abc123"], Path("/repo"))

        assert not result.ok
        assert result.stderr == "error: could not apply abc123"
        assert mock_run.call_args.kwargs["check"] is False
