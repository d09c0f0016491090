"""Shell, git and gh utilities.

Provides simple wrappers around subprocess calls for running external tools,
plus output formatting helpers.  Every failed command raises
ExternalToolError carrying the tool's stderr verbatim.
"""

from __future__ import annotations

import shlex
import subprocess
from pathlib import Path

from .errors import ExternalToolError


def _capture(
    argv: list[str], check: bool, cwd: Path | None, input: str | None
) -> subprocess.CompletedProcess[str]:
    try:
        result = subprocess.run(
            argv, capture_output=True, text=True, cwd=cwd, input=input
        )
    except FileNotFoundError as exc:
        raise ExternalToolError(shlex.join(argv), stderr=str(exc)) from exc
    if check and result.returncode != 0:
        raise ExternalToolError(shlex.join(argv), result.returncode, result.stderr)
    return result


def git(*args: str, check: bool = True, cwd: Path | None = None) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
        cwd: Directory to run in; defaults to the current directory.

    Returns:
        Stripped stdout from the git command.

    Raises:
        ExternalToolError: If ``check`` is set and git exits non-zero.
    """
    return _capture(["git", *args], check, cwd, None).stdout.strip()


def gh(*args: str, input: str | None = None, cwd: Path | None = None) -> str:
    """Run a GitHub CLI command and return stdout.

    Args:
        *args: Arguments to pass to gh (e.g., "api", "repos/o/r/topics").
        input: Text fed to the command's stdin (``gh api --input -``).
        cwd: Directory to run in.

    Raises:
        ExternalToolError: If gh exits non-zero.
    """
    return _capture(["gh", *args], True, cwd, input).stdout.strip()


def run(*args: str, check: bool = True, cwd: Path | None = None) -> int:
    """Run an arbitrary command.

    Unlike git(), this doesn't capture output - it streams directly to
    the terminal so users can see build/upload progress.

    Args:
        *args: Command and arguments (e.g., "cargo", "publish").
        check: If True (default), raise on non-zero exit.
        cwd: Directory to run in.

    Returns:
        The command's exit status.

    Raises:
        ExternalToolError: If ``check`` is set and the command fails.
    """
    try:
        result = subprocess.run(args, cwd=cwd)
    except FileNotFoundError as exc:
        raise ExternalToolError(shlex.join(args), stderr=str(exc)) from exc
    if check and result.returncode != 0:
        raise ExternalToolError(shlex.join(args), result.returncode)
    return result.returncode


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the states of the release pipeline in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")

