"""Exception hierarchy for crate-release.

Every failure the release engine can report derives from ReleaseError so the
CLI has a single place to turn them into a clean error message.  The four
families mirror how an operator has to react:

- SyntaxFailure: a file or string does not follow its grammar. Fix the file.
- StateFailure: the project is well-formed but not releasable as-is.
- ExternalToolError: git, gh or cargo failed.
- ConfigurationError: settings are missing; nothing has been touched yet.
"""

from __future__ import annotations

from pathlib import Path


class ReleaseError(Exception):
    """Base class for all errors raised by crate-release."""


class SyntaxFailure(ReleaseError):
    """A document or string violates its grammar.

    Attributes:
        path: File the offending text came from, if any.
        line: 1-based line number of the offending span, if known.
    """

    def __init__(
        self, message: str, *, path: Path | None = None, line: int | None = None
    ) -> None:
        self.path = path
        self.line = line
        self.message = message
        super().__init__(self._render())

    def _render(self) -> str:
        where = ""
        if self.path is not None:
            where = f"{self.path}"
            if self.line is not None:
                where += f":{self.line}"
            where += ": "
        elif self.line is not None:
            where = f"line {self.line}: "
        return f"{where}{self.message}"

    def with_path(self, path: Path) -> SyntaxFailure:
        """Return a copy of this error attributed to ``path``."""
        return type(self)(self.message, path=path, line=self.line)


class VersionSyntaxError(SyntaxFailure):
    pass


class TagSyntaxError(SyntaxFailure):
    pass


class RequirementSyntaxError(SyntaxFailure):
    pass


class ManifestSyntaxError(SyntaxFailure):
    pass


class ReadmeSyntaxError(SyntaxFailure):
    pass


class ChangelogSyntaxError(SyntaxFailure):
    pass


class StateFailure(ReleaseError):
    """The project is in a state that does not allow the requested action."""


class ManifestMissingFieldError(StateFailure):
    pass


class WorkspaceError(StateFailure):
    pass


class WorkspaceMemberUnreadableError(WorkspaceError):
    pass


class ChangelogOpenSectionMisplacedError(StateFailure):
    pass


class ChangelogAlreadyReleasedError(StateFailure):
    pass


class CopyrightLineMissingError(StateFailure):
    pass


class VersionResolutionError(StateFailure):
    pass


class ExternalToolError(ReleaseError):
    """An external command (git, gh, cargo) failed.

    The tool's own diagnostics are kept verbatim in ``stderr``.
    """

    def __init__(
        self, cmdline: str, returncode: int | None = None, stderr: str = ""
    ) -> None:
        self.cmdline = cmdline
        self.returncode = returncode
        self.stderr = stderr
        msg = f"Command failed: {cmdline}"
        if returncode is not None:
            msg += f" (exit status {returncode})"
        if stderr.strip():
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)


class ConfigurationError(ReleaseError):
    pass


class PartialReleaseError(ReleaseError):
    """A release failed after irreversible actions had already happened.

    Attributes:
        state: Name of the state that failed.
        completed: Names of the states that finished before the failure.
        cause: The underlying error.
    """

    def __init__(self, state: str, completed: list[str], cause: Exception) -> None:
        self.state = state
        self.completed = completed
        self.cause = cause
        done = ", ".join(completed) if completed else "nothing"
        super().__init__(
            f"Release failed during {state} (completed: {done}): {cause}\n"
            "Completed steps were not undone; finish the release manually."
        )
