"""Git operations used by the release pipeline.

All commands run in the repository given at construction time through the
``git()`` helper in ``shell``, except the interactive commit, which has to
leave the terminal attached for the editor.
"""

from __future__ import annotations

import shlex
import subprocess
import tempfile
from pathlib import Path

from .errors import ExternalToolError
from .shell import git


class Git:
    def __init__(self, path: Path) -> None:
        self.path = path

    def _git(self, *args: str, check: bool = True) -> str:
        return git(*args, check=check, cwd=self.path)

    def toplevel(self) -> Path:
        return Path(self._git("rev-parse", "--show-toplevel"))

    def latest_tag(self, prefix: str | None = None) -> str | None:
        """Most recently created tag, optionally limited to ``{prefix}/*``."""
        args = ["tag", "-l", "--sort=-creatordate"]
        if prefix:
            args.append(f"{prefix}/*")
        tags = self._git(*args).splitlines()
        return tags[0] if tags else None

    def tag_exists(self, tag: str) -> bool:
        return self._git("tag", "-l", tag) == tag

    def commit(
        self,
        template: str,
        author: str | None = None,
        author_email: str | None = None,
    ) -> bool:
        """Commit all modified tracked files, letting the user edit the message.

        The editor is seeded with ``template``.  Git refuses to commit when
        the message is left empty or unedited; that is reported as False
        rather than an error.

        Returns:
            True if a commit was made.

        Raises:
            ExternalToolError: If git fails for any other reason.
        """
        identity: list[str] = []
        if author:
            identity += ["-c", f"user.name={author}"]
        if author_email:
            identity += ["-c", f"user.email={author_email}"]
        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False) as fp:
            fp.write(template)
            template_path = Path(fp.name)
        argv = [
            "git",
            *identity,
            "commit",
            "-a",
            "-v",
            "--template",
            str(template_path),
        ]
        try:
            result = subprocess.run(argv, cwd=self.path, stderr=subprocess.PIPE, text=True)
        finally:
            template_path.unlink(missing_ok=True)
        if result.returncode == 0:
            return True
        if "Aborting commit" in result.stderr:
            return False
        raise ExternalToolError(shlex.join(argv), result.returncode, result.stderr)

    def create_signed_tag(self, tag: str, message: str, sign: bool = True) -> None:
        self._git("tag", "-s" if sign else "-a", "-m", message, tag)

    def push(self, remote: str, branch: str, tag: str) -> None:
        self._git("push", remote, branch, tag)

    def commit_years(self, path: Path | None = None) -> set[int]:
        """Years in which commits touched ``path`` (the whole repo if None)."""
        args = ["log", "--format=%ad", "--date=format:%Y"]
        if path is not None:
            args += ["--", str(path)]
        out = self._git(*args)
        return {int(y) for y in out.split()}

    def remote_url(self, remote: str) -> str | None:
        url = self._git("remote", "get-url", remote, check=False)
        return url or None

    def current_branch(self) -> str:
        return self._git("symbolic-ref", "--short", "HEAD")

    def untracked_files(self) -> list[str]:
        """Untracked, non-ignored files relative to the repository root."""
        out = self._git(
            "ls-files", "-z", "--others", "--exclude-standard", "--full-name", ":/"
        )
        return [p for p in out.split("\0") if p]

    def commit_message(self, ref: str) -> tuple[str, str]:
        """(subject, body) of the commit ``ref`` points at."""
        out = self._git("show", "-s", "--format=%s%x00%b", f"{ref}^{{commit}}")
        subject, _, body = out.partition("\0")
        return subject, body.strip()
