"""User settings for crate-release.

Settings live in ``~/.config/crate-release.toml``::

    author = "Jane Doe"
    author-email = "jane@example.com"
    github-user = "jdoe"
    remote = "origin"
    sign-tags = true

They are read once by the CLI and handed to the pipeline as an immutable
ReleaseContext; nothing below the CLI reads the environment.
"""

from __future__ import annotations

from pathlib import Path

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tomlkit.exceptions import ParseError

from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path("~/.config/crate-release.toml")


class ReleaseContext(BaseModel):
    """Process-wide settings for a release run.

    Attributes:
        author: Name used for release commits.
        author_email: Email used for release commits.
        github_user: GitHub account to assume when the remote URL does not
                     identify a repository.
        remote: Git remote to push to.
        sign_tags: Create GPG-signed tags (``git tag -s``) rather than
                   plain annotated ones.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    author: str = Field(min_length=1)
    author_email: str = Field(alias="author-email", min_length=1)
    github_user: str | None = Field(default=None, alias="github-user")
    remote: str = "origin"
    sign_tags: bool = Field(default=True, alias="sign-tags")


def load_config(path: Path | None = None) -> ReleaseContext:
    """Read settings from ``path`` (default ``~/.config/crate-release.toml``).

    Raises:
        ConfigurationError: If the file is missing, is not valid TOML, or
            lacks required settings.
    """
    path = (path or DEFAULT_CONFIG_PATH).expanduser()
    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigurationError(f"could not read config file {path}: {exc}") from exc
    try:
        data = tomlkit.parse(text).unwrap()
    except ParseError as exc:
        raise ConfigurationError(f"{path}: invalid TOML: {exc}") from exc
    try:
        return ReleaseContext.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"{path}: {problems}") from exc
