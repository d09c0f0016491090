"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from crate_release.config import ReleaseContext
from crate_release.git import Git
from crate_release.github import GitHub
from crate_release.readme import REPOSTATUS_DESCRIPTIONS

WIP_BADGE = (
    f"[![{REPOSTATUS_DESCRIPTIONS['wip']}]"
    "(https://www.repostatus.org/badges/latest/wip.svg)]"
    "(https://www.repostatus.org/#wip)"
)
MSRV_BADGE = (
    "[![Minimum Supported Rust Version](https://img.shields.io/badge/MSRV-1.70-orange)]"
    "(https://www.rust-lang.org)"
)
LICENSE = """\
The MIT License (MIT)

Copyright (c) 2023 Jane Doe

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software.
"""


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


@pytest.fixture
def context() -> ReleaseContext:
    return ReleaseContext(
        author="Jane Doe", author_email="jane@example.com", github_user="jdoe"
    )


@pytest.fixture
def single_package(tmp_path: Path) -> Path:
    """A lone package at 0.1.0-dev with an open changelog and a WIP badge."""
    root = tmp_path / "foo"
    write(
        root / "Cargo.toml",
        """\
[package]
name = "foo"
version = "0.1.0-dev"  # bumped by crate-release
edition = "2021"
rust-version = "1.70"

[dependencies]
serde = "1.0"
""",
    )
    write(
        root / "Cargo.lock",
        """\
version = 3

[[package]]
name = "foo"
version = "0.1.0-dev"
dependencies = [
 "serde",
]

[[package]]
name = "serde"
version = "1.0.200"
source = "registry+https://github.com/rust-lang/crates.io-index"
""",
    )
    write(
        root / "README.md",
        f"""\
{WIP_BADGE}
{MSRV_BADGE}

[GitHub](https://github.com/jdoe/foo)

Foo does things.
""",
    )
    write(
        root / "CHANGELOG.md",
        """\
v0.1.0 (in development)
-----------------------
- Added a feature
""",
    )
    write(root / "LICENSE", LICENSE)
    return root


@pytest.fixture
def workspace_project(tmp_path: Path) -> Path:
    """Virtual workspace: bar requires foo ^1.0, baz requires foo ^2."""
    root = tmp_path / "ws"
    write(root / "Cargo.toml", '[workspace]\nmembers = ["crates/*"]\nresolver = "2"\n')
    write(
        root / "crates" / "foo" / "Cargo.toml",
        '[package]\nname = "foo"\nversion = "1.4.0"\nedition = "2021"\n',
    )
    write(
        root / "crates" / "foo" / "CHANGELOG.md",
        "In Development\n--------------\n- Breaking change\n\n"
        "v1.4.0 (2024-02-01)\n-------------------\n- Old stuff\n",
    )
    write(
        root / "crates" / "bar" / "Cargo.toml",
        """\
[package]
name = "bar"
version = "0.2.0"
edition = "2021"

[dependencies]
foo = { path = "../foo", version = "^1.0" }
""",
    )
    write(
        root / "crates" / "bar" / "CHANGELOG.md",
        "v0.2.0 (2024-01-01)\n-------------------\nInitial release\n",
    )
    write(
        root / "crates" / "baz" / "Cargo.toml",
        """\
[package]
name = "baz"
version = "0.1.0"
edition = "2021"

[dependencies.foo]
path = "../foo"
version = "^2"
""",
    )
    write(
        root / "Cargo.lock",
        """\
version = 3

[[package]]
name = "bar"
version = "0.2.0"

[[package]]
name = "baz"
version = "0.1.0"

[[package]]
name = "foo"
version = "1.4.0"
""",
    )
    write(root / "LICENSE", LICENSE)
    return root


def fake_git(toplevel: Path, latest_tag: str | None = None) -> MagicMock:
    git = MagicMock(spec=Git)
    git.remote_url.return_value = f"git@github.com:jdoe/{toplevel.name}.git"
    git.latest_tag.return_value = latest_tag
    git.tag_exists.return_value = False
    git.commit.return_value = True
    git.commit_years.return_value = {2023, 2024}
    git.toplevel.return_value = toplevel
    git.current_branch.return_value = "main"
    git.untracked_files.return_value = []
    git.commit_message.return_value = ("v1 — Short description", "- Added a feature")
    return git


def fake_github(topics: list[str] | None = None) -> MagicMock:
    github = MagicMock(spec=GitHub)
    github.get_topics.return_value = topics if topics is not None else []
    github.create_release.return_value = "https://github.com/jdoe/foo/releases/tag/v1"
    return github
