"""Tests for crate_release.cli."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner
from conftest import fake_git, write

from crate_release.cli import cli
from crate_release.pipeline import ReleaseReport
from crate_release.versions import Bump, Version


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return write(
        tmp_path / "crate-release.toml",
        'author = "Jane Doe"\nauthor-email = "jane@example.com"\ngithub-user = "jdoe"\n',
    )


class TestRelease:
    @patch("crate_release.cli.Release")
    def test_bump_flag(
        self,
        mock_release: MagicMock,
        single_package: Path,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """The bump flag and package are handed to the pipeline."""
        monkeypatch.chdir(single_package)
        mock_release.return_value.run.return_value = ReleaseReport(package="foo")

        result = CliRunner().invoke(cli, ["release", "--minor", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        args, kwargs = mock_release.call_args
        assert args[1] == "foo"
        assert args[2].author == "Jane Doe"
        assert kwargs["bump_level"] is Bump.MINOR
        assert kwargs["version"] is None

    @patch("crate_release.cli.Release")
    def test_explicit_version(
        self,
        mock_release: MagicMock,
        single_package: Path,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(single_package)
        mock_release.return_value.run.return_value = ReleaseReport(package="foo")

        result = CliRunner().invoke(cli, ["release", "v1.2.3", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert mock_release.call_args.kwargs["version"] == Version(1, 2, 3)

    @patch("crate_release.cli.Release")
    def test_cancelled(
        self,
        mock_release: MagicMock,
        single_package: Path,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(single_package)
        mock_release.return_value.run.return_value = ReleaseReport(package="foo", cancelled=True)

        result = CliRunner().invoke(cli, ["release", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Commit cancelled" in result.output

    def test_version_with_bump_flag(self) -> None:
        result = CliRunner().invoke(cli, ["release", "1.0.0", "--major"])

        assert result.exit_code == 2
        assert "cannot be combined" in result.output

    def test_missing_config(
        self, single_package: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(single_package)

        result = CliRunner().invoke(cli, ["release", "--config", str(tmp_path / "none.toml")])

        assert result.exit_code == 1
        assert "could not read config file" in result.output


class TestBeginDev:
    @patch("crate_release.cli.Git")
    def test_member_from_cwd(
        self,
        mock_git_cls: MagicMock,
        workspace_project: Path,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        mock_git_cls.return_value = fake_git(workspace_project)
        monkeypatch.chdir(workspace_project / "crates" / "bar")

        result = CliRunner().invoke(cli, ["begin-dev", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "✓ bar is now at 0.3.0-dev" in result.output


class TestSetMsrv:
    def test_set_msrv(self, single_package: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(single_package)

        result = CliRunner().invoke(cli, ["set-msrv", "1.74"])

        assert result.exit_code == 0, result.output
        assert "✓ foo MSRV set to 1.74" in result.output
        assert 'rust-version = "1.74"' in (single_package / "Cargo.toml").read_text()

    def test_invalid(self, single_package: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(single_package)

        result = CliRunner().invoke(cli, ["set-msrv", "1.x"])

        assert result.exit_code == 1
        assert "invalid Rust version" in result.output


class TestInspect:
    def test_single_package(self, single_package: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(single_package)

        result = CliRunner().invoke(cli, ["inspect"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["name"] == "foo"
        assert data["version"] == "0.1.0-dev"
        assert data["tag_prefix"] is None
        assert data["has_changelog"]

    def test_workspace(self, workspace_project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(workspace_project)

        result = CliRunner().invoke(cli, ["inspect", "--workspace"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["virtual"]
        assert [p["name"] for p in data["packages"]] == ["foo", "bar", "baz"]
        assert {p["tag_prefix"] for p in data["packages"]} == {"foo", "bar", "baz"}
        assert {(e["dependent"], e["requirement"]) for e in data["edges"]} == {
            ("bar", "^1.0"),
            ("baz", "^2"),
        }

    def test_ambiguous_member(
        self, workspace_project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(workspace_project)

        result = CliRunner().invoke(cli, ["inspect"])

        assert result.exit_code == 1
        assert "--package" in result.output

    def test_named_member(self, workspace_project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(workspace_project)

        result = CliRunner().invoke(cli, ["inspect", "-p", "baz"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["deps"] == ["foo"]
