"""CLI entry point for crate-release."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from crate_release.config import load_config
from crate_release.errors import ReleaseError
from crate_release.git import Git
from crate_release.graph import discover_workspace, locate_project, topo_sort
from crate_release.models import PackageInfo, Workspace
from crate_release.pipeline import Release, begin_dev, select_package, set_msrv, tag_prefix
from crate_release.versions import Bump, parse_version

package_option = click.option(
    "-p",
    "--package",
    help="Workspace member to operate on (default: the one containing the cwd).",
)
config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file (default: ~/.config/crate-release.toml).",
)


@contextmanager
def _reporting_errors() -> Iterator[None]:
    try:
        yield
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc


def _load_project(package: str | None) -> tuple[Workspace, PackageInfo]:
    cwd = Path.cwd()
    workspace = discover_workspace(locate_project(cwd))
    return workspace, select_package(workspace, package, cwd)


@click.group()
@click.version_option(package_name="crate-release")
def cli() -> None:
    """Release Cargo packages and workspace members."""


@cli.command()
@click.argument("version", required=False)
@click.option("--major", "bump_level", flag_value=Bump.MAJOR.value, help="Release the next major version.")
@click.option("--minor", "bump_level", flag_value=Bump.MINOR.value, help="Release the next minor version.")
@click.option("--patch", "bump_level", flag_value=Bump.PATCH.value, help="Release the next patch version.")
@package_option
@config_option
def release(
    version: str | None,
    bump_level: str | None,
    package: str | None,
    config_path: Path | None,
) -> None:
    """Release a new version of a package.

    Without VERSION or a bump flag, the manifest version minus any
    prerelease suffix is released.
    """
    if version is not None and bump_level is not None:
        raise click.UsageError("VERSION cannot be combined with --major/--minor/--patch")
    with _reporting_errors():
        context = load_config(config_path)
        workspace, info = _load_project(package)
        explicit = parse_version(version.removeprefix("v")) if version else None
        report = Release(
            workspace,
            info.name,
            context,
            version=explicit,
            bump_level=Bump(bump_level) if bump_level else None,
            git=Git(info.path),
        ).run()
    if report.cancelled:
        click.echo(
            "Commit cancelled; the edited files were left in place and nothing "
            "was tagged or pushed."
        )


@cli.command("begin-dev")
@package_option
@config_option
def begin_dev_cmd(package: str | None, config_path: Path | None) -> None:
    """Start work on the next minor version."""
    with _reporting_errors():
        context = load_config(config_path)
        workspace, info = _load_project(package)
        dev = begin_dev(workspace, info.name, context, git=Git(info.path))
    if dev is not None:
        click.echo(f"✓ {info.name} is now at {dev}")


@cli.command("set-msrv")
@click.argument("msrv")
@package_option
def set_msrv_cmd(msrv: str, package: str | None) -> None:
    """Set the minimum supported Rust version."""
    with _reporting_errors():
        workspace, info = _load_project(package)
        set_msrv(workspace, info.name, msrv)
    click.echo(f"✓ {info.name} MSRV set to {msrv}")


def _describe(workspace: Workspace, info: PackageInfo) -> dict:
    data = info.model_dump(mode="json")
    data["tag_prefix"] = tag_prefix(workspace, info)
    data["has_changelog"] = info.has_changelog
    data["has_readme"] = info.has_readme
    return data


@cli.command()
@click.option("--workspace", "whole", is_flag=True, help="Describe every member.")
@package_option
def inspect(whole: bool, package: str | None) -> None:
    """Print a JSON description of the project."""
    with _reporting_errors():
        if whole:
            workspace = discover_workspace(locate_project(Path.cwd()))
            data = {
                "root_manifest": str(workspace.root_manifest),
                "virtual": workspace.virtual,
                "packages": [
                    _describe(workspace, workspace.packages[name])
                    for name in topo_sort(workspace.packages)
                ],
                "edges": [e.model_dump(mode="json") for e in workspace.edges],
            }
        else:
            workspace, info = _load_project(package)
            data = _describe(workspace, info)
    click.echo(json.dumps(data, indent=2))
