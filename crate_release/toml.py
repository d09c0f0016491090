"""Cargo.toml / Cargo.lock reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying manifests.
Only the targeted scalar changes; everything else in the file (ordering,
comments, whitespace, quoting style) is kept byte-for-byte.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Mapping
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError
from tomlkit.items import String, StringType

from .errors import ManifestMissingFieldError, ManifestSyntaxError
from .models import DependencyEdge
from .versions import Version, requirement_accepts, rewrite_requirement

DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


def parse_manifest(text: str, path: Path | None = None) -> tomlkit.TOMLDocument:
    """Parse manifest text into a format-preserving TOMLDocument.

    Raises:
        ManifestSyntaxError: If the text is not valid TOML.
    """
    try:
        return tomlkit.parse(text)
    except ParseError as exc:
        raise ManifestSyntaxError(str(exc), path=path, line=exc.line) from exc


def load_manifest(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a Cargo.toml (or Cargo.lock) file."""
    return parse_manifest(path.read_bytes().decode(), path)


def dump_manifest(doc: tomlkit.TOMLDocument) -> str:
    return tomlkit.dumps(doc)


def save_manifest(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(dump_manifest(doc), newline="")


def _set_string(container: Any, key: str, value: str) -> None:
    """Assign a string value, keeping the quoting style of the old value."""
    old = container.get(key)
    if isinstance(old, String) and old.type in (StringType.SLL, StringType.MLL):
        container[key] = tomlkit.string(value, literal=True)
    else:
        container[key] = value


def _package_table(doc: Mapping[str, Any]) -> Any:
    pkg = doc.get("package")
    if not isinstance(pkg, Mapping):
        raise ManifestMissingFieldError("manifest has no [package] table")
    return pkg


def _workspace_package_table(workspace_doc: Mapping[str, Any] | None) -> Any:
    ws = workspace_doc.get("workspace") if workspace_doc is not None else None
    ws_pkg = ws.get("package") if isinstance(ws, Mapping) else None
    if not isinstance(ws_pkg, Mapping):
        raise ManifestMissingFieldError(
            "version is inherited from the workspace but the root manifest "
            "has no [workspace.package] table"
        )
    return ws_pkg


def _is_inherited(value: Any) -> bool:
    return isinstance(value, Mapping) and value.get("workspace") is True


def get_package_name(doc: Mapping[str, Any]) -> str:
    """Extract [package].name.

    Raises:
        ManifestMissingFieldError: If the manifest has no package name.
    """
    name = _package_table(doc).get("name")
    if not isinstance(name, str):
        raise ManifestMissingFieldError("manifest lacks package.name")
    return str(name)


def get_version(
    doc: Mapping[str, Any], workspace_doc: Mapping[str, Any] | None = None
) -> str:
    """Extract [package].version, resolving ``version.workspace = true``.

    Raises:
        ManifestMissingFieldError: If no version is declared.
    """
    value = _package_table(doc).get("version")
    if _is_inherited(value):
        value = _workspace_package_table(workspace_doc).get("version")
    if not isinstance(value, str):
        raise ManifestMissingFieldError("manifest lacks package.version")
    return str(value)


def version_is_inherited(doc: Mapping[str, Any]) -> bool:
    return _is_inherited(_package_table(doc).get("version"))


def set_version(
    doc: tomlkit.TOMLDocument,
    version: Version | str,
    workspace_doc: tomlkit.TOMLDocument | None = None,
) -> None:
    """Rewrite the package version scalar.

    When the version is inherited from the workspace, the root manifest's
    ``[workspace.package].version`` is rewritten instead and ``doc`` is left
    untouched.
    """
    pkg = _package_table(doc)
    if _is_inherited(pkg.get("version")):
        _set_string(_workspace_package_table(workspace_doc), "version", str(version))
    else:
        _set_string(pkg, "version", str(version))


def is_publishable(doc: Mapping[str, Any]) -> bool:
    """False when the manifest sets ``publish = false`` or ``publish = []``."""
    publish = doc.get("package", {}).get("publish", True)
    if isinstance(publish, bool):
        return publish
    if isinstance(publish, list):
        return len(publish) > 0
    return True


def get_rust_version(doc: Mapping[str, Any]) -> str | None:
    value = doc.get("package", {}).get("rust-version")
    return str(value) if isinstance(value, str) else None


def set_rust_version(doc: tomlkit.TOMLDocument, msrv: str) -> None:
    _set_string(_package_table(doc), "rust-version", msrv)


def is_virtual_workspace(doc: Mapping[str, Any]) -> bool:
    """True when the manifest only declares a workspace, with no package."""
    return "package" not in doc and isinstance(doc.get("workspace"), Mapping)


def get_workspace_member_globs(doc: Mapping[str, Any]) -> list[str]:
    """Extract workspace member glob patterns from [workspace].members."""
    ws = doc.get("workspace", {})
    return [str(m) for m in ws.get("members", [])]


def get_workspace_excludes(doc: Mapping[str, Any]) -> list[str]:
    ws = doc.get("workspace", {})
    return [str(m) for m in ws.get("exclude", [])]


def _iter_dependency_tables(doc: Mapping[str, Any]) -> Iterator[tuple[str, Any]]:
    """Yield (dotted table path, table) for every dependency table.

    Covers [dependencies], [dev-dependencies], [build-dependencies] and
    their [target.'cfg(...)'.*] variants.
    """
    for name in DEPENDENCY_TABLES:
        table = doc.get(name)
        if isinstance(table, Mapping):
            yield name, table
    targets = doc.get("target")
    if isinstance(targets, Mapping):
        for cfg, target in targets.items():
            if not isinstance(target, Mapping):
                continue
            for name in DEPENDENCY_TABLES:
                table = target.get(name)
                if isinstance(table, Mapping):
                    yield f"target.{cfg}.{name}", table


def _dependency_target(key: str, spec: Any) -> str:
    """Name of the package a dependency entry refers to (honors renames)."""
    if isinstance(spec, Mapping) and isinstance(spec.get("package"), str):
        return str(spec["package"])
    return key


def _requirement_of(spec: Any) -> str | None:
    if isinstance(spec, str):
        return str(spec)
    if isinstance(spec, Mapping) and isinstance(spec.get("version"), str):
        return str(spec["version"])
    return None


def dependency_edges(
    doc: Mapping[str, Any], dependent: str, members: Collection[str]
) -> list[DependencyEdge]:
    """Collect the dependencies of ``dependent`` on other workspace members.

    Args:
        doc: The dependent's parsed Cargo.toml.
        dependent: The dependent's package name.
        members: Names of all workspace members; other deps are ignored.

    Returns:
        One edge per declaration, in file order.
    """
    edges: list[DependencyEdge] = []
    for table_path, table in _iter_dependency_tables(doc):
        for key, spec in table.items():
            target = _dependency_target(str(key), spec)
            if target not in members or target == dependent:
                continue
            edges.append(
                DependencyEdge(
                    dependent=dependent,
                    dependency=target,
                    key=str(key),
                    table=table_path,
                    requirement=_requirement_of(spec),
                )
            )
    return edges


def rewrite_requirements(
    doc: tomlkit.TOMLDocument, dep_name: str, new_version: Version
) -> list[tuple[str, str]]:
    """Rewrite every requirement on ``dep_name`` that rejects ``new_version``.

    Requirements that already accept the new version are left alone, and
    dependencies without a ``version`` key never gain one.

    Returns:
        (old, new) requirement pairs for each rewritten declaration.
    """
    changes: list[tuple[str, str]] = []
    for _, table in _iter_dependency_tables(doc):
        for key in list(table.keys()):
            spec = table[key]
            if _dependency_target(str(key), spec) != dep_name:
                continue
            old = _requirement_of(spec)
            if old is None or requirement_accepts(old, new_version):
                continue
            new = rewrite_requirement(old, new_version)
            if isinstance(spec, str):
                _set_string(table, key, new)
            else:
                _set_string(spec, "version", new)
            changes.append((old, new))
    return changes


def update_requirement(
    doc: tomlkit.TOMLDocument, dep_name: str, new_version: Version
) -> bool:
    """Rewrite requirements on ``dep_name`` if needed; return whether any changed."""
    return bool(rewrite_requirements(doc, dep_name, new_version))


def set_lock_version(
    lock_doc: tomlkit.TOMLDocument, package_name: str, version: Version | str
) -> bool:
    """Set the version of a local package entry in Cargo.lock.

    Registry entries (those with a ``source``) are never touched.  A package
    missing from the lockfile is not an error.

    Returns:
        True if an entry was rewritten.
    """
    for entry in lock_doc.get("package", []):
        if entry.get("name") == package_name and "source" not in entry:
            _set_string(entry, "version", str(version))
            return True
    return False
