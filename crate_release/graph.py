"""Workspace discovery and dependency graph utilities.

Builds a Workspace (members + inter-member dependency edges) from a root
Cargo.toml and provides topological ordering of its packages.  The graph is
cheap to rebuild and is recomputed from the manifests whenever a member's
version changes; it is never cached on disk.
"""

from __future__ import annotations

import glob
import heapq
from collections.abc import Callable
from pathlib import Path

import tomlkit

from .errors import (
    ManifestMissingFieldError,
    SyntaxFailure,
    WorkspaceError,
    WorkspaceMemberUnreadableError,
)
from .models import PackageInfo, Workspace
from .toml import (
    dependency_edges,
    get_package_name,
    get_version,
    get_workspace_excludes,
    get_workspace_member_globs,
    is_publishable,
    is_virtual_workspace,
    load_manifest,
)

ManifestLoader = Callable[[Path], tomlkit.TOMLDocument]

_GLOB_CHARS = set("*?[")


def locate_project(start: Path) -> Path:
    """Find the root manifest governing the directory ``start``.

    Walks upwards to the nearest Cargo.toml, then keeps walking to find an
    enclosing manifest with a [workspace] table.  The nearest manifest is
    returned if no workspace claims it.

    Raises:
        WorkspaceError: If no Cargo.toml exists in ``start`` or its parents.
    """
    start = start.resolve()
    nearest: Path | None = None
    for d in [start, *start.parents]:
        candidate = d / "Cargo.toml"
        if candidate.is_file():
            nearest = candidate
            break
    if nearest is None:
        raise WorkspaceError(f"could not find Cargo.toml in {start} or any parent")

    for d in nearest.parent.parents:
        candidate = d / "Cargo.toml"
        if not candidate.is_file():
            continue
        doc = load_manifest(candidate)
        if "workspace" not in doc:
            continue
        ws = discover_workspace(candidate)
        if ws.package_for_dir(nearest.parent) is not None:
            return candidate
    return nearest


def _member_dirs(root: Path, root_doc: tomlkit.TOMLDocument) -> list[Path]:
    """Expand [workspace].members globs, minus [workspace].exclude."""
    excluded = {(root / e).resolve() for e in get_workspace_excludes(root_doc)}
    dirs: list[Path] = []
    seen: set[Path] = set()
    for pattern in get_workspace_member_globs(root_doc):
        if _GLOB_CHARS & set(pattern):
            # Glob matches without a manifest are simply not packages
            matches = [
                Path(m)
                for m in sorted(glob.glob(str(root / pattern)))
                if (Path(m) / "Cargo.toml").is_file()
            ]
        else:
            matches = [root / pattern]
        for d in matches:
            resolved = d.resolve()
            if resolved in excluded or resolved in seen or resolved == root.resolve():
                continue
            seen.add(resolved)
            dirs.append(d)
    return dirs


def discover_workspace(
    root_manifest: Path, loader: ManifestLoader = load_manifest
) -> Workspace:
    """Scan a root manifest and discover all packages and their edges.

    Args:
        root_manifest: Path to the root Cargo.toml (workspace or package).
        loader: Returns the parsed document for a manifest path.  Callers
                holding unsaved edits pass a loader that serves them.

    Returns:
        The Workspace; a lone package yields a single-member workspace.

    Raises:
        WorkspaceMemberUnreadableError: If a declared member cannot be loaded.
    """
    root = root_manifest.parent
    root_doc = loader(root_manifest)
    virtual = is_virtual_workspace(root_doc)
    docs: dict[str, tomlkit.TOMLDocument] = {}
    packages: dict[str, PackageInfo] = {}

    def add(manifest: Path, doc: tomlkit.TOMLDocument, is_root: bool) -> None:
        name = get_package_name(doc)
        if name in packages:
            raise WorkspaceError(
                f"workspace contains multiple packages named {name!r}"
            )
        packages[name] = PackageInfo(
            name=name,
            manifest_path=manifest,
            version=get_version(doc, root_doc),
            publish=is_publishable(doc),
            is_root=is_root,
        )
        docs[name] = doc

    if not virtual:
        add(root_manifest, root_doc, True)

    if "workspace" in root_doc:
        for d in _member_dirs(root, root_doc):
            manifest = d / "Cargo.toml"
            try:
                doc = loader(manifest)
                add(manifest, doc, False)
            except (OSError, SyntaxFailure, ManifestMissingFieldError) as exc:
                raise WorkspaceMemberUnreadableError(
                    f"workspace member {d} could not be loaded: {exc}"
                ) from exc

    # Second pass: edges between members only
    members = set(packages)
    ws = Workspace(root_manifest=root_manifest, virtual=virtual, packages=packages)
    for name, doc in docs.items():
        for edge in dependency_edges(doc, name, members):
            ws.edges.append(edge)
            info = packages[name]
            if not edge.table.endswith("dev-dependencies") and (
                edge.dependency not in info.deps
            ):
                info.deps.append(edge.dependency)
    return ws


def topo_sort(packages: dict[str, PackageInfo]) -> list[str]:
    """Order packages so that every package follows its internal dependencies.

    Among packages whose dependencies are all placed, the alphabetically
    smallest goes next, so the order is stable across runs.  Dev-dependencies
    are not part of ``deps``, so the dev-dependency cycles Cargo permits do
    not count.

    Raises:
        WorkspaceError: If the normal/build dependencies form a cycle; the
            message spells the cycle out, e.g. ``a → b → a``.
    """
    waiting = {n: {d for d in info.deps if d in packages} for n, info in packages.items()}
    dependents: dict[str, list[str]] = {n: [] for n in packages}
    for name, deps in waiting.items():
        for dep in deps:
            dependents[dep].append(name)

    ready = [n for n, deps in waiting.items() if not deps]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        node = heapq.heappop(ready)
        order.append(node)
        for dependent in dependents[node]:
            waiting[dependent].discard(node)
            if not waiting[dependent]:
                heapq.heappush(ready, dependent)

    if len(order) != len(packages):
        # Whatever is left still waits on something that is also left
        stuck = {n: deps for n, deps in waiting.items() if deps}
        raise WorkspaceError(f"dependency cycle: {' → '.join(_find_cycle(stuck))}")
    return order


def _find_cycle(stuck: dict[str, set[str]]) -> list[str]:
    node = min(stuck)
    path: list[str] = []
    seen: dict[str, int] = {}
    while node not in seen:
        seen[node] = len(path)
        path.append(node)
        node = min(stuck[node])
    return path[seen[node] :] + [node]
