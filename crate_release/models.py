"""Data models for crate-release.

These Pydantic models represent the core data structures passed between the
workspace graph, the dependency updater and the release pipeline.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class PackageInfo(BaseModel):
    """Metadata for a single Cargo package.

    Attributes:
        name: Package name from [package].name.
        manifest_path: Absolute path to the package's Cargo.toml.
        version: Current version string (workspace-inherited versions are
                 already resolved).
        publish: False when the manifest sets ``publish = false``.
        is_root: True for the package declared in the root manifest itself.
        deps: Names of workspace members this package depends on.
    """

    name: str
    manifest_path: Path
    version: str
    publish: bool = True
    is_root: bool = False
    deps: list[str] = Field(default_factory=list)

    @property
    def path(self) -> Path:
        """Directory containing the package."""
        return self.manifest_path.parent

    @property
    def changelog_path(self) -> Path:
        return self.path / "CHANGELOG.md"

    @property
    def readme_path(self) -> Path:
        return self.path / "README.md"

    @property
    def has_changelog(self) -> bool:
        return self.changelog_path.exists()

    @property
    def has_readme(self) -> bool:
        return self.readme_path.exists()


class DependencyEdge(BaseModel):
    """One dependency declaration from a dependent on another member.

    Attributes:
        dependent: Name of the package declaring the dependency.
        dependency: Name of the workspace member being depended on.
        key: Key used in the dependency table (differs from ``dependency``
             when the dependency is renamed with ``package = "..."``).
        table: Dotted path of the table holding the declaration, e.g.
               "dependencies" or "target.cfg(unix).dev-dependencies".
        requirement: Version requirement, or None for version-less (e.g.
                     path-only) dependencies.
    """

    dependent: str
    dependency: str
    key: str
    table: str
    requirement: str | None = None


class Workspace(BaseModel):
    """A root manifest plus its member packages.

    A plain (non-workspace) package is represented as a workspace with one
    member.  ``edges`` only lists dependencies between members.
    """

    root_manifest: Path
    virtual: bool = False
    packages: dict[str, PackageInfo] = Field(default_factory=dict)
    edges: list[DependencyEdge] = Field(default_factory=list)

    @property
    def root(self) -> Path:
        return self.root_manifest.parent

    @property
    def lockfile(self) -> Path:
        return self.root / "Cargo.lock"

    @property
    def is_workspace(self) -> bool:
        return self.virtual or len(self.packages) > 1

    def dependents_of(self, name: str) -> list[DependencyEdge]:
        """All edges whose target is ``name``, in discovery order."""
        return [e for e in self.edges if e.dependency == name]

    def package_for_dir(self, directory: Path) -> PackageInfo | None:
        """Return the member whose directory contains ``directory``."""
        directory = directory.resolve()
        best: PackageInfo | None = None
        for info in self.packages.values():
            pkg_dir = info.path.resolve()
            if directory == pkg_dir or pkg_dir in directory.parents:
                if best is None or len(pkg_dir.parts) > len(best.path.resolve().parts):
                    best = info
        return best


class RequirementChange(BaseModel):
    """A dependent whose requirement on a bumped member was rewritten."""

    dependent: str
    dependency: str
    old: str
    new: str
