"""Propagation of a member's new version to its dependents.

When a workspace member's version changes, every other member whose
requirement on it no longer accepts the new version gets its requirement
rewritten, and a note about the bump lands in the dependent's CHANGELOG.
Propagation is a single hop: dependents of dependents are not touched, since
a rewritten requirement does not change the dependent's own version.
"""

from __future__ import annotations

from .buffer import FileBuffer
from .changelog import set_note
from .errors import RequirementSyntaxError
from .models import RequirementChange, Workspace
from .toml import rewrite_requirements
from .versions import Version


def dependency_note(dependency: str, requirement: str) -> str:
    return f"Increased minimum `{dependency}` version to `{requirement}`"


def update_dependents(
    workspace: Workspace,
    package_name: str,
    new_version: Version,
    buffer: FileBuffer,
) -> list[RequirementChange]:
    """Rewrite requirements on ``package_name`` that reject ``new_version``.

    Manifests and CHANGELOGs are edited through ``buffer``; nothing is
    written to disk here.

    Args:
        workspace: The workspace graph.
        package_name: The member whose version changed.
        new_version: Its new version.
        buffer: Staging area holding the documents to edit.

    Returns:
        One RequirementChange per rewritten declaration, in discovery order.

    Raises:
        RequirementSyntaxError: If a dependent declares a malformed requirement.
    """
    changes: list[RequirementChange] = []
    seen: set[str] = set()
    for edge in workspace.dependents_of(package_name):
        if edge.dependent in seen:
            continue
        seen.add(edge.dependent)
        info = workspace.packages[edge.dependent]
        doc = buffer.manifest(info.manifest_path)
        try:
            pairs = rewrite_requirements(doc, package_name, new_version)
        except RequirementSyntaxError as exc:
            raise exc.with_path(info.manifest_path) from exc
        if not pairs:
            continue
        for old, new in pairs:
            print(f"  {info.name}: {package_name} {old} → {new}")
            changes.append(
                RequirementChange(
                    dependent=info.name, dependency=package_name, old=old, new=new
                )
            )
        changelog = buffer.changelog(info.changelog_path)
        if changelog is not None:
            set_note(
                changelog,
                f"Increased minimum `{package_name}` version",
                dependency_note(package_name, pairs[-1][1]),
            )
    return changes
