"""Release pipeline: resolve → edit → commit → tag → publish → push → next dev.

This module orchestrates the crate-release process for one package of a
Cargo project (a lone package or a workspace member):

1. Resolve the version to release from the CLI, the latest tag and the
   manifest
2. Update Cargo.toml / Cargo.lock and the requirements of dependents
3. Date the open CHANGELOG section
4. Update README badges and header links
5. Extend the copyright years in LICENSE
6. Commit, letting the user write the message (cancelable)
7. Tag the release
8. Publish to crates.io with untracked files stashed away
9. Push the commit and tag
10. Create the GitHub release
11. Update the GitHub repository topics
12. Bump to the next development version

Steps 1-5 only edit documents held in a FileBuffer; nothing touches the disk
until the Commit step flushes it, so a failure before that point leaves the
working tree as it was.  From Commit on every failure is reported as a
PartialReleaseError and nothing already done is undone.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import date
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .buffer import FileBuffer
from .cargo import Cargo
from .changelog import (
    ChangelogHeader,
    body_of,
    new_changelog,
    prepend_section,
    release_top_section,
    set_note,
)
from .config import ReleaseContext
from .copyright import update_license_years
from .deps import update_dependents
from .errors import (
    ConfigurationError,
    CopyrightLineMissingError,
    PartialReleaseError,
    VersionResolutionError,
    VersionSyntaxError,
    WorkspaceError,
)
from .git import Git
from .github import GHRepo, GitHub
from .graph import discover_workspace
from .models import PackageInfo, RequirementChange, Workspace
from .shell import step
from .stash import stash_untracked
from .toml import (
    set_lock_version,
    set_rust_version,
    set_version,
    version_is_inherited,
)
from .versions import (
    Bump,
    Version,
    bump,
    compare,
    format_tag,
    is_prerelease,
    next_dev,
    parse_tag,
    parse_version,
    strip_prerelease,
)

RELEASE_WORKFLOW = Path(".github") / "workflows" / "release.yml"
WIP_TOPIC = "work-in-progress"
CRATES_TOPIC = "available-on-crates-io"

_MSRV_RE = re.compile(r"^\d+\.\d+(?:\.\d+)?$")

StashFactory = Callable[[Path, list[str]], AbstractContextManager]


class ReleaseState(str, Enum):
    RESOLVE_VERSION = "ResolveVersion"
    UPDATE_MANIFESTS = "UpdateManifests"
    UPDATE_CHANGELOG = "UpdateChangelog"
    UPDATE_README = "UpdateReadme"
    UPDATE_COPYRIGHT = "UpdateCopyright"
    COMMIT = "Commit"
    TAG = "Tag"
    PUBLISH = "Publish"
    PUSH = "Push"
    CREATE_HOSTED_RELEASE = "CreateHostedRelease"
    UPDATE_TOPICS = "UpdateTopics"
    BEGIN_NEXT_DEV = "BeginNextDev"
    DONE = "Done"


class StepResult(BaseModel):
    """Outcome of one pipeline state."""

    state: ReleaseState
    skipped: bool = False
    detail: str = ""


class ReleaseReport(BaseModel):
    """Everything a release run did, in order.

    Attributes:
        package: Name of the released package.
        version: The released version, once resolved.
        tag: The release tag name.
        next_version: The development version set afterwards.
        steps: One StepResult per state that ran.
        requirement_changes: Dependents' requirements rewritten on the way.
        cancelled: True if the user aborted the commit.
        release_url: URL of the created GitHub release, if any.
    """

    package: str
    version: str | None = None
    tag: str | None = None
    next_version: str | None = None
    steps: list[StepResult] = Field(default_factory=list)
    requirement_changes: list[RequirementChange] = Field(default_factory=list)
    cancelled: bool = False
    release_url: str | None = None

    @property
    def completed(self) -> list[str]:
        return [s.state.value for s in self.steps]


def commit_template(version: Version, notes: str | None) -> str:
    """Seed text for the release commit message.

    The first line must be deleted by the user; leaving the template as-is
    makes git abort the commit.
    """
    lines = ["DELETE THIS LINE", ""]
    if notes is not None:
        lines += [f"v{version} — INSERT SHORT DESCRIPTION HERE", "", notes.rstrip("\n")]
    else:
        lines.append(f"v{version} — Initial release")
    lines += [
        "",
        "# Write in Markdown.",
        "# The first line will be used as the release name.",
        "# The rest will be used as the release body.",
    ]
    return "\n".join(lines) + "\n"


def select_package(
    workspace: Workspace, name: str | None = None, cwd: Path | None = None
) -> PackageInfo:
    """Pick the package to operate on.

    An explicit ``name`` wins; otherwise the member containing ``cwd``, then
    the root package, then the only member.

    Raises:
        WorkspaceError: If the choice is ambiguous or ``name`` is unknown.
    """
    if name is not None:
        if name not in workspace.packages:
            raise WorkspaceError(f"no package named {name!r} in workspace")
        return workspace.packages[name]
    if cwd is not None:
        info = workspace.package_for_dir(cwd)
        if info is not None:
            return info
    roots = [p for p in workspace.packages.values() if p.is_root]
    if roots:
        return roots[0]
    if len(workspace.packages) == 1:
        return next(iter(workspace.packages.values()))
    raise WorkspaceError(
        "workspace has several packages; select one with --package or by "
        "running from its directory"
    )


def tag_prefix(workspace: Workspace, info: PackageInfo) -> str | None:
    """Workspace members are tagged ``{name}/v{version}``; lone packages ``v{version}``."""
    return info.name if workspace.is_workspace else None


def resolve_repo(git: Git, context: ReleaseContext, info: PackageInfo) -> GHRepo:
    """Determine the GitHub repository from the remote, else the configured user.

    Raises:
        ConfigurationError: If neither identifies a repository.
    """
    url = git.remote_url(context.remote)
    repo = GHRepo.from_url(url) if url else None
    if repo is not None:
        return repo
    if context.github_user:
        return GHRepo(owner=context.github_user, name=info.name)
    raise ConfigurationError(
        f"remote {context.remote!r} is not a GitHub repository and no "
        "github-user is configured"
    )


def changelog_url(git: Git, repo: GHRepo, info: PackageInfo) -> str:
    """Web URL of the package's CHANGELOG.md on the current branch."""
    toplevel = git.toplevel().resolve()
    rel = info.path.resolve().relative_to(toplevel).as_posix()
    path = "CHANGELOG.md" if rel == "." else f"{rel}/CHANGELOG.md"
    return f"{repo.html_url}/blob/{git.current_branch()}/{path}"


def current_version(info: PackageInfo) -> Version:
    try:
        return parse_version(info.version)
    except VersionSyntaxError as exc:
        raise exc.with_path(info.manifest_path) from exc


def apply_version(
    workspace: Workspace, name: str, version: Version, buffer: FileBuffer
) -> tuple[Workspace, list[RequirementChange]]:
    """Set ``name``'s version and propagate it through the workspace.

    Rewrites the manifest (or ``[workspace.package]`` for inherited
    versions), the local Cargo.lock entries and the requirements of direct
    dependents.  All edits go into ``buffer``.

    Returns:
        The workspace rebuilt from the edited manifests, and the rewritten
        requirements.
    """
    info = workspace.packages[name]
    doc = buffer.manifest(info.manifest_path)
    root_doc = buffer.manifest(workspace.root_manifest)
    set_version(doc, version, root_doc)
    print(f"  {name}: {info.version} → {version}")

    # An inherited version moves every member that inherits it
    affected = [name]
    if version_is_inherited(doc):
        affected = [
            other.name
            for other in workspace.packages.values()
            if other.name != name
            and "package" in buffer.manifest(other.manifest_path)
            and version_is_inherited(buffer.manifest(other.manifest_path))
        ]
        affected.insert(0, name)
        for other in affected[1:]:
            print(f"  {other}: {workspace.packages[other].version} → {version}")

    if buffer.exists(workspace.lockfile):
        lock = buffer.manifest(workspace.lockfile)
        for pkg in affected:
            if set_lock_version(lock, pkg, version):
                print(f"  Cargo.lock: {pkg} → {version}")

    changes: list[RequirementChange] = []
    for pkg in affected:
        changes += update_dependents(workspace, pkg, version, buffer)
    return discover_workspace(workspace.root_manifest, loader=buffer.manifest), changes


def begin_next_dev(
    workspace: Workspace,
    name: str,
    buffer: FileBuffer,
    *,
    released: Version | None = None,
    when: date | None = None,
    link: Callable[[], str] | None = None,
) -> tuple[Workspace, Version, list[RequirementChange]]:
    """Move a package on to its next development version.

    Sets ``next_dev`` of the current (or ``released``) version, updates
    dependents and opens a ``vX.Y.0 (in development)`` CHANGELOG section.
    When ``released`` is given and the package has no CHANGELOG, one is
    created with an "Initial release" entry for it.  ``link`` supplies the
    CHANGELOG URL added to the README header links.
    """
    info = workspace.packages[name]
    base = released if released is not None else current_version(info)
    dev = next_dev(base)
    workspace, changes = apply_version(workspace, name, dev, buffer)
    info = workspace.packages[name]

    chlog = buffer.changelog(info.changelog_path)
    if chlog is None and released is not None:
        chlog = new_changelog(released, when or date.today(), "Initial release")
        buffer.put(info.changelog_path, chlog)
        print("  Created CHANGELOG.md")
    if chlog is not None:
        top = chlog.top
        if top is None or not top.header.is_open:
            prepend_section(chlog, ChangelogHeader.in_progress(strip_prerelease(dev)))
            print(f"  Added CHANGELOG section for v{strip_prerelease(dev)}")
        readme = buffer.readme(info.readme_path)
        if readme is not None and link is not None and readme.ensure_changelog_link(link()):
            print("  Added Changelog link to README.md")
    return workspace, dev, changes


class Release:
    """Runs the release state machine for one package.

    Collaborators are injected so that tests can drive every state without
    touching git, GitHub or crates.io.

    Args:
        workspace: The project's workspace graph.
        package: Name of the package to release.
        context: User settings (identity, remote, signing).
        version: Explicit version to release, or None.
        bump_level: Bump the latest tag by this level, or None.
        git: Git wrapper for the repository.
        github: GitHub API wrapper.
        cargo: Cargo wrapper.
        stash: Context manager factory that moves untracked files aside.
        today: Release date; defaults to the local date.
    """

    def __init__(
        self,
        workspace: Workspace,
        package: str,
        context: ReleaseContext,
        *,
        version: Version | None = None,
        bump_level: Bump | None = None,
        git: Git,
        github: GitHub | None = None,
        cargo: Cargo | None = None,
        stash: StashFactory = stash_untracked,
        today: date | None = None,
    ) -> None:
        if version is not None and bump_level is not None:
            raise VersionResolutionError("an explicit version and a bump level are exclusive")
        self.workspace = workspace
        self.package = package
        self.context = context
        self.version = version
        self.bump_level = bump_level
        self.git = git
        self.github = github or GitHub()
        self.cargo = cargo or Cargo()
        self.stash = stash
        self.today = today or date.today()
        self.buffer = FileBuffer()
        self.report = ReleaseReport(package=package)
        self.repo: GHRepo | None = None
        self.new_version: Version | None = None
        self.tag: str | None = None
        self.notes: str | None = None
        self.activated = False
        self._handlers: dict[ReleaseState, Callable[[], StepResult]] = {
            ReleaseState.RESOLVE_VERSION: self.resolve_version,
            ReleaseState.UPDATE_MANIFESTS: self.update_manifests,
            ReleaseState.UPDATE_CHANGELOG: self.update_changelog,
            ReleaseState.UPDATE_README: self.update_readme,
            ReleaseState.UPDATE_COPYRIGHT: self.update_copyright,
            ReleaseState.COMMIT: self.commit,
            ReleaseState.TAG: self.create_tag,
            ReleaseState.PUBLISH: self.publish,
            ReleaseState.PUSH: self.push,
            ReleaseState.CREATE_HOSTED_RELEASE: self.create_hosted_release,
            ReleaseState.UPDATE_TOPICS: self.update_topics,
            ReleaseState.BEGIN_NEXT_DEV: self.begin_next_dev,
        }

    @property
    def info(self) -> PackageInfo:
        return self.workspace.packages[self.package]

    def run(self) -> ReleaseReport:
        """Execute the states in order.

        Returns:
            The report; ``cancelled`` is set if the user aborted the commit.

        Raises:
            ReleaseError: For failures before Commit.
            PartialReleaseError: For failures from Commit on.
        """
        self.repo = resolve_repo(self.git, self.context, self.info)
        irreversible = False
        for state, handler in self._handlers.items():
            irreversible = irreversible or state is ReleaseState.COMMIT
            try:
                result = handler()
            except Exception as exc:
                if irreversible:
                    raise PartialReleaseError(state.value, self.report.completed, exc) from exc
                raise
            self.report.steps.append(result)
            if self.report.cancelled:
                return self.report
        self.report.steps.append(StepResult(state=ReleaseState.DONE))
        print(f"\n{'=' * 60}\nReleased {self.package} {self.new_version}\n{'=' * 60}")
        return self.report

    # -- states ---------------------------------------------------------

    def resolve_version(self) -> StepResult:
        step("Resolving version")
        info = self.info
        current = current_version(info)
        prefix = tag_prefix(self.workspace, info)

        if self.version is not None:
            new = self.version
        else:
            latest = self.git.latest_tag(prefix)
            tag_version = parse_tag(latest, prefix) if latest else None
            print(f"  Latest tag: {latest or '<none>'}")
            if self.bump_level is not None:
                if tag_version is None:
                    raise VersionResolutionError("no release tag to bump")
                if is_prerelease(tag_version):
                    raise VersionResolutionError(
                        f"latest tag {latest} is a prerelease; cannot bump"
                    )
                new = bump(tag_version, self.bump_level)
                if is_prerelease(new):
                    raise VersionResolutionError(f"bumped version {new} is a prerelease")
            else:
                new = strip_prerelease(current)
                if tag_version is not None and compare(new, tag_version) <= 0:
                    raise VersionResolutionError(
                        f"manifest version {new} is not greater than latest "
                        f"tagged version {tag_version}"
                    )

        tag = format_tag(new, prefix)
        if self.git.tag_exists(tag) or (prefix is None and self.git.tag_exists(str(new))):
            raise VersionResolutionError(f"version {new} is already tagged")

        self.new_version = new
        self.tag = tag
        self.report.version = str(new)
        self.report.tag = tag
        print(f"  {info.name}: {current} → {new}")
        return StepResult(state=ReleaseState.RESOLVE_VERSION, detail=f"{current} → {new}")

    def update_manifests(self) -> StepResult:
        step("Updating manifests")
        assert self.new_version is not None
        if str(self.new_version) == self.info.version:
            print("  Version already set")
            return StepResult(state=ReleaseState.UPDATE_MANIFESTS, skipped=True)
        self.workspace, changes = apply_version(
            self.workspace, self.package, self.new_version, self.buffer
        )
        self.report.requirement_changes += changes
        touched = sorted({c.dependent for c in changes})
        detail = f"dependents updated: {', '.join(touched)}" if touched else ""
        return StepResult(state=ReleaseState.UPDATE_MANIFESTS, detail=detail)

    def update_changelog(self) -> StepResult:
        step("Updating CHANGELOG.md")
        chlog = self.buffer.changelog(self.info.changelog_path)
        if chlog is None:
            print("  No CHANGELOG.md")
            return StepResult(state=ReleaseState.UPDATE_CHANGELOG, skipped=True)
        release_top_section(chlog, self.new_version, self.today)
        self.notes = body_of(chlog, 0)
        print(f"  v{self.new_version} ({self.today.isoformat()})")
        return StepResult(state=ReleaseState.UPDATE_CHANGELOG)

    def update_readme(self) -> StepResult:
        step("Updating README.md")
        info = self.info
        readme = self.buffer.readme(info.readme_path)
        if readme is None:
            print("  No README.md")
            return StepResult(state=ReleaseState.UPDATE_README, skipped=True)
        changes = []
        if not is_prerelease(self.new_version) and readme.repostatus == "wip":
            readme.set_repostatus("active")
            self.activated = True
            changes.append("repostatus → active")
        if info.publish and readme.ensure_crates_links(info.name):
            changes.append("crates.io links")
        for change in changes:
            print(f"  {change}")
        return StepResult(state=ReleaseState.UPDATE_README, detail=", ".join(changes))

    def _license_path(self) -> Path:
        for directory in (self.info.path, self.workspace.root):
            candidate = directory / "LICENSE"
            if self.buffer.exists(candidate):
                return candidate
        raise CopyrightLineMissingError(f"no LICENSE file for {self.package}")

    def update_copyright(self) -> StepResult:
        step("Updating copyright years")
        path = self._license_path()
        # A workspace-wide LICENSE covers the history of the whole repository
        scope = self.info.path if path.parent == self.info.path else None
        years = self.git.commit_years(scope) | {self.today.year}
        text = self.buffer.text(path) or ""
        try:
            self.buffer.put(path, update_license_years(text, years))
        except CopyrightLineMissingError as exc:
            raise CopyrightLineMissingError(f"{path}: {exc}") from exc
        print(f"  {path}")
        return StepResult(state=ReleaseState.UPDATE_COPYRIGHT)

    def commit(self) -> StepResult:
        step("Committing")
        for path in self.buffer.flush():
            print(f"  Wrote {path}")
        # Later states start from what is on disk now
        self.buffer = FileBuffer()
        template = commit_template(self.new_version, self.notes)
        if not self.git.commit(template, self.context.author, self.context.author_email):
            print("  Commit cancelled")
            self.report.cancelled = True
            return StepResult(state=ReleaseState.COMMIT, detail="cancelled")
        return StepResult(state=ReleaseState.COMMIT)

    def create_tag(self) -> StepResult:
        step(f"Tagging {self.tag}")
        self.git.create_signed_tag(
            self.tag, f"Version {self.new_version}", sign=self.context.sign_tags
        )
        return StepResult(state=ReleaseState.TAG, detail=self.tag)

    def publish(self) -> StepResult:
        step("Publishing to crates.io")
        info = self.info
        if not info.publish:
            print("  publish = false; skipping")
            return StepResult(state=ReleaseState.PUBLISH, skipped=True)
        toplevel = self.git.toplevel()
        with self.stash(toplevel, self.git.untracked_files()):
            self.cargo.publish(info.manifest_path)
        return StepResult(state=ReleaseState.PUBLISH)

    def push(self) -> StepResult:
        step("Pushing")
        branch = self.git.current_branch()
        self.git.push(self.context.remote, branch, self.tag)
        print(f"  {branch} and {self.tag} → {self.context.remote}")
        return StepResult(state=ReleaseState.PUSH)

    def create_hosted_release(self) -> StepResult:
        step("Creating GitHub release")
        if (self.git.toplevel() / RELEASE_WORKFLOW).exists():
            print(f"  {RELEASE_WORKFLOW} present; leaving the release to it")
            return StepResult(state=ReleaseState.CREATE_HOSTED_RELEASE, skipped=True)
        subject, body = self.git.commit_message(self.tag)
        url = self.github.create_release(
            self.repo, self.tag, subject, body, is_prerelease(self.new_version)
        )
        self.report.release_url = url or None
        print(f"  {url or self.tag}")
        return StepResult(state=ReleaseState.CREATE_HOSTED_RELEASE, detail=url)

    def update_topics(self) -> StepResult:
        step("Updating repository topics")
        if not self.activated:
            return StepResult(state=ReleaseState.UPDATE_TOPICS, skipped=True)
        topics = set(self.github.get_topics(self.repo))
        new = set(topics)
        new.discard(WIP_TOPIC)
        if self.info.publish:
            new.add(CRATES_TOPIC)
        if new == topics:
            return StepResult(state=ReleaseState.UPDATE_TOPICS, skipped=True)
        self.github.set_topics(self.repo, sorted(new))
        print(f"  {', '.join(sorted(new))}")
        return StepResult(state=ReleaseState.UPDATE_TOPICS)

    def begin_next_dev(self) -> StepResult:
        step("Preparing for next version")
        self.workspace, dev, changes = begin_next_dev(
            self.workspace,
            self.package,
            self.buffer,
            released=self.new_version,
            when=self.today,
            link=lambda: changelog_url(self.git, self.repo, self.info),
        )
        self.report.requirement_changes += changes
        self.report.next_version = str(dev)
        self.buffer.flush()
        return StepResult(state=ReleaseState.BEGIN_NEXT_DEV, detail=str(dev))


def begin_dev(
    workspace: Workspace,
    package: str,
    context: ReleaseContext,
    *,
    git: Git,
) -> Version | None:
    """Start development of the next version outside of a release.

    Does nothing when the package version is already a prerelease.

    Returns:
        The new development version, or None if nothing changed.
    """
    info = workspace.packages[package]
    step(f"Beginning development on {package}")
    if is_prerelease(current_version(info)):
        print(f"  {package} {info.version} is already a development version")
        return None
    buffer = FileBuffer()
    _, dev, _ = begin_next_dev(
        workspace,
        package,
        buffer,
        link=lambda: changelog_url(git, resolve_repo(git, context, info), info),
    )
    buffer.flush()
    return dev


def set_msrv(workspace: Workspace, package: str, msrv: str) -> list[Path]:
    """Set a package's minimum supported Rust version.

    Updates ``package.rust-version``, the README MSRV badge and records an
    ``Increased MSRV to X`` note in the open CHANGELOG section.

    Returns:
        The files written.

    Raises:
        VersionSyntaxError: If ``msrv`` is not ``X.Y`` or ``X.Y.Z``.
    """
    if not _MSRV_RE.match(msrv):
        raise VersionSyntaxError(f"invalid Rust version {msrv!r}")
    info = workspace.packages[package]
    step(f"Setting MSRV of {package} to {msrv}")
    buffer = FileBuffer()
    set_rust_version(buffer.manifest(info.manifest_path), msrv)
    readme = buffer.readme(info.readme_path)
    if readme is not None and readme.set_msrv(msrv):
        print("  Updated MSRV badge")
    chlog = buffer.changelog(info.changelog_path)
    if chlog is not None:
        set_note(chlog, "Increased MSRV to", f"Increased MSRV to {msrv}")
        print("  Added CHANGELOG note")
    return buffer.flush()
