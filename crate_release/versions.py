"""Version parsing, bumping and requirement matching.

Versions are plain ``semver.Version`` objects.  Requirement matching follows
Cargo's requirement syntax (``^1.2``, ``~1.2.3``, ``>=1, <3``, ``1.*`` ...)
with one deliberate tightening around prereleases: a requirement naming a
prerelease only accepts that exact prerelease, so ``^0.5.0-dev`` no longer
matches once ``0.5.0`` is released and gets rewritten.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

import semver

from .errors import RequirementSyntaxError, TagSyntaxError, VersionSyntaxError

Version = semver.Version


class Bump(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


def parse_version(version_str: str) -> Version:
    """Parse a full ``major.minor.patch[-pre][+build]`` version string.

    Unlike Cargo requirements, partial versions ("1.2") are rejected.

    Raises:
        VersionSyntaxError: If the string is not a valid semantic version.
    """
    try:
        return Version.parse(version_str.strip())
    except (ValueError, TypeError) as exc:
        raise VersionSyntaxError(f"invalid version {version_str!r}") from exc


def compare(a: Version, b: Version) -> int:
    """Compare two versions by semver precedence, ignoring build metadata."""
    return a.replace(build=None).compare(b.replace(build=None))


def bump(v: Version, level: Bump) -> Version:
    """Increment one component of ``v``.

    Less significant components are zeroed and prerelease/build metadata is
    dropped, so the result always sorts after ``v``.

    Examples:
        bump(1.2.3, MINOR) → 1.3.0
        bump(0.5.0-dev, MAJOR) → 1.0.0
    """
    base = strip_prerelease(v)
    if level is Bump.MAJOR:
        return base.bump_major()
    if level is Bump.MINOR:
        return base.bump_minor()
    return base.bump_patch()


def next_dev(v: Version) -> Version:
    """Version to develop on after releasing ``v``: next minor, ``-dev``."""
    return strip_prerelease(v).bump_minor().replace(prerelease="dev")


def strip_prerelease(v: Version) -> Version:
    return Version(v.major, v.minor, v.patch)


def is_prerelease(v: Version) -> bool:
    return v.prerelease is not None


def format_tag(v: Version, prefix: str | None = None) -> str:
    """Format a release tag: ``v1.2.3`` or ``{prefix}/v1.2.3``."""
    if prefix:
        return f"{prefix}/v{v}"
    return f"v{v}"


def parse_tag(tag: str, expected_prefix: str | None = None) -> Version:
    """Extract the version from a release tag.

    Accepts ``v1.2.3``, ``1.2.3`` and, when ``expected_prefix`` is given,
    ``{expected_prefix}/v1.2.3``.

    Raises:
        TagSyntaxError: If the tag is not a (prefixed) version.
    """
    rest = tag
    if "/" in rest:
        prefix, _, rest = rest.rpartition("/")
        if prefix != expected_prefix:
            raise TagSyntaxError(
                f"tag {tag!r} does not belong to {expected_prefix or 'this project'}"
            )
    if rest.startswith("v"):
        rest = rest[1:]
    try:
        return Version.parse(rest)
    except ValueError as exc:
        raise TagSyntaxError(f"tag {tag!r} is not a version tag") from exc


# ---------------------------------------------------------------------------
# Cargo requirement matching

_COMPARATOR_RE = re.compile(
    r"""
    ^(?P<op>\^|~|=|>=|<=|>|<)?\s*
    (?P<major>\d+|\*|x|X)
    (?:\.(?P<minor>\d+|\*|x|X)
      (?:\.(?P<patch>\d+|\*|x|X)
        (?:-(?P<pre>[0-9A-Za-z.-]+))?
      )?
    )?
    (?:\+[0-9A-Za-z.-]+)?$
    """,
    re.VERBOSE,
)

_WILDCARDS = {"*", "x", "X"}


@dataclass(frozen=True)
class _Comparator:
    op: str
    major: int | None
    minor: int | None
    patch: int | None
    pre: str | None

    def bounds(self) -> tuple[tuple[int, int, int] | None, tuple[int, int, int] | None]:
        """Return (inclusive lower, exclusive upper) release bounds."""
        major, minor, patch = self.major, self.minor, self.patch
        if major is None:
            return None, None
        low = (major, minor or 0, patch or 0)

        # Upper bound for the "same partial version" family (e.g. 1.2 → <1.3.0)
        if minor is None:
            family_upper = (major + 1, 0, 0)
        elif patch is None:
            family_upper = (major, minor + 1, 0)
        else:
            family_upper = (major, minor, patch + 1)

        if self.op == "^":
            if major > 0 or minor is None:
                return low, (major + 1, 0, 0)
            if minor > 0 or patch is None:
                return low, (0, minor + 1, 0)
            return low, (0, 0, patch + 1)
        if self.op == "~":
            if minor is None:
                return low, (major + 1, 0, 0)
            return low, (major, minor + 1, 0)
        if self.op == "=":
            return low, family_upper
        if self.op == ">":
            return family_upper, None
        if self.op == ">=":
            return low, None
        if self.op == "<":
            return None, low
        if self.op == "<=":
            return None, family_upper
        raise AssertionError(f"unexpected operator: {self.op}")

    def matches_release(self, v: Version) -> bool:
        key = (v.major, v.minor, v.patch)
        low, high = self.bounds()
        if low is not None and key < low:
            return False
        if high is not None and key >= high:
            return False
        return True

    def exact(self) -> Version | None:
        if self.pre is None or self.major is None:
            return None
        return Version(self.major, self.minor or 0, self.patch or 0, prerelease=self.pre)


def _parse_part(value: str | None) -> int | None:
    if value is None or value in _WILDCARDS:
        return None
    return int(value)


def _parse_requirement(requirement: str) -> list[_Comparator]:
    text = requirement.strip()
    if not text:
        raise RequirementSyntaxError("empty version requirement")
    comparators: list[_Comparator] = []
    for raw in text.split(","):
        m = _COMPARATOR_RE.match(raw.strip())
        if m is None:
            raise RequirementSyntaxError(f"invalid version requirement {requirement!r}")
        parts = [m.group("major"), m.group("minor"), m.group("patch")]
        # Nothing concrete may follow a wildcard ("1.*.3" is invalid)
        seen_wild = False
        for part in parts:
            if part is None:
                continue
            if part in _WILDCARDS:
                seen_wild = True
            elif seen_wild:
                raise RequirementSyntaxError(
                    f"invalid version requirement {requirement!r}"
                )
        op = m.group("op") or "^"
        if seen_wild:
            if m.group("op") not in (None, "="):
                raise RequirementSyntaxError(
                    f"wildcard not allowed with operator in {requirement!r}"
                )
            op = "="
        comparators.append(
            _Comparator(
                op=op,
                major=_parse_part(parts[0]),
                minor=_parse_part(parts[1]),
                patch=_parse_part(parts[2]),
                pre=m.group("pre"),
            )
        )
    return comparators


def requirement_accepts(requirement: str, candidate: Version) -> bool:
    """Check whether a Cargo version requirement accepts ``candidate``.

    Examples:
        requirement_accepts("^1.2.3", 1.2.4) → True
        requirement_accepts("^1.2.3", 2.0.0) → False
        requirement_accepts("^1.2.3-dev", 1.2.3) → False

    Raises:
        RequirementSyntaxError: If the requirement cannot be parsed.
    """
    comparators = _parse_requirement(requirement)
    release = candidate.replace(build=None)
    pinned = [c.exact() for c in comparators if c.pre is not None]
    if pinned:
        return all(p is not None and p.compare(release) == 0 for p in pinned)
    if release.prerelease is not None:
        return False
    return all(c.matches_release(release) for c in comparators)


def rewrite_requirement(requirement: str | None, version: Version) -> str:
    """Build a requirement for ``version`` in the style of ``requirement``.

    A leading ``^``, ``~`` or ``=`` is kept; anything else (including compound
    requirements) collapses to the bare version, which Cargo reads as caret.
    """
    stripped = (requirement or "").strip()
    bare = str(version.replace(build=None))
    for op in ("^", "~", "="):
        if stripped.startswith(op) and "," not in stripped:
            return f"{op}{bare}"
    return bare
