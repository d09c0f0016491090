"""Structured editing of README.md headers.

A README managed by crate-release starts with a block of badge lines, a
blank line, an optional line of pipe-separated header links and another
blank line; everything after that is free-form and never interpreted::

    [![Project Status: WIP ...](https://www.repostatus.org/badges/latest/wip.svg)](https://www.repostatus.org/#wip)
    [![MSRV](https://img.shields.io/badge/MSRV-1.70-orange)](https://www.rust-lang.org)

    [GitHub](https://github.com/me/foo) | [crates.io](https://crates.io/crates/foo)

    Body text...

Each part is kept as its own span so that serializing an unmodified document
reproduces the input byte-for-byte.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, Field

from .errors import ReadmeSyntaxError

_BADGE_RE = re.compile(
    r"^\[!\[(?P<alt>[^\]]*)\]\((?P<url>[^)\s]+)\)\]\((?P<target>[^)\s]+)\)(?P<trail>[ \t]*)$"
)
_LINK_RE = re.compile(r"\[(?P<text>[^\]]+)\]\((?P<url>[^)\s]+)\)")
_SEP_RE = re.compile(r"^[ \t]*\|[ \t]*$")

_REPOSTATUS_URL_RE = re.compile(
    r"^(?P<head>https?://www\.repostatus\.org/badges/latest/)(?P<status>[a-z]+)(?P<tail>\.svg)$"
)
_REPOSTATUS_TARGET_RE = re.compile(
    r"^(?P<head>https?://www\.repostatus\.org/#)(?P<status>[a-z]+)$"
)
_MSRV_URL_RE = re.compile(
    r"^(?P<head>https://img\.shields\.io/badge/MSRV-)(?P<version>[0-9]+(?:\.[0-9]+){1,2})"
    r"-(?P<color>[A-Za-z0-9]+)$"
)

REPOSTATUS_DESCRIPTIONS = {
    "abandoned": "Project Status: Abandoned – Initial development has started, but "
    "there has not yet been a stable, usable release; the project has been "
    "abandoned and the author(s) do not intend on continuing development.",
    "active": "Project Status: Active – The project has reached a stable, usable "
    "state and is being actively developed.",
    "concept": "Project Status: Concept – Minimal or no implementation has been done "
    "yet, or the repository is only intended to be a limited example, demo, or "
    "proof-of-concept.",
    "inactive": "Project Status: Inactive – The project has reached a stable, usable "
    "state but is no longer being actively developed; support/maintenance will be "
    "provided as time allows.",
    "suspended": "Project Status: Suspended – Initial development has started, but "
    "there has not yet been a stable, usable release; work has been stopped for "
    "the time being but the author(s) intend on resuming work.",
    "unsupported": "Project Status: Unsupported – The project has reached a stable, "
    "usable state but the author(s) have ceased all work on it. A new maintainer "
    "may be desired.",
    "wip": "Project Status: WIP – Initial development is in progress, but there has "
    "not yet been a stable, usable release suitable for the public.",
}


class BadgeKind(str, Enum):
    REPOSTATUS = "repostatus"
    MSRV = "msrv"


class HeaderLink(str, Enum):
    """Header links crate-release knows about, in canonical order."""

    GITHUB = "GitHub"
    CRATES_IO = "crates.io"
    DOCUMENTATION = "Documentation"
    CHANGELOG = "Changelog"

    @property
    def rank(self) -> int:
        return list(HeaderLink).index(self)


def _split_eol(line: str) -> tuple[str, str]:
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith("\n"):
        return line[:-1], "\n"
    return line, ""


class Badge(BaseModel):
    """A ``[![alt](url)](target)`` badge line."""

    alt: str
    url: str
    target: str
    trail: str = ""
    eol: str = "\n"

    @property
    def kind(self) -> BadgeKind | None:
        if _REPOSTATUS_URL_RE.match(self.url):
            return BadgeKind.REPOSTATUS
        if _MSRV_URL_RE.match(self.url):
            return BadgeKind.MSRV
        return None

    @property
    def status(self) -> str | None:
        """Repostatus slug (``wip``, ``active``...) for repostatus badges."""
        m = _REPOSTATUS_URL_RE.match(self.url)
        return m.group("status") if m else None

    @property
    def msrv(self) -> tuple[str, str] | None:
        """(version, color) for MSRV badges."""
        m = _MSRV_URL_RE.match(self.url)
        return (m.group("version"), m.group("color")) if m else None

    def __str__(self) -> str:
        return f"[![{self.alt}]({self.url})]({self.target}){self.trail}{self.eol}"


class Link(BaseModel):
    text: str
    url: str

    @property
    def kind(self) -> HeaderLink | None:
        try:
            return HeaderLink(self.text)
        except ValueError:
            return None

    def __str__(self) -> str:
        return f"[{self.text}]({self.url})"


class LinkLine(BaseModel):
    """The pipe-separated header link line.

    ``separators[i]`` is the exact text between ``links[i]`` and
    ``links[i + 1]``.
    """

    links: list[Link]
    separators: list[str] = Field(default_factory=list)
    trail: str = ""
    eol: str = "\n"

    def __str__(self) -> str:
        parts: list[str] = []
        for i, link in enumerate(self.links):
            if i:
                parts.append(self.separators[i - 1])
            parts.append(str(link))
        return "".join(parts) + self.trail + self.eol


def _parse_link_line(line: str) -> LinkLine | None:
    """Parse a header link line, or return None if it is not one."""
    content, eol = _split_eol(line)
    stripped = content.rstrip(" \t")
    trail = content[len(stripped) :]
    links: list[Link] = []
    separators: list[str] = []
    pos = 0
    while True:
        m = _LINK_RE.match(stripped, pos)
        if m is None:
            return None
        links.append(Link(text=m.group("text"), url=m.group("url")))
        pos = m.end()
        if pos == len(stripped):
            break
        nxt = stripped.find("[", pos)
        if nxt == -1 or not _SEP_RE.match(stripped[pos:nxt]):
            return None
        separators.append(stripped[pos:nxt])
        pos = nxt
    return LinkLine(links=links, separators=separators, trail=trail, eol=eol)


def _looks_like_link_line(line: str) -> bool:
    return line.startswith("[") and not line.startswith("[!") and " | " in line


class ReadmeDocument(BaseModel):
    """A parsed README: badges, optional header links, verbatim body.

    Attributes:
        badges: Badge lines in order.
        badge_gap: The blank line after the badge block ("" when there are
                   no badges).
        links: The header link line, if any.
        links_gap: The blank line after the link line ("" if absent).
        body: Everything else, verbatim.
    """

    badges: list[Badge] = Field(default_factory=list)
    badge_gap: str = ""
    links: LinkLine | None = None
    links_gap: str = ""
    body: str = ""

    def __str__(self) -> str:
        out = "".join(str(b) for b in self.badges) + self.badge_gap
        if self.links is not None:
            out += str(self.links) + self.links_gap
        return out + self.body

    def _badge(self, kind: BadgeKind) -> Badge | None:
        for badge in self.badges:
            if badge.kind is kind:
                return badge
        return None

    @property
    def repostatus(self) -> str | None:
        badge = self._badge(BadgeKind.REPOSTATUS)
        return badge.status if badge else None

    def set_repostatus(self, slug: str) -> bool:
        """Change the repostatus badge's status; returns False if there is none.

        Only the status segments change: the image URL, the target fragment
        and, when it is the stock repostatus wording, the alt text.
        """
        badge = self._badge(BadgeKind.REPOSTATUS)
        if badge is None:
            return False
        old = badge.status
        badge.url = _REPOSTATUS_URL_RE.sub(rf"\g<head>{slug}\g<tail>", badge.url)
        badge.target = _REPOSTATUS_TARGET_RE.sub(rf"\g<head>{slug}", badge.target)
        if old is not None and badge.alt == REPOSTATUS_DESCRIPTIONS.get(old):
            badge.alt = REPOSTATUS_DESCRIPTIONS.get(slug, badge.alt)
        return True

    @property
    def msrv(self) -> str | None:
        badge = self._badge(BadgeKind.MSRV)
        if badge is None or badge.msrv is None:
            return None
        return badge.msrv[0]

    def set_msrv(self, version: str) -> bool:
        """Change the MSRV badge's version; returns False if there is none."""
        badge = self._badge(BadgeKind.MSRV)
        if badge is None:
            return False
        badge.url = _MSRV_URL_RE.sub(rf"\g<head>{version}-\g<color>", badge.url)
        return True

    def header_link(self, kind: HeaderLink) -> Link | None:
        if self.links is None:
            return None
        for link in self.links.links:
            if link.kind is kind:
                return link
        return None

    def upsert_header_link(self, kind: HeaderLink, url: str) -> bool:
        """Set a header link's URL, inserting it in canonical order if absent.

        Returns:
            True if the document changed.
        """
        existing = self.header_link(kind)
        if existing is not None:
            if existing.url == url:
                return False
            existing.url = url
            return True

        new = Link(text=kind.value, url=url)
        if self.links is None:
            self.links = LinkLine(links=[new])
            if self.badges and not self.badge_gap:
                self.badge_gap = self.badges[-1].eol or "\n"
            self.links_gap = "\n"
            return True

        links = self.links.links
        idx: int | None = None
        for i, link in enumerate(links):
            if link.kind is not None and link.kind.rank < kind.rank:
                idx = i + 1
        if idx is None:
            for i, link in enumerate(links):
                if link.kind is not None and link.kind.rank > kind.rank:
                    idx = i
                    break
        if idx is None:
            idx = len(links)
        if idx < len(links):
            self.links.separators.insert(idx, " | ")
        else:
            self.links.separators.append(" | ")
        links.insert(idx, new)
        return True

    def ensure_crates_links(self, package: str) -> bool:
        """Point the crates.io and Documentation links at ``package``."""
        changed = self.upsert_header_link(
            HeaderLink.CRATES_IO, f"https://crates.io/crates/{package}"
        )
        changed |= self.upsert_header_link(
            HeaderLink.DOCUMENTATION, f"https://docs.rs/{package}"
        )
        return changed

    def ensure_changelog_link(self, url: str) -> bool:
        """Add a Changelog link if there is none; an existing one is kept."""
        if self.header_link(HeaderLink.CHANGELOG) is not None:
            return False
        return self.upsert_header_link(HeaderLink.CHANGELOG, url)


def parse_readme(text: str) -> ReadmeDocument:
    """Parse README text into a ReadmeDocument.

    Raises:
        ReadmeSyntaxError: On content before the badge block, a malformed
            badge, a badge block not followed by a blank line, or a malformed
            header link line.
    """
    lines = text.splitlines(keepends=True)
    doc = ReadmeDocument()
    i = 0

    while i < len(lines):
        content, eol = _split_eol(lines[i])
        m = _BADGE_RE.match(content)
        if m is None:
            if content.startswith("[!["):
                raise ReadmeSyntaxError("malformed badge", line=i + 1)
            break
        doc.badges.append(
            Badge(
                alt=m.group("alt"),
                url=m.group("url"),
                target=m.group("target"),
                trail=m.group("trail"),
                eol=eol,
            )
        )
        i += 1

    if doc.badges:
        if i >= len(lines) or lines[i].strip():
            raise ReadmeSyntaxError("badge block not followed by blank line", line=i + 1)
        doc.badge_gap = lines[i]
        i += 1

    if i < len(lines):
        link_line = _parse_link_line(lines[i])
        if link_line is not None:
            doc.links = link_line
            i += 1
            if i < len(lines) and not lines[i].strip():
                doc.links_gap = lines[i]
                i += 1
        elif _looks_like_link_line(lines[i]):
            raise ReadmeSyntaxError("malformed header link line", line=i + 1)

    # Badges must open the file; once past them, later badges are body text
    if not doc.badges:
        for j in range(i, len(lines)):
            if _BADGE_RE.match(_split_eol(lines[j])[0]):
                raise ReadmeSyntaxError("content before badge block", line=j + 1)

    doc.body = "".join(lines[i:])
    return doc
