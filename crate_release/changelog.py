"""Structured editing of CHANGELOG.md.

A changelog is a sequence of sections, newest first, each introduced by a
header underlined with at least three hyphens::

    v0.5.0 (in development)
    -----------------------
    - Added a thing

    v0.4.0 (2024-05-17)
    -------------------
    Initial release

Headers come in three forms: ``vVERSION (YYYY-MM-DD)`` for released versions,
``vVERSION (in development)`` and plain ``In Development`` for unreleased
work.  At most one section may be unreleased ("open"), and it must be first.
Sections keep their original header text, underline and spacing so that
untouched parts of the file re-serialize unchanged.
"""

from __future__ import annotations

import re
from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from .errors import (
    ChangelogAlreadyReleasedError,
    ChangelogOpenSectionMisplacedError,
    ChangelogSyntaxError,
    VersionSyntaxError,
)
from .versions import Version, parse_version

_HRULE_RE = re.compile(r"^-{3,}[ \t]*$")
_SHORT_RULE_RE = re.compile(r"^-{1,2}[ \t]*$")
_VERSIONED_RE = re.compile(r"^v(?P<version>\S+)[ \t]+\((?P<paren>[^)]*)\)[ \t]*$")
_IN_DEVELOPMENT_RE = re.compile(r"^in development[ \t]*$", re.IGNORECASE)
_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


class HeaderKind(str, Enum):
    RELEASED = "released"
    IN_PROGRESS = "in-progress"
    IN_DEVELOPMENT = "in-development"


class ChangelogHeader(BaseModel):
    """A section header.

    ``raw`` holds the header text as it appeared in the file; it is None
    for headers created in memory, which render canonically.
    """

    kind: HeaderKind
    version: str | None = None
    released_on: date | None = None
    raw: str | None = None

    @classmethod
    def released(cls, version: Version | str, when: date) -> ChangelogHeader:
        return cls(kind=HeaderKind.RELEASED, version=str(version), released_on=when)

    @classmethod
    def in_progress(cls, version: Version | str) -> ChangelogHeader:
        return cls(kind=HeaderKind.IN_PROGRESS, version=str(version))

    @classmethod
    def in_development(cls) -> ChangelogHeader:
        return cls(kind=HeaderKind.IN_DEVELOPMENT)

    @property
    def is_open(self) -> bool:
        return self.kind is not HeaderKind.RELEASED

    def render(self) -> str:
        if self.kind is HeaderKind.RELEASED:
            assert self.released_on is not None
            return f"v{self.version} ({self.released_on.isoformat()})"
        if self.kind is HeaderKind.IN_PROGRESS:
            return f"v{self.version} (in development)"
        return "In Development"

    def __str__(self) -> str:
        return self.raw if self.raw is not None else self.render()


class ChangelogSection(BaseModel):
    """One section: header, underline, body and the blank lines after it."""

    header: ChangelogHeader
    header_eol: str = "\n"
    underline: str = ""
    body: str = ""
    gap: str = ""

    def __str__(self) -> str:
        return f"{self.header}{self.header_eol}{self.underline}{self.body}{self.gap}"


class ChangelogDocument(BaseModel):
    preamble: str = ""
    sections: list[ChangelogSection] = Field(default_factory=list)

    def __str__(self) -> str:
        return self.preamble + "".join(str(s) for s in self.sections)

    @property
    def top(self) -> ChangelogSection | None:
        return self.sections[0] if self.sections else None


def _split_eol(line: str) -> tuple[str, str]:
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith("\n"):
        return line[:-1], "\n"
    return line, ""


def parse_header(text: str, line: int | None = None) -> ChangelogHeader:
    """Parse a section header line.

    Raises:
        ChangelogSyntaxError: If the header is not one of the three forms or
            carries an invalid version or date.
    """
    if _IN_DEVELOPMENT_RE.match(text):
        return ChangelogHeader(kind=HeaderKind.IN_DEVELOPMENT, raw=text)
    m = _VERSIONED_RE.match(text)
    if m is None:
        raise ChangelogSyntaxError(f"invalid section header {text!r}", line=line)
    try:
        version = str(parse_version(m.group("version")))
    except VersionSyntaxError as exc:
        raise ChangelogSyntaxError(
            f"invalid version in section header {text!r}", line=line
        ) from exc
    paren = m.group("paren").strip()
    if paren.lower() == "in development":
        return ChangelogHeader(kind=HeaderKind.IN_PROGRESS, version=version, raw=text)
    dm = _DATE_RE.match(paren)
    if dm is None:
        raise ChangelogSyntaxError(
            f"malformed date {paren!r} (expected YYYY-MM-DD)", line=line
        )
    try:
        when = date(int(dm.group(1)), int(dm.group(2)), int(dm.group(3)))
    except ValueError as exc:
        raise ChangelogSyntaxError(f"invalid date {paren!r}", line=line) from exc
    return ChangelogHeader(kind=HeaderKind.RELEASED, version=version, released_on=when, raw=text)


def _is_header(text: str) -> bool:
    try:
        parse_header(text)
    except ChangelogSyntaxError:
        return False
    return True


def parse_changelog(text: str) -> ChangelogDocument:
    """Parse CHANGELOG text.

    Raises:
        ChangelogSyntaxError: On an underline shorter than three hyphens, an
            underline without a valid header above it, a malformed date, or
            content before the first section.
        ChangelogOpenSectionMisplacedError: If an unreleased section is not
            the first one.
    """
    lines = text.splitlines(keepends=True)
    contents = [_split_eol(ln)[0] for ln in lines]

    header_idx: list[int] = []
    headers: list[ChangelogHeader] = []
    for i, content in enumerate(contents):
        if _HRULE_RE.match(content):
            if i == 0 or not contents[i - 1].strip():
                raise ChangelogSyntaxError("underline without a header", line=i + 1)
            headers.append(parse_header(contents[i - 1], line=i))
            header_idx.append(i - 1)
        elif _SHORT_RULE_RE.match(content) and i > 0 and _is_header(contents[i - 1]):
            raise ChangelogSyntaxError(
                "header underline must be at least three hyphens", line=i + 1
            )

    first = header_idx[0] if header_idx else len(lines)
    for i in range(first):
        if contents[i].strip():
            raise ChangelogSyntaxError("text before first section", line=i + 1)

    doc = ChangelogDocument(preamble="".join(lines[:first]))
    for k, (h, header) in enumerate(zip(header_idx, headers)):
        end = header_idx[k + 1] if k + 1 < len(header_idx) else len(lines)
        body_lines = lines[h + 2 : end]
        cut = len(body_lines)
        while cut > 0 and not body_lines[cut - 1].strip():
            cut -= 1
        doc.sections.append(
            ChangelogSection(
                header=header,
                header_eol=_split_eol(lines[h])[1],
                underline=lines[h + 1],
                body="".join(body_lines[:cut]),
                gap="".join(body_lines[cut:]),
            )
        )

    for k, section in enumerate(doc.sections):
        if k > 0 and section.header.is_open:
            raise ChangelogOpenSectionMisplacedError(
                f"unreleased section {str(section.header)!r} is not the first section"
            )
    return doc


def release_top_section(doc: ChangelogDocument, version: Version | str, when: date) -> str:
    """Turn the open top section into ``vVERSION (DATE)``.

    The body and underline are left exactly as they were.

    Returns:
        The section body, for use in the release commit message.

    Raises:
        ChangelogAlreadyReleasedError: If the top section is already dated.
        ChangelogSyntaxError: If the changelog has no sections.
    """
    top = doc.top
    if top is None:
        raise ChangelogSyntaxError("changelog has no section to release")
    if not top.header.is_open:
        raise ChangelogAlreadyReleasedError(
            f"top changelog section {str(top.header)!r} is already released"
        )
    top.header = ChangelogHeader.released(version, when)
    return top.body


def prepend_section(
    doc: ChangelogDocument, header: ChangelogHeader, body: str = ""
) -> ChangelogSection:
    """Insert a new first section, separated from the next by a blank line.

    Raises:
        ChangelogOpenSectionMisplacedError: If ``header`` is open and the
            current first section is open too.
    """
    top = doc.top
    if header.is_open and top is not None and top.header.is_open:
        raise ChangelogOpenSectionMisplacedError(
            "changelog already has an unreleased section"
        )
    if body and not body.endswith("\n"):
        body += "\n"
    title = str(header)
    section = ChangelogSection(
        header=header,
        underline="-" * len(title) + "\n",
        body=body,
        gap="\n" if top is not None else "",
    )
    if top is not None and not top.body.endswith("\n") and not top.gap:
        top.body += "\n"
    doc.sections.insert(0, section)
    return section


def body_of(doc: ChangelogDocument, index: int) -> str:
    """Raw body text of a section, without its trailing blank lines."""
    return doc.sections[index].body


def _open_section(doc: ChangelogDocument) -> ChangelogSection:
    top = doc.top
    if top is None or not top.header.is_open:
        return prepend_section(doc, ChangelogHeader.in_development())
    return top


def set_note(doc: ChangelogDocument, prefix: str, note: str) -> None:
    """Record ``note`` as a bullet in the open section.

    The first bullet starting with ``- {prefix}`` is replaced; if there is
    none the note is appended.  An ``In Development`` section is created
    when the top section is already released.
    """
    section = _open_section(doc)
    lines = section.body.splitlines(keepends=True)
    bullet = f"- {note}"
    for i, line in enumerate(lines):
        if line.startswith(f"- {prefix}"):
            lines[i] = bullet + (_split_eol(line)[1] or "\n")
            section.body = "".join(lines)
            return
    add_note(doc, note)


def add_note(doc: ChangelogDocument, note: str) -> None:
    """Append a ``- note`` bullet to the open section."""
    section = _open_section(doc)
    if section.body and not section.body.endswith("\n"):
        section.body += "\n"
    section.body += f"- {note}\n"


def new_changelog(version: Version | str, when: date, body: str) -> ChangelogDocument:
    """A changelog with a single released section."""
    doc = ChangelogDocument()
    prepend_section(doc, ChangelogHeader.released(version, when), body)
    return doc
