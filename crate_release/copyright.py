"""Copyright line parsing and year-range maintenance for LICENSE files."""

from __future__ import annotations

import re
from collections.abc import Iterable

from pydantic import BaseModel

from .errors import CopyrightLineMissingError

_YEAR_RANGE = r"\d{4}(?:[ \t]*-[ \t]*\d{4})?"
_COPYRIGHT_RE = re.compile(
    rf"^(?P<prefix>[ \t]*Copyright(?:[ \t]+\(c\))?[ \t]+)"
    rf"(?P<years>{_YEAR_RANGE}(?:[ \t]*,[ \t]*{_YEAR_RANGE})*)"
    r"(?P<sep>[ \t]+)(?P<author>\S.*?)$",
    re.IGNORECASE,
)


def format_years(years: Iterable[int]) -> str:
    """Render a year set as merged ranges.

    Examples:
        {2020, 2021, 2022} → "2020-2022"
        {2018, 2020, 2021} → "2018, 2020-2021"
    """
    ranges: list[list[int]] = []
    for year in sorted(set(years)):
        if ranges and year == ranges[-1][1] + 1:
            ranges[-1][1] = year
        else:
            ranges.append([year, year])
    return ", ".join(str(a) if a == b else f"{a}-{b}" for a, b in ranges)


def _parse_years(text: str) -> set[int]:
    years: set[int] = set()
    for part in text.split(","):
        start, _, end = part.partition("-")
        lo = int(start)
        hi = int(end) if end.strip() else lo
        years.update(range(min(lo, hi), max(lo, hi) + 1))
    return years


class CopyrightLine(BaseModel):
    """A parsed ``Copyright (c) YEARS AUTHOR`` line.

    ``years_text`` is the year span as written; it is only regenerated once
    the year set actually changes.
    """

    prefix: str
    years: set[int]
    years_text: str
    sep: str
    author: str

    def add_years(self, years: Iterable[int]) -> bool:
        """Add years to the line; existing years are never removed.

        Returns:
            True if the year set grew.
        """
        merged = self.years | set(years)
        if merged == self.years:
            return False
        self.years = merged
        self.years_text = format_years(merged)
        return True

    def __str__(self) -> str:
        return f"{self.prefix}{self.years_text}{self.sep}{self.author}"


def parse_copyright(line: str) -> CopyrightLine | None:
    m = _COPYRIGHT_RE.match(line)
    if m is None:
        return None
    return CopyrightLine(
        prefix=m.group("prefix"),
        years=_parse_years(m.group("years")),
        years_text=m.group("years"),
        sep=m.group("sep"),
        author=m.group("author"),
    )


def update_license_years(text: str, years: Iterable[int]) -> str:
    """Extend the first copyright line of a LICENSE text with ``years``.

    Raises:
        CopyrightLineMissingError: If no line has the copyright form.
    """
    lines = text.splitlines(keepends=True)
    for i, line in enumerate(lines):
        content = line.rstrip("\r\n")
        crl = parse_copyright(content)
        if crl is None:
            continue
        if crl.add_years(years):
            lines[i] = str(crl) + line[len(content) :]
        return "".join(lines)
    raise CopyrightLineMissingError("no copyright line found in license")
