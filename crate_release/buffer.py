"""In-memory staging area for file edits made during a release.

Documents are loaded on first access and then shared by every step that
touches the same file, so edits accumulate in one place.  Nothing reaches the
disk until ``flush()`` is called, and only files whose serialized content
differs from what was read are written.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

import tomlkit

from .changelog import ChangelogDocument, parse_changelog
from .errors import SyntaxFailure
from .readme import ReadmeDocument, parse_readme
from .toml import dump_manifest, parse_manifest

Document = Union[tomlkit.TOMLDocument, ChangelogDocument, ReadmeDocument, str]


class FileBuffer:
    def __init__(self) -> None:
        self._docs: dict[Path, Document] = {}
        # None marks a file that did not exist when first accessed
        self._original: dict[Path, str | None] = {}

    def _read(self, path: Path) -> str | None:
        key = path.resolve()
        if key not in self._original:
            self._original[key] = path.read_bytes().decode() if path.exists() else None
        return self._original[key]

    def _get(self, path: Path, parse):
        key = path.resolve()
        if key not in self._docs:
            text = self._read(path)
            if text is None:
                return None
            try:
                self._docs[key] = parse(text)
            except SyntaxFailure as exc:
                raise exc.with_path(path) from exc
        return self._docs[key]

    def manifest(self, path: Path) -> tomlkit.TOMLDocument:
        """The parsed manifest or lockfile at ``path``.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        doc = self._get(path, lambda text: parse_manifest(text, path))
        if doc is None:
            raise FileNotFoundError(path)
        return doc

    def changelog(self, path: Path) -> ChangelogDocument | None:
        """The parsed CHANGELOG at ``path``, or None if there is none."""
        return self._get(path, parse_changelog)

    def readme(self, path: Path) -> ReadmeDocument | None:
        return self._get(path, parse_readme)

    def text(self, path: Path) -> str | None:
        return self._get(path, lambda text: text)

    def put(self, path: Path, doc: Document) -> None:
        """Stage a whole document, e.g. a newly created CHANGELOG."""
        self._read(path)
        self._docs[path.resolve()] = doc

    def exists(self, path: Path) -> bool:
        """True if ``path`` exists on disk or has been staged."""
        return path.resolve() in self._docs or self._read(path) is not None

    @staticmethod
    def _serialize(doc: Document) -> str:
        if isinstance(doc, tomlkit.TOMLDocument):
            return dump_manifest(doc)
        return str(doc)

    def pending(self) -> list[Path]:
        """Paths whose staged content differs from the disk."""
        return [
            path
            for path, doc in self._docs.items()
            if self._serialize(doc) != self._original.get(path)
        ]

    def flush(self) -> list[Path]:
        """Write every changed document to disk.

        Returns:
            The paths written.
        """
        written = []
        for path in self.pending():
            text = self._serialize(self._docs[path])
            path.write_text(text, newline="")
            self._original[path] = text
            written.append(path)
        return written
