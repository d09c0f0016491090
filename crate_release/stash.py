"""Temporary relocation of untracked files around ``cargo publish``.

Cargo refuses to publish from a working tree with untracked files, so they
are moved into ``{toplevel}.stash`` next to the repository for the duration
of the upload and always moved back afterwards.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .errors import StateFailure


def stash_dir_for(toplevel: Path) -> Path:
    return toplevel.with_name(f"{toplevel.name}.stash")


def _move(src: Path, dest: Path) -> None:
    if dest.exists():
        raise FileExistsError(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    src.rename(dest)


def _restore(stash_dir: Path, toplevel: Path) -> None:
    for src in sorted(p for p in stash_dir.rglob("*") if not p.is_dir()):
        _move(src, toplevel / src.relative_to(stash_dir))
    shutil.rmtree(stash_dir)


@contextmanager
def stash_untracked(toplevel: Path, paths: list[str]) -> Iterator[Path | None]:
    """Move ``paths`` (relative to ``toplevel``) aside for the ``with`` body.

    Yields the stash directory, or None when there was nothing to move.
    Files are moved back and the directory removed whether or not the body
    raises.

    Raises:
        StateFailure: If the stash directory already exists, e.g. left over
            from an interrupted run.
    """
    stash_dir = stash_dir_for(toplevel)
    if stash_dir.exists():
        raise StateFailure(
            f"stash directory {stash_dir} already exists; move its contents "
            "back into the repository and remove it"
        )
    if not paths:
        yield None
        return
    print(f"  Moving {len(paths)} untracked file(s) to {stash_dir}")
    stash_dir.mkdir()
    try:
        for rel in paths:
            _move(toplevel / rel, stash_dir / rel)
        yield stash_dir
    finally:
        print(f"  Moving untracked files back from {stash_dir}")
        _restore(stash_dir, toplevel)
