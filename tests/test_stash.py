"""Tests for crate_release.stash."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import write

from crate_release.errors import StateFailure
from crate_release.stash import stash_dir_for, stash_untracked


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    write(root / "Cargo.toml", "[package]\n")
    write(root / "notes.txt", "scratch\n")
    write(root / "scratch" / "deep" / "data.bin", "xyz")
    return root


class TestStashUntracked:
    def test_stash_dir_is_sibling(self, tmp_path: Path) -> None:
        assert stash_dir_for(tmp_path / "repo") == tmp_path / "repo.stash"

    def test_moves_and_restores(self, repo: Path) -> None:
        paths = ["notes.txt", "scratch/deep/data.bin"]
        with stash_untracked(repo, paths) as stash_dir:
            assert stash_dir == stash_dir_for(repo)
            assert not (repo / "notes.txt").exists()
            assert not (repo / "scratch" / "deep" / "data.bin").exists()
            assert (stash_dir / "scratch" / "deep" / "data.bin").read_text() == "xyz"
            assert (repo / "Cargo.toml").exists()
        assert (repo / "notes.txt").read_text() == "scratch\n"
        assert (repo / "scratch" / "deep" / "data.bin").read_text() == "xyz"
        assert not stash_dir_for(repo).exists()

    def test_restores_when_body_raises(self, repo: Path) -> None:
        with pytest.raises(RuntimeError, match="upload failed"):
            with stash_untracked(repo, ["notes.txt"]):
                raise RuntimeError("upload failed")
        assert (repo / "notes.txt").read_text() == "scratch\n"
        assert not stash_dir_for(repo).exists()

    def test_nothing_to_move(self, repo: Path) -> None:
        with stash_untracked(repo, []) as stash_dir:
            assert stash_dir is None
        assert not stash_dir_for(repo).exists()

    def test_refuses_existing_stash_dir(self, repo: Path) -> None:
        stash_dir_for(repo).mkdir()
        with pytest.raises(StateFailure, match="already exists"):
            with stash_untracked(repo, ["notes.txt"]):
                pass
        assert (repo / "notes.txt").exists()
