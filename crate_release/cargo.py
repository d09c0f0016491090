"""Cargo invocations."""

from __future__ import annotations

from pathlib import Path

from .shell import run


class Cargo:
    def publish(self, manifest_path: Path) -> None:
        """Upload the package to crates.io; output streams to the terminal.

        Raises:
            ExternalToolError: If ``cargo publish`` fails.
        """
        run("cargo", "publish", "--manifest-path", str(manifest_path))
