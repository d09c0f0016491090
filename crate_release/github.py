"""GitHub access through the ``gh`` CLI.

Requests go through ``gh api`` so that authentication is whatever the user
has already configured for gh.
"""

from __future__ import annotations

import json
import re

from pydantic import BaseModel

from .shell import gh

_GITHUB_URL_RES = [
    re.compile(r"^(?:https?|git)://(?:[^@/]+@)?github\.com/(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
    re.compile(r"^ssh://git@github\.com/(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
    re.compile(r"^git@github\.com:(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
]


class GHRepo(BaseModel):
    owner: str
    name: str

    @classmethod
    def from_url(cls, url: str) -> GHRepo | None:
        """Parse a GitHub remote URL (https, ssh or git protocol).

        Returns None for URLs that do not point at github.com.
        """
        for rgx in _GITHUB_URL_RES:
            m = rgx.match(url.strip())
            if m:
                return cls(owner=m.group("owner"), name=m.group("name"))
        return None

    @property
    def api_path(self) -> str:
        return f"repos/{self.owner}/{self.name}"

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


class GitHub:
    def create_release(
        self, repo: GHRepo, tag: str, name: str, body: str, prerelease: bool
    ) -> str:
        """Create a release for an already-pushed tag.

        Returns:
            The release's web URL.
        """
        payload = {
            "tag_name": tag,
            "name": name,
            "body": body,
            "prerelease": prerelease,
        }
        out = gh(
            "api",
            "--method",
            "POST",
            f"{repo.api_path}/releases",
            "--input",
            "-",
            input=json.dumps(payload),
        )
        return json.loads(out).get("html_url", "")

    def get_topics(self, repo: GHRepo) -> list[str]:
        out = gh("api", f"{repo.api_path}/topics")
        return list(json.loads(out).get("names", []))

    def set_topics(self, repo: GHRepo, topics: list[str]) -> None:
        gh(
            "api",
            "--method",
            "PUT",
            f"{repo.api_path}/topics",
            "--input",
            "-",
            input=json.dumps({"names": sorted(topics)}),
        )
