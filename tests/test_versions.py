"""Tests for crate_release.versions."""

from __future__ import annotations

import pytest

from crate_release.errors import RequirementSyntaxError, TagSyntaxError, VersionSyntaxError
from crate_release.versions import (
    Bump,
    Version,
    bump,
    compare,
    format_tag,
    is_prerelease,
    next_dev,
    parse_tag,
    parse_version,
    requirement_accepts,
    rewrite_requirement,
    strip_prerelease,
)


class TestParseVersion:
    @pytest.mark.parametrize(
        "text", ["0.1.0", "1.2.3", "1.2.3-dev", "1.0.0-alpha.1+build.5", "10.20.30"]
    )
    def test_format_round_trips(self, text: str) -> None:
        v = parse_version(text)
        assert parse_version(str(v)) == v
        assert str(v) == text

    @pytest.mark.parametrize("text", ["1.2", "v1.2.3", "1.2.3.4", "", "a.b.c", "01.2.3"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(VersionSyntaxError):
            parse_version(text)


class TestCompare:
    def test_prerelease_sorts_before_release(self) -> None:
        assert compare(parse_version("1.0.0-dev"), parse_version("1.0.0")) == -1

    def test_build_metadata_ignored(self) -> None:
        assert compare(parse_version("1.0.0+a"), parse_version("1.0.0+b")) == 0

    def test_ordering(self) -> None:
        assert compare(parse_version("1.10.0"), parse_version("1.9.9")) == 1


class TestBump:
    @pytest.mark.parametrize(
        ("version", "level", "expected"),
        [
            ("0.5.0", Bump.MAJOR, "1.0.0"),
            ("0.5.0", Bump.MINOR, "0.6.0"),
            ("0.5.0", Bump.PATCH, "0.5.1"),
            ("1.2.3", Bump.MAJOR, "2.0.0"),
            ("1.2.3", Bump.MINOR, "1.3.0"),
            ("1.2.3", Bump.PATCH, "1.2.4"),
            ("1.2.3-rc.1+build", Bump.PATCH, "1.2.4"),
            ("2.0.0-dev", Bump.MAJOR, "3.0.0"),
            ("0.9.1-alpha+sha.5", Bump.MINOR, "0.10.0"),
        ],
    )
    def test_bump(self, version: str, level: Bump, expected: str) -> None:
        assert str(bump(parse_version(version), level)) == expected

    @pytest.mark.parametrize("level", list(Bump))
    def test_strictly_increasing_and_clean(self, level: Bump) -> None:
        for text in ["0.0.0", "1.2.3", "2.0.0-dev", "3.4.5+meta"]:
            v = parse_version(text)
            bumped = bump(v, level)
            assert compare(bumped, v) == 1
            assert bumped.prerelease is None
            assert bumped.build is None


class TestNextDev:
    def test_next_minor_with_dev(self) -> None:
        assert str(next_dev(parse_version("0.4.0"))) == "0.5.0-dev"

    def test_patch_reset(self) -> None:
        assert str(next_dev(parse_version("1.2.3"))) == "1.3.0-dev"

    def test_drops_prerelease_and_build(self) -> None:
        dev = next_dev(parse_version("1.3.0-rc.2+build.7"))
        assert str(dev) == "1.4.0-dev"
        assert dev.build is None


class TestPrerelease:
    def test_strip(self) -> None:
        assert str(strip_prerelease(parse_version("0.1.0-dev+abc"))) == "0.1.0"

    def test_is_prerelease(self) -> None:
        assert is_prerelease(parse_version("1.0.0-dev"))
        assert not is_prerelease(parse_version("1.0.0+meta"))


class TestTags:
    def test_format(self) -> None:
        v = Version(1, 2, 3)
        assert format_tag(v) == "v1.2.3"
        assert format_tag(v, "foo") == "foo/v1.2.3"

    @pytest.mark.parametrize(
        ("tag", "prefix", "expected"),
        [
            ("v1.2.3", None, "1.2.3"),
            ("1.2.3", None, "1.2.3"),
            ("foo/v0.3.1", "foo", "0.3.1"),
            ("v2.0.0-rc.1", None, "2.0.0-rc.1"),
        ],
    )
    def test_parse(self, tag: str, prefix: str | None, expected: str) -> None:
        assert str(parse_tag(tag, prefix)) == expected

    @pytest.mark.parametrize(
        ("tag", "prefix"),
        [("release-1", None), ("v1.2", None), ("bar/v1.0.0", "foo"), ("foo/v1.0.0", None)],
    )
    def test_parse_invalid(self, tag: str, prefix: str | None) -> None:
        with pytest.raises(TagSyntaxError):
            parse_tag(tag, prefix)


class TestRequirementAccepts:
    @pytest.mark.parametrize(
        ("requirement", "candidate", "expected"),
        [
            ("^1.2.3", "1.2.4", True),
            ("^1.2.3", "2.0.0", False),
            ("^1.2.3-dev", "1.2.3", False),
            ("^1.2.3-dev", "1.2.3-dev", True),
            ("1.2.3", "1.9.0", True),
            ("^0.2.3", "0.3.0", False),
            ("^0.0.3", "0.0.4", False),
            ("^1.0", "2.0.0", False),
            ("^2", "2.0.0", True),
            ("~1.2.3", "1.2.9", True),
            ("~1.2.3", "1.3.0", False),
            ("~1", "1.9.0", True),
            ("=1.2.3", "1.2.3", True),
            ("=1.2.3", "1.2.4", False),
            (">=1.0, <3", "2.5.0", True),
            (">=1.0, <3", "3.0.0", False),
            ("*", "7.0.0", True),
            ("1.*", "1.5.0", True),
            ("1.2.*", "1.3.0", False),
            (">1.2", "1.2.9", False),
            (">1.2", "1.3.0", True),
            ("<=1.2", "1.2.9", True),
            ("^2", "2.1.0-dev", False),
        ],
    )
    def test_accepts(self, requirement: str, candidate: str, expected: bool) -> None:
        assert requirement_accepts(requirement, parse_version(candidate)) is expected

    @pytest.mark.parametrize("requirement", ["", "^", "1.*.3", "abc", ">=*"])
    def test_malformed(self, requirement: str) -> None:
        with pytest.raises(RequirementSyntaxError):
            requirement_accepts(requirement, parse_version("1.0.0"))


class TestRewriteRequirement:
    @pytest.mark.parametrize(
        ("requirement", "expected"),
        [
            ("^1.0", "^2.0.0"),
            ("~1.4", "~2.0.0"),
            ("=1.4.0", "=2.0.0"),
            ("1.4", "2.0.0"),
            (">=1, <2", "2.0.0"),
        ],
    )
    def test_rewrite(self, requirement: str, expected: str) -> None:
        assert rewrite_requirement(requirement, Version(2, 0, 0)) == expected
