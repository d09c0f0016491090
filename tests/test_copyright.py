"""Tests for crate_release.copyright."""

from __future__ import annotations

import pytest

from crate_release.copyright import format_years, parse_copyright, update_license_years
from crate_release.errors import CopyrightLineMissingError


class TestParseCopyright:
    @pytest.mark.parametrize(
        ("line", "years", "author"),
        [
            ("Copyright (c) 2023 John T. Wodder II", {2023}, "John T. Wodder II"),
            ("Copyright (c) 2023,2025 John T. Wodder II", {2023, 2025}, "John T. Wodder II"),
            ("Copyright  (c)\t2023 , 2024  J. Doe", {2023, 2024}, "J. Doe"),
            ("Copyright (c) 2021 - 2023 J. Doe", {2021, 2022, 2023}, "J. Doe"),
            ("Copyright 2020-2022 A. Author", {2020, 2021, 2022}, "A. Author"),
            ("    Copyright (C) 2019 The Authors", {2019}, "The Authors"),
        ],
    )
    def test_parse(self, line: str, years: set[int], author: str) -> None:
        crl = parse_copyright(line)
        assert crl is not None
        assert crl.years == years
        assert crl.author == author
        assert str(crl) == line

    @pytest.mark.parametrize(
        "line", ["Copyright (c) J. Doe", "Copyleft 2020 J. Doe", "Copyright (c) 2020", ""]
    )
    def test_not_a_copyright_line(self, line: str) -> None:
        assert parse_copyright(line) is None


class TestAddYears:
    def test_spec_example(self) -> None:
        crl = parse_copyright("Copyright 2020-2022 A. Author")
        assert crl is not None
        assert crl.add_years({2021, 2023, 2024})
        assert crl.years == {2020, 2021, 2022, 2023, 2024}
        assert str(crl) == "Copyright 2020-2024 A. Author"

    def test_no_new_years_keeps_text(self) -> None:
        crl = parse_copyright("Copyright (c) 2021 - 2023 J. Doe")
        assert crl is not None
        assert not crl.add_years({2022})
        assert str(crl) == "Copyright (c) 2021 - 2023 J. Doe"

    def test_gaps_are_kept(self) -> None:
        crl = parse_copyright("Copyright (c) 2018 J. Doe")
        assert crl is not None
        crl.add_years({2020, 2021})
        assert str(crl) == "Copyright (c) 2018, 2020-2021 J. Doe"


class TestFormatYears:
    @pytest.mark.parametrize(
        ("years", "expected"),
        [
            ({2023}, "2023"),
            ({2023, 2024}, "2023-2024"),
            ({2018, 2020, 2021, 2022, 2025}, "2018, 2020-2022, 2025"),
        ],
    )
    def test_format(self, years: set[int], expected: str) -> None:
        assert format_years(years) == expected


class TestUpdateLicenseYears:
    LICENSE = (
        "The Foobar License\n"
        "\n"
        "Copyright (c) 2021-2022 John T. Wodder II\n"
        "Copyright (c) 2020 The Prime Mover and their Agents\n"
        "\n"
        "Permission is not granted.\n"
    )

    def test_only_first_line_changes(self) -> None:
        result = update_license_years(self.LICENSE, {2023})
        assert result == self.LICENSE.replace("2021-2022", "2021-2023")

    def test_missing_line(self) -> None:
        with pytest.raises(CopyrightLineMissingError):
            update_license_years("Public domain.\n", {2024})
