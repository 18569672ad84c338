"""Tests for Version parsing, normalization, and SemVer precedence."""

from __future__ import annotations

import pytest

from envlock.core.dependency import Version, parse_version, version_key


class TestParse:
    """Tests for ``Version.parse``."""

    def test_full_release(self) -> None:
        """A three-part version parses into its components."""
        v = Version.parse("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)
        assert v.pre == ()

    def test_missing_components_are_zero(self) -> None:
        """``2.31`` and ``2.31.0`` are the same version."""
        assert Version.parse("2.31") == Version.parse("2.31.0")
        assert Version.parse("3") == Version(3, 0, 0)

    def test_leading_v_accepted(self) -> None:
        assert Version.parse("v1.2") == Version(1, 2, 0)

    def test_semver_prerelease(self) -> None:
        v = Version.parse("1.0.0-rc.1")
        assert v.pre == ("rc", 1)
        assert v.is_prerelease

    def test_attached_prerelease_matches_semver_spelling(self) -> None:
        """PEP 440 ``1.0.0rc1`` and SemVer ``1.0.0-rc.1`` are equal."""
        assert Version.parse("1.0.0rc1") == Version.parse("1.0.0-rc.1")

    def test_short_tags_normalized(self) -> None:
        """``a``/``b`` expand to ``alpha``/``beta``."""
        assert Version.parse("2.0a1") == Version.parse("2.0.0-alpha.1")
        assert Version.parse("2.0b3") == Version.parse("2.0.0-beta.3")

    def test_build_metadata_ignored(self) -> None:
        assert Version.parse("1.0.0+build.5") == Version.parse("1.0.0")

    @pytest.mark.parametrize("text", ["", "abc", "1.2.3.4", "1..2", "-1.0"])
    def test_invalid_versions_rejected(self, text: str) -> None:
        """Unrecognizable text raises ValueError."""
        with pytest.raises(ValueError):
            Version.parse(text)

    @pytest.mark.parametrize("text", ["1.0.0post1", "1.0.0final", "2.0x1", "1.0.0devel1"])
    def test_unknown_attached_tags_rejected(self, text: str) -> None:
        with pytest.raises(ValueError):
            Version.parse(text)

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1.0rc1", "1.0.0-rc.1"),
            ("1.0.0c2", "1.0.0-rc.2"),
            ("1.0.0preview1", "1.0.0-rc.1"),
            ("1.0.0RC1", "1.0.0-rc.1"),
            ("1.0.0dev1", "1.0.0-dev.1"),
            ("3.0beta", "3.0.0-beta"),
        ],
    )
    def test_known_attached_tags_accepted(self, text: str, expected: str) -> None:
        assert str(Version.parse(text)) == expected


class TestOrdering:
    """SemVer 2.0.0 precedence, section 11."""

    def test_semver_reference_chain(self) -> None:
        """The precedence example from the SemVer document holds."""
        chain = [
            "1.0.0-alpha",
            "1.0.0-alpha.1",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
            "1.0.0-beta.2",
            "1.0.0-beta.11",
            "1.0.0-rc.1",
            "1.0.0",
        ]
        parsed = [Version.parse(v) for v in chain]
        assert parsed == sorted(parsed)
        for lower, higher in zip(parsed, parsed[1:]):
            assert lower < higher

    def test_numeric_components_compare_numerically(self) -> None:
        assert Version.parse("1.10.0") > Version.parse("1.9.0")
        assert Version.parse("2.0.0") > Version.parse("1.99.99")

    def test_prerelease_sorts_before_release(self) -> None:
        assert Version.parse("3.0.0-beta.1") < Version.parse("3.0.0")
        assert Version.parse("3.0.0-beta.1") > Version.parse("2.99.0")

    def test_version_key_sorts_newest_first(self) -> None:
        versions = ["1.0.0", "2.32.3", "2.31.0", "2.4"]
        assert sorted(versions, key=version_key, reverse=True) == [
            "2.32.3", "2.31.0", "2.4", "1.0.0",
        ]


class TestStringForm:
    """``str()`` gives the normalized spelling."""

    def test_release_is_zero_filled(self) -> None:
        assert str(Version.parse("2.31")) == "2.31.0"

    def test_prerelease_uses_semver_spelling(self) -> None:
        assert str(Version.parse("1.0.0rc1")) == "1.0.0-rc.1"

    def test_parse_version_passes_versions_through(self) -> None:
        v = Version(1, 2, 3)
        assert parse_version(v) is v
        assert parse_version("1.2.3") == v
