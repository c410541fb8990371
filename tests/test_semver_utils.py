"""
Script: tests/test_semver_utils.py
What: Tests semantic version parsing, precedence, and range matching.
Doing: Checks valid/invalid versions, the semver precedence chain, and npm-style range forms.
Why: Every build plan depends on these comparisons being exact.
Goal: Keep "newer than" and "matches filter" stable.
"""

from __future__ import annotations

import unittest

from image_tools.semver_utils import (
    InvalidVersion,
    InvalidVersionRange,
    SemanticVersion,
    VersionRange,
    is_valid,
)


def v(text: str) -> SemanticVersion:
    return SemanticVersion.parse(text)


class SemanticVersionTests(unittest.TestCase):
    def test_parses_release_and_prerelease(self) -> None:
        version = v("2.7.0-rc.1")
        self.assertEqual(version.release, (2, 7, 0))
        self.assertEqual(version.prerelease, ("rc", "1"))
        self.assertEqual(str(version), "2.7.0-rc.1")

    def test_build_metadata_is_ignored(self) -> None:
        self.assertEqual(v("1.2.3+build.5"), v("1.2.3"))
        self.assertEqual(str(v("1.2.3+build.5")), "1.2.3")

    def test_rejects_invalid_versions(self) -> None:
        for text in ("1.2", "01.2.3", "1.2.3-01", "notaversion", "v1.2.3", "1.2.3-"):
            with self.subTest(text=text):
                self.assertFalse(is_valid(text))
                with self.assertRaises(InvalidVersion):
                    SemanticVersion.parse(text)

    def test_precedence_chain(self) -> None:
        # Ordering example from the semver 2.0 specification.
        ordered = [
            "1.0.0-alpha",
            "1.0.0-alpha.1",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
            "1.0.0-beta.2",
            "1.0.0-beta.11",
            "1.0.0-rc.1",
            "1.0.0",
            "1.0.1",
            "1.1.0",
            "2.0.0",
        ]
        versions = [v(text) for text in ordered]
        self.assertEqual(sorted(reversed(versions)), versions)
        for lower, higher in zip(versions, versions[1:]):
            self.assertLess(lower, higher)

    def test_numeric_fields_compare_as_numbers(self) -> None:
        self.assertGreater(v("2.7.16"), v("2.7.9"))
        self.assertGreater(v("2.10.0"), v("2.9.99"))


class VersionRangeTests(unittest.TestCase):
    def assertMatches(self, expression: str, accepted: list[str], rejected: list[str]) -> None:
        version_range = VersionRange.parse(expression)
        for text in accepted:
            with self.subTest(range=expression, version=text):
                self.assertTrue(version_range.satisfied_by(v(text)))
        for text in rejected:
            with self.subTest(range=expression, version=text):
                self.assertFalse(version_range.satisfied_by(v(text)))

    def test_primitive_comparators(self) -> None:
        self.assertMatches(">2.6.0", ["2.6.1", "2.7.16", "3.0.0"], ["2.6.0", "2.5.9"])
        self.assertMatches(">=2.6.0", ["2.6.0"], ["2.5.9"])
        self.assertMatches("<=2.6.0", ["2.6.0", "1.0.0"], ["2.6.1"])
        self.assertMatches("2.6.1", ["2.6.1"], ["2.6.0", "2.6.2"])
        self.assertMatches("=2.6.1", ["2.6.1"], ["2.6.2"])

    def test_whitespace_between_operator_and_version(self) -> None:
        self.assertMatches(">= 2.6.0 < 2.7.0", ["2.6.0", "2.6.9"], ["2.7.0", "2.5.0"])

    def test_x_ranges(self) -> None:
        self.assertMatches("2.x", ["2.0.0", "2.7.16"], ["3.0.0", "1.9.9"])
        self.assertMatches("2.6", ["2.6.0", "2.6.5"], ["2.7.0"])
        self.assertMatches("*", ["0.0.1", "9.9.9"], [])
        self.assertMatches(">2.6", ["2.7.0"], ["2.6.9"])
        self.assertMatches("<2.6", ["2.5.9"], ["2.6.0"])
        self.assertMatches("<=2.6", ["2.6.9"], ["2.7.0"])

    def test_tilde_and_caret(self) -> None:
        self.assertMatches("~2.6.1", ["2.6.1", "2.6.9"], ["2.6.0", "2.7.0"])
        self.assertMatches("~2", ["2.0.0", "2.9.0"], ["3.0.0"])
        self.assertMatches("^2.6", ["2.6.0", "2.9.0"], ["2.5.0", "3.0.0"])
        self.assertMatches("^0.2.3", ["0.2.3", "0.2.9"], ["0.3.0"])
        self.assertMatches("^0.0.3", ["0.0.3"], ["0.0.4"])

    def test_hyphen_range(self) -> None:
        self.assertMatches("2.6.0 - 2.7", ["2.6.0", "2.7.16"], ["2.5.9", "2.8.0"])
        self.assertMatches("2.6.0 - 2.7.1", ["2.7.1"], ["2.7.2"])

    def test_alternatives(self) -> None:
        self.assertMatches("<2.6 || >=2.7.16", ["2.5.9", "2.7.16"], ["2.6.1", "2.7.15"])

    def test_prereleases_need_a_matching_prerelease_comparator(self) -> None:
        self.assertMatches(">2.6.0", [], ["2.7.0-rc.1"])
        self.assertMatches("*", [], ["1.0.0-beta"])
        self.assertMatches(">=2.7.0-rc.0", ["2.7.0-rc.1", "2.7.0", "2.8.0"], ["2.8.0-rc.1"])

    def test_invalid_range_raises(self) -> None:
        for expression in (">=banana", "2.6.0.1", "~>", "2.6.0 - "):
            with self.subTest(expression=expression):
                with self.assertRaises(InvalidVersionRange):
                    VersionRange.parse(expression)


if __name__ == "__main__":
    unittest.main()
