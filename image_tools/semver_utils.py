"""
Script: image_tools/semver_utils.py
What: Parses semantic versions and npm-style version ranges.
Doing: Validates `major.minor.patch[-pre][+build]` strings, orders them by semver precedence, and tests range membership.
Why: Upstream firmware tags and the `build` filter argument both use semver notation.
Goal: Give version selection one precise, dependency-free definition of "newer" and "matches".
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Callable

from image_tools.common import ImageToolError


class InvalidVersion(ImageToolError):
    """Raised when a string is not a valid semantic version."""


class InvalidVersionRange(ImageToolError):
    """Raised when a version range expression cannot be parsed."""


_NUMBER = r"0|[1-9]\d*"
_PRERELEASE_ID = r"(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)"
_BUILD = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"

SEMVER_RE = re.compile(
    rf"^(?P<major>{_NUMBER})\.(?P<minor>{_NUMBER})\.(?P<patch>{_NUMBER})"
    rf"(?:-(?P<prerelease>{_PRERELEASE_ID}(?:\.{_PRERELEASE_ID})*))?"
    rf"(?:\+(?P<build>{_BUILD}))?$"
)

# A partial version may stop after major or minor, or use x/X/* wildcards.
_PART = r"0|[1-9]\d*|[xX*]"
PARTIAL_RE = re.compile(
    rf"^v?(?P<major>{_PART})"
    rf"(?:\.(?P<minor>{_PART})"
    rf"(?:\.(?P<patch>{_PART})"
    rf"(?:-(?P<prerelease>{_PRERELEASE_ID}(?:\.{_PRERELEASE_ID})*))?"
    rf"(?:\+{_BUILD})?)?)?$"
)
COMPARATOR_RE = re.compile(r"^(?P<op><=|>=|~>|<|>|=|~|\^)?(?P<partial>.*)$")
OPERATOR_SPACE_RE = re.compile(r"(<=|>=|~>|<|>|=|~|\^)\s+")
HYPHEN_RE = re.compile(r"^(?P<low>\S+)\s+-\s+(?P<high>\S+)$")


def _identifier_key(identifier: str) -> tuple:
    # Numeric identifiers always sort before alphanumeric ones.
    if identifier.isdigit():
        return (0, int(identifier))
    return (1, identifier)


@total_ordering
@dataclass(frozen=True, eq=False)
class SemanticVersion:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> SemanticVersion:
        """Parse a strict semantic version; build metadata is accepted and dropped."""
        match = SEMVER_RE.match(text.strip())
        if not match:
            raise InvalidVersion(f"Invalid semantic version: {text!r}")
        prerelease = match.group("prerelease")
        return cls(
            int(match.group("major")),
            int(match.group("minor")),
            int(match.group("patch")),
            tuple(prerelease.split(".")) if prerelease else (),
        )

    @property
    def release(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def precedence_key(self) -> tuple:
        """
        Return a tuple that sorts the same way semver precedence does.

        A release (`1.2.3`) ranks above any of its prereleases (`1.2.3-rc.1`);
        prerelease identifiers compare field by field and a shorter list of
        otherwise equal identifiers ranks lower.
        """
        if not self.prerelease:
            prerelease_key: tuple = (1,)
        else:
            prerelease_key = (0, *(_identifier_key(part) for part in self.prerelease))
        return (self.major, self.minor, self.patch, prerelease_key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.precedence_key() == other.precedence_key()

    def __lt__(self, other: SemanticVersion) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self.precedence_key() < other.precedence_key()

    def __hash__(self) -> int:
        return hash(self.precedence_key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        return text


def is_valid(text: str) -> bool:
    """True when `text` is a syntactically valid semantic version."""
    return SEMVER_RE.match(text.strip()) is not None


_OPERATORS: dict[str, Callable[[SemanticVersion, SemanticVersion], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
}


@dataclass(frozen=True)
class Comparator:
    operator: str
    version: SemanticVersion

    def matches(self, version: SemanticVersion) -> bool:
        return _OPERATORS[self.operator](version, self.version)

    def __str__(self) -> str:
        return f"{self.operator}{self.version}"


@dataclass(frozen=True)
class _Partial:
    major: int | None
    minor: int | None
    patch: int | None
    prerelease: tuple[str, ...]

    def floor(self) -> SemanticVersion:
        """Lowest version covered by this partial (`1.2` -> `1.2.0`)."""
        return SemanticVersion(self.major or 0, self.minor or 0, self.patch or 0, self.prerelease)

    def ceiling(self) -> SemanticVersion:
        """First version past this partial (`1.2` -> `1.3.0-0`, `1` -> `2.0.0-0`)."""
        if self.minor is None:
            return _below(self.major + 1, 0, 0)
        return _below(self.major, self.minor + 1, 0)


def _below(major: int, minor: int, patch: int) -> SemanticVersion:
    # `x.y.z-0` is the lowest possible version of x.y.z, so `<x.y.z-0` also
    # excludes every prerelease of x.y.z.
    return SemanticVersion(major, minor, patch, ("0",))


def _parse_partial(text: str, expression: str) -> _Partial:
    match = PARTIAL_RE.match(text)
    if not match:
        raise InvalidVersionRange(f"Invalid semver range {expression!r}: cannot parse {text!r}")

    parts: list[int | None] = []
    for name in ("major", "minor", "patch"):
        value = match.group(name)
        # Anything after a wildcard is a wildcard too (`1.x.3` means `1.x.x`).
        if value is None or value in ("x", "X", "*") or (parts and parts[-1] is None):
            parts.append(None)
        else:
            parts.append(int(value))

    prerelease = match.group("prerelease")
    return _Partial(
        parts[0],
        parts[1],
        parts[2],
        tuple(prerelease.split(".")) if prerelease and parts[2] is not None else (),
    )


def _primitive(op: str, partial: _Partial) -> list[Comparator]:
    if partial.major is None:
        # `<*` and `>*` can never match; every other form means "any version".
        if op in ("<", ">"):
            return [Comparator("<", _below(0, 0, 0))]
        return []

    if partial.patch is not None:
        return [Comparator(op or "=", partial.floor())]

    if op in ("", "="):
        return [Comparator(">=", partial.floor()), Comparator("<", partial.ceiling())]
    if op == ">":
        return [Comparator(">=", SemanticVersion(*partial.ceiling().release))]
    if op == ">=":
        return [Comparator(">=", partial.floor())]
    if op == "<":
        return [Comparator("<", _below(*partial.floor().release))]
    return [Comparator("<", partial.ceiling())]


def _tilde(partial: _Partial) -> list[Comparator]:
    if partial.major is None:
        return []
    if partial.minor is None:
        return [Comparator(">=", partial.floor()), Comparator("<", _below(partial.major + 1, 0, 0))]
    return [
        Comparator(">=", partial.floor()),
        Comparator("<", _below(partial.major, partial.minor + 1, 0)),
    ]


def _caret(partial: _Partial) -> list[Comparator]:
    if partial.major is None:
        return []
    lower = Comparator(">=", partial.floor())
    if partial.minor is None or partial.major != 0:
        return [lower, Comparator("<", _below(partial.major + 1, 0, 0))]
    if partial.patch is None or partial.minor != 0:
        return [lower, Comparator("<", _below(0, partial.minor + 1, 0))]
    return [lower, Comparator("<", _below(0, 0, partial.patch + 1))]


def _hyphen(low: _Partial, high: _Partial) -> list[Comparator]:
    comparators: list[Comparator] = []
    if low.major is not None:
        comparators.append(Comparator(">=", low.floor()))
    if high.major is not None:
        if high.patch is not None:
            comparators.append(Comparator("<=", high.floor()))
        else:
            comparators.append(Comparator("<", high.ceiling()))
    return comparators


def _parse_comparator_set(text: str, expression: str) -> tuple[Comparator, ...]:
    hyphen = HYPHEN_RE.match(text)
    if hyphen:
        return tuple(
            _hyphen(
                _parse_partial(hyphen.group("low"), expression),
                _parse_partial(hyphen.group("high"), expression),
            )
        )

    comparators: list[Comparator] = []
    for token in OPERATOR_SPACE_RE.sub(r"\1", text).split():
        match = COMPARATOR_RE.match(token)
        op = match.group("op") or ""
        partial = _parse_partial(match.group("partial"), expression)
        if op in ("~", "~>"):
            comparators.extend(_tilde(partial))
        elif op == "^":
            comparators.extend(_caret(partial))
        else:
            comparators.extend(_primitive(op, partial))
    return tuple(comparators)


def _set_allows(comparators: tuple[Comparator, ...], version: SemanticVersion) -> bool:
    if not all(comparator.matches(version) for comparator in comparators):
        return False
    if not version.prerelease:
        return True
    # Prereleases only match when the range itself names a prerelease of the
    # same major.minor.patch (`>=2.7.0-rc.1` allows `2.7.0-rc.2`, not `2.8.0-rc.1`).
    return any(
        comparator.version.prerelease and comparator.version.release == version.release
        for comparator in comparators
    )


@dataclass(frozen=True)
class VersionRange:
    expression: str
    alternatives: tuple[tuple[Comparator, ...], ...]

    @classmethod
    def parse(cls, expression: str) -> VersionRange:
        """Parse an npm-style range such as `>2.5.0`, `^2.6`, or `2.5.x || >=2.7.0`."""
        alternatives = tuple(
            _parse_comparator_set(part.strip(), expression) for part in expression.split("||")
        )
        return cls(expression, alternatives)

    def satisfied_by(self, version: SemanticVersion) -> bool:
        return any(_set_allows(comparators, version) for comparators in self.alternatives)

    def __str__(self) -> str:
        return self.expression
