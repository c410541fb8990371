"""
Script: image_tools/versions.py
What: Reads upstream firmware tags and chooses which versions to build.
Doing: Lists git tags from the firmware submodule, keeps valid semver tags, and filters them into a build plan.
Why: Tag names carry extra suffixes and the build filter can be `latest` or a semver range.
Goal: Produce a newest-first build plan that is easy to test without git.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from image_tools.common import ImageToolError, SourceUnavailable, run_cmd
from image_tools.config import ToolConfig
from image_tools.semver_utils import InvalidVersion, SemanticVersion, VersionRange


LATEST = "latest"
TAG_VERSION_RE = re.compile(r"^(\d+\.\d+\.\d+(?:-[a-zA-Z0-9.-]+)?)")


@dataclass(frozen=True)
class VersionEntry:
    # Raw git tag, passed to the image build so it can check out this exact ref.
    tag: str
    version: SemanticVersion


def list_tags(config: ToolConfig, *, runner: Callable[..., str] = run_cmd) -> list[str]:
    """
    Return tags from the local firmware clone, newest first.

    Git does the first sort (`--sort=-version:refname`); callers still re-sort
    by semver precedence because git's ordering treats prereleases differently.
    """
    try:
        output = runner(["git", "-C", config.firmware_dir, "tag", "--sort=-version:refname"])
    except ImageToolError as exc:
        raise SourceUnavailable(
            f"Failed to fetch tags from the {config.firmware_dir} submodule. "
            "Make sure the submodule is initialized (git submodule update --init).\n"
            f"{exc}"
        ) from exc
    return [line.strip() for line in output.splitlines() if line.strip()]


def extract_tag_version(tag: str) -> str:
    """
    Return the version part of a tag.

    Example: `v2.7.16.a597230` becomes `2.7.16`; `v2.7.0-rc.1` keeps its prerelease.
    """
    version = tag[1:] if tag.startswith("v") else tag
    match = TAG_VERSION_RE.match(version)
    return match.group(1) if match else version


def parse_valid_versions(tags: Iterable[str]) -> list[VersionEntry]:
    """Keep tags with a valid semver version, sorted newest first."""
    entries: list[VersionEntry] = []
    for tag in tags:
        try:
            version = SemanticVersion.parse(extract_tag_version(tag))
        except InvalidVersion:
            continue
        entries.append(VersionEntry(tag=tag, version=version))

    # `sorted` is stable with reverse=True, so duplicate versions keep tag order.
    return sorted(entries, key=lambda entry: entry.version.precedence_key(), reverse=True)


def latest_patch_per_minor(entries: Sequence[VersionEntry]) -> list[VersionEntry]:
    """
    Keep only the first entry seen for each `major.minor` line.

    Input must already be newest first, so the first entry per line is its
    newest patch.
    """
    seen: set[tuple[int, int]] = set()
    result: list[VersionEntry] = []
    for entry in entries:
        minor_key = (entry.version.major, entry.version.minor)
        if minor_key not in seen:
            seen.add(minor_key)
            result.append(entry)
    return result


def filter_by_range(entries: Sequence[VersionEntry], expression: str) -> list[VersionEntry]:
    version_range = VersionRange.parse(expression)
    return [entry for entry in entries if version_range.satisfied_by(entry.version)]


def select_build_plan(
    entries: Sequence[VersionEntry],
    version_filter: str,
    *,
    latest_patch_only: bool = True,
) -> list[VersionEntry]:
    """
    Pick the versions to build from newest-first catalog entries.

    - `latest` selects only the newest version.
    - Anything else is a semver range; by default only the newest patch of each
      `major.minor` line is kept.
    """
    if version_filter == LATEST:
        return list(entries[:1])

    matching = filter_by_range(entries, version_filter)
    if latest_patch_only:
        return latest_patch_per_minor(matching)
    return matching


def find_entry(entries: Sequence[VersionEntry], version: str) -> VersionEntry | None:
    """Return the first catalog entry for one exact version, if the tag exists."""
    try:
        wanted = SemanticVersion.parse(version[1:] if version.startswith("v") else version)
    except InvalidVersion:
        return None
    for entry in entries:
        if entry.version == wanted:
            return entry
    return None


def describe_entries(entries: Sequence[VersionEntry], limit: int = 10) -> str:
    """Format entries as `version (tag)` for progress output."""
    return ", ".join(f"{entry.version} ({entry.tag})" for entry in entries[:limit])
