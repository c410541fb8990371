"""
Script: image_tools/open_shell.py
What: Opens an interactive shell inside a firmware toolchain image.
Doing: Looks for a local image, builds the requested (or latest) version when none exists, then runs the shell.
Why: Developers should get a working toolchain shell with one command.
Goal: Start the shell in the right image and return its exit code.
"""

from __future__ import annotations

import argparse
from typing import Callable, Sequence

from image_tools.build_images import BuildResult, build_sequentially
from image_tools.common import BuildOrFindFailed, run_interactive
from image_tools.config import ToolConfig
from image_tools.locate_image import ImageRef, list_local_images, locate_image
from image_tools.versions import (
    LATEST,
    VersionEntry,
    find_entry,
    list_tags,
    parse_valid_versions,
    select_build_plan,
)


def shell_build_plan(entries: Sequence[VersionEntry], desired_version: str | None) -> list[VersionEntry]:
    """Return a one-entry plan for the requested version, or the latest one."""
    if desired_version:
        entry = find_entry(entries, desired_version)
        return [entry] if entry else []
    return select_build_plan(entries, LATEST)


def shell_command(config: ToolConfig, image: ImageRef) -> list[str]:
    return [config.container_runtime, "run", "-it", "--rm", image.reference, config.shell_command]


def resolve_image(
    desired_version: str | None,
    *,
    config: ToolConfig,
    list_images: Callable[[ToolConfig], list[str]] = list_local_images,
    fetch_tags: Callable[[ToolConfig], list[str]] = list_tags,
    build: Callable[[list[VersionEntry]], list[BuildResult]] | None = None,
) -> ImageRef:
    """
    Find an image for the version, building it once if it is missing.

    Without a version, the newest upstream tag decides which image is wanted,
    so an older local image never stands in for a newer release.

    Raises `BuildOrFindFailed` when no upstream tag exists for the version or
    the image is still missing after the build.
    """
    plan: list[VersionEntry] | None = None
    if not desired_version:
        print("Finding latest version...")
        plan = shell_build_plan(parse_valid_versions(fetch_tags(config)), None)
        if not plan:
            raise BuildOrFindFailed("No valid semver tags found; cannot pick the latest version")
        print(f"Latest version: {plan[0].version} (tag: {plan[0].tag})")
        desired_version = str(plan[0].version)

    print(f"Looking for image with version {desired_version}...")
    image = locate_image(config, desired_version, list_images=list_images)
    if image is not None:
        return image

    if plan is None:
        plan = shell_build_plan(parse_valid_versions(fetch_tags(config)), desired_version)
    if not plan:
        raise BuildOrFindFailed(
            f"No upstream tag found for version {desired_version}; cannot build an image for it"
        )

    target = plan[0]
    print(f"Image not found for version {target.version}. Building it now...", flush=True)
    if build is None:
        build_sequentially(plan, config=config, build_num=config.build_num)
    else:
        build(plan)

    image = locate_image(config, str(target.version), list_images=list_images)
    if image is None:
        raise BuildOrFindFailed(f"Failed to build or find image for version {target.version}")
    return image


def open_shell(
    desired_version: str | None,
    *,
    config: ToolConfig,
    list_images: Callable[[ToolConfig], list[str]] = list_local_images,
    fetch_tags: Callable[[ToolConfig], list[str]] = list_tags,
    build: Callable[[list[VersionEntry]], list[BuildResult]] | None = None,
    launch: Callable[[Sequence[str]], int] = run_interactive,
) -> int:
    image = resolve_image(
        desired_version,
        config=config,
        list_images=list_images,
        fetch_tags=fetch_tags,
        build=build,
    )

    print(f"Opening {config.shell_command} shell in {image.reference}...")
    print('(Type "exit" to leave the container)', flush=True)
    return launch(shell_command(config, image))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-tools shell",
        description="Open an interactive shell in a firmware toolchain image.",
    )
    parser.add_argument(
        "version",
        nargs="?",
        help="Firmware version (for example 2.7.16); defaults to the newest upstream version",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return open_shell(args.version, config=ToolConfig.from_env())
