"""
Script: image_tools/build_images.py
What: Builds firmware toolchain images for one or more upstream versions.
Doing: Reads firmware tags, selects versions from a semver filter, then runs one container build per version, newest first.
Why: Sequential newest-to-oldest builds let each older build reuse the shared dependency cache.
Goal: Build every planned version, report each result, and fail the run if any build failed.
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

from image_tools.common import BuildFailure, ImageToolError, stream_cmd
from image_tools.config import ToolConfig, parse_build_num
from image_tools.versions import (
    LATEST,
    VersionEntry,
    describe_entries,
    list_tags,
    parse_valid_versions,
    select_build_plan,
)


DEFAULT_CACHE_BUST = "1"


@dataclass(frozen=True)
class BuildResult:
    version: str
    image_tag: str
    success: bool
    error: str | None = None


def join_cleanup_paths(paths: Sequence[str]) -> str | None:
    """Join cache cleanup paths into the single build-arg value the Dockerfile expects."""
    cleaned = [path for path in paths if path]
    return " ".join(cleaned) if cleaned else None


def build_image_command(
    entry: VersionEntry,
    *,
    config: ToolConfig,
    build_num: int,
    cache_bust: str,
    cache_cleanup: str | None,
) -> list[str]:
    """Return the `<runtime> build ...` argv for one version."""
    build_args = [
        "--build-arg",
        f"{config.version_build_arg}={entry.tag}",
        "--build-arg",
        f"CACHE_BUST={cache_bust}",
    ]
    if cache_cleanup:
        build_args.extend(["--build-arg", f"CACHE_CLEANUP={cache_cleanup}"])

    image_ref = config.image_ref(str(entry.version), build_num)
    return [config.container_runtime, "build", *build_args, "-t", image_ref, config.build_context]


def build_env(base_env: Mapping[str, str] | None = None) -> dict[str, str]:
    # The Dockerfile uses `RUN --mount=type=cache`, which needs BuildKit.
    env = dict(os.environ if base_env is None else base_env)
    env["DOCKER_BUILDKIT"] = "1"
    return env


def build_image(
    entry: VersionEntry,
    *,
    config: ToolConfig,
    build_num: int,
    cache_bust: str = DEFAULT_CACHE_BUST,
    cache_cleanup: str | None = None,
    runner: Callable[..., int] = stream_cmd,
) -> BuildResult:
    """
    Build one image and return its result.

    A failed build (non-zero exit or the runtime not starting) is recorded in
    the result instead of raised, so later versions still get built.
    """
    image_tag = config.image_tag(str(entry.version), build_num)
    full_ref = f"{config.image_name}:{image_tag}"
    command = build_image_command(
        entry,
        config=config,
        build_num=build_num,
        cache_bust=cache_bust,
        cache_cleanup=cache_cleanup,
    )

    print(f"Building {full_ref}...", flush=True)
    try:
        return_code = runner(command, env=build_env())
    except ImageToolError as exc:
        print(f"✗ Failed to build {full_ref}: {exc}", file=sys.stderr, flush=True)
        return BuildResult(str(entry.version), image_tag, success=False, error=str(exc))

    if return_code == 0:
        print(f"✓ Successfully built {full_ref}", flush=True)
        return BuildResult(str(entry.version), image_tag, success=True)

    print(f"✗ Failed to build {full_ref} (exit code: {return_code})", file=sys.stderr, flush=True)
    return BuildResult(str(entry.version), image_tag, success=False, error=f"Exit code: {return_code}")


def build_sequentially(
    plan: Sequence[VersionEntry],
    *,
    config: ToolConfig,
    build_num: int,
    cache_bust: str = DEFAULT_CACHE_BUST,
    cache_cleanup_paths: Sequence[str] = (),
    runner: Callable[..., int] = stream_cmd,
) -> list[BuildResult]:
    """Build each planned version in order, one at a time, never stopping early."""
    cache_cleanup = join_cleanup_paths(cache_cleanup_paths)
    return [
        build_image(
            entry,
            config=config,
            build_num=build_num,
            cache_bust=cache_bust,
            cache_cleanup=cache_cleanup,
            runner=runner,
        )
        for entry in plan
    ]


def plan_builds(tags: Sequence[str], version_filter: str, *, all_patches: bool) -> list[VersionEntry]:
    """Turn raw tags and the CLI filter into a build plan, printing what was chosen."""
    entries = parse_valid_versions(tags)
    if not entries and tags:
        print(f"Warning: No valid semver tags found. Sample tags: {', '.join(tags[:5])}", file=sys.stderr)

    if version_filter == LATEST:
        print("Building latest version only")
        if entries:
            print(f"Top 10 versions found: {describe_entries(entries)}")
        plan = select_build_plan(entries, LATEST)
        if plan:
            print(f"Latest version: {plan[0].version} (tag: {plan[0].tag})")
        return plan

    print(f"Filtering tags by semver: {version_filter}")
    matching = select_build_plan(entries, version_filter, latest_patch_only=False)
    print(f"Found {len(matching)} versions matching criteria")
    if all_patches:
        print("Building all patch versions (--all-patches flag set)")
        return matching

    plan = select_build_plan(entries, version_filter)
    if len(matching) > len(plan):
        print(f"Filtered to latest patch per minor version: {len(plan)} versions (from {len(matching)})")
    return plan


def summarize_results(results: Sequence[BuildResult]) -> list[BuildResult]:
    """Print the build summary and return the failed results."""
    successful = [result for result in results if result.success]
    failed = [result for result in results if not result.success]

    print("\n=== Build Summary ===")
    print(f"Successful: {len(successful)}")
    print(f"Failed: {len(failed)}")
    if failed:
        print("\nFailed builds:")
        for result in failed:
            print(f"  - {result.image_tag}: {result.error}")
    return failed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-tools build",
        description="Build firmware toolchain images for upstream versions.",
    )
    parser.add_argument(
        "semver",
        nargs="?",
        default=LATEST,
        help='Semver filter (for example "latest", ">2.5.0", "^2.6")',
    )
    parser.add_argument(
        "--cache-bust",
        default=DEFAULT_CACHE_BUST,
        help="Cache bust value (default: 1, use a timestamp to invalidate the cache)",
    )
    parser.add_argument(
        "--all-patches",
        action="store_true",
        help="Build all patch versions, not just the latest patch per minor version",
    )
    parser.add_argument(
        "--cache-clean",
        action="append",
        default=[],
        metavar="PATH",
        help="Path to clean from the dependency cache (can be used multiple times)",
    )
    parser.add_argument("--build-num", help="Build number for image tags (default: BUILD_NUM or 1)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = ToolConfig.from_env()
    build_num = parse_build_num(args.build_num, source="--build-num") if args.build_num else config.build_num

    print(f"Fetching tags from {config.firmware_dir} submodule...")
    tags = list_tags(config)
    print(f"Found {len(tags)} tags")

    plan = plan_builds(tags, args.semver, all_patches=args.all_patches)
    if not plan:
        print("No versions match the criteria. Exiting.")
        return 0

    cache_cleanup = join_cleanup_paths(args.cache_clean)
    print(
        f"Building {len(plan)} images sequentially (newest to oldest) with BUILD_NUM={build_num}"
    )
    print(f"Versions to build: {', '.join(str(entry.version) for entry in plan)}")
    print(f"Cache bust value: {args.cache_bust}")
    if cache_cleanup:
        print(f"Cache cleanup paths: {cache_cleanup}")
    print("Using shared cache - each version will reuse packages from previous builds", flush=True)

    results = build_sequentially(
        plan,
        config=config,
        build_num=build_num,
        cache_bust=args.cache_bust,
        cache_cleanup_paths=args.cache_clean,
    )

    failed = summarize_results(results)
    if failed:
        raise BuildFailure(f"{len(failed)} of {len(results)} image builds failed")
    return 0
