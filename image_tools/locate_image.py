"""
Script: image_tools/locate_image.py
What: Finds a locally built firmware image by version.
Doing: Lists local images for the configured repository, parses `v<version>-<build>` tags, and picks the best match.
Why: The shell command should reuse an existing image instead of rebuilding it.
Goal: Return the newest matching image reference, or nothing when none exists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable

from image_tools.common import ImageToolError, run_cmd
from image_tools.config import ToolConfig
from image_tools.semver_utils import InvalidVersion, SemanticVersion


@dataclass(frozen=True)
class ImageRef:
    repository: str
    version: SemanticVersion
    build_num: int

    @property
    def tag(self) -> str:
        return f"v{self.version}-{self.build_num}"

    @property
    def reference(self) -> str:
        return f"{self.repository}:{self.tag}"


def image_tag_pattern(repository: str) -> re.Pattern[str]:
    # Podman lists locally built images under `localhost/<name>`.
    return re.compile(
        rf"^(?P<repository>(?:localhost/)?{re.escape(repository)})"
        r":v(?P<version>\d+\.\d+\.\d+(?:-[a-zA-Z0-9.-]+)?)-(?P<build_num>\d+)$"
    )


def parse_image_ref(line: str, repository: str) -> ImageRef | None:
    """Parse `<repo>:v<version>-<build>`; any other tag (like `latest`) returns None."""
    match = image_tag_pattern(repository).match(line.strip())
    if not match:
        return None
    try:
        version = SemanticVersion.parse(match.group("version"))
    except InvalidVersion:
        return None
    return ImageRef(
        repository=match.group("repository"),
        version=version,
        build_num=int(match.group("build_num")),
    )


def list_local_images(config: ToolConfig, *, runner: Callable[..., str] = run_cmd) -> list[str]:
    """
    Return local `<repository>:<tag>` lines for the configured image name.

    A missing runtime or failed listing means "no images", not an error.
    """
    command = [
        config.container_runtime,
        "images",
        "--format",
        "{{.Repository}}:{{.Tag}}",
        config.image_name,
    ]
    try:
        output = runner(command)
    except ImageToolError:
        return []
    return [line.strip() for line in output.splitlines() if line.strip()]


def find_image(
    lines: Iterable[str],
    *,
    repository: str,
    desired_version: str | None = None,
) -> ImageRef | None:
    """
    Pick an image from listed lines.

    - With `desired_version`: exact version match, highest build number wins.
    - Without it: newest version, then highest build number.
    """
    images = [image for image in (parse_image_ref(line, repository) for line in lines) if image]

    if desired_version:
        try:
            wanted = SemanticVersion.parse(desired_version[1:] if desired_version.startswith("v") else desired_version)
        except InvalidVersion:
            return None
        images = [image for image in images if image.version == wanted]

    if not images:
        return None
    return max(images, key=lambda image: (image.version.precedence_key(), image.build_num))


def locate_image(
    config: ToolConfig,
    desired_version: str | None = None,
    *,
    list_images: Callable[[ToolConfig], list[str]] = list_local_images,
) -> ImageRef | None:
    return find_image(
        list_images(config),
        repository=config.image_name,
        desired_version=desired_version,
    )
