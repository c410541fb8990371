"""
Script: image_tools/config.py
What: Holds the settings shared by the build, locate, and shell helpers.
Doing: Reads image name, container runtime, build number, and paths from env with safe defaults.
Why: Passing one explicit object makes it easy to test with another runtime or repository.
Goal: Keep every tunable value in one place instead of module-level constants.
"""

from __future__ import annotations

from dataclasses import dataclass

from image_tools.common import ImageToolError, optional_env


SUPPORTED_RUNTIMES = ("docker", "podman")


@dataclass(frozen=True)
class ToolConfig:
    image_name: str = "meshtastic-docker"
    container_runtime: str = "docker"
    build_num: int = 1
    # Local clone (git submodule) of the upstream firmware repository.
    firmware_dir: str = "firmware"
    # Dockerfile `ARG` that receives the upstream tag to check out.
    version_build_arg: str = "MESHTASTIC_VERSION"
    build_context: str = "."
    shell_command: str = "bash"

    @classmethod
    def from_env(cls) -> "ToolConfig":
        """Build a config from environment variables, falling back to defaults."""
        defaults = cls()
        runtime = optional_env("CONTAINER_RUNTIME", defaults.container_runtime)
        if runtime not in SUPPORTED_RUNTIMES:
            raise ImageToolError(
                f"Unsupported CONTAINER_RUNTIME={runtime}; expected one of: {', '.join(SUPPORTED_RUNTIMES)}"
            )

        return cls(
            image_name=optional_env("IMAGE_NAME", defaults.image_name),
            container_runtime=runtime,
            build_num=parse_build_num(optional_env("BUILD_NUM", str(defaults.build_num)), source="BUILD_NUM"),
            firmware_dir=optional_env("FIRMWARE_DIR", defaults.firmware_dir),
            version_build_arg=optional_env("VERSION_BUILD_ARG", defaults.version_build_arg),
            build_context=optional_env("BUILD_CONTEXT", defaults.build_context),
            shell_command=optional_env("SHELL_COMMAND", defaults.shell_command),
        )

    def image_tag(self, version: str, build_num: int | None = None) -> str:
        """Return the local tag for one version, for example `v2.7.16-1`."""
        return f"v{version}-{self.build_num if build_num is None else build_num}"

    def image_ref(self, version: str, build_num: int | None = None) -> str:
        """Return the full image reference, for example `meshtastic-docker:v2.7.16-1`."""
        return f"{self.image_name}:{self.image_tag(version, build_num)}"


def parse_build_num(value: str, *, source: str = "build number") -> int:
    """Parse a positive build number, naming the source in the error."""
    try:
        build_num = int(value)
    except ValueError as exc:
        raise ImageToolError(f"Invalid {source}: {value!r} is not an integer") from exc
    if build_num < 1:
        raise ImageToolError(f"Invalid {source}: {build_num} must be 1 or greater")
    return build_num
