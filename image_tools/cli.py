from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Mapping, Sequence

from image_tools.common import ImageToolError


Command = Callable[[Sequence[str]], int]


def command_map() -> dict[str, Command]:
    """
    Map CLI command names to Python entry functions.

    Each value is a `main(argv)` function from one command module and returns
    the process exit code.
    """
    from image_tools.build_images import main as build_images
    from image_tools.open_shell import main as open_shell

    return {
        "build": build_images,
        "shell": open_shell,
    }


def build_parser(commands: Mapping[str, Command]) -> argparse.ArgumentParser:
    """Build argument parser with one command choice; the rest goes to the command."""
    parser = argparse.ArgumentParser(
        prog="image-tools",
        description="Build firmware toolchain images or open a shell in one.",
    )
    parser.add_argument("command", choices=sorted(commands.keys()))
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the command")
    return parser


def run_command(command: str, args: Sequence[str], commands: Mapping[str, Command]) -> int:
    """
    Run one registered command and return its exit code.

    `commands` is passed in to keep this function easy to test.
    """
    return commands[command](list(args))


def main(argv: list[str] | None = None) -> None:
    # Build command registry once so parser and dispatcher use the same keys.
    commands = command_map()
    parser = build_parser(commands)
    args = parser.parse_args(argv)

    try:
        exit_code = run_command(args.command, args.args, commands)
    except ImageToolError as exc:
        # Keep failures short and readable in terminal output.
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        raise SystemExit(130)

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
