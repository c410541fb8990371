"""
Script: image_tools/common.py
What: Shared helper functions used by all `image_tools` modules.
Doing: Wraps env reads, the error types, and captured, streamed, and interactive command execution.
Why: Avoids duplicated subprocess handling code.
Goal: Keep command behavior and error messages consistent across modules.
"""

from __future__ import annotations

import codecs
import io
import os
import subprocess
import sys
import threading
from typing import IO, Callable, Mapping, Sequence


class ImageToolError(RuntimeError):
    """Raised when an image helper hits a known error condition."""


class SourceUnavailable(ImageToolError):
    """Raised when version tags cannot be read from the firmware checkout."""


class BuildFailure(ImageToolError):
    """Raised after a build run when at least one image failed to build."""


class BuildOrFindFailed(ImageToolError):
    """Raised when the shell cannot find an image, even after building one."""


class LaunchFailure(ImageToolError):
    """Raised when the interactive container session cannot be started."""


def optional_env(name: str, default: str = "") -> str:
    """Return an environment variable with a fallback default."""
    return os.environ.get(name) or default


def format_cmd(args: Sequence[str]) -> str:
    return " ".join(args)


def run_cmd(args: Sequence[str]) -> str:
    """Run a command and return stdout, raising a readable error on failure."""
    try:
        result = subprocess.run(
            list(args),
            check=True,
            text=True,
            capture_output=True,
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        stdout = (exc.stdout or "").strip()
        details = stderr or stdout or str(exc)
        raise ImageToolError(f"Command failed: {format_cmd(args)}\n{details}") from exc
    except OSError as exc:
        raise ImageToolError(f"Could not start command: {format_cmd(args)}\n{exc}") from exc

    return result.stdout


def _sink_writer(sink: IO) -> Callable[[bytes], None]:
    """Return a function that writes raw child output to a text or binary sink."""
    binary = getattr(sink, "buffer", None)
    if binary is not None:

        def write_binary(chunk: bytes) -> None:
            # Text written earlier may still sit in the wrapper's buffer.
            sink.flush()
            binary.write(chunk)
            binary.flush()

        return write_binary

    if isinstance(sink, io.TextIOBase):
        # Incremental decoding keeps multi-byte characters split across chunks intact.
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        def write_text(chunk: bytes) -> None:
            sink.write(decoder.decode(chunk))
            sink.flush()

        return write_text

    def write_raw(chunk: bytes) -> None:
        sink.write(chunk)
        sink.flush()

    return write_raw


def _relay(source: IO[bytes], sink: IO) -> None:
    # Forward raw chunks as soon as they arrive so progress bars and partial
    # lines from the build tool show up immediately.
    write = _sink_writer(sink)
    for chunk in iter(lambda: source.read1(65536), b""):
        if write is None:
            continue
        try:
            write(chunk)
        except (OSError, TypeError, ValueError) as exc:
            # The pipe must keep draining or the child blocks once it fills.
            print(f"Stopped relaying command output: {exc}", file=sys.__stderr__)
            write = None
    source.close()


def stream_cmd(
    args: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    stdout: IO | None = None,
    stderr: IO | None = None,
) -> int:
    """
    Run a command while relaying its stdout/stderr live, then return its exit code.

    Two reader threads drain the child's pipes while the main thread waits for
    the exit status, so long builds show output as it is produced instead of
    all at once at the end.

    If the caller is interrupted (Ctrl+C), the child is terminated before the
    interrupt is re-raised.
    """
    out_sink = stdout if stdout is not None else sys.stdout
    err_sink = stderr if stderr is not None else sys.stderr
    try:
        process = subprocess.Popen(
            list(args),
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise ImageToolError(f"Could not start command: {format_cmd(args)}\n{exc}") from exc

    readers = [
        threading.Thread(target=_relay, args=(process.stdout, out_sink), daemon=True),
        threading.Thread(target=_relay, args=(process.stderr, err_sink), daemon=True),
    ]
    for reader in readers:
        reader.start()

    try:
        return_code = process.wait()
    except KeyboardInterrupt:
        process.terminate()
        try:
            process.wait(timeout=10)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        raise
    finally:
        for reader in readers:
            reader.join(timeout=5)

    return return_code


def run_interactive(args: Sequence[str]) -> int:
    """
    Run a command attached to the caller's terminal and return its exit code.

    stdin/stdout/stderr are inherited, so the child owns the TTY until it exits.
    """
    # The session runs as a child so its exit code can become this command's exit code.
    try:
        completed = subprocess.run(list(args))
    except OSError as exc:
        raise LaunchFailure(f"Failed to run container: {format_cmd(args)}\n{exc}") from exc
    return completed.returncode
