"""codex-bridge exception classes.

codex-bridge runtime module v0.1.0

Setup failures (platform, binary lookup, spawn, missing streams) are raised as
soon as they are detected. Exit failures are raised only after the child's
stdout has been fully drained.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

__all__ = [
    "CodexBridgeError",
    "UnsupportedPlatformError",
    "BinaryNotFoundError",
    "SpawnError",
    "StreamUnavailableError",
    "ProcessExitError",
    "NonZeroExitError",
    "SignalExitError",
]


class CodexBridgeError(Exception):
    """Base exception for codex-bridge."""
    pass


class UnsupportedPlatformError(CodexBridgeError):
    """No vendored binary target is known for this OS/architecture.

    Attributes:
        platform: Normalized OS name (e.g. "linux")
        arch: Normalized CPU architecture (e.g. "x64")
    """

    def __init__(self, platform: str, arch: str) -> None:
        self.platform = platform
        self.arch = arch
        super().__init__(f"Unsupported platform: {platform} ({arch})")


class BinaryNotFoundError(CodexBridgeError):
    """Targets are known, but no binary exists at any candidate path.

    Attributes:
        component: Binary component name (e.g. "codex")
        platform: Normalized OS name
        arch: Normalized CPU architecture
        targets: Every target triple that was searched, in order
        candidates: Every filesystem path that was checked, in order
    """

    def __init__(
        self,
        component: str,
        platform: str,
        arch: str,
        targets: Sequence[str],
        candidates: Sequence[Path],
    ) -> None:
        self.component = component
        self.platform = platform
        self.arch = arch
        self.targets = tuple(targets)
        self.candidates = tuple(candidates)
        paths = ", ".join(str(p) for p in self.candidates)
        super().__init__(
            f"{component} binary not found for {platform} ({arch}). "
            f"Searched: {', '.join(self.targets)} (paths: {paths})"
        )


class SpawnError(CodexBridgeError):
    """The OS refused to start the child process.

    Attributes:
        executable: Path of the executable that failed to start
        cause: The underlying OSError
    """

    def __init__(self, executable: str, cause: OSError) -> None:
        self.executable = executable
        self.cause = cause
        super().__init__(f"Failed to spawn {executable}: {cause}")


class StreamUnavailableError(CodexBridgeError):
    """The child process is missing an expected stdio handle."""

    def __init__(self, stream: str) -> None:
        self.stream = stream
        super().__init__(f"Child process has no {stream}")


class ProcessExitError(CodexBridgeError):
    """The child ran but did not exit successfully.

    Attributes:
        name: Display name of the child (e.g. "codex exec")
        stderr: Everything the child wrote to stderr, decoded
    """

    def __init__(self, name: str, message: str, stderr: str = "") -> None:
        self.name = name
        self.stderr = stderr
        super().__init__(message)


class NonZeroExitError(ProcessExitError):
    """The child exited with a non-zero exit code."""

    def __init__(self, name: str, exit_code: int, stderr: str = "") -> None:
        self.exit_code = exit_code
        super().__init__(name, f"{name} exited with code {exit_code}: {stderr}", stderr)


class SignalExitError(ProcessExitError):
    """The child was terminated by a signal rather than exiting."""

    def __init__(self, name: str, signal_name: str, stderr: str = "") -> None:
        self.signal_name = signal_name
        super().__init__(
            name, f"{name} was terminated by signal {signal_name}: {stderr}", stderr
        )
