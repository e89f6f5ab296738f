"""Vendored binary resolution.

codex-bridge runtime module v0.1.0

Maps the host OS and CPU architecture to an ordered list of target triples
and looks up a prebuilt binary in the vendor directory:

    <vendor-root>/<target-triple>/<component>/<component>[.exe]

Android hosts fall back to the musl Linux build when no Android build is
staged. Only filesystem existence checks are performed here.
"""

from __future__ import annotations

import logging
import platform as _platform
import sys
from pathlib import Path

from ..config import get_config
from ..errors import BinaryNotFoundError, UnsupportedPlatformError

__all__ = [
    "PLATFORM_TARGETS",
    "current_platform",
    "current_arch",
    "resolve_platform_targets",
    "binary_file_name",
    "default_vendor_root",
    "resolve_binary",
]

logger = logging.getLogger(__name__)

# (platform, arch) -> target triples, most preferred first
PLATFORM_TARGETS: dict[tuple[str, str], tuple[str, ...]] = {
    ("android", "arm64"): ("aarch64-linux-android", "aarch64-unknown-linux-musl"),
    ("android", "x64"): ("x86_64-linux-android", "x86_64-unknown-linux-musl"),
    ("linux", "x64"): ("x86_64-unknown-linux-musl",),
    ("linux", "arm64"): ("aarch64-unknown-linux-musl",),
    ("darwin", "x64"): ("x86_64-apple-darwin",),
    ("darwin", "arm64"): ("aarch64-apple-darwin",),
    ("win32", "x64"): ("x86_64-pc-windows-msvc",),
    ("win32", "arm64"): ("aarch64-pc-windows-msvc",),
}

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def current_platform() -> str:
    """Return the normalized host OS name.

    One of "linux", "android", "darwin", "win32", or the raw ``sys.platform``
    for anything else.
    """
    name = sys.platform
    if name == "android" or (name.startswith("linux") and hasattr(sys, "getandroidapilevel")):
        return "android"
    if name.startswith("linux"):
        return "linux"
    return name


def current_arch() -> str:
    """Return the normalized host CPU architecture ("x64", "arm64", ...)."""
    machine = _platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def resolve_platform_targets(platform: str, arch: str) -> tuple[str, ...]:
    """Return candidate target triples for a platform, in priority order.

    Args:
        platform: Normalized OS name
        arch: Normalized CPU architecture

    Returns:
        Non-empty tuple of target triples

    Raises:
        UnsupportedPlatformError: No target is known for the pair
    """
    targets = PLATFORM_TARGETS.get((platform, arch), ())
    if not targets:
        raise UnsupportedPlatformError(platform, arch)
    return targets


def binary_file_name(component: str, platform: str) -> str:
    """File name of a component's binary; ``.exe`` is added on Windows only."""
    return f"{component}.exe" if platform == "win32" else component


def default_vendor_root() -> Path:
    """Vendor directory from configuration, else the packaged vendor/ dir."""
    configured = get_config().vendor_root
    if configured is not None:
        return configured
    return Path(__file__).resolve().parent.parent / "vendor"


def resolve_binary(
    component: str,
    *,
    vendor_root: Path | str | None = None,
    platform: str | None = None,
    arch: str | None = None,
) -> Path:
    """Find the vendored binary for ``component``.

    Candidates are checked in target priority order and the first existing
    path wins.

    Args:
        component: Component directory and binary base name (e.g. "codex")
        vendor_root: Vendor directory (default: ``default_vendor_root()``)
        platform: Normalized OS name (default: host)
        arch: Normalized CPU architecture (default: host)

    Returns:
        Absolute path to the binary

    Raises:
        UnsupportedPlatformError: No target is known for the host
        BinaryNotFoundError: No candidate path exists
    """
    platform = platform or current_platform()
    arch = arch or current_arch()
    root = Path(vendor_root) if vendor_root is not None else default_vendor_root()

    targets = resolve_platform_targets(platform, arch)
    file_name = binary_file_name(component, platform)

    candidates: list[Path] = []
    for target in targets:
        candidate = root / target / component / file_name
        candidates.append(candidate)
        if candidate.exists():
            logger.debug(f"Resolved {component} binary for {platform} ({arch}): {candidate}")
            return candidate.absolute()

    raise BinaryNotFoundError(component, platform, arch, targets, candidates)
