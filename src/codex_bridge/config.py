"""codex-bridge environment variable configuration.

Environment variables:
    CODEX_BRIDGE_VENDOR_ROOT: Directory holding the vendored binaries
        - unset = the vendor/ directory shipped inside the package
        - layout: <root>/<target-triple>/<component>/<binary>

    CODEX_BRIDGE_TERM_TIMEOUT: Seconds to wait after SIGTERM before SIGKILL
        - default 2.0, clamped to 0.1-60

    CODEX_BRIDGE_KILL_TIMEOUT: Seconds to wait after SIGKILL
        - default 1.0, clamped to 0.1-60

    CODEX_BRIDGE_LOG_DEBUG: Debug logging
        - true/1/yes = on (debug log written to a temp file)
        - false/0/no = off (default, logs go to stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_timeout(value: str | None, default: float) -> float:
    """Parse a timeout in seconds, falling back to the default on bad input."""
    if not value:
        return default
    try:
        timeout = float(value)
    except ValueError:
        return default
    return max(0.1, min(timeout, 60.0))


def _parse_path(value: str | None) -> Path | None:
    if not value or not value.strip():
        return None
    return Path(value.strip()).expanduser()


def _generate_log_file_path() -> str:
    """Build a timestamped debug log path under the system temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "codex-bridge"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"codex_bridge_debug_{timestamp}.log"

    return str(log_file.resolve())


@dataclass
class Config:
    """codex-bridge configuration.

    Attributes:
        vendor_root: Vendor directory override (None = packaged vendor/)
        term_timeout: Grace period after SIGTERM, in seconds
        kill_timeout: Wait after SIGKILL, in seconds
        log_debug: Write debug logs to a temp file
        log_file: Debug log path (set when log_debug is True)
    """

    vendor_root: Path | None = None
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(vendor_root={self.vendor_root or 'packaged'}, "
            f"term_timeout={self.term_timeout}, "
            f"kill_timeout={self.kill_timeout}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def load_config() -> Config:
    """Load configuration from the environment."""
    log_debug = _parse_bool(os.environ.get("CODEX_BRIDGE_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        vendor_root=_parse_path(os.environ.get("CODEX_BRIDGE_VENDOR_ROOT")),
        term_timeout=_parse_timeout(
            os.environ.get("CODEX_BRIDGE_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT
        ),
        kill_timeout=_parse_timeout(
            os.environ.get("CODEX_BRIDGE_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT
        ),
        log_debug=log_debug,
        log_file=log_file,
    )


# Lazily loaded global instance
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from the environment (used by tests)."""
    global _config
    _config = load_config()
    return _config
