"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path
from typing import Callable
from unittest import mock

import pytest

PROJECT_ROOT = Path(__file__).parent.parent

SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_CLI_PATH = FIXTURES_DIR / "fake_cli.py"

IS_WINDOWS = sys.platform == "win32"


@pytest.fixture
def fake_cli_path() -> Path:
    """Path of the fake child script."""
    return FAKE_CLI_PATH


@pytest.fixture
def fake_cli_argv() -> list[str]:
    """argv prefix that runs the fake child with this interpreter."""
    return [sys.executable, str(FAKE_CLI_PATH)]


@pytest.fixture
def clean_config():
    """Reload configuration with no CODEX_BRIDGE_* variables set."""
    from codex_bridge.config import reload_config

    env = {k: v for k, v in os.environ.items() if not k.startswith("CODEX_BRIDGE_")}
    with mock.patch.dict(os.environ, env, clear=True):
        yield reload_config()
    reload_config()


@pytest.fixture
def make_vendor_binary(tmp_path: Path) -> Callable[..., Path]:
    """Stage an executable wrapper around fake_cli.py in a vendor tree.

    The wrapper is placed under the host's first target triple and forwards
    its arguments to fake_cli.py with the given fixed options in front.
    Returns the vendor root.
    """
    from codex_bridge.errors import UnsupportedPlatformError
    from codex_bridge.runtime.binary_resolver import (
        binary_file_name,
        current_arch,
        current_platform,
        resolve_platform_targets,
    )

    if IS_WINDOWS:
        pytest.skip("POSIX shell wrapper")

    try:
        targets = resolve_platform_targets(current_platform(), current_arch())
    except UnsupportedPlatformError:
        pytest.skip("No vendored target for this host")

    vendor_root = tmp_path / "vendor"

    def _make(component: str, *fixed_args: str) -> Path:
        binary_dir = vendor_root / targets[0] / component
        binary_dir.mkdir(parents=True, exist_ok=True)
        binary = binary_dir / binary_file_name(component, current_platform())
        quoted = " ".join(f'"{a}"' for a in fixed_args)
        binary.write_text(
            "#!/bin/sh\n"
            f'exec "{sys.executable}" "{FAKE_CLI_PATH}" {quoted} "$@"\n'
        )
        binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return vendor_root

    return _make
