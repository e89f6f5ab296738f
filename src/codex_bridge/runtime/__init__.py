"""Runtime module for vendored binary lookup and subprocess streaming.

This module provides binary resolution, isolated process execution with
line-oriented output streaming, exit status translation and cooperative
cancellation.
"""

from __future__ import annotations

from .abort import AbortController
from .binary_resolver import (
    PLATFORM_TARGETS,
    current_arch,
    current_platform,
    resolve_binary,
    resolve_platform_targets,
)
from .line_stream import LineStream, StderrBuffer
from .process_runner import ExitStatus, ProcessRunner, ProcessSpec, resolve_exit

__all__ = [
    "AbortController",
    "ExitStatus",
    "LineStream",
    "PLATFORM_TARGETS",
    "ProcessRunner",
    "ProcessSpec",
    "StderrBuffer",
    "current_arch",
    "current_platform",
    "resolve_binary",
    "resolve_exit",
    "resolve_platform_targets",
]
