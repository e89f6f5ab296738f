"""codex-bridge - stream ``codex exec`` output from Python.

Environment variables:
    CODEX_BRIDGE_VENDOR_ROOT: Vendored binary directory (default: packaged vendor/)
    CODEX_BRIDGE_TERM_TIMEOUT: Grace period after SIGTERM (default 2.0s)
    CODEX_BRIDGE_KILL_TIMEOUT: Wait after SIGKILL (default 1.0s)
    CODEX_BRIDGE_LOG_DEBUG: Debug log to a temp file (default false)

Usage:
    codex = CodexExec()
    async for line in codex.run(ExecArgs(input="hello")):
        print(line)
"""

__version__ = "0.1.0"

from .errors import (
    BinaryNotFoundError,
    CodexBridgeError,
    NonZeroExitError,
    ProcessExitError,
    SignalExitError,
    SpawnError,
    StreamUnavailableError,
    UnsupportedPlatformError,
)
from .exec import CodexExec, find_codex_path
from .runtime import AbortController, ExitStatus, ProcessRunner, ProcessSpec
from .types import ApprovalMode, ExecArgs, ModelReasoningEffort, SandboxMode

__all__ = [
    "__version__",
    "AbortController",
    "ApprovalMode",
    "BinaryNotFoundError",
    "CodexBridgeError",
    "CodexExec",
    "ExecArgs",
    "ExitStatus",
    "ModelReasoningEffort",
    "NonZeroExitError",
    "ProcessExitError",
    "ProcessRunner",
    "ProcessSpec",
    "SandboxMode",
    "SignalExitError",
    "SpawnError",
    "StreamUnavailableError",
    "UnsupportedPlatformError",
    "find_codex_path",
]
