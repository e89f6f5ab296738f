"""Process runner: spawn, stream, resolve exit, tear down.

codex-bridge runtime module v0.1.0

One ProcessRunner.run() call owns exactly one child process:
- spawns it in its own session/process group
- writes the input payload to stdin from a background task, then closes stdin
- yields stdout as text lines while stderr is drained into a buffer
- after stdout closes, joins on the exit status and raises on failure
- always tears down on the way out (normal end, error, or cancellation)

Exit resolution order: a spawn-time error wins over everything, then exit
code 0 is success, a signal death is SignalExitError and any other code is
NonZeroExitError.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..errors import (
    CodexBridgeError,
    NonZeroExitError,
    SignalExitError,
    SpawnError,
    StreamUnavailableError,
)
from .abort import AbortController
from .line_stream import LineStream, StderrBuffer

__all__ = [
    "ExitStatus",
    "ProcessRunner",
    "ProcessSpec",
    "resolve_exit",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL


@dataclass(frozen=True)
class ExitStatus:
    """How a child process ended.

    asyncio reports a POSIX signal death as a negative return code; this
    splits that back into ``code`` and ``signal_number``.
    """

    returncode: int | None

    @property
    def signal_number(self) -> int | None:
        if IS_WINDOWS or self.returncode is None or self.returncode >= 0:
            return None
        return -self.returncode

    @property
    def signal_name(self) -> str | None:
        signum = self.signal_number
        if signum is None:
            return None
        try:
            return signal.Signals(signum).name
        except ValueError:
            return f"signal {signum}"

    @property
    def code(self) -> int | None:
        """Numeric exit code, or None when killed by a signal."""
        if self.signal_number is not None:
            return None
        return self.returncode

    @property
    def success(self) -> bool:
        return self.returncode == 0


def resolve_exit(
    name: str,
    status: ExitStatus,
    stderr: str = "",
    spawn_error: CodexBridgeError | None = None,
) -> None:
    """Turn a finished child into success (return) or failure (raise).

    Args:
        name: Display name used in error messages
        status: Final exit status
        stderr: Captured stderr text
        spawn_error: Early error recorded while starting the child; raised
            even if the child later reported exit code 0

    Raises:
        CodexBridgeError: ``spawn_error`` as given
        SignalExitError: Child was killed by a signal
        NonZeroExitError: Child exited with a non-zero code
    """
    if spawn_error is not None:
        raise spawn_error
    if status.success:
        return
    if status.signal_name is not None:
        raise SignalExitError(name, status.signal_name, stderr)
    raise NonZeroExitError(name, status.returncode if status.returncode is not None else -1, stderr)


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Command line arguments (first element is the executable)
        env: Complete environment for the child (None = inherit parent)
        cwd: Working directory (None = inherit parent)
        stdin_bytes: Payload written to stdin before it is closed
        name: Display name for errors (default: executable file name)
    """

    argv: list[str]
    env: Mapping[str, str] | None = None
    cwd: Path | None = None
    stdin_bytes: bytes = b""
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or Path(self.argv[0]).name


@dataclass
class ProcessRunner:
    """Cross-platform runner for one child process per ``run()`` call.

    Holds only timeouts, so one instance can serve concurrent calls.

    Example:
        runner = ProcessRunner()
        spec = ProcessSpec(argv=["codex", "exec"], stdin_bytes=b"prompt")

        async for line in runner.run(spec):
            handle(line)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    async def run(
        self,
        spec: ProcessSpec,
        *,
        abort: AbortController | None = None,
        on_stderr: Callable[[bytes], None] | None = None,
    ) -> AsyncIterator[str]:
        """Run the subprocess and yield its stdout lines.

        Args:
            spec: Process specification
            abort: Optional handle; triggering it terminates the child
            on_stderr: Optional callback for raw stderr chunks

        Yields:
            Stdout lines as text, without line terminators

        Raises:
            SpawnError: The OS could not start the executable
            StreamUnavailableError: A stdio pipe is missing
            NonZeroExitError: After the last line, if the exit code is non-zero
            SignalExitError: After the last line, if the child died by signal
        """
        process: asyncio.subprocess.Process | None = None
        stderr_task: asyncio.Task[None] | None = None
        abort_task: asyncio.Task[None] | None = None
        stdin_task: asyncio.Task[None] | None = None
        stderr = StderrBuffer(on_stderr)

        kwargs = self._build_subprocess_kwargs(spec)

        try:
            try:
                process = await asyncio.create_subprocess_exec(
                    *spec.argv,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=spec.cwd,
                    **kwargs,
                )
            except OSError as e:
                raise SpawnError(spec.argv[0], e) from e

            logger.debug(
                f"Started subprocess pid={process.pid} "
                f"argv={spec.argv[0]} args={len(spec.argv) - 1}"
            )

            if abort is not None:
                abort_task = asyncio.create_task(self._watch_abort(process, abort))

            stderr_task = asyncio.create_task(stderr.drain(process.stderr))

            if process.stdin is None:
                raise StreamUnavailableError("stdin")
            if process.stdout is None:
                raise StreamUnavailableError("stdout")

            # Must run alongside stdout consumption or an echoing child deadlocks
            stdin_task = asyncio.create_task(
                self._write_stdin(process.stdin, spec.stdin_bytes)
            )

            async def finalize() -> None:
                await stdin_task
                await stderr_task
                returncode = await process.wait()
                logger.debug(
                    f"Subprocess completed pid={process.pid} "
                    f"returncode={returncode} stderr_bytes={stderr.size}"
                )
                resolve_exit(spec.display_name, ExitStatus(returncode), stderr.text())

            async for line in LineStream(process.stdout, finalize):
                yield line

        finally:
            await self._safe_cleanup(process, stdin_task, stderr_task, abort_task)

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        """Environment plus platform-specific process group isolation."""
        kwargs: dict[str, Any] = {}

        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            # Equivalent to setsid(); the child leads its own process group
            kwargs["start_new_session"] = True

        return kwargs

    async def _write_stdin(self, stdin: asyncio.StreamWriter, payload: bytes) -> None:
        """Write the whole payload once and close stdin."""
        try:
            if payload:
                stdin.write(payload)
                await stdin.drain()
            stdin.close()
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            # The child stopped reading; its exit status decides the outcome
            logger.debug(f"Child closed stdin before payload was written: {e}")

    async def _watch_abort(
        self,
        process: asyncio.subprocess.Process,
        abort: AbortController,
    ) -> None:
        await abort.wait()
        if process.returncode is None:
            logger.info(f"Abort requested, terminating subprocess pid={process.pid}")
            await self._terminate_process(process)

    async def _safe_cleanup(
        self,
        process: asyncio.subprocess.Process | None,
        stdin_task: asyncio.Task[None] | None,
        stderr_task: asyncio.Task[None] | None,
        abort_task: asyncio.Task[None] | None,
    ) -> None:
        """Run cleanup shielded from cancellation of the consuming task."""
        cleanup = asyncio.ensure_future(
            self._do_cleanup(process, stdin_task, stderr_task, abort_task)
        )
        try:
            await asyncio.shield(cleanup)
        except asyncio.CancelledError:
            # Let the single cleanup run to completion before propagating
            await cleanup
            raise

    async def _do_cleanup(
        self,
        process: asyncio.subprocess.Process | None,
        stdin_task: asyncio.Task[None] | None,
        stderr_task: asyncio.Task[None] | None,
        abort_task: asyncio.Task[None] | None,
    ) -> None:
        for task in (abort_task, stdin_task, stderr_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        if process is not None and process.returncode is None:
            await self._terminate_process(process)

    async def _terminate_process(self, process: asyncio.subprocess.Process) -> None:
        """Terminate gracefully, then forcefully.

        1. SIGTERM to the process group (CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout
        3. SIGKILL to the process group (kill() on Windows)
        4. Wait up to kill_timeout
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            if IS_WINDOWS:
                self._windows_signal(process, graceful=True)
            else:
                self._posix_signal_group(process, signal.SIGTERM)

            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            if IS_WINDOWS:
                self._windows_signal(process, graceful=False)
            else:
                self._posix_signal_group(process, signal.SIGKILL)

            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(f"Subprocess killed pid={pid} returncode={process.returncode}")
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")
        except OSError as e:
            logger.warning(f"Error terminating subprocess pid={pid}: {e}")

    def _posix_signal_group(
        self,
        process: asyncio.subprocess.Process,
        sig: signal.Signals,
    ) -> None:
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, sig)
            logger.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, signalling pid={process.pid} only: {e}")
            process.send_signal(sig)

    def _windows_signal(
        self,
        process: asyncio.subprocess.Process,
        graceful: bool,
    ) -> None:
        if graceful:
            try:
                # Reaches the whole group thanks to CREATE_NEW_PROCESS_GROUP
                os.kill(process.pid, signal.CTRL_BREAK_EVENT)
                logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
                return
            except (ProcessLookupError, OSError) as e:
                logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
        try:
            process.kill()
        except ProcessLookupError:
            pass
