"""Standalone signal-forwarding relay.

Launches a vendored binary with inherited stdio, forwards SIGINT, SIGTERM and
SIGHUP to it, and when it exits makes this process end the same way:

- child killed by a signal: re-raise that signal against ourselves with the
  default disposition, so our own parent sees a signal death
- child exited: exit with its code (1 if none is available)

Signal registration is process-global, so it lives behind a single
SignalForwarder instance (``get_signal_forwarder()``) whose ``start()`` is
idempotent.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import NoReturn

import anyio

from .config import get_config
from .errors import CodexBridgeError, SpawnError
from .logs import setup_logging
from .runtime.binary_resolver import resolve_binary
from .runtime.process_runner import ExitStatus

__all__ = [
    "FORWARDED_SIGNALS",
    "RELAY_COMPONENT",
    "SignalForwarder",
    "get_signal_forwarder",
    "run_relay",
    "mirror_exit",
    "main",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

RELAY_COMPONENT = "codex-responses-api-proxy"

FORWARDED_SIGNALS: tuple[signal.Signals, ...] = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class SignalForwarder:
    """Forwards received OS signals to one attached child process.

    Signals that arrive before a child is attached are queued and delivered
    on ``attach()``. Delivery is best-effort: a child that has already exited
    is skipped and delivery errors are logged, not raised.

    Example:
        forwarder = get_signal_forwarder()
        await forwarder.start()
        try:
            forwarder.attach(process)
            await process.wait()
        finally:
            forwarder.detach()
            await forwarder.stop()
    """

    def __init__(self, signals: Iterable[int] | None = None) -> None:
        self.signals = tuple(signals) if signals is not None else FORWARDED_SIGNALS
        self._target: asyncio.subprocess.Process | None = None
        self._pending: list[int] = []
        self._task: asyncio.Task[None] | None = None
        self._original_handlers: dict[int, object] = {}
        self._running: bool = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Install signal handling. Calling it again while running is a no-op."""
        if self._running:
            logger.debug("SignalForwarder already running")
            return
        self._running = True

        if IS_WINDOWS:
            # The asyncio backend has no signal receiver on Windows
            for sig in self.signals:
                self._original_handlers[sig] = signal.signal(
                    sig, lambda signum, frame: self.forward(signum)
                )
            logger.debug(f"Signal handlers installed: {self._signal_names()}")
            return

        ready = asyncio.Event()
        self._task = asyncio.create_task(self._receive(ready))
        waiter = asyncio.create_task(ready.wait())
        done, _ = await asyncio.wait(
            {waiter, self._task}, return_when=asyncio.FIRST_COMPLETED
        )
        if self._task in done:
            waiter.cancel()
            self._running = False
            self._task.result()
        logger.debug(f"Signal receiver installed: {self._signal_names()}")

    async def stop(self) -> None:
        """Remove signal handling and restore previous handlers."""
        if not self._running:
            return
        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)  # type: ignore[arg-type]
        self._original_handlers.clear()
        self._pending.clear()
        logger.debug("Signal forwarding stopped")

    def attach(self, process: asyncio.subprocess.Process) -> None:
        """Direct forwarded signals at ``process``, flushing queued ones."""
        self._target = process
        pending, self._pending = self._pending, []
        for signum in pending:
            self.forward(signum)

    def detach(self) -> None:
        self._target = None

    def forward(self, signum: int) -> None:
        """Send ``signum`` to the attached child, if it is still running."""
        name = _signal_name(signum)
        process = self._target
        if process is None:
            logger.debug(f"{name} received before child attached, queued")
            self._pending.append(signum)
            return
        if process.returncode is not None:
            logger.debug(f"{name} received after child pid={process.pid} exited, ignored")
            return
        try:
            process.send_signal(signum)
            logger.info(f"Forwarded {name} to child pid={process.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"Could not forward {name} to pid={process.pid}: {e}")

    async def _receive(self, ready: asyncio.Event) -> None:
        with anyio.open_signal_receiver(*self.signals) as receiver:
            ready.set()
            async for signum in receiver:
                self.forward(signum)

    def _signal_names(self) -> str:
        return ",".join(_signal_name(s) for s in self.signals)


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


_forwarder: SignalForwarder | None = None


def get_signal_forwarder() -> SignalForwarder:
    """Process-wide SignalForwarder (created on first use)."""
    global _forwarder
    if _forwarder is None:
        _forwarder = SignalForwarder()
    return _forwarder


async def run_relay(
    binary_path: Path | str,
    argv: Sequence[str],
    *,
    forwarder: SignalForwarder | None = None,
) -> ExitStatus:
    """Run the binary with inherited stdio, forwarding signals until it exits.

    Args:
        binary_path: Executable to launch
        argv: Arguments passed through unchanged
        forwarder: Signal forwarder (default: the process-wide one)

    Returns:
        The child's exit status

    Raises:
        SpawnError: The executable could not be started
    """
    forwarder = forwarder or get_signal_forwarder()
    await forwarder.start()
    try:
        try:
            process = await asyncio.create_subprocess_exec(str(binary_path), *argv)
        except OSError as e:
            raise SpawnError(str(binary_path), e) from e

        logger.debug(f"Relay started child pid={process.pid} argv={binary_path}")
        forwarder.attach(process)
        returncode = await process.wait()
    finally:
        forwarder.detach()
        await forwarder.stop()

    status = ExitStatus(returncode)
    logger.debug(
        f"Relay child exited code={status.code} signal={status.signal_name}"
    )
    return status


def mirror_exit(status: ExitStatus) -> NoReturn:
    """End this process the way the child ended."""
    signum = status.signal_number
    if signum is not None:
        # Python's SIGINT handler would turn this into KeyboardInterrupt
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)
        # Still alive: the signal is blocked in this process
        sys.exit(128 + signum)
    sys.exit(status.code if status.code is not None else 1)


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Entry point for the ``codex-responses-api-proxy`` relay."""
    config = get_config()
    setup_logging(config, default_level=logging.WARNING)

    args = list(sys.argv[1:] if argv is None else argv)
    try:
        binary = resolve_binary(RELAY_COMPONENT)
        status = asyncio.run(run_relay(binary, args))
    except CodexBridgeError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        # SIGINT arrived while no forwarder was installed
        logger.debug("Relay interrupted outside the forwarding window")
        status = ExitStatus(128 + signal.SIGINT if IS_WINDOWS else -signal.SIGINT)

    mirror_exit(status)


if __name__ == "__main__":
    main()
