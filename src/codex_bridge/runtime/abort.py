"""Cooperative cancellation handle for a running child process."""

from __future__ import annotations

import asyncio

__all__ = ["AbortController"]


class AbortController:
    """One-shot abort flag that a ProcessRunner watches.

    Calling ``abort()`` makes the runner terminate the child as soon as
    possible. The abort itself never raises; the child's resulting exit
    status is reported like any other failed exit.

    Example:
        abort = AbortController()
        task = asyncio.create_task(consume(codex.run(ExecArgs(input="hi", abort=abort))))
        ...
        abort.abort()
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self) -> None:
        """Request termination. Safe to call more than once."""
        self._event.set()

    async def wait(self) -> None:
        """Block until ``abort()`` has been called."""
        await self._event.wait()
