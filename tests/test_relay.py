"""Signal-forwarding relay tests.

Test coverage:
- SignalForwarder queueing, delivery and idempotent start
- mirror_exit for exit codes and signal deaths
- The relay entry point end-to-end against a staged vendor binary
"""

from __future__ import annotations

import asyncio
import os
import signal
import subprocess
import sys
from pathlib import Path
from unittest import mock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from codex_bridge.errors import SpawnError
from codex_bridge.relay import (
    FORWARDED_SIGNALS,
    RELAY_COMPONENT,
    SignalForwarder,
    get_signal_forwarder,
    main,
    mirror_exit,
    run_relay,
)
from codex_bridge.runtime.process_runner import ExitStatus

IS_WINDOWS = sys.platform == "win32"
SRC_DIR = Path(__file__).parent.parent / "src"

posix_only = pytest.mark.skipif(IS_WINDOWS, reason="POSIX signals")


def _fake_process(returncode=None) -> mock.Mock:
    process = mock.Mock()
    process.pid = 4242
    process.returncode = returncode
    return process


# =============================================================================
# SignalForwarder
# =============================================================================


class TestSignalForwarder:

    def test_default_signals(self):
        assert signal.SIGINT in FORWARDED_SIGNALS
        assert signal.SIGTERM in FORWARDED_SIGNALS
        assert SignalForwarder().signals == FORWARDED_SIGNALS

    def test_singleton(self):
        assert get_signal_forwarder() is get_signal_forwarder()

    def test_forward_to_attached_child(self):
        forwarder = SignalForwarder()
        process = _fake_process()
        forwarder.attach(process)
        forwarder.forward(signal.SIGTERM)
        process.send_signal.assert_called_once_with(signal.SIGTERM)

    def test_signal_before_attach_is_queued(self):
        forwarder = SignalForwarder()
        forwarder.forward(signal.SIGINT)
        forwarder.forward(signal.SIGTERM)

        process = _fake_process()
        forwarder.attach(process)

        assert process.send_signal.call_args_list == [
            mock.call(signal.SIGINT),
            mock.call(signal.SIGTERM),
        ]

    def test_exited_child_skipped(self):
        forwarder = SignalForwarder()
        process = _fake_process(returncode=0)
        forwarder.attach(process)
        forwarder.forward(signal.SIGTERM)
        process.send_signal.assert_not_called()

    def test_delivery_error_swallowed(self):
        forwarder = SignalForwarder()
        process = _fake_process()
        process.send_signal.side_effect = ProcessLookupError()
        forwarder.attach(process)
        forwarder.forward(signal.SIGTERM)

    def test_detach(self):
        forwarder = SignalForwarder()
        process = _fake_process()
        forwarder.attach(process)
        forwarder.detach()
        forwarder.forward(signal.SIGTERM)
        process.send_signal.assert_not_called()

    @pytest.mark.asyncio
    @posix_only
    async def test_start_idempotent(self):
        forwarder = SignalForwarder()
        await forwarder.start()
        try:
            task = forwarder._task
            await forwarder.start()
            assert forwarder._task is task
            assert forwarder.running
        finally:
            await forwarder.stop()
        assert not forwarder.running
        await forwarder.stop()

    @pytest.mark.asyncio
    @posix_only
    async def test_received_signal_forwarded(self):
        forwarder = SignalForwarder(signals=[signal.SIGUSR1])
        process = _fake_process()
        await forwarder.start()
        try:
            forwarder.attach(process)
            os.kill(os.getpid(), signal.SIGUSR1)
            for _ in range(100):
                if process.send_signal.called:
                    break
                await asyncio.sleep(0.01)
        finally:
            forwarder.detach()
            await forwarder.stop()
        process.send_signal.assert_called_once_with(signal.SIGUSR1)


# =============================================================================
# mirror_exit
# =============================================================================


class TestMirrorExit:

    def test_exit_code(self):
        with pytest.raises(SystemExit) as exc_info:
            mirror_exit(ExitStatus(7))
        assert exc_info.value.code == 7

    def test_success(self):
        with pytest.raises(SystemExit) as exc_info:
            mirror_exit(ExitStatus(0))
        assert exc_info.value.code == 0

    @posix_only
    def test_signal_reraised(self):
        with mock.patch("codex_bridge.relay.os.kill") as kill, \
                mock.patch("codex_bridge.relay.signal.signal") as set_handler:
            with pytest.raises(SystemExit) as exc_info:
                mirror_exit(ExitStatus(-signal.SIGTERM))

        set_handler.assert_called_once_with(signal.SIGTERM, signal.SIG_DFL)
        kill.assert_called_once_with(os.getpid(), signal.SIGTERM)
        assert exc_info.value.code == 128 + signal.SIGTERM


class TestMainInterrupted:

    @posix_only
    def test_keyboard_interrupt_ends_by_sigint(self, tmp_path: Path):
        def interrupted(coro):
            coro.close()
            raise KeyboardInterrupt

        with mock.patch("codex_bridge.relay.setup_logging"), \
                mock.patch("codex_bridge.relay.resolve_binary", return_value=tmp_path / "proxy"), \
                mock.patch("codex_bridge.relay.asyncio.run", side_effect=interrupted), \
                mock.patch("codex_bridge.relay.mirror_exit", side_effect=SystemExit(130)) as mirror:
            with pytest.raises(SystemExit):
                main([])

        mirror.assert_called_once_with(ExitStatus(-signal.SIGINT))


# =============================================================================
# run_relay
# =============================================================================


class TestRunRelay:

    @pytest.mark.asyncio
    @posix_only
    async def test_exit_status_returned(self, fake_cli_path: Path):
        forwarder = SignalForwarder()
        status = await run_relay(
            sys.executable,
            [str(fake_cli_path), "--exit-code", "3"],
            forwarder=forwarder,
        )
        assert status.code == 3
        assert not forwarder.running

    @pytest.mark.asyncio
    @posix_only
    async def test_spawn_error(self, tmp_path: Path):
        forwarder = SignalForwarder()
        with pytest.raises(SpawnError):
            await run_relay(tmp_path / "missing", [], forwarder=forwarder)
        assert not forwarder.running


# =============================================================================
# Entry point
# =============================================================================


def _relay_env(vendor_root: Path) -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if not k.startswith("CODEX_BRIDGE_")}
    env["PYTHONPATH"] = str(SRC_DIR)
    env["CODEX_BRIDGE_VENDOR_ROOT"] = str(vendor_root)
    return env


def _run_relay_process(vendor_root: Path, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "codex_bridge", *args],
        env=_relay_env(vendor_root),
        stdin=subprocess.DEVNULL,
        capture_output=True,
        timeout=30,
    )


@pytest.mark.integration
@posix_only
class TestRelayProcess:

    def test_exit_code_mirrored(self, make_vendor_binary):
        vendor_root = make_vendor_binary(RELAY_COMPONENT)
        result = _run_relay_process(vendor_root, "--exit-code", "7")
        assert result.returncode == 7
        assert b'"type": "started"' in result.stdout

    def test_arguments_passed_through(self, make_vendor_binary):
        vendor_root = make_vendor_binary(RELAY_COMPONENT, "--dump-argv")
        result = _run_relay_process(vendor_root, "--port", "0", "--http-shutdown")
        assert result.returncode == 0
        assert b'"--port", "0", "--http-shutdown"' in result.stdout

    def test_signal_death_mirrored(self, make_vendor_binary):
        vendor_root = make_vendor_binary(RELAY_COMPONENT)
        result = _run_relay_process(vendor_root, "--signal", "SIGINT")
        assert result.returncode == -signal.SIGINT

    def test_missing_binary(self, tmp_path: Path):
        result = _run_relay_process(tmp_path / "empty-vendor")
        assert result.returncode == 1
        assert RELAY_COMPONENT.encode() in result.stderr

    def test_sigterm_forwarded(self, make_vendor_binary):
        vendor_root = make_vendor_binary(RELAY_COMPONENT, "--duration", "20")
        relay = subprocess.Popen(
            [sys.executable, "-m", "codex_bridge"],
            env=_relay_env(vendor_root),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        try:
            first = relay.stdout.readline()
            assert b'"type": "started"' in first
            relay.send_signal(signal.SIGTERM)
            returncode = relay.wait(timeout=15)
        finally:
            if relay.poll() is None:
                relay.kill()
                relay.wait()
            relay.stdout.close()
            relay.stderr.close()

        assert returncode == -signal.SIGTERM
