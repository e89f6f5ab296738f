"""``codex exec`` launcher.

Builds the command line and environment for one ``codex exec`` run and
streams the child's JSONL output back as raw text lines.

Command format:
    codex exec --experimental-json \
      [--model {model}] \
      [--sandbox {mode}] \
      [--cd {dir}] \
      [--add-dir {dir}]... \
      [--skip-git-repo-check] \
      [--output-schema {file}] \
      [--config model_reasoning_effort="{effort}"] \
      [--config sandbox_workspace_write.network_access={bool}] \
      [--config features.web_search_request={bool}] \
      [--config approval_policy="{policy}"] \
      [--image {image}]... \
      [resume {thread_id}]

The prompt is written to stdin.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import aclosing
from pathlib import Path

from .config import get_config
from .environment import build_exec_env
from .runtime.binary_resolver import resolve_binary
from .runtime.process_runner import ProcessRunner, ProcessSpec
from .types import ExecArgs

__all__ = ["CodexExec", "find_codex_path", "CODEX_COMPONENT"]

logger = logging.getLogger(__name__)

CODEX_COMPONENT = "codex"


def find_codex_path(vendor_root: Path | str | None = None) -> Path:
    """Locate the vendored ``codex`` binary for this host."""
    return resolve_binary(CODEX_COMPONENT, vendor_root=vendor_root)


def _bool_literal(value: bool) -> str:
    return "true" if value else "false"


class CodexExec:
    """Runs ``codex exec`` and yields its stdout lines.

    Instances keep no per-run state, so separate ``run()`` calls may proceed
    concurrently.

    Example:
        codex = CodexExec()
        async for line in codex.run(ExecArgs(input="Review this repo", model="gpt-5")):
            event = json.loads(line)
    """

    def __init__(
        self,
        executable_path: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        *,
        runner: ProcessRunner | None = None,
        vendor_root: Path | str | None = None,
    ) -> None:
        """Initialize the launcher.

        Args:
            executable_path: codex binary (default: resolved from the vendor dir)
            env: Complete environment for the child; replaces the parent's
            runner: Process runner (default: timeouts from configuration)
            vendor_root: Vendor directory used when resolving the binary

        Raises:
            UnsupportedPlatformError: No binary target for this host
            BinaryNotFoundError: No vendored binary present
        """
        if executable_path:
            self.executable_path = str(executable_path)
        else:
            self.executable_path = str(find_codex_path(vendor_root))
        self._env_override = dict(env) if env is not None else None
        if runner is None:
            config = get_config()
            runner = ProcessRunner(
                term_timeout=config.term_timeout,
                kill_timeout=config.kill_timeout,
            )
        self._runner = runner

    def build_command(self, args: ExecArgs) -> list[str]:
        """Build the argument vector (without the executable)."""
        cmd = ["exec", "--experimental-json"]

        if args.model:
            cmd.extend(["--model", args.model])

        if args.sandbox_mode:
            cmd.extend(["--sandbox", args.sandbox_mode.value])

        if args.working_directory:
            cmd.extend(["--cd", args.working_directory])

        for directory in args.additional_directories:
            cmd.extend(["--add-dir", directory])

        if args.skip_git_repo_check:
            cmd.append("--skip-git-repo-check")

        if args.output_schema_file:
            cmd.extend(["--output-schema", args.output_schema_file])

        if args.model_reasoning_effort:
            cmd.extend(
                ["--config", f'model_reasoning_effort="{args.model_reasoning_effort.value}"']
            )

        if args.network_access_enabled is not None:
            cmd.extend([
                "--config",
                f"sandbox_workspace_write.network_access="
                f"{_bool_literal(args.network_access_enabled)}",
            ])

        if args.web_search_enabled is not None:
            cmd.extend([
                "--config",
                f"features.web_search_request={_bool_literal(args.web_search_enabled)}",
            ])

        if args.approval_policy:
            cmd.extend(["--config", f'approval_policy="{args.approval_policy.value}"'])

        for image in args.images:
            cmd.extend(["--image", image])

        # Sub-command goes after every flag
        if args.thread_id:
            cmd.extend(["resume", args.thread_id])

        return cmd

    def build_env(self, args: ExecArgs) -> dict[str, str]:
        """Build the child environment (see ``environment.build_exec_env``)."""
        return build_exec_env(args, override=self._env_override)

    async def run(self, args: ExecArgs) -> AsyncIterator[str]:
        """Launch ``codex exec`` and yield each stdout line.

        The iterator raises after its last line if the child failed, so a
        caller that drains it always learns about a bad exit.

        Raises:
            SpawnError, StreamUnavailableError: Before any line is yielded
            NonZeroExitError, SignalExitError: After the last line
        """
        command = self.build_command(args)
        logger.info(f"Executing: {self.executable_path} {' '.join(command)}")

        spec = ProcessSpec(
            argv=[self.executable_path, *command],
            env=self.build_env(args),
            stdin_bytes=args.input.encode("utf-8"),
            name="Codex Exec",
        )
        async with aclosing(self._runner.run(spec, abort=args.abort)) as lines:
            async for line in lines:
                yield line
