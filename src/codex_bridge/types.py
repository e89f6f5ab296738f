"""Launch option types for ``codex exec``.

Defines the enumerated option values and the immutable ExecArgs request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .runtime.abort import AbortController

__all__ = [
    "SandboxMode",
    "ModelReasoningEffort",
    "ApprovalMode",
    "ExecArgs",
]


class SandboxMode(str, Enum):
    """Filesystem sandbox applied to commands run by the agent."""

    READ_ONLY = "read-only"
    WORKSPACE_WRITE = "workspace-write"
    DANGER_FULL_ACCESS = "danger-full-access"


class ModelReasoningEffort(str, Enum):
    """Reasoning effort requested from the model."""

    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    XHIGH = "xhigh"


class ApprovalMode(str, Enum):
    """When the agent must ask before running a command."""

    NEVER = "never"
    ON_REQUEST = "on-request"
    ON_FAILURE = "on-failure"
    UNTRUSTED = "untrusted"


def _as_tuple(values: object) -> tuple[str, ...]:
    if not values:
        return ()
    return tuple(str(v) for v in values)  # type: ignore[union-attr]


@dataclass(frozen=True)
class ExecArgs:
    """A single ``codex exec`` invocation.

    Every option is optional; an unset option produces no flag. String values
    for enumerated options are coerced to their enum, list options are frozen
    to tuples in input order.

    Attributes:
        input: Text written to the child's stdin
        base_url: Exported as OPENAI_BASE_URL
        api_key: Exported as CODEX_API_KEY
        thread_id: Resume this thread (``resume <id>``)
        images: Image files attached with ``--image``
        model: ``--model``
        sandbox_mode: ``--sandbox``
        working_directory: ``--cd``
        additional_directories: ``--add-dir``, once per directory
        skip_git_repo_check: ``--skip-git-repo-check``
        output_schema_file: ``--output-schema``
        model_reasoning_effort: ``--config model_reasoning_effort``
        network_access_enabled: ``--config sandbox_workspace_write.network_access``
        web_search_enabled: ``--config features.web_search_request``
        approval_policy: ``--config approval_policy``
        abort: Cancellation handle; triggering it terminates the child
    """

    input: str
    base_url: str | None = None
    api_key: str | None = None
    thread_id: str | None = None
    images: tuple[str, ...] = ()
    model: str | None = None
    sandbox_mode: SandboxMode | None = None
    working_directory: str | None = None
    additional_directories: tuple[str, ...] = ()
    skip_git_repo_check: bool = False
    output_schema_file: str | None = None
    model_reasoning_effort: ModelReasoningEffort | None = None
    network_access_enabled: bool | None = None
    web_search_enabled: bool | None = None
    approval_policy: ApprovalMode | None = None
    abort: AbortController | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "images", _as_tuple(self.images))
        object.__setattr__(
            self, "additional_directories", _as_tuple(self.additional_directories)
        )
        if isinstance(self.working_directory, Path):
            object.__setattr__(self, "working_directory", str(self.working_directory))
        if isinstance(self.output_schema_file, Path):
            object.__setattr__(self, "output_schema_file", str(self.output_schema_file))
        if isinstance(self.sandbox_mode, str):
            object.__setattr__(self, "sandbox_mode", SandboxMode(self.sandbox_mode))
        if isinstance(self.model_reasoning_effort, str):
            object.__setattr__(
                self,
                "model_reasoning_effort",
                ModelReasoningEffort(self.model_reasoning_effort),
            )
        if isinstance(self.approval_policy, str):
            object.__setattr__(self, "approval_policy", ApprovalMode(self.approval_policy))
