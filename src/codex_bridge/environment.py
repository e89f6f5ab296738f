"""Child environment composition.

The child's environment is built from three tiers:

    base      parent environment copy, or a caller override used wholesale
    defaults  filled in only where base has no (or an empty) value
    overlay   always wins

An override replaces the parent environment entirely; the two are never
merged.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .types import ExecArgs

__all__ = [
    "EnvironmentLayers",
    "build_exec_env",
    "INTERNAL_ORIGINATOR_ENV",
    "PYTHON_SDK_ORIGINATOR",
    "BASE_URL_ENV",
    "API_KEY_ENV",
]

INTERNAL_ORIGINATOR_ENV = "CODEX_INTERNAL_ORIGINATOR_OVERRIDE"
PYTHON_SDK_ORIGINATOR = "codex_sdk_py"
BASE_URL_ENV = "OPENAI_BASE_URL"
API_KEY_ENV = "CODEX_API_KEY"


@dataclass(frozen=True)
class EnvironmentLayers:
    """Layered environment; ``merged()`` produces the final mapping."""

    base: Mapping[str, str]
    defaults: Mapping[str, str] = field(default_factory=dict)
    overlay: Mapping[str, str] = field(default_factory=dict)

    def merged(self) -> dict[str, str]:
        env = dict(self.base)
        for key, value in self.defaults.items():
            if not env.get(key):
                env[key] = value
        env.update(self.overlay)
        return env


def build_exec_env(
    args: ExecArgs,
    override: Mapping[str, str] | None = None,
    ambient: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the environment for one ``codex exec`` child.

    Args:
        args: Launch request (supplies base_url and api_key)
        override: Caller environment; when given, ``ambient`` is ignored
        ambient: Parent environment (default: ``os.environ``)

    Returns:
        Fresh environment mapping
    """
    if override is not None:
        base = dict(override)
    else:
        base = dict(os.environ if ambient is None else ambient)

    overlay: dict[str, str] = {}
    if args.base_url:
        overlay[BASE_URL_ENV] = args.base_url
    if args.api_key:
        overlay[API_KEY_ENV] = args.api_key

    return EnvironmentLayers(
        base=base,
        defaults={INTERNAL_ORIGINATOR_ENV: PYTHON_SDK_ORIGINATOR},
        overlay=overlay,
    ).merged()
