"""Step commands available through the piper CLI."""

from __future__ import annotations

from typing import Callable, Dict

from piper.command import StepCommand
from piper.metadata import StepData

from .python_build import python_build_command, python_build_metadata

STEP_COMMANDS: Dict[str, Callable[[], StepCommand]] = {
    "pythonBuild": python_build_command,
}

STEP_METADATA: Dict[str, Callable[[], StepData]] = {
    "pythonBuild": python_build_metadata,
}


def step_metadata(name: str) -> StepData:
    """Return the built-in metadata of step ``name``."""

    try:
        factory = STEP_METADATA[name]
    except KeyError:
        known = ", ".join(sorted(STEP_METADATA))
        raise KeyError(f"unknown step '{name}' (known steps: {known})") from None
    return factory()


__all__ = ["STEP_COMMANDS", "STEP_METADATA", "python_build_command", "python_build_metadata", "step_metadata"]
