"""File-backed Common Pipeline Environment.

Every resource parameter lives in its own file below
``<env root>/<resource>/<category>/<name>``. Strings are stored verbatim,
everything else as JSON in a ``.json`` sibling so the type survives the
round trip to the next step.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from .errors import ConfigurationError

__all__ = ["get_resource_parameter", "set_resource_parameter"]


def _param_path(path: Path | str, resource_name: str, param_name: str) -> Path:
    return Path(path) / resource_name / param_name


def set_resource_parameter(path: Path | str, resource_name: str, param_name: str, value: Any) -> None:
    """Write ``value`` for ``param_name``; empty values remove stale files."""

    target = _param_path(path, resource_name, param_name)
    json_target = target.with_name(target.name + ".json")
    if value is None or value == "" or value == [] or value == {}:
        for stale in (target, json_target):
            if stale.exists():
                stale.unlink()
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(value, str):
        target.write_text(value, encoding="utf-8")
        if json_target.exists():
            json_target.unlink()
        return
    json_target.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
    if target.exists():
        target.unlink()


def get_resource_parameter(path: Path | str, resource_name: str, param_name: str) -> Optional[Any]:
    """Read a value written by :func:`set_resource_parameter`, ``None`` if absent."""

    target = _param_path(path, resource_name, param_name)
    if target.is_file():
        return target.read_text(encoding="utf-8")
    json_target = target.with_name(target.name + ".json")
    if json_target.is_file():
        try:
            return json.loads(json_target.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"invalid JSON in pipeline environment file '{json_target}': {exc}") from exc
    return None
