"""Validation of resolved step configuration against step metadata."""

from __future__ import annotations

from typing import Any, Dict, List

from .errors import ValidationError
from .metadata import StepData, StepParameters

__all__ = ["missing_value", "validate_step_config"]


def missing_value(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _matches(value: Any, expected: str) -> bool:
    if isinstance(value, bool):
        return ("true" if value else "false") == expected.lower()
    return str(value) == expected


def _check_possible_values(param: StepParameters, value: Any) -> List[str]:
    if not param.possible_values or missing_value(value):
        return []
    allowed = [str(v).lower() if isinstance(v, bool) else str(v) for v in param.possible_values]
    candidates = value if isinstance(value, list) else [value]
    problems = []
    for item in candidates:
        text = ("true" if item else "false") if isinstance(item, bool) else str(item)
        if text not in allowed:
            problems.append(
                f"the value '{text}' of parameter '{param.name}' is not allowed, "
                f"possible values are: {', '.join(allowed)}"
            )
    return problems


def validate_step_config(metadata: StepData, values: Dict[str, Any]) -> None:
    """Raise :class:`ValidationError` listing every problem found in ``values``."""

    problems: List[str] = []
    for param in metadata.parameters:
        value = values.get(param.name)
        if param.mandatory and missing_value(value):
            problems.append(f"the mandatory parameter '{param.name}' is not set")
        for condition in param.mandatory_if:
            if _matches(values.get(condition.name), condition.value) and missing_value(value):
                problems.append(
                    f"the parameter '{param.name}' is mandatory when "
                    f"'{condition.name}' is '{condition.value}'"
                )
        problems.extend(_check_possible_values(param, value))
    if problems:
        raise ValidationError(problems)
