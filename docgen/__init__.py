"""Markdown documentation generator for pipeline steps."""

from __future__ import annotations

from .generator import add_default_parameters, generate_step_documentation, write_step_documentation
from .parameters import ConditionDefault, create_parameters_section

__all__ = [
    "ConditionDefault",
    "add_default_parameters",
    "create_parameters_section",
    "generate_step_documentation",
    "write_step_documentation",
]
