"""Error types raised by the step runtime."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "ErrorCategory",
    "PiperError",
    "ConfigurationError",
    "ValidationError",
    "BuildError",
]


class ErrorCategory(Enum):
    UNDEFINED = "undefined"
    BUILD = "build"
    COMPLIANCE = "compliance"
    CONFIGURATION = "configuration"
    CUSTOM = "custom"
    INFRASTRUCTURE = "infrastructure"
    SERVICE = "service"
    TEST = "test"

    def __str__(self) -> str:
        return self.value


class PiperError(Exception):
    """Base error carrying the category reported in telemetry."""

    category = ErrorCategory.UNDEFINED

    def __init__(self, message: str, *, category: ErrorCategory | None = None) -> None:
        super().__init__(message)
        if category is not None:
            self.category = category


class ConfigurationError(PiperError):
    category = ErrorCategory.CONFIGURATION


class ValidationError(ConfigurationError):
    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("validation failed: " + "; ".join(self.problems))


class BuildError(PiperError):
    category = ErrorCategory.BUILD
