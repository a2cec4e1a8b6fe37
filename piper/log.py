"""Logging for step executions.

All step output goes through the ``piper`` logger. Records are formatted as
``<level> <step> - <message>`` and pass through a masking filter so that
registered secrets never reach the console, the error details file or the
log collector.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, NoReturn, Optional

from interfaces.masking import mask

from .errors import ErrorCategory, PiperError

__all__ = [
    "CollectorHook",
    "ErrorCategory",
    "FatalHook",
    "defer_exit_handler",
    "entry",
    "fatal",
    "get_error_category",
    "register_hook",
    "register_secret",
    "reset",
    "set_error_category",
    "set_step_name",
    "set_verbose",
    "step_name",
]

LOGGER_NAME = "piper"

_LOGGER = logging.getLogger(LOGGER_NAME)
_STATE: Dict[str, Any] = {
    "step_name": "(noStep)",
    "error_category": ErrorCategory.UNDEFINED,
    "exit_handler": None,
}
_SECRETS: List[str] = []
_HOOKS: List[logging.Handler] = []


class _StepFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname.lower()
        if level == "critical":
            level = "fatal"
        elif level == "warning":
            level = "warn"
        return f"{level:<5} {_STATE['step_name']} - {record.getMessage()}"


class _SecretFilter(logging.Filter):
    """Rewrites the record message with registered secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask(message, _SECRETS)
        if masked != message or record.args:
            record.msg = masked
            record.args = None
        if record.exc_info and record.exc_info[1] is not None:
            error_text = mask(str(record.exc_info[1]), _SECRETS)
            record.msg = f"{record.msg} - {error_text}"
            record.exc_info = None
            record.exc_text = None
        return True


class _ConsoleHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time."""

    def __init__(self) -> None:
        logging.Handler.__init__(self)

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr


_FILTER = _SecretFilter()


def _configure() -> None:
    if getattr(_LOGGER, "_piper_configured", False):
        return
    handler = _ConsoleHandler()
    handler.setFormatter(_StepFormatter())
    _LOGGER.addHandler(handler)
    _LOGGER.addFilter(_FILTER)
    _LOGGER.setLevel(logging.INFO)
    _LOGGER.propagate = False
    _LOGGER._piper_configured = True  # type: ignore[attr-defined]


def entry() -> logging.Logger:
    """Return the step logger, installing the console handler on first use."""

    _configure()
    return _LOGGER


def set_step_name(name: str) -> None:
    _STATE["step_name"] = name


def step_name() -> str:
    return _STATE["step_name"]


def set_verbose(verbose: bool) -> None:
    entry().setLevel(logging.DEBUG if verbose else logging.INFO)


def register_secret(secret: Optional[str]) -> None:
    """Mask ``secret`` in all subsequent log output."""

    if not secret:
        return
    if secret not in _SECRETS:
        _SECRETS.append(secret)
        # longest first so that overlapping secrets are fully masked
        _SECRETS.sort(key=len, reverse=True)


def registered_secrets() -> List[str]:
    return list(_SECRETS)


def set_error_category(category: ErrorCategory) -> None:
    _STATE["error_category"] = category


def get_error_category() -> ErrorCategory:
    return _STATE["error_category"]


def register_hook(hook: logging.Handler) -> None:
    entry().addHandler(hook)
    _HOOKS.append(hook)


def defer_exit_handler(handler: Optional[Callable[[], None]]) -> None:
    """Run ``handler`` before the process exits through :func:`fatal`."""

    _STATE["exit_handler"] = handler


def fatal(error: BaseException, message: str = "step execution failed") -> NoReturn:
    """Log ``error`` at fatal level, run the exit handler and exit with code 1."""

    if isinstance(error, PiperError) and get_error_category() is ErrorCategory.UNDEFINED:
        set_error_category(error.category)
    entry().critical(message, exc_info=error)
    handler = _STATE["exit_handler"]
    _STATE["exit_handler"] = None
    if handler is not None:
        handler()
    raise SystemExit(1)


def reset() -> None:
    """Restore the pristine logging state; used between step runs and in tests."""

    for hook in _HOOKS:
        _LOGGER.removeHandler(hook)
    _HOOKS.clear()
    _SECRETS.clear()
    _STATE.update(
        step_name="(noStep)",
        error_category=ErrorCategory.UNDEFINED,
        exit_handler=None,
    )
    _LOGGER.setLevel(logging.INFO)


class FatalHook(logging.Handler):
    """Writes ``<step>_errorDetails.json`` when a fatal entry is logged."""

    def __init__(self, correlation_id: str = "", path: Path | str = ".") -> None:
        super().__init__(level=logging.CRITICAL)
        self.correlation_id = correlation_id
        self.path = Path(path)

    def emit(self, record: logging.LogRecord) -> None:
        details = {
            "message": record.getMessage(),
            "error": record.getMessage().rsplit(" - ", 1)[-1],
            "category": str(get_error_category()),
            "result": "failure",
            "correlationId": self.correlation_id,
            "time": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        }
        target = self.path / f"{step_name()}_errorDetails.json"
        try:
            target.write_text(json.dumps(details, ensure_ascii=False), encoding="utf-8")
        except OSError:
            self.handleError(record)


@dataclass
class CollectedMessage:
    level: str
    message: str
    time: str


class CollectorHook(logging.Handler):
    """Buffers log records so they can be shipped together with telemetry."""

    def __init__(self, correlation_id: str = "") -> None:
        super().__init__(level=logging.DEBUG)
        self.correlation_id = correlation_id
        self.messages: List[CollectedMessage] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.messages.append(
            CollectedMessage(
                level=record.levelname.lower(),
                message=record.getMessage(),
                time=datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            )
        )
