from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from piper import log
from piper.errors import BuildError, ErrorCategory


def test_secrets_are_masked_in_collected_messages() -> None:
    collector = log.CollectorHook()
    log.register_hook(collector)
    log.register_secret("hunter2")

    log.entry().info("logging in with %s", "hunter2")

    assert collector.messages[-1].message == "logging in with ****"
    assert collector.messages[-1].level == "info"


def test_exception_text_is_masked_and_folded_into_message() -> None:
    collector = log.CollectorHook()
    log.register_hook(collector)
    log.register_secret("hunter2")

    log.entry().error("upload failed", exc_info=ValueError("bad password hunter2"))

    assert collector.messages[-1].message == "upload failed - bad password ****"


def test_verbose_enables_debug() -> None:
    collector = log.CollectorHook()
    log.register_hook(collector)

    log.entry().debug("hidden")
    log.set_verbose(True)
    log.entry().debug("shown")

    assert [m.message for m in collector.messages] == ["shown"]


def test_formatter_uses_step_name() -> None:
    log.set_step_name("pythonBuild")
    record = logging.LogRecord("piper", logging.WARNING, __file__, 1, "careful", None, None)
    assert log._StepFormatter().format(record) == "warn  pythonBuild - careful"


def test_fatal_writes_error_details_and_runs_exit_handler(tmp_path: Path) -> None:
    log.set_step_name("pythonBuild")
    log.register_hook(log.FatalHook(correlation_id="run-1", path=tmp_path))
    calls = []
    log.defer_exit_handler(lambda: calls.append("handler"))

    with pytest.raises(SystemExit) as excinfo:
        log.fatal(BuildError("setup.py not found"))

    assert excinfo.value.code == 1
    assert calls == ["handler"]
    assert log.get_error_category() is ErrorCategory.BUILD
    details = json.loads((tmp_path / "pythonBuild_errorDetails.json").read_text(encoding="utf-8"))
    assert details["message"] == "step execution failed - setup.py not found"
    assert details["error"] == "setup.py not found"
    assert details["category"] == "build"
    assert details["result"] == "failure"
    assert details["correlationId"] == "run-1"


def test_fatal_keeps_category_set_earlier(tmp_path: Path) -> None:
    log.set_error_category(ErrorCategory.INFRASTRUCTURE)
    with pytest.raises(SystemExit):
        log.fatal(BuildError("boom"))
    assert log.get_error_category() is ErrorCategory.INFRASTRUCTURE


def test_reset_restores_state() -> None:
    log.register_secret("abc")
    log.set_step_name("x")
    log.set_error_category(ErrorCategory.TEST)

    log.reset()

    assert log.registered_secrets() == []
    assert log.step_name() == "(noStep)"
    assert log.get_error_category() is ErrorCategory.UNDEFINED
