from __future__ import annotations

import json
from pathlib import Path

import pytest

from piper import log
from piper.commands.python_build import (
    PythonBuildCommonPipelineEnvironment,
    PythonBuildOptions,
    python_build_command,
    python_build_metadata,
)
from piper.command import options_from_config, options_to_config
from piper.config import GeneralConfig
from piper.errors import ErrorCategory
from piper.piperenv import get_resource_parameter

from test_build import RecordingUtils


class FakeSplunk:
    def __init__(self) -> None:
        self.sent = []
        self.dsn = ""

    def initialize(self, correlation_id, dsn, token, index, send_logs) -> None:
        self.dsn = dsn
        log.register_secret(token)

    def send(self, data, collector=None) -> bool:
        self.sent.append((self.dsn, data.to_dict(), [m.message for m in collector.messages]))
        return True


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _config(workspace: Path, text: str) -> None:
    target = workspace / ".pipeline" / "config.yml"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")


def test_metadata_matches_options() -> None:
    metadata = python_build_metadata()
    assert metadata.parameter_names() == list(options_to_config(PythonBuildOptions()))
    assert [p.name for p in metadata.parameters if p.secret] == []
    assert metadata.spec.containers[0].image == "python:3.9"
    assert metadata.spec.outputs.resources[0].parameters == [{"name": "custom/buildSettingsInfo"}]


def test_options_from_config_uses_json_names() -> None:
    options = options_from_config(
        PythonBuildOptions,
        {"createBOM": True, "virutalEnvironmentName": "env", "targetRepositoryURL": "https://repo", "unknown": 1},
    )
    assert options.create_bom is True
    assert options.virutal_environment_name == "env"
    assert options.target_repository_url == "https://repo"
    assert options.requirements_file_path == "requirements.txt"


def test_successful_run_persists_build_settings(workspace: Path) -> None:
    utils = RecordingUtils()
    command = python_build_command(utils)

    rc = command.execute({"createBOM": True}, GeneralConfig(no_telemetry=True), cwd=workspace)

    assert rc == 0
    stored = get_resource_parameter(".pipeline", "commonPipelineEnvironment", "custom/buildSettingsInfo")
    assert json.loads(stored) == {"pythonBuild": [{"createBOM": True}]}
    assert not (workspace / "pythonBuild_errorDetails.json").exists()


def test_build_settings_from_previous_step_are_extended(workspace: Path) -> None:
    previous = workspace / ".pipeline" / "commonPipelineEnvironment" / "custom" / "buildSettingsInfo"
    previous.parent.mkdir(parents=True)
    previous.write_text('{"mavenBuild":[{"publish":true}]}', encoding="utf-8")

    rc = python_build_command(RecordingUtils()).execute({}, GeneralConfig(no_telemetry=True), cwd=workspace)

    assert rc == 0
    assert json.loads(previous.read_text(encoding="utf-8")) == {
        "mavenBuild": [{"publish": True}],
        "pythonBuild": [{}],
    }


def test_failing_build_reports_error_details(workspace: Path) -> None:
    utils = RecordingUtils(files=())
    command = python_build_command(utils)

    rc = command.execute({}, GeneralConfig(correlation_id="run-7", no_telemetry=True), cwd=workspace)

    assert rc == 1
    details = json.loads((workspace / "pythonBuild_errorDetails.json").read_text(encoding="utf-8"))
    assert details["category"] == "build"
    assert details["correlationId"] == "run-7"
    assert "setup.py" in details["error"]


def test_invalid_flag_value_is_configuration_error(workspace: Path) -> None:
    utils = RecordingUtils()
    rc = python_build_command(utils).execute({"createBOM": "maybe"}, GeneralConfig(no_telemetry=True), cwd=workspace)

    assert rc == 1
    assert utils.calls == []
    assert log.get_error_category() is ErrorCategory.CONFIGURATION


def test_repository_credentials_are_registered_as_secrets(workspace: Path) -> None:
    _config(
        workspace,
        "steps:\n  pythonBuild:\n    targetRepositoryUser: deployer\n    targetRepositoryPassword: s3cr3t\n",
    )
    rc = python_build_command(RecordingUtils()).execute({}, GeneralConfig(no_telemetry=True), cwd=workspace)

    assert rc == 0
    assert {"s3cr3t", "deployer"} <= set(log.registered_secrets())


def test_splunk_receives_telemetry_and_logs(workspace: Path) -> None:
    _config(
        workspace,
        "hooks:\n"
        "  splunk:\n"
        "    dsn: https://splunk.example/services/collector\n"
        "    token: splunk-token\n"
        "    sendLogs: true\n"
        "    prodCriblEndpoint: https://cribl.example/services/collector\n"
        "    prodCriblToken: cribl-token\n",
    )
    fake = FakeSplunk()
    command = python_build_command(RecordingUtils())
    command.splunk_factory = lambda: fake

    rc = command.execute({}, GeneralConfig(correlation_id="run-9"), cwd=workspace)

    assert rc == 0
    assert [dsn for dsn, _, _ in fake.sent] == [
        "https://splunk.example/services/collector",
        "https://cribl.example/services/collector",
    ]
    _, telemetry, messages = fake.sent[0]
    assert telemetry["error_code"] == "0"
    assert telemetry["step_name"] == "pythonBuild"
    assert telemetry["build_tool"] == "pip"
    assert telemetry["error_category"] == "undefined"
    assert "SUCCESS" in messages


def test_persist_failure_is_logged_not_raised(tmp_path: Path) -> None:
    collector = log.CollectorHook()
    log.register_hook(collector)
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory", encoding="utf-8")
    cpe = PythonBuildCommonPipelineEnvironment()
    cpe.custom.build_settings_info = "{}"

    cpe.persist(str(blocker), "commonPipelineEnvironment")

    errors = [m.message for m in collector.messages if m.level == "error"]
    assert errors[0].startswith("Error persisting piper environment.")
    assert errors[-1] == "failed to persist Piper environment"


def test_corrupt_pipeline_environment_fails_step(workspace: Path) -> None:
    broken = workspace / ".pipeline" / "commonPipelineEnvironment" / "custom" / "repositoryUrl.json"
    broken.parent.mkdir(parents=True)
    broken.write_text("{not json", encoding="utf-8")
    utils = RecordingUtils()

    rc = python_build_command(utils).execute({}, GeneralConfig(no_telemetry=True), cwd=workspace)

    assert rc == 1
    assert utils.calls == []
    assert log.get_error_category() is ErrorCategory.CONFIGURATION
