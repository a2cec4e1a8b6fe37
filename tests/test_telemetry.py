from __future__ import annotations

import hashlib
import json
from urllib.error import URLError

from piper import log, telemetry
from piper.telemetry import CustomData, Data, Splunk, Telemetry


def test_initialize_detects_orchestrator_and_hashes_urls(monkeypatch) -> None:
    monkeypatch.setenv("JENKINS_URL", "https://jenkins.example")
    monkeypatch.setenv("JOB_URL", "https://jenkins.example/job/app")
    monkeypatch.setenv("BUILD_URL", "https://jenkins.example/job/app/7")

    client = Telemetry()
    client.initialize("pythonBuild")
    base = client.get_data().base

    assert base.step_name == "pythonBuild"
    assert base.orchestrator == "Jenkins"
    assert base.pipeline_url_hash == hashlib.sha1(b"https://jenkins.example/job/app").hexdigest()
    assert base.action_name == "Piper Library OS"


def test_data_bytes_merge_base_and_custom() -> None:
    client = Telemetry()
    client.set_data(CustomData(duration="12", error_code="0", build_tool="pip"))

    payload = json.loads(client.get_data_bytes())

    assert payload["duration"] == "12"
    assert payload["build_tool"] == "pip"
    assert payload["event_type"] == "library-os-ens"


def test_failed_step_telemetry_is_logged_at_info() -> None:
    collector = log.CollectorHook()
    log.register_hook(collector)
    client = Telemetry()
    client.set_data(CustomData(error_code="1", error_category="build"))

    client.log_step_telemetry_data()

    assert collector.messages[-1].level == "info"
    assert collector.messages[-1].message.startswith("Step telemetry data: ")


def test_disabled_telemetry_is_not_logged() -> None:
    collector = log.CollectorHook()
    log.register_hook(collector)
    log.set_verbose(True)

    Telemetry(disabled=True).log_step_telemetry_data()

    assert [m.message for m in collector.messages] == ["telemetry reporting deactivated"]


def test_splunk_event_filters_messages_unless_send_logs() -> None:
    collector = log.CollectorHook()
    log.register_hook(collector)
    log.entry().info("building")
    log.entry().error("broken")

    client = Splunk()
    client.initialize("run-1", "https://splunk.example", "tok", "main", False)
    event = client.build_event(Data(), collector)
    assert [m["message"] for m in event["event"]["messages"]] == ["broken"]
    assert event["index"] == "main"
    assert event["event"]["correlationId"] == "run-1"

    client.initialize("run-1", "https://splunk.example", "tok", "main", True)
    event = client.build_event(Data(), collector)
    assert [m["message"] for m in event["event"]["messages"]] == ["building", "broken"]


def test_splunk_send_posts_with_token(monkeypatch) -> None:
    captured = {}

    class _Response:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def read(self):
            return b"{}"

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["auth"] = req.get_header("Authorization")
        captured["body"] = json.loads(req.data)
        return _Response()

    monkeypatch.setattr(telemetry, "urlopen", fake_urlopen)
    client = Splunk()
    client.initialize("run-1", "https://splunk.example/collector", "tok", "", False)

    assert client.send(Data()) is True
    assert captured["url"] == "https://splunk.example/collector"
    assert captured["auth"] == "Splunk tok"
    assert captured["body"]["source"] == "piper"
    assert "tok" in log.registered_secrets()


def test_splunk_send_failure_is_a_warning(monkeypatch) -> None:
    collector = log.CollectorHook()
    log.register_hook(collector)

    def failing_urlopen(req, timeout):
        raise URLError("connection refused")

    monkeypatch.setattr(telemetry, "urlopen", failing_urlopen)
    client = Splunk()
    client.initialize("", "https://splunk.example/collector", "tok", "", False)

    assert client.send(Data()) is False
    assert collector.messages[-1].level == "warning"


def test_splunk_without_dsn_sends_nothing() -> None:
    assert Splunk().send(Data()) is False
