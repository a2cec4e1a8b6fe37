"""Step telemetry and the Splunk HTTP event collector client."""

from __future__ import annotations

import hashlib
import json
import os
import socket
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from . import log

__all__ = ["BaseData", "CustomData", "Data", "Splunk", "Telemetry"]

ACTION_NAME = "Piper Library OS"
EVENT_TYPE = "library-os-ens"


@dataclass
class BaseData:
    action_name: str = ACTION_NAME
    event_type: str = EVENT_TYPE
    step_name: str = ""
    site_id: str = ""
    orchestrator: str = ""
    pipeline_url_hash: str = ""
    build_url_hash: str = ""


@dataclass
class CustomData:
    duration: str = ""
    error_code: str = ""
    error_category: str = ""
    piper_commit_hash: str = ""
    build_tool: str = ""
    build_type: str = ""


@dataclass
class Data:
    base: BaseData = field(default_factory=BaseData)
    custom: CustomData = field(default_factory=CustomData)

    def to_dict(self) -> Dict[str, Any]:
        merged = asdict(self.base)
        merged.update(asdict(self.custom))
        return merged


def _detect_orchestrator() -> str:
    if os.getenv("JENKINS_URL") or os.getenv("JENKINS_HOME"):
        return "Jenkins"
    if os.getenv("GITHUB_ACTIONS") == "true":
        return "GitHubActions"
    if os.getenv("AZURE_HTTP_USER_AGENT") or os.getenv("TF_BUILD"):
        return "Azure"
    return "Unknown"


def _url_hash(value: str) -> str:
    if not value:
        return ""
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


class Telemetry:
    """Collects the telemetry record of one step run."""

    def __init__(self, *, disabled: bool = False) -> None:
        self.disabled = disabled
        self.data = Data()

    def initialize(self, step_name: str) -> None:
        orchestrator = _detect_orchestrator()
        pipeline_url = os.getenv("JOB_URL") or os.getenv("GITHUB_REPOSITORY", "")
        build_url = os.getenv("BUILD_URL") or os.getenv("GITHUB_RUN_ID", "")
        self.data.base = BaseData(
            step_name=step_name,
            site_id=os.getenv("PIPER_TELEMETRY_SITE_ID", ""),
            orchestrator=orchestrator,
            pipeline_url_hash=_url_hash(pipeline_url),
            build_url_hash=_url_hash(build_url),
        )

    def set_data(self, custom: CustomData) -> None:
        self.data.custom = custom

    def get_data(self) -> Data:
        return self.data

    def get_data_bytes(self) -> bytes:
        return json.dumps(self.data.to_dict(), ensure_ascii=False).encode("utf-8")

    def log_step_telemetry_data(self) -> None:
        """Log the step telemetry record; the message is parsed by log shippers."""

        if self.disabled:
            log.entry().debug("telemetry reporting deactivated")
            return
        payload = json.dumps(self.data.to_dict(), ensure_ascii=False, sort_keys=True)
        if self.data.custom.error_code and self.data.custom.error_code != "0":
            log.entry().info("Step telemetry data: %s", payload)
        else:
            log.entry().debug("Step telemetry data: %s", payload)


class Splunk:
    """Thin wrapper around the Splunk HTTP event collector endpoint."""

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self.correlation_id = ""
        self.dsn = ""
        self.token = ""
        self.index = ""
        self.send_logs = False

    def initialize(
        self,
        correlation_id: str,
        dsn: str,
        token: str,
        index: str,
        send_logs: bool,
    ) -> None:
        self.correlation_id = correlation_id
        self.dsn = dsn
        self.token = token
        self.index = index
        self.send_logs = send_logs
        log.register_secret(token)

    def build_event(self, data: Data, collector: Optional[log.CollectorHook] = None) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if collector is not None:
            for entry in collector.messages:
                if self.send_logs or entry.level in {"error", "critical"}:
                    messages.append(asdict(entry))
        return {
            "time": time.time(),
            "host": socket.gethostname(),
            "source": "piper",
            "sourcetype": "_json",
            "index": self.index,
            "event": {
                "correlationId": self.correlation_id,
                "messages": messages,
                "telemetry": data.to_dict(),
            },
        }

    def send(self, data: Data, collector: Optional[log.CollectorHook] = None) -> bool:
        """Post ``data`` to the collector; failures are logged, never raised."""

        if not self.dsn:
            return False
        body = json.dumps(self.build_event(data, collector), ensure_ascii=False).encode("utf-8")
        token = self.token if self.token.startswith("Splunk ") else f"Splunk {self.token}"
        req = Request(
            self.dsn,
            data=body,
            headers={"Content-Type": "application/json", "Authorization": token},
            method="POST",
        )
        try:
            with urlopen(req, timeout=self.timeout) as resp:  # nosec - configured endpoint
                resp.read()
        except HTTPError as he:
            log.entry().warning("sending data to Splunk failed: HTTP %s %s", he.code, he.reason)
            return False
        except (URLError, OSError) as exc:
            log.entry().warning("sending data to Splunk failed: %s", exc)
            return False
        return True
