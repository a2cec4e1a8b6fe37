"""Ensure project root is on sys.path for test imports."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from piper import log  # noqa: E402


@pytest.fixture(autouse=True)
def _piper_env_defaults(monkeypatch):
    """Keep step runs isolated from the developer's environment."""

    monkeypatch.setenv("PIPER_SKIP_DOTENV", "1")
    for name in (
        "PIPER_targetRepositoryPassword",
        "PIPER_targetRepositoryUser",
        "PIPER_targetRepositoryURL",
        "PIPER_buildSettingsInfo",
        "PIPER_createBOM",
        "PIPER_publish",
        "PIPER_buildFlags",
        "STAGE_NAME",
        "JENKINS_URL",
        "JENKINS_HOME",
        "GITHUB_ACTIONS",
    ):
        monkeypatch.delenv(name, raising=False)
    log.reset()
    yield
    log.reset()
