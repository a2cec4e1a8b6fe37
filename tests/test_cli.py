from __future__ import annotations

import json
from pathlib import Path

import pytest

from piper import cli
from piper.commands import python_build_command

from test_build import RecordingUtils


def _parser(utils=None):
    return cli.build_parser(commands={"pythonBuild": python_build_command(utils or RecordingUtils())})


def test_step_flags_are_parsed() -> None:
    args = _parser().parse_args(
        [
            "--verbose",
            "pythonBuild",
            "--createBOM",
            "--publish=false",
            "--buildFlags=-v",
            "--setupFlags=--quiet,--dry-run",
            "--setupFlags=--no-user-cfg",
            "--targetRepositoryURL",
            "https://repo.example",
        ]
    )

    values = args.step_command.flag_values(args)
    assert values == {
        "buildFlags": ["-v"],
        "setupFlags": ["--quiet", "--dry-run", "--no-user-cfg"],
        "createBOM": True,
        "publish": False,
        "targetRepositoryURL": "https://repo.example",
    }
    assert args.verbose is True


def test_general_flags_after_subcommand() -> None:
    args = _parser().parse_args(
        ["--stageName", "Build", "pythonBuild", "--customConfig", "ci.yml", "--defaultConfig", "a.yml", "--noTelemetry"]
    )
    general = cli.general_config_from_args(args)

    assert general.stage_name == "Build"
    assert general.custom_config == "ci.yml"
    assert general.default_config == ["a.yml"]
    assert general.no_telemetry is True
    assert general.verbose is False
    assert general.env_root_path == ".pipeline"


def test_invalid_bool_flag_is_rejected() -> None:
    with pytest.raises(SystemExit):
        _parser().parse_args(["pythonBuild", "--createBOM=perhaps"])


def test_get_config_masks_secrets(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    config = tmp_path / ".pipeline" / "config.yml"
    config.parent.mkdir()
    config.write_text(
        "general:\n  createBOM: true\nsteps:\n  pythonBuild:\n    targetRepositoryPassword: s3cr3t\n",
        encoding="utf-8",
    )

    rc = cli.main(["getConfig", "--stepName", "pythonBuild"])

    out = capsys.readouterr().out
    values = json.loads(out)
    assert rc == 0
    assert values["createBOM"] is True
    assert values["targetRepositoryPassword"] == "****"
    assert "s3cr3t" not in out


def test_get_config_reports_broken_config(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert cli.main(["getConfig", "--stepName", "pythonBuild", "--customConfig", "missing.yml"]) == 1


def test_version(monkeypatch, capsys) -> None:
    monkeypatch.setenv("PIPER_GIT_COMMIT", "abc123")
    assert cli.main(["version"]) == 0
    out = capsys.readouterr().out
    assert 'commit: "abc123"' in out
    assert "tag: \"v" in out


def test_no_command_prints_help(capsys) -> None:
    assert cli.main([]) == 1
    assert "usage:" in capsys.readouterr().out


def test_step_without_setup_py_fails(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert cli.main(["pythonBuild", "--noTelemetry"]) == 1
    assert (tmp_path / "pythonBuild_errorDetails.json").is_file()


def test_main_module_dispatches_docgen(tmp_path: Path) -> None:
    import main

    rc = main.main(["docgen", "--step", "pythonBuild", "--docu-dir", str(tmp_path)])
    assert rc == 0
    assert (tmp_path / "pythonBuild.md").is_file()


def test_string_slice_items_are_kept_verbatim() -> None:
    args = _parser().parse_args(["pythonBuild", "--buildFlags= -u,-B", '--setupFlags="--define=a,b",--quiet'])

    values = args.step_command.flag_values(args)
    assert values["buildFlags"] == [" -u", "-B"]
    assert values["setupFlags"] == ["--define=a,b", "--quiet"]
