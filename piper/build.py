"""Builds a setup.py based python project into sdist and wheel artifacts."""

from __future__ import annotations

import glob
import json
import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from . import log
from .errors import BuildError, ErrorCategory
from .telemetry import CustomData

if TYPE_CHECKING:  # pragma: no cover
    from .commands.python_build import PythonBuildCommonPipelineEnvironment, PythonBuildOptions

__all__ = [
    "BOM_FILENAME",
    "CYCLONEDX_PACKAGE_VERSION",
    "CYCLONEDX_SCHEMA_VERSION",
    "BuildUtils",
    "create_build_settings_info",
    "python_build",
]

STEP_NAME = "pythonBuild"
BOM_FILENAME = "bom-pip.xml"
CYCLONEDX_PACKAGE_VERSION = "cyclonedx-bom==4.5.0"
CYCLONEDX_SCHEMA_VERSION = "1.4"
PIP_INSTALL_FLAGS = ["install", "--upgrade", "--root-user-action=ignore"]


class BuildUtils:
    """Runs executables and touches the file system on behalf of the build."""

    def __init__(self, cwd: Path | str | None = None) -> None:
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()

    def run_executable(self, executable: str, *params: str) -> None:
        command = [executable, *params]
        log.entry().info("running command: %s", " ".join(command))
        try:
            result = subprocess.run(command, cwd=self.cwd, check=False)
        except OSError as exc:
            raise BuildError(f"failed to run '{executable}': {exc}") from exc
        if result.returncode != 0:
            raise BuildError(f"'{executable}' exited with code {result.returncode}")

    def file_exists(self, path: str) -> bool:
        return (self.cwd / path).is_file()

    def glob(self, pattern: str) -> List[str]:
        return sorted(
            str(Path(match).relative_to(self.cwd)) for match in glob.glob(str(self.cwd / pattern))
        )

    def remove_all(self, path: str) -> None:
        shutil.rmtree(self.cwd / path, ignore_errors=True)


def _venv_binary(venv: str, name: str) -> str:
    return str(Path(venv) / "bin" / name)


def create_build_settings_info(config: "PythonBuildOptions") -> str:
    """Append this build's settings to the incoming build settings JSON."""

    current: Dict[str, Any] = {}
    if config.create_bom:
        current["createBOM"] = True
    if config.publish:
        current["publish"] = True

    settings: Dict[str, List[Any]] = {}
    if config.build_settings_info:
        try:
            settings = json.loads(config.build_settings_info)
        except json.JSONDecodeError as exc:
            raise BuildError(
                f"failed to parse existing build settings info: {exc}",
                category=ErrorCategory.CONFIGURATION,
            ) from exc
        if not isinstance(settings, dict):
            raise BuildError(
                "existing build settings info must be a JSON object",
                category=ErrorCategory.CONFIGURATION,
            )
    settings.setdefault(STEP_NAME, []).append(current)
    return json.dumps(settings, separators=(",", ":"))


def _create_virtual_environment(utils: BuildUtils, venv: str) -> Dict[str, str]:
    utils.run_executable("python3", "-m", "venv", venv)
    return {
        "pip": _venv_binary(venv, "pip"),
        "python": _venv_binary(venv, "python"),
        "cyclonedx-py": _venv_binary(venv, "cyclonedx-py"),
        "twine": _venv_binary(venv, "twine"),
    }


def _build(config: "PythonBuildOptions", utils: BuildUtils, binaries: Dict[str, str]) -> None:
    utils.run_executable(binaries["pip"], *PIP_INSTALL_FLAGS, "wheel")
    flags: List[str] = [*config.build_flags, "setup.py", *config.setup_flags, "sdist", "bdist_wheel"]
    utils.run_executable(binaries["python"], *flags)


def _create_bom(config: "PythonBuildOptions", utils: BuildUtils, binaries: Dict[str, str]) -> None:
    if utils.file_exists(config.requirements_file_path):
        utils.run_executable(binaries["pip"], "install", "--requirement", config.requirements_file_path)
    else:
        log.entry().warning(
            "requirements file '%s' not found, the BOM only covers the build environment",
            config.requirements_file_path,
        )
    utils.run_executable(binaries["pip"], "install", CYCLONEDX_PACKAGE_VERSION)
    utils.run_executable(
        binaries["cyclonedx-py"],
        "env",
        "--output-file",
        BOM_FILENAME,
        "--output-format",
        "XML",
        "--spec-version",
        CYCLONEDX_SCHEMA_VERSION,
    )


def _publish(config: "PythonBuildOptions", utils: BuildUtils, binaries: Dict[str, str]) -> None:
    artifacts = utils.glob("dist/*")
    if not artifacts:
        raise BuildError("no artifacts found in 'dist' to publish")
    utils.run_executable(binaries["pip"], *PIP_INSTALL_FLAGS, "twine")
    utils.run_executable(
        binaries["twine"],
        "upload",
        "--username",
        config.target_repository_user,
        "--password",
        config.target_repository_password,
        "--repository-url",
        config.target_repository_url,
        "--disable-progress-bar",
        *artifacts,
    )


def python_build(
    config: "PythonBuildOptions",
    telemetry_data: CustomData,
    common_pipeline_environment: "PythonBuildCommonPipelineEnvironment",
    utils: Optional[BuildUtils] = None,
) -> None:
    """Build the project, optionally create a BOM and publish the artifacts."""

    utils = utils or BuildUtils()
    telemetry_data.build_tool = "pip"
    telemetry_data.build_type = "setup.py"

    if not utils.file_exists("setup.py"):
        log.set_error_category(ErrorCategory.BUILD)
        raise BuildError("setup.py not found, pythonBuild currently only supports setup.py projects")

    binaries = _create_virtual_environment(utils, config.virutal_environment_name)
    try:
        try:
            _build(config, utils, binaries)
        except BuildError:
            log.set_error_category(ErrorCategory.BUILD)
            raise

        if config.create_bom:
            _create_bom(config, utils, binaries)

        common_pipeline_environment.custom.build_settings_info = create_build_settings_info(config)

        if config.publish:
            _publish(config, utils, binaries)
    finally:
        utils.remove_all(config.virutal_environment_name)
