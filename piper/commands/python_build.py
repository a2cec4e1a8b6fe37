"""pythonBuild step command: options, flags, metadata and outputs."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from typing import Any, List, Optional

from piper import log, piperenv
from piper.build import python_build
from piper.command import (
    StepCommand,
    add_bool_flag,
    add_string_flag,
    add_string_slice_flag,
    json_field,
)
from piper.metadata import (
    Container,
    ResourceReference,
    StepData,
    StepInputs,
    StepMetadata,
    StepOutputs,
    StepParameters,
    StepResources,
    StepSpec,
)
from piper.telemetry import CustomData

__all__ = [
    "STEP_NAME",
    "PythonBuildCommonPipelineEnvironment",
    "PythonBuildOptions",
    "add_python_build_flags",
    "python_build_command",
    "python_build_metadata",
]

STEP_NAME = "pythonBuild"

SHORT_DESCRIPTION = "Step builds a python project"

LONG_DESCRIPTION = """Step build python project using the setup.py manifest and builds a wheel and tarball artifact . please note that currently python build only supports setup.py

### build with depedencies from a private repository
if your build has dependencies from a private repository you can include the standard requirements.txt into the source code with `--extra-index-url` as the first line

```
--extra-index-url https://${PIPER_VAULTCREDENTIAL_USERNAME}:${PIPER_VAULTCREDENTIAL_PASSWORD}@<privateRepoUrl>/simple
```
`PIPER_VAULTCREDENTIAL_USERNAME` and `PIPER_VAULTCREDENTIAL_PASSWORD` are the username and password for the private repository
and are exposed are environment variables that must be present in the environment where the Piper step runs or alternatively can be created using :
[vault general purpose credentials](../infrastructure/vault.md#using-vault-for-general-purpose-and-test-credentials)"""


@dataclass
class PythonBuildOptions:
    build_flags: List[str] = json_field("buildFlags", default_factory=list)
    setup_flags: List[str] = json_field("setupFlags", default_factory=list)
    create_bom: bool = json_field("createBOM", default=False)
    publish: bool = json_field("publish", default=False)
    target_repository_password: str = json_field("targetRepositoryPassword", default="")
    target_repository_user: str = json_field("targetRepositoryUser", default="")
    target_repository_url: str = json_field("targetRepositoryURL", default="")
    build_settings_info: str = json_field("buildSettingsInfo", default="")
    virutal_environment_name: str = json_field("virutalEnvironmentName", default="piperBuild-env")
    requirements_file_path: str = json_field("requirementsFilePath", default="requirements.txt")


@dataclass
class _PythonBuildCustom:
    build_settings_info: str = ""


@dataclass
class PythonBuildCommonPipelineEnvironment:
    custom: _PythonBuildCustom = field(default_factory=_PythonBuildCustom)

    def persist(self, path: str, resource_name: str) -> None:
        content = [
            ("custom", "buildSettingsInfo", self.custom.build_settings_info),
        ]

        err_count = 0
        for category, name, value in content:
            try:
                piperenv.set_resource_parameter(path, resource_name, f"{category}/{name}", value)
            except (OSError, TypeError, ValueError) as exc:
                log.entry().error("Error persisting piper environment.", exc_info=exc)
                err_count += 1
        if err_count > 0:
            log.entry().error("failed to persist Piper environment")


def add_python_build_flags(parser: argparse.ArgumentParser) -> None:
    add_string_slice_flag(parser, "buildFlags", "Defines list of build flags passed to python binary.")
    add_string_slice_flag(parser, "setupFlags", "Defines list of flags passed to setup.py.")
    add_bool_flag(parser, "createBOM", "Creates the bill of materials (BOM) using CycloneDX plugin.")
    add_bool_flag(parser, "publish", "Configures the build to publish artifacts to a repository.")
    add_string_flag(
        parser,
        "targetRepositoryPassword",
        "Password for the target repository where the compiled binaries shall be uploaded - typically provided by the CI/CD environment.",
    )
    add_string_flag(
        parser,
        "targetRepositoryUser",
        "Username for the target repository where the compiled binaries shall be uploaded - typically provided by the CI/CD environment.",
    )
    add_string_flag(
        parser,
        "targetRepositoryURL",
        "URL of the target repository where the compiled binaries shall be uploaded - typically provided by the CI/CD environment.",
    )
    add_string_flag(
        parser,
        "buildSettingsInfo",
        "build settings info is typically filled by the step automatically to create information about the build settings that were used during the maven build . This information is typically used for compliance related processes.",
    )
    add_string_flag(parser, "virutalEnvironmentName", "name of the virtual environment that will be used for the build")
    add_string_flag(
        parser,
        "requirementsFilePath",
        "file path to the requirements.txt file needed for the sbom cycloneDx file creation.",
    )


def _cpe_ref(param: str) -> List[ResourceReference]:
    return [ResourceReference(name="commonPipelineEnvironment", param=param)]


def python_build_metadata() -> StepData:
    """Return the step metadata of pythonBuild."""

    return StepData(
        metadata=StepMetadata(
            name=STEP_NAME,
            aliases=[],
            description=SHORT_DESCRIPTION,
            long_description=LONG_DESCRIPTION,
        ),
        spec=StepSpec(
            inputs=StepInputs(
                parameters=[
                    StepParameters(
                        name="buildFlags",
                        resource_ref=[],
                        scope=["PARAMETERS", "STAGES", "STEPS"],
                        type="[]string",
                        mandatory=False,
                        aliases=[],
                        default=[],
                        description="Defines list of build flags passed to python binary.",
                    ),
                    StepParameters(
                        name="setupFlags",
                        resource_ref=[],
                        scope=["PARAMETERS", "STAGES", "STEPS"],
                        type="[]string",
                        mandatory=False,
                        aliases=[],
                        default=[],
                        description="Defines list of flags passed to setup.py.",
                    ),
                    StepParameters(
                        name="createBOM",
                        resource_ref=[],
                        scope=["GENERAL", "STEPS", "STAGES", "PARAMETERS"],
                        type="bool",
                        mandatory=False,
                        aliases=[],
                        default=False,
                        description="Creates the bill of materials (BOM) using CycloneDX plugin.",
                    ),
                    StepParameters(
                        name="publish",
                        resource_ref=[],
                        scope=["STEPS", "STAGES", "PARAMETERS"],
                        type="bool",
                        mandatory=False,
                        aliases=[],
                        default=False,
                        description="Configures the build to publish artifacts to a repository.",
                    ),
                    StepParameters(
                        name="targetRepositoryPassword",
                        resource_ref=_cpe_ref("custom/repositoryPassword"),
                        scope=["PARAMETERS", "STAGES", "STEPS"],
                        type="string",
                        mandatory=False,
                        aliases=[],
                        default=os.getenv("PIPER_targetRepositoryPassword", ""),
                        description="Password for the target repository where the compiled binaries shall be uploaded - typically provided by the CI/CD environment.",
                    ),
                    StepParameters(
                        name="targetRepositoryUser",
                        resource_ref=_cpe_ref("custom/repositoryUsername"),
                        scope=["PARAMETERS", "STAGES", "STEPS"],
                        type="string",
                        mandatory=False,
                        aliases=[],
                        default=os.getenv("PIPER_targetRepositoryUser", ""),
                        description="Username for the target repository where the compiled binaries shall be uploaded - typically provided by the CI/CD environment.",
                    ),
                    StepParameters(
                        name="targetRepositoryURL",
                        resource_ref=_cpe_ref("custom/repositoryUrl"),
                        scope=["PARAMETERS", "STAGES", "STEPS"],
                        type="string",
                        mandatory=False,
                        aliases=[],
                        default=os.getenv("PIPER_targetRepositoryURL", ""),
                        description="URL of the target repository where the compiled binaries shall be uploaded - typically provided by the CI/CD environment.",
                    ),
                    StepParameters(
                        name="buildSettingsInfo",
                        resource_ref=_cpe_ref("custom/buildSettingsInfo"),
                        scope=["STEPS", "STAGES", "PARAMETERS"],
                        type="string",
                        mandatory=False,
                        aliases=[],
                        default=os.getenv("PIPER_buildSettingsInfo", ""),
                        description="build settings info is typically filled by the step automatically to create information about the build settings that were used during the maven build . This information is typically used for compliance related processes.",
                    ),
                    StepParameters(
                        name="virutalEnvironmentName",
                        resource_ref=[],
                        scope=["STEPS", "STAGES", "PARAMETERS"],
                        type="string",
                        mandatory=False,
                        aliases=[],
                        default="piperBuild-env",
                        description="name of the virtual environment that will be used for the build",
                    ),
                    StepParameters(
                        name="requirementsFilePath",
                        resource_ref=[],
                        scope=["STEPS", "STAGES", "PARAMETERS"],
                        type="string",
                        mandatory=False,
                        aliases=[],
                        default="requirements.txt",
                        description="file path to the requirements.txt file needed for the sbom cycloneDx file creation.",
                    ),
                ],
            ),
            containers=[Container(name="python", image="python:3.9")],
            outputs=StepOutputs(
                resources=[
                    StepResources(
                        name="commonPipelineEnvironment",
                        type="piperEnvironment",
                        parameters=[{"name": "custom/buildSettingsInfo"}],
                    ),
                ],
            ),
        ),
    )


def python_build_command(utils: Optional[Any] = None) -> StepCommand:
    """Return the pythonBuild command; ``utils`` replaces the process runner in tests."""

    common_pipeline_environment = PythonBuildCommonPipelineEnvironment()

    def _run(step_config: PythonBuildOptions, step_telemetry_data: CustomData) -> None:
        python_build(step_config, step_telemetry_data, common_pipeline_environment, utils)

    def _secrets(step_config: PythonBuildOptions) -> List[Optional[str]]:
        return [step_config.target_repository_password, step_config.target_repository_user]

    return StepCommand(
        name=STEP_NAME,
        short=SHORT_DESCRIPTION,
        long=LONG_DESCRIPTION,
        metadata=python_build_metadata(),
        options_type=PythonBuildOptions,
        add_flags=add_python_build_flags,
        run=_run,
        secrets=_secrets,
        common_pipeline_environment=common_pipeline_environment,
    )
