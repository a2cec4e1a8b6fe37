"""Step documentation generator.

Turns step metadata into a markdown page by filling the ``${docGen...}``
markers of the step's documentation template. Before rendering, the
parameters every step supports through the orchestrator (``verbose``,
``script``, Jenkins credentials, container and sidecar options) are added
to the metadata so that they appear in the parameter tables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from piper import log
from piper.metadata import ALL_SCOPES, Container, StepData, StepParameters

from .parameters import ConditionDefault, create_parameters_section

__all__ = [
    "DEFAULT_TEMPLATE",
    "add_default_parameters",
    "create_description_section",
    "generate_step_documentation",
    "render_template",
    "write_step_documentation",
]

DEFAULT_TEMPLATE = """# ${docGenStepName}

## ${docGenDescription}

## ${docGenParameters}
"""

SCRIPT_DESCRIPTION = (
    "The common script environment of the Jenkinsfile running. Typically the reference to the script "
    "calling the pipeline step is provided with the `this` parameter, as in `script: this`. This allows "
    "the function to access the `commonPipelineEnvironment` for retrieving, e.g. configuration parameters."
)

# name -> (type, description, container attribute used as default)
CONTAINER_PARAMS: Dict[str, Tuple[str, str, Optional[str]]] = {
    "containerCommand": ("string", "Kubernetes only: Allows to specify start command for container created with dockerImage parameter to overwrite Piper default (`/usr/bin/tail -f /dev/null`).", None),
    "containerShell": ("string", "Allows to specify the shell to be executed for container with containerName.", "shell"),
    "dockerEnvVars": ("map[string]string", "Environment variables to set in the container, e.g. [http_proxy: \"proxy:8080\"].", None),
    "dockerImage": ("string", "Name of the docker image that should be used. If empty, Docker is not used and the command is executed directly on the Jenkins system.", "image"),
    "dockerName": ("string", "Kubernetes only: Name of the container launching `dockerImage`. SideCar only: Name of the container in local network.", "name"),
    "dockerOptions": ("[]string", "Docker options to be set when starting the container.", None),
    "dockerPullImage": ("bool", "Set this to 'false' to bypass a docker image pull. Useful during development process. Allows testing of images which are available in the local registry only.", None),
    "dockerVolumeBind": ("map[string]string", "Volumes that should be mounted into the docker container.", None),
    "dockerWorkspace": ("string", "Kubernetes only: Specifies a dedicated user home directory for the container which will be passed as value for environment variable `HOME`.", "working_dir"),
}

SIDECAR_PARAMS: Dict[str, Tuple[str, str, Optional[str]]] = {
    "sidecarEnvVars": ("map[string]string", "as `dockerEnvVars` for the sidecar container", None),
    "sidecarImage": ("string", "as `dockerImage` for the sidecar container", "image"),
    "sidecarName": ("string", "as `dockerName` for the sidecar container", "name"),
    "sidecarOptions": ("[]string", "as `dockerOptions` for the sidecar container", None),
    "sidecarPullImage": ("bool", "Set this to 'false' to bypass a docker image pull. Useful during development process. Allows testing of images which are available in the local registry only.", None),
    "sidecarReadyCommand": ("string", "Command executed inside the container which returns exit code 0 when the container is ready to be used.", None),
    "sidecarVolumeBind": ("map[string]string", "as `dockerVolumeBind` for the sidecar container", None),
    "sidecarWorkspace": ("string", "as `dockerWorkspace` for the sidecar container", "working_dir"),
}


def _container_default(containers: List[Container], attribute: Optional[str]) -> Any:
    if attribute is None or not containers:
        return None
    if len(containers) == 1 and not containers[0].conditions:
        return getattr(containers[0], attribute) or None

    defaults: List[ConditionDefault] = []
    for container in containers:
        value = getattr(container, attribute)
        if not value:
            continue
        if not container.conditions:
            defaults.append(ConditionDefault(default=value))
            continue
        for condition in container.conditions:
            for param in condition.params:
                defaults.append(ConditionDefault(key=param["name"], value=param["value"], default=value))
    return defaults or None


def _append_container_parameters(
    step_data: StepData,
    containers: List[Container],
    params: Dict[str, Tuple[str, str, Optional[str]]],
) -> None:
    existing = set(step_data.parameter_names())
    for name, (kind, description, attribute) in params.items():
        if name in existing:
            continue
        default = _container_default(containers, attribute)
        if kind == "bool" and default is None:
            default = True
        step_data.spec.inputs.parameters.append(
            StepParameters(
                name=name,
                type=kind,
                description=description,
                scope=list(ALL_SCOPES),
                default=default,
            )
        )


def add_default_parameters(step_data: StepData) -> List[str]:
    """Add documentation-only parameters to ``step_data``.

    Returns the names of the parameters the step itself declares; everything
    added here is rendered as an orchestrator-specific parameter.
    """

    step_parameter_names = step_data.parameter_names()
    parameters = step_data.spec.inputs.parameters
    existing = set(step_parameter_names)

    if "script" not in existing:
        parameters.append(
            StepParameters(
                name="script",
                type="Jenkins Script",
                description=SCRIPT_DESCRIPTION,
                scope=["PARAMETERS"],
                mandatory=True,
            )
        )
    if "verbose" not in existing:
        parameters.append(
            StepParameters(
                name="verbose",
                type="bool",
                description="verbose output",
                scope=list(ALL_SCOPES),
                default=False,
            )
        )

    # Jenkins credentials stay in the secrets list; the overview looks them up there
    for secret in step_data.spec.inputs.secrets:
        if secret.type != "jenkins" or secret.name in existing:
            continue
        parameters.append(
            StepParameters(
                name=secret.name,
                type="string",
                description=secret.description,
                scope=["PARAMETERS"],
                mandatory=True,
                aliases=list(secret.aliases),
            )
        )

    if step_data.spec.containers:
        _append_container_parameters(step_data, step_data.spec.containers, CONTAINER_PARAMS)
    if step_data.spec.sidecars:
        _append_container_parameters(step_data, step_data.spec.sidecars, SIDECAR_PARAMS)

    return step_parameter_names


def create_description_section(step_data: StepData) -> str:
    name = step_data.metadata.name
    description = step_data.metadata.long_description or step_data.metadata.description
    section = "## Description\n\n" + description + "\n\n"
    section += "## Usage\n\n"
    section += (
        "We recommend to define values of step parameters via "
        "[.pipeline/config.yml file](../configuration.md).\n"
        "In this case, calling the step is essentially reduced to defining the step name.\n"
        "Calling the step can be done either in an orchestrator specific way "
        "(e.g. via a Jenkins library step) or on the command line.\n\n"
    )
    section += f"```sh\npiper {name}\n```\n\n"
    section += f"Jenkins pipelines can call `{name}(script: this)`.\n"
    return section


def render_template(template: str, step_data: StepData, step_parameter_names: List[str]) -> str:
    """Replace the ``${docGen...}`` markers of ``template``.

    Section markers may be written as a heading (``## ${docGenParameters}``);
    the heading is replaced as well since the sections bring their own.
    """

    markers = {
        "docGenDescription": lambda: create_description_section(step_data),
        "docGenParameters": lambda: create_parameters_section(step_data, step_parameter_names),
    }
    for marker, render in markers.items():
        token = "${" + marker + "}"
        if token not in template:
            continue
        content = render()
        template = template.replace("## " + token, content).replace(token, content)
    return template.replace("${docGenStepName}", step_data.metadata.name)


def generate_step_documentation(step_data: StepData, template: Optional[str] = None) -> str:
    step_parameter_names = add_default_parameters(step_data)
    return render_template(template if template is not None else DEFAULT_TEMPLATE, step_data, step_parameter_names)


def write_step_documentation(
    step_data: StepData,
    docu_dir: Path | str,
    output_dir: Path | str | None = None,
) -> Path:
    """Render ``<docu_dir>/<step>.md`` into ``<output_dir>/<step>.md``."""

    name = step_data.metadata.name
    template_path = Path(docu_dir) / f"{name}.md"
    if template_path.is_file():
        template = template_path.read_text(encoding="utf-8")
    else:
        log.entry().debug("no template for %s at %s, using the default layout", name, template_path)
        template = DEFAULT_TEMPLATE
    target = Path(output_dir or docu_dir) / f"{name}.md"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(generate_step_documentation(step_data, template), encoding="utf-8")
    return target
