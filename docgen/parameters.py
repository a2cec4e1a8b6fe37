"""Markdown rendering of the parameters section of a step documentation page.

The section consists of two overview tables, one for parameters relevant to
the step itself and one for orchestrator-specific execution environment
parameters, followed by a detail table per parameter and per secret.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from piper.metadata import (
    REF_TYPE_SYSTEM_TRUST_SECRET,
    REF_TYPE_VAULT_SECRET,
    REF_TYPE_VAULT_SECRET_FILE,
    VAULT_ROOT_PATHS,
    Alias,
    ResourceReference,
    StepData,
    StepParameters,
)

__all__ = [
    "ConditionDefault",
    "JENKINS_PARAMS",
    "alias_list",
    "create_parameter_details",
    "create_parameter_overview",
    "create_parameters_section",
    "format_default",
    "parameter_further_info",
    "parameter_mandatory_information",
    "possible_value_list",
    "resource_reference_details",
    "scope_details",
    "sort_step_parameters",
]

VAULT_BADGE = "![Vault](https://img.shields.io/badge/-Vault-lightgrey)"
JENKINS_ONLY_BADGE = "![Jenkins only](https://img.shields.io/badge/-Jenkins%20only-yellowgreen)"
SECRET_BADGE = "![Secret](https://img.shields.io/badge/-Secret-yellowgreen)"
SYSTEM_TRUST_BADGE = "![System Trust](https://img.shields.io/badge/-System%20Trust-lightblue)"
DEPRECATED_BADGE = "![deprecated](https://img.shields.io/badge/-deprecated-red)"

JENKINS_PARAMS = [
    "containerCommand",
    "containerName",
    "containerShell",
    "dockerVolumeBind",
    "dockerWorkspace",
    "sidecarReadyCommand",
    "sidecarWorkspace",
    "stashContent",
]

JENKINS_CREDENTIALS_URL = "https://www.jenkins.io/doc/book/using/using-credentials/"


@dataclass(slots=True)
class ConditionDefault:
    """A default that only applies when parameter ``key`` has ``value``.

    Entries without a condition carry just ``default``.
    """

    key: str = ""
    value: str = ""
    default: Any = None


def _fmt(value: Any) -> str:
    """Render ``value`` the way the step metadata tooling prints plain values."""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_fmt(item) for item in value) + "]"
    if isinstance(value, dict):
        return "map[" + " ".join(f"{_fmt(k)}:{_fmt(v)}" for k, v in value.items()) + "]"
    return str(value)


def _anchor(name: str) -> str:
    return name.lower()


def _path_join(*parts: str) -> str:
    joined = "/".join(part for part in parts if part)
    return posixpath.normpath(joined) if joined else ""


def create_parameters_section(step_data: StepData, step_parameter_names: Iterable[str]) -> str:
    """Render the complete ``## Parameters`` section for ``step_data``.

    ``step_parameter_names`` lists the parameters the step declares itself,
    as opposed to documentation-only parameters (Jenkins or execution
    environment ones) added before rendering. The parameter list of
    ``step_data`` is re-sorted in place.
    """

    names = list(step_parameter_names)
    parameters = "## Parameters\n\n"

    # alphabetical with mandatory parameters first
    sort_step_parameters(step_data, True)
    parameters += "### Overview - Step\n\n"
    parameters += create_parameter_overview(step_data, names, False)

    parameters += "### Overview - Execution Environment\n\n"
    parameters += (
        "!!! note \"Orchestrator-specific only\"\n\n"
        "    These parameters are relevant for orchestrator usage and not considered "
        "when using the command line option.\n\n"
    )
    parameters += create_parameter_overview(step_data, names, True)

    sort_step_parameters(step_data, False)
    parameters += "### Details\n\n"
    parameters += create_parameter_details(step_data, names)

    return parameters


def parameter_mandatory_information(param: StepParameters, further_info: str) -> Tuple[bool, str, str]:
    """Return ``(mandatory, mandatory_string, mandatory_info)`` for ``param``."""

    mandatory = param.mandatory
    mandatory_info = further_info

    if param.mandatory_if:
        mandatory = True
        if mandatory_info:
            mandatory_info += "<br />"
        conditions = ["mandatory in case of:"]
        for condition in param.mandatory_if:
            conditions.append(f"- [`{condition.name}`](#{_anchor(condition.name)})=`{condition.value}`")
        mandatory_info += "<br />".join(conditions)

    mandatory_string = "**(yes)**" if mandatory_info else "**yes**"
    return mandatory, mandatory_string, mandatory_info


def create_parameter_overview(
    step_data: StepData,
    step_parameter_names: List[str],
    execution_environment: bool,
) -> str:
    table = "| Name | Mandatory | Additional information |\n"
    table += "| ---- | --------- | ---------------------- |\n"

    for param in step_data.spec.inputs.parameters:
        further_info = parameter_further_info(param.name, step_data, step_parameter_names, execution_environment)
        if further_info is None:
            continue
        mandatory, mandatory_string, further_info = parameter_mandatory_information(param, further_info)
        table += (
            f"| [{param.name}](#{_anchor(param.name)}) | "
            f"{mandatory_string if mandatory else 'no'} | {further_info} |\n"
        )

    table += "\n"
    return table


def _check_parameter_info(further_info: str, step_param: bool, execution_environment: bool) -> Optional[str]:
    # step parameters belong to the step table, all others to the execution environment table
    if step_param != execution_environment:
        return further_info
    return None


def parameter_further_info(
    param_name: str,
    step_data: StepData,
    step_parameter_names: List[str],
    execution_environment: bool,
) -> Optional[str]:
    """Return the "Additional information" cell, or ``None`` when the
    parameter does not belong to the requested overview table."""

    # general parameters
    if param_name == "verbose":
        return _check_parameter_info("activates debug output", True, execution_environment)

    if param_name == "script":
        return _check_parameter_info(
            f"{JENKINS_ONLY_BADGE} reference to Jenkins main pipeline script", True, execution_environment
        )

    # Jenkins-specific and execution environment parameters
    if param_name not in step_parameter_names:
        for secret in step_data.spec.inputs.secrets:
            if param_name == secret.name and secret.type == "jenkins":
                return _check_parameter_info(
                    f"{JENKINS_ONLY_BADGE} id of credentials ([using credentials]({JENKINS_CREDENTIALS_URL}))",
                    True,
                    execution_environment,
                )
        if param_name in JENKINS_PARAMS:
            return _check_parameter_info(JENKINS_ONLY_BADGE, False, execution_environment)
        return _check_parameter_info("", False, execution_environment)

    # step parameters, secrets included
    for param in step_data.spec.inputs.parameters:
        if param_name != param.name:
            continue
        further_info = ""
        if param.deprecation_message:
            further_info += DEPRECATED_BADGE
        if param.secret:
            secret_info = f"{SECRET_BADGE} pass via ENV or Jenkins credentials"

            is_vault_secret = (
                param.get_reference(REF_TYPE_VAULT_SECRET) is not None
                or param.get_reference(REF_TYPE_VAULT_SECRET_FILE) is not None
            )
            is_system_trust_secret = param.get_reference(REF_TYPE_SYSTEM_TRUST_SECRET) is not None
            if is_vault_secret and is_system_trust_secret:
                secret_info = (
                    f" {VAULT_BADGE} {SYSTEM_TRUST_BADGE} {SECRET_BADGE} "
                    "pass via ENV, Vault, System Trust or Jenkins credentials"
                )
            elif is_vault_secret:
                secret_info = f" {VAULT_BADGE} {SECRET_BADGE} pass via ENV, Vault or Jenkins credentials"

            for res in param.resource_ref:
                if res.type == "secret":
                    secret_info += f" ([`{res.name}`](#{_anchor(res.name)}))"
            return _check_parameter_info(further_info + secret_info, True, execution_environment)
        return _check_parameter_info(further_info, True, execution_environment)
    return _check_parameter_info("", True, execution_environment)


def create_parameter_details(step_data: StepData, step_parameter_names: List[str]) -> str:
    details = ""

    for param in step_data.spec.inputs.parameters:
        details += f"#### {param.name}\n\n"

        if param.name not in step_parameter_names and param.name in JENKINS_PARAMS:
            details += "**Jenkins-specific:** Used for proper environment setup.\n\n"

        if param.long_description:
            details += param.long_description + "\n\n"
        else:
            details += param.description + "\n\n"

        details += "[back to overview](#parameters)\n\n"

        details += "| Scope | Details |\n"
        details += "| ---- | --------- |\n"

        if param.deprecation_message:
            details += f"| Deprecated | {param.deprecation_message} |\n"
        details += f"| Aliases | {alias_list(param.aliases)} |\n"
        details += f"| Type | `{param.type}` |\n"
        mandatory, mandatory_string, further_info = parameter_mandatory_information(param, "")
        if mandatory and further_info:
            mandatory_string = further_info
        details += f"| Mandatory | {mandatory_string if mandatory else 'no'} |\n"
        details += f"| Default | {format_default(param, step_parameter_names)} |\n"
        if param.possible_values is not None:
            details += f"| Possible values | {possible_value_list(param.possible_values)} |\n"
        details += f"| Secret | {'**yes**' if param.secret else 'no'} |\n"
        details += f"| Configuration scope | {scope_details(param.scope)} |\n"
        details += f"| Resource references | {resource_reference_details(param.resource_ref)} |\n"

        details += "\n\n"

    rendered = set(step_data.parameter_names())
    for secret in step_data.spec.inputs.secrets:
        # Jenkins credentials already got a parameter block
        if secret.name in rendered:
            continue
        details += f"#### {secret.name}\n\n"

        if secret.name not in step_parameter_names and secret.name in JENKINS_PARAMS:
            details += (
                "**Jenkins-specific:** Used for proper environment setup. See "
                f"*[using credentials]({JENKINS_CREDENTIALS_URL})* for details.\n\n"
            )

        details += secret.description + "\n\n"

        details += "[back to overview](#parameters)\n\n"

        details += "| Scope | Details |\n"
        details += "| ---- | --------- |\n"
        details += f"| Aliases | {alias_list(secret.aliases)} |\n"
        details += "| Type | `string` |\n"
        details += f"| Configuration scope | {scope_details(['PARAMETERS', 'GENERAL', 'STEPS', 'STAGES'])} |\n"

        details += "\n\n"

    return details


def format_default(param: StepParameters, step_parameter_names: Iterable[str]) -> str:
    if param.default is None:
        # step parameters can always be provided through the environment
        if param.name in step_parameter_names:
            return f"`$PIPER_{param.name}` (if set)"
        return ""

    default = param.default
    if isinstance(default, list) and default and all(isinstance(d, ConditionDefault) for d in default):
        defaults = []
        for cond in default:
            if cond.key and cond.value:
                defaults.append(f"{cond.key}=`{cond.value}`: `{_fmt(cond.default)}`")
            else:
                # unconditional entries only hold the default
                defaults.append(f"`{_fmt(cond.default)}`")
        return "<br />".join(defaults)
    if isinstance(default, list):
        # e.g. stashes, a mixture of fixed and conditional values
        defaults = []
        for item in default:
            if isinstance(item, ConditionDefault):
                defaults.append(f"{item.key}=`{item.value}`: `{_fmt(item.default)}`")
            else:
                defaults.append(f"- `{_fmt(item)}`")
        return "<br />".join(defaults)
    if isinstance(default, dict):
        return "<br />".join(f"`{_fmt(key)}`: `{_fmt(value)}`" for key, value in default.items())
    if isinstance(default, str):
        if not default:
            return "`''`"
        return f"`{default}`"
    return f"`{_fmt(default)}`"


def alias_list(aliases: List[Alias]) -> str:
    if not aliases:
        return "-"
    if len(aliases) == 1:
        alias = f"`{aliases[0].name}`"
        if aliases[0].deprecated:
            alias += " (**deprecated**)"
        return alias
    entries = []
    for alias in aliases:
        entry = f"- `{alias.name}`"
        if alias.deprecated:
            entry += " (**deprecated**)"
        entries.append(entry)
    return "<br />".join(entries)


def possible_value_list(possible_values: List[Any]) -> str:
    if not possible_values:
        return ""
    return "<br />".join(f"- `{_fmt(value)}`" for value in possible_values)


def scope_details(scope: List[str]) -> str:
    def box(name: str) -> str:
        return "&#9746;" if name in scope else "&#9744;"

    details = "<ul>"
    details += f"<li>{box('PARAMETERS')} parameter</li>"
    details += f"<li>{box('GENERAL')} general</li>"
    details += f"<li>{box('STEPS')} steps</li>"
    details += f"<li>{box('STAGES')} stages</li>"
    details += "</ul>"
    return details


def resource_reference_details(resource_ref: List[ResourceReference]) -> str:
    if not resource_ref:
        return "none"

    resource_details = ""
    for resource in resource_ref:
        if resource.name == "commonPipelineEnvironment":
            resource_details += "_commonPipelineEnvironment_:<br />"
            resource_details += f"&nbsp;&nbsp;reference to: `{resource.param}`<br />"
            continue

        if resource.type == "secret":
            resource_details += "Jenkins credential id:<br />"
            for i, alias in enumerate(resource.aliases):
                if i == 0:
                    resource_details += "&nbsp;&nbsp;aliases:<br />"
                suffix = " (**Deprecated**)" if alias.deprecated else ""
                resource_details += f"&nbsp;&nbsp;- `{alias.name}`{suffix}<br />"
            resource_details += f"&nbsp;&nbsp;id: [`{resource.name}`](#{_anchor(resource.name)})<br />"
            if resource.param:
                resource_details += f"&nbsp;&nbsp;reference to: `{resource.param}`<br />"
            continue

        if resource.type in (REF_TYPE_VAULT_SECRET, REF_TYPE_VAULT_SECRET_FILE):
            resource_details = _add_vault_resource_details(resource, resource_details)
            continue
        if resource.type == REF_TYPE_SYSTEM_TRUST_SECRET:
            resource_details = _add_system_trust_resource_details(resource, resource_details)

    return resource_details


def _add_vault_resource_details(resource: ResourceReference, resource_details: str) -> str:
    resource_details += "<br/>Vault resource:<br />"
    resource_details += f"&nbsp;&nbsp;name: `{resource.name}`<br />"
    resource_details += f"&nbsp;&nbsp;default value: `{resource.default}`<br />"
    resource_details += "<br/>Vault paths: <br />"
    resource_details += "<ul>"
    for root_path in VAULT_ROOT_PATHS:
        resource_details += f"<li>`{_path_join(root_path, resource.default)}`</li>"
    resource_details += "</ul>"
    return resource_details


def _add_system_trust_resource_details(resource: ResourceReference, resource_details: str) -> str:
    resource_details += "<br/>System Trust resource:<br />"
    resource_details += f"&nbsp;&nbsp;name: `{resource.name}`<br />"
    resource_details += f"&nbsp;&nbsp;value: `{resource.default}`<br />"
    return resource_details


def sort_step_parameters(step_data: StepData, consider_mandatory: bool) -> None:
    """Stable in-place sort by name, optionally with mandatory parameters first."""

    parameters = step_data.spec.inputs.parameters
    if consider_mandatory:
        parameters.sort(key=lambda p: (not p.is_mandatory(), p.name))
    else:
        parameters.sort(key=lambda p: p.name)
