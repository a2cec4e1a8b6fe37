"""Configuration resolution for step executions."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, TextIO

import yaml

from . import log, piperenv
from .errors import ConfigurationError
from .metadata import StepData, StepParameters

__all__ = [
    "DEFAULT_CUSTOM_CONFIG",
    "DEFAULT_ENV_ROOT",
    "GeneralConfig",
    "HookConfig",
    "SplunkConfig",
    "coerce_value",
    "open_piper_file",
    "prepare_config",
    "read_config_file",
    "resolve_access_tokens",
]

DEFAULT_CUSTOM_CONFIG = ".pipeline/config.yml"
DEFAULT_ENV_ROOT = ".pipeline"
CPE_RESOURCE = "commonPipelineEnvironment"


@dataclass(slots=True)
class SplunkConfig:
    dsn: str = ""
    token: str = ""
    index: str = ""
    send_logs: bool = False
    prod_cribl_endpoint: str = ""
    prod_cribl_token: str = ""
    prod_cribl_index: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SplunkConfig":
        if not isinstance(data, dict):
            data = {}
        return cls(
            dsn=str(data.get("dsn") or ""),
            token=str(data.get("token") or ""),
            index=str(data.get("index") or ""),
            send_logs=bool(data.get("sendLogs", False)),
            prod_cribl_endpoint=str(data.get("prodCriblEndpoint") or ""),
            prod_cribl_token=str(data.get("prodCriblToken") or ""),
            prod_cribl_index=str(data.get("prodCriblIndex") or ""),
        )


@dataclass(slots=True)
class HookConfig:
    splunk_config: SplunkConfig = field(default_factory=SplunkConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HookConfig":
        if not isinstance(data, dict):
            data = {}
        return cls(splunk_config=SplunkConfig.from_dict(data.get("splunk") or {}))

    def splunk_enabled(self) -> bool:
        cfg = self.splunk_config
        return bool(cfg.dsn or cfg.prod_cribl_endpoint)


@dataclass(slots=True)
class GeneralConfig:
    """Options shared by every step, set through the root command flags."""

    verbose: bool = False
    correlation_id: str = ""
    custom_config: str = DEFAULT_CUSTOM_CONFIG
    default_config: List[str] = field(default_factory=list)
    env_root_path: str = DEFAULT_ENV_ROOT
    stage_name: str = ""
    no_telemetry: bool = False
    github_tokens: List[str] = field(default_factory=list)
    github_access_tokens: Dict[str, str] = field(default_factory=dict)
    hook_config: HookConfig = field(default_factory=HookConfig)

    def resolved_stage_name(self) -> str:
        return self.stage_name or os.getenv("STAGE_NAME", "")


def resolve_access_tokens(tokens: Iterable[str]) -> Dict[str, str]:
    """Turn ``host:token`` pairs into a mapping; malformed entries are skipped."""

    resolved: Dict[str, str] = {}
    for item in tokens:
        host, sep, token = str(item).partition(":")
        host = host.strip()
        token = token.strip()
        if not sep or not host or not token:
            log.entry().warning("ignoring GitHub token without host prefix")
            continue
        resolved[host] = token
        log.register_secret(token)
    return resolved


def open_piper_file(name: str) -> TextIO:
    return open(name, "r", encoding="utf-8")


def read_config_file(
    name: str,
    *,
    open_file: Callable[[str], TextIO] = open_piper_file,
    required: bool = True,
) -> Dict[str, Any]:
    """Read a YAML config file; missing optional files yield an empty config."""

    try:
        with open_file(name) as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError:
        if required:
            raise ConfigurationError(f"config file '{name}' not found")
        log.entry().debug("config file '%s' not found, using defaults", name)
        return {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"config file '{name}' is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file '{name}' must contain a mapping")
    return data


def coerce_value(param: StepParameters, value: Any) -> Any:
    """Convert a raw config, env or flag value to the parameter's declared type."""

    if value is None:
        return None
    kind = param.type
    if kind == "[]string":
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        return [str(value)]
    if kind == "bool":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in {"true", "1", "yes", "on"}:
            return True
        if text in {"false", "0", "no", "off", ""}:
            return False
        raise ConfigurationError(f"invalid boolean value '{value}' for parameter '{param.name}'")
    if kind == "int":
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"invalid integer value '{value}' for parameter '{param.name}'") from exc
    if kind == "string":
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    return value


def _section_value(section: Dict[str, Any], param: StepParameters) -> tuple[bool, Any]:
    if not isinstance(section, dict):
        return False, None
    if param.name in section:
        return True, section[param.name]
    for alias in param.aliases:
        if alias.name in section:
            if alias.deprecated:
                log.entry().warning(
                    "DEPRECATION NOTICE: parameter '%s' is deprecated, please use '%s' instead",
                    alias.name,
                    param.name,
                )
            return True, section[alias.name]
    return False, None


def _apply_config(
    values: Dict[str, Any],
    config: Dict[str, Any],
    metadata: StepData,
    step_name: str,
    stage_name: str,
) -> None:
    general = config.get("general") or {}
    steps = (config.get("steps") or {}).get(step_name) or {}
    stages = (config.get("stages") or {}).get(stage_name) or {} if stage_name else {}
    for param in metadata.parameters:
        for scope, section in (("GENERAL", general), ("STEPS", steps), ("STAGES", stages)):
            if scope not in param.scope:
                continue
            found, value = _section_value(section, param)
            if found and value is not None:
                values[param.name] = value


def prepare_config(
    metadata: StepData,
    step_name: str,
    general: GeneralConfig,
    flag_values: Optional[Dict[str, Any]] = None,
    *,
    open_file: Callable[[str], TextIO] = open_piper_file,
) -> Dict[str, Any]:
    """Resolve the effective step configuration.

    Precedence, lowest first: metadata defaults, ``PIPER_<name>`` environment
    variables, default config files, the custom config (general, steps and
    stages sections filtered by parameter scope), Common Pipeline Environment
    resource references and finally explicitly passed flags.
    """

    values: Dict[str, Any] = {}
    for param in metadata.parameters:
        if param.default is not None:
            values[param.name] = param.default
        env_value = os.getenv(f"PIPER_{param.name}")
        if env_value:
            values[param.name] = env_value

    stage_name = general.resolved_stage_name()
    for default_file in general.default_config:
        _apply_config(values, read_config_file(default_file, open_file=open_file), metadata, step_name, stage_name)

    custom = read_config_file(
        general.custom_config,
        open_file=open_file,
        required=general.custom_config != DEFAULT_CUSTOM_CONFIG,
    )
    _apply_config(values, custom, metadata, step_name, stage_name)
    hooks = custom.get("hooks")
    if isinstance(hooks, dict) and not general.hook_config.splunk_enabled():
        general.hook_config = HookConfig.from_dict(hooks)

    for param in metadata.parameters:
        for ref in param.resource_ref:
            if ref.name != CPE_RESOURCE or not ref.param:
                continue
            cpe_value = piperenv.get_resource_parameter(general.env_root_path, CPE_RESOURCE, ref.param)
            if cpe_value not in (None, "", [], {}):
                values[param.name] = cpe_value

    for name, value in (flag_values or {}).items():
        if value is not None:
            values[name] = value

    resolved: Dict[str, Any] = {}
    for name, value in values.items():
        param = metadata.parameter(name)
        resolved[name] = coerce_value(param, value) if param is not None else value
    return resolved
