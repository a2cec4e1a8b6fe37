"""Shared lifecycle of a step command.

Each step module describes itself with a :class:`StepCommand`: its metadata,
its typed options record, the flags it registers, the secrets to mask and
the domain function to call. :meth:`StepCommand.execute` performs the common
pre-run (logging, configuration, validation) and run (telemetry, Common
Pipeline Environment persistence, error reporting) phases.
"""

from __future__ import annotations

import argparse
import csv
import dataclasses
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import log
from .config import GeneralConfig, prepare_config, resolve_access_tokens
from .errors import ErrorCategory, PiperError
from .metadata import StepData
from .telemetry import CustomData, Splunk, Telemetry
from .validation import validate_step_config
from .version import git_commit

__all__ = [
    "StepCommand",
    "add_bool_flag",
    "add_string_flag",
    "add_string_slice_flag",
    "json_field",
    "options_from_config",
    "options_to_config",
]

CPE_RESOURCE = "commonPipelineEnvironment"


def json_field(name: str, **kwargs: Any) -> Any:
    """Dataclass field carrying the parameter's configuration key."""

    return field(metadata={"json": name}, **kwargs)


def options_from_config(options_type: type, values: Dict[str, Any]) -> Any:
    kwargs = {}
    for f in dataclasses.fields(options_type):
        key = f.metadata.get("json", f.name)
        if key in values and values[key] is not None:
            kwargs[f.name] = values[key]
    return options_type(**kwargs)


def options_to_config(options: Any) -> Dict[str, Any]:
    return {f.metadata.get("json", f.name): getattr(options, f.name) for f in dataclasses.fields(options)}


def _parse_bool(value: str) -> bool:
    text = str(value).strip().lower()
    if text in {"true", "1", "yes", "on"}:
        return True
    if text in {"false", "0", "no", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: '{value}'")


class _StringSliceAction(argparse.Action):
    """Accepts ``--flag a,b --flag c`` like a repeated, comma separated list.

    Values are split CSV style and kept verbatim, quoting protects commas.
    """

    def __call__(self, parser, namespace, values, option_string=None):  # type: ignore[override]
        current = list(getattr(namespace, self.dest, None) or [])
        for row in csv.reader([str(values)]):
            current.extend(row)
        setattr(namespace, self.dest, current)


def add_string_slice_flag(parser: argparse.ArgumentParser, name: str, help_text: str) -> None:
    parser.add_argument(f"--{name}", dest=name, action=_StringSliceAction, default=None, metavar="LIST", help=help_text)


def add_bool_flag(parser: argparse.ArgumentParser, name: str, help_text: str) -> None:
    parser.add_argument(
        f"--{name}",
        dest=name,
        nargs="?",
        const=True,
        default=None,
        type=_parse_bool,
        metavar="BOOL",
        help=help_text,
    )


def add_string_flag(parser: argparse.ArgumentParser, name: str, help_text: str) -> None:
    parser.add_argument(f"--{name}", dest=name, default=None, metavar="VALUE", help=help_text)


@dataclass
class StepCommand:
    name: str
    short: str
    long: str
    metadata: StepData
    options_type: type
    add_flags: Callable[[argparse.ArgumentParser], None]
    run: Callable[[Any, CustomData], None]
    secrets: Callable[[Any], List[Optional[str]]] = lambda _options: []
    common_pipeline_environment: Optional[Any] = None
    splunk_factory: Callable[[], Splunk] = Splunk

    def add_parser(self, subparsers: Any) -> argparse.ArgumentParser:
        parser = subparsers.add_parser(
            self.name,
            help=self.short,
            description=self.long,
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.add_flags(parser)
        parser.set_defaults(step_command=self)
        return parser

    def flag_values(self, args: argparse.Namespace) -> Dict[str, Any]:
        values = {}
        for param in self.metadata.parameters:
            value = getattr(args, param.name, None)
            if value is not None:
                values[param.name] = value
        return values

    def resolve(self, flag_values: Dict[str, Any], general: GeneralConfig) -> Dict[str, Any]:
        return prepare_config(self.metadata, self.name, general, flag_values)

    def execute(
        self,
        flag_values: Dict[str, Any],
        general: GeneralConfig,
        *,
        cwd: Path | str | None = None,
    ) -> int:
        """Run the step and return the process exit code."""

        start_time = time.monotonic()
        log.reset()
        log.set_step_name(self.name)
        log.set_verbose(general.verbose)

        general.github_access_tokens = resolve_access_tokens(general.github_tokens)

        log.register_hook(log.FatalHook(correlation_id=general.correlation_id, path=cwd or Path.cwd()))

        try:
            values = self.resolve(flag_values, general)
        except PiperError as exc:
            log.set_error_category(ErrorCategory.CONFIGURATION)
            log.entry().error("failed to prepare step configuration: %s", exc)
            return 1
        options = options_from_config(self.options_type, values)
        for secret in self.secrets(options):
            log.register_secret(secret)

        splunk_client: Optional[Splunk] = None
        log_collector: Optional[log.CollectorHook] = None
        if general.hook_config.splunk_enabled():
            splunk_client = self.splunk_factory()
            log_collector = log.CollectorHook(correlation_id=general.correlation_id)
            log.register_hook(log_collector)

        try:
            validate_step_config(self.metadata, values)
        except PiperError as exc:
            log.set_error_category(ErrorCategory.CONFIGURATION)
            log.entry().error("%s", exc)
            return 1

        telemetry_client = Telemetry(disabled=general.no_telemetry)
        step_telemetry_data = CustomData(error_code="1")

        def handler() -> None:
            if self.common_pipeline_environment is not None:
                self.common_pipeline_environment.persist(general.env_root_path, CPE_RESOURCE)
            step_telemetry_data.duration = str(int((time.monotonic() - start_time) * 1000))
            step_telemetry_data.error_category = str(log.get_error_category())
            step_telemetry_data.piper_commit_hash = git_commit()
            telemetry_client.set_data(step_telemetry_data)
            telemetry_client.log_step_telemetry_data()
            if splunk_client is None:
                return
            splunk = general.hook_config.splunk_config
            if splunk.dsn:
                splunk_client.initialize(
                    general.correlation_id, splunk.dsn, splunk.token, splunk.index, splunk.send_logs
                )
                splunk_client.send(telemetry_client.get_data(), log_collector)
            if splunk.prod_cribl_endpoint:
                splunk_client.initialize(
                    general.correlation_id,
                    splunk.prod_cribl_endpoint,
                    splunk.prod_cribl_token,
                    splunk.prod_cribl_index,
                    splunk.send_logs,
                )
                splunk_client.send(telemetry_client.get_data(), log_collector)

        log.defer_exit_handler(handler)
        try:
            telemetry_client.initialize(self.name)
            self.run(options, step_telemetry_data)
        except Exception as exc:
            try:
                log.fatal(exc)
            except SystemExit as exit_:
                return int(exit_.code or 1)
        step_telemetry_data.error_code = "0"
        log.entry().info("SUCCESS")
        log.defer_exit_handler(None)
        handler()
        return 0
