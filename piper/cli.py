"""Command-line interface for running pipeline steps."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Callable, Dict, List, Optional

from interfaces.dotenv import load_local_dotenv
from interfaces.masking import mask

from . import log
from .command import StepCommand, options_from_config
from .commands import STEP_COMMANDS
from .config import DEFAULT_CUSTOM_CONFIG, DEFAULT_ENV_ROOT, GeneralConfig
from .errors import PiperError
from .version import __version__, git_commit


def _add_general_options(parser: argparse.ArgumentParser, *, nested: bool = False) -> None:
    # nested copies must not clobber values given before the subcommand
    def default(value):
        return argparse.SUPPRESS if nested else value

    parser.add_argument(
        "--verbose",
        action="store_true",
        default=default(False),
        help="verbose output",
    )
    parser.add_argument(
        "--correlationID",
        dest="correlation_id",
        metavar="ID",
        default=default(""),
        help="ID for unique identification of a pipeline run",
    )
    parser.add_argument(
        "--customConfig",
        dest="custom_config",
        metavar="PATH",
        default=default(DEFAULT_CUSTOM_CONFIG),
        help=f"Path to the pipeline configuration file (default: {DEFAULT_CUSTOM_CONFIG}).",
    )
    parser.add_argument(
        "--defaultConfig",
        dest="default_config",
        metavar="PATH",
        action="append",
        default=default(None),
        help="Default configurations, passed as path to yaml file (repeatable).",
    )
    parser.add_argument(
        "--envRootPath",
        dest="env_root_path",
        metavar="PATH",
        default=default(DEFAULT_ENV_ROOT),
        help=f"Root path to Piper pipeline shared environments (default: {DEFAULT_ENV_ROOT}).",
    )
    parser.add_argument(
        "--stageName",
        dest="stage_name",
        metavar="NAME",
        default=default(""),
        help="Name of the stage for which configuration should be included.",
    )
    parser.add_argument(
        "--noTelemetry",
        dest="no_telemetry",
        action="store_true",
        default=default(False),
        help="Disables telemetry reporting.",
    )
    parser.add_argument(
        "--gitHubTokens",
        dest="github_tokens",
        metavar="HOST:TOKEN",
        action="append",
        default=default(None),
        help="List of entries in form of <hostname>:<token> to allow GitHub token authentication for downloading config / defaults.",
    )


def build_parser(prog: str = "piper", commands: Optional[Dict[str, StepCommand]] = None) -> argparse.ArgumentParser:
    """Construct the piper argument parser with one subcommand per step."""
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Executes CI/CD steps from the piper library.",
    )
    _add_general_options(parser)

    subparsers = parser.add_subparsers(dest="command")

    if commands is None:
        commands = {name: factory() for name, factory in STEP_COMMANDS.items()}
    for step_command in commands.values():
        step_parser = step_command.add_parser(subparsers)
        _add_general_options(step_parser, nested=True)

    get_config_parser = subparsers.add_parser(
        "getConfig",
        help="Loads the project 'Piper' configuration respecting defaults and parameters.",
    )
    get_config_parser.add_argument(
        "--stepName",
        dest="step_name",
        required=True,
        choices=sorted(commands),
        help="Step name, used to get step specific configuration",
    )
    _add_general_options(get_config_parser, nested=True)

    subparsers.add_parser("version", help="Returns the version of the piper binary")

    parser.set_defaults(commands=commands)
    return parser


def parse_args(argv: Optional[List[str]] = None, *, prog: str = "piper") -> argparse.Namespace:
    """Parse CLI arguments for the piper step runner."""
    parser = build_parser(prog=prog)
    return parser.parse_args(argv)


def general_config_from_args(args: argparse.Namespace) -> GeneralConfig:
    return GeneralConfig(
        verbose=bool(getattr(args, "verbose", False)),
        correlation_id=getattr(args, "correlation_id", "") or "",
        custom_config=getattr(args, "custom_config", DEFAULT_CUSTOM_CONFIG) or DEFAULT_CUSTOM_CONFIG,
        default_config=list(getattr(args, "default_config", None) or []),
        env_root_path=getattr(args, "env_root_path", DEFAULT_ENV_ROOT) or DEFAULT_ENV_ROOT,
        stage_name=getattr(args, "stage_name", "") or "",
        no_telemetry=bool(getattr(args, "no_telemetry", False)),
        github_tokens=list(getattr(args, "github_tokens", None) or []),
    )


def _handle_step(args: argparse.Namespace, general: GeneralConfig) -> int:
    step_command: StepCommand = args.step_command
    return step_command.execute(step_command.flag_values(args), general)


def _handle_get_config(args: argparse.Namespace, general: GeneralConfig) -> int:
    step_command: StepCommand = args.commands[args.step_name]
    log.set_step_name("getConfig")
    log.set_verbose(general.verbose)
    try:
        values = step_command.resolve({}, general)
    except PiperError as exc:
        log.entry().error("failed to resolve configuration of '%s': %s", args.step_name, exc)
        return 1
    secrets = [
        str(values[param.name])
        for param in step_command.metadata.parameters
        if param.secret and values.get(param.name)
    ]
    options = options_from_config(step_command.options_type, values)
    secrets.extend(str(secret) for secret in step_command.secrets(options) if secret)
    print(mask(json.dumps(values, ensure_ascii=False, indent=2, sort_keys=True), secrets))
    return 0


def _handle_version(args: argparse.Namespace, general: GeneralConfig) -> int:
    print(f"piper-version:\n    commit: \"{git_commit()}\"\n    tag: \"v{__version__}\"")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run the piper CLI entrypoint."""
    load_local_dotenv(Path(DEFAULT_ENV_ROOT))
    args = parse_args(argv)
    general = general_config_from_args(args)

    dispatch: Dict[str, Callable[[argparse.Namespace, GeneralConfig], int]] = {
        "getConfig": _handle_get_config,
        "version": _handle_version,
    }

    if getattr(args, "step_command", None) is not None:
        return _handle_step(args, general)
    handler = dispatch.get(args.command or "")
    if handler is None:
        build_parser().print_help()
        return 1
    return handler(args, general)


__all__ = ["build_parser", "general_config_from_args", "main", "parse_args"]
