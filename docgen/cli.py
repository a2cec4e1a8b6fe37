"""Command-line interface for the step documentation generator."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

import yaml

from piper import log
from piper.commands import STEP_METADATA, step_metadata
from piper.metadata import StepData, load_step_data

from .generator import DEFAULT_TEMPLATE, generate_step_documentation, write_step_documentation


def _path_arg(value: str) -> Path:
    return Path(value).expanduser()


def build_parser(prog: str = "piper-docgen") -> argparse.ArgumentParser:
    """Construct the documentation generator argument parser."""
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Generate step documentation pages from step metadata.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--metadata-file",
        dest="metadata_files",
        metavar="PATH",
        type=_path_arg,
        action="append",
        help="Step metadata YAML file (repeatable).",
    )
    source.add_argument(
        "--step",
        dest="steps",
        metavar="NAME",
        action="append",
        choices=sorted(STEP_METADATA),
        help="Built-in step to document (repeatable, default: all built-in steps).",
    )
    parser.add_argument(
        "--docu-dir",
        metavar="PATH",
        type=_path_arg,
        default=Path("documentation/docs/steps"),
        help="Directory holding the <step>.md templates (default: documentation/docs/steps).",
    )
    parser.add_argument(
        "--output-dir",
        metavar="PATH",
        type=_path_arg,
        default=None,
        help="Directory for the generated pages (default: the docu dir).",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the generated pages instead of writing files.",
    )
    parser.add_argument("--verbose", action="store_true", help="verbose output")
    return parser


def parse_args(argv: Optional[List[str]] = None, *, prog: str = "piper-docgen") -> argparse.Namespace:
    parser = build_parser(prog=prog)
    return parser.parse_args(argv)


def _collect_step_data(args: argparse.Namespace) -> List[StepData]:
    if args.metadata_files:
        return [load_step_data(path) for path in args.metadata_files]
    names = args.steps or sorted(STEP_METADATA)
    return [step_metadata(name) for name in names]


def main(argv: Optional[List[str]] = None) -> int:
    """Run the documentation generator entrypoint."""
    args = parse_args(argv)
    log.set_step_name("docgen")
    log.set_verbose(args.verbose)

    try:
        steps = _collect_step_data(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        log.entry().error("failed to load step metadata: %s", exc)
        return 1

    for step_data in steps:
        if args.stdout:
            template_path = args.docu_dir / f"{step_data.metadata.name}.md"
            template = (
                template_path.read_text(encoding="utf-8") if template_path.is_file() else DEFAULT_TEMPLATE
            )
            print(generate_step_documentation(step_data, template))
            continue
        target = write_step_documentation(step_data, args.docu_dir, args.output_dir)
        log.entry().info("documentation of %s written to %s", step_data.metadata.name, target)
    return 0


__all__ = ["build_parser", "main", "parse_args"]
