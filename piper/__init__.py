"""Piper step runtime package."""

from __future__ import annotations

from .version import __version__


__all__ = ["main", "parse_args", "__version__"]


def main(argv=None):
    from piper.cli import main as _main

    return _main(argv)


def parse_args(argv=None):
    from piper.cli import parse_args as _parse_args

    return _parse_args(argv)
