"""Repository-level entrypoint for the piper step runner.

``python main.py pythonBuild --createBOM`` behaves like the installed
``piper`` console script; ``python main.py docgen ...`` runs the step
documentation generator.
"""

from __future__ import annotations

import sys
from typing import Sequence


def _run(argv: Sequence[str]) -> int:
    """Delegate to the documentation generator or the step runner."""

    args = list(argv)
    if args and args[0] == "docgen":
        from docgen.cli import main as docgen_main

        return docgen_main(args[1:])
    from piper.cli import main as cli_main

    return cli_main(args)


def main(argv: Sequence[str] | None = None) -> int:
    args = list(argv) if argv is not None else sys.argv[1:]
    return _run(args)


if __name__ == "__main__":
    raise SystemExit(main())
