"""Piper step runtime version information."""

import os
from importlib import metadata

__all__ = ["__version__", "git_commit"]

try:  # pragma: no cover - only hit when installed as a package
    __version__ = metadata.version("piper-steps")
except metadata.PackageNotFoundError:  # pragma: no cover - development fallback
    __version__ = "0.3.0"


def git_commit() -> str:
    """Return the commit the runtime was built from, if the build recorded one."""

    return os.getenv("PIPER_GIT_COMMIT", "<n/a>")
