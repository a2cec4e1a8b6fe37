"""
Tiny .env loader with no external dependencies.

Loads key=value pairs from one or more .env files without overwriting
existing environment variables. Intended for running steps locally, where
the CI/CD environment does not provide the ``PIPER_*`` variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable


def load_dotenv_files(paths: Iterable[Path]) -> list[Path]:
    loaded: list[Path] = []
    for p in paths:
        try:
            if not p.exists():
                continue
            text = p.read_text(encoding="utf-8")
        except OSError:
            continue
        for line in text.splitlines():
            s = line.strip()
            if s.startswith("export "):
                s = s[len("export "):].lstrip()
            if not s or s.startswith("#") or "=" not in s:
                continue
            k, v = s.split("=", 1)
            k = k.strip()
            v = v.strip().strip('"').strip("'")
            if k and k not in os.environ:
                os.environ[k] = v
        loaded.append(p)
    return loaded


def load_local_dotenv(env_root: Path | None = None) -> list[Path]:
    """Load .env from the working directory and the pipeline env root.

    Does not overwrite existing environment variables.
    """
    if os.getenv("PIPER_SKIP_DOTENV") == "1":
        return []
    candidates: list[Path] = [Path.cwd() / ".env"]
    if env_root is not None:
        candidates.append(Path(env_root) / ".env")

    unique_candidates: list[Path] = []
    seen: set[str] = set()
    for path in candidates:
        try:
            resolved = path.resolve()
        except OSError:
            resolved = path
        key = str(resolved)
        if key in seen:
            continue
        seen.add(key)
        unique_candidates.append(path)

    return load_dotenv_files(unique_candidates)
