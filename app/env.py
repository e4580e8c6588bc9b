"""
app/env.py

Dotenv-style loading for local runs. Real process environment variables
always win over file values.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILENAMES: tuple[str, ...] = (".env", ".env.local")


def _parse_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    name, sep, value = line.partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    return name, value.strip().strip('"').strip("'")


def load_env_files(
    root: Path | None = None,
    filenames: Iterable[str] = ENV_FILENAMES,
) -> list[str]:
    """
    Read ``KEY=VALUE`` lines (optionally prefixed with ``export``) from each
    existing file under *root* and set the keys not already present.

    Returns the names that were set, in file order.
    """

    base = root or PROJECT_ROOT
    loaded: list[str] = []
    for filename in filenames:
        env_path = base / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_line(raw_line)
            if parsed is None:
                continue
            name, value = parsed
            if name in os.environ:
                continue
            os.environ[name] = value
            loaded.append(name)
    return loaded
