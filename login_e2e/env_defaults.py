"""Read suite defaults from a ``.env.defaults`` file.

The file lives at the repository root and holds ``KEY=value`` lines. It lets a
team pin the credentials and thresholds of a shared test deployment without
exporting environment variables on every machine. Values from the process
environment always win over the file.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict

DEFAULTS_FILE_ENV = "LOGIN_E2E_DEFAULTS_FILE"


def _defaults_path() -> Path:
    override = os.environ.get(DEFAULTS_FILE_ENV)
    if override:
        return Path(override)
    return Path(__file__).resolve().parents[1] / ".env.defaults"


@lru_cache(maxsize=4)
def load_env_defaults(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}

    defaults: Dict[str, str] = {}
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
            value = value[1:-1]
        defaults[key.strip()] = value
    return defaults


def get_setting(key: str, default: str | None = None) -> str | None:
    """Return ``key`` from the environment, then ``.env.defaults``, then ``default``."""
    value = os.environ.get(key)
    if value is not None and value != "":
        return value
    return load_env_defaults(_defaults_path()).get(key, default)
