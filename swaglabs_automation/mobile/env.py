from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

# swaglabs_automation/mobile/env.py -> repo root is two levels up
REPO_DOTENV = Path(__file__).resolve().parents[2] / ".env"

_DOTENV_LOADED = False


def read_dotenv(path: Path = REPO_DOTENV) -> dict[str, str]:
    pairs: dict[str, str] = {}
    if not path.is_file():
        return pairs
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip().removeprefix("export ").strip()
        key, sep, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if line.startswith("#") or not sep or not key:
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        pairs[key] = value
    return pairs


def load_dotenv(path: Path = REPO_DOTENV) -> dict[str, str]:
    """
    Copy KEY=VALUE pairs from a .env file into os.environ without overriding
    variables that are already set. Returns the pairs that were applied.
    """
    applied = {k: v for k, v in read_dotenv(path).items() if k not in os.environ}
    os.environ.update(applied)
    return applied


def ensure_dotenv_loaded() -> None:
    global _DOTENV_LOADED
    if not _DOTENV_LOADED:
        load_dotenv()
        _DOTENV_LOADED = True


def env_str(name: str) -> Optional[str]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def env_flag(name: str) -> bool:
    return (env_str(name) or "").lower() in {"1", "true", "yes", "on"}
