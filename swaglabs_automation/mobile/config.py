from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .env import ensure_dotenv_loaded, env_str
from .errors import ConfigError

DEFAULT_APPIUM_SERVER_URL = "http://127.0.0.1:4723"
DEFAULT_IMPLICIT_WAIT_S = 10.0
DEFAULT_APP_LOAD_TIMEOUT_S = 30.0
DEFAULT_POLL_S = 0.5
DEFAULT_REQUEST_TIMEOUT_S = 60.0
DEFAULT_SERVER_START_TIMEOUT_S = 30.0


def load_json_file(path: str | Path) -> dict[str, Any]:
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"JSON file not found: {file_path}")
    if file_path.is_dir():
        raise IsADirectoryError(f"Expected a JSON file but found a directory: {file_path}")

    raw = file_path.read_text(encoding="utf-8")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected top-level JSON object in {file_path}")
    return data


def require_key(obj: dict[str, Any], key: str, *, context: str) -> Any:
    if key not in obj:
        raise ConfigError(f"Missing required key '{key}' in {context}")
    return obj[key]


@dataclass(frozen=True)
class HarnessConfig:
    appium_server_url: str
    capabilities: dict[str, Any]
    implicit_wait_s: float = DEFAULT_IMPLICIT_WAIT_S
    app_load_timeout_s: float = DEFAULT_APP_LOAD_TIMEOUT_S
    poll_s: float = DEFAULT_POLL_S
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    server_start_timeout_s: float = DEFAULT_SERVER_START_TIMEOUT_S
    artifacts_dir: Path = Path("artifacts")
    appium_command: Optional[tuple[str, ...]] = None


def _as_non_negative_float(value: Any, *, field: str, context: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{context}: '{field}' must be a number") from e
    if parsed < 0:
        raise ConfigError(f"{context}: '{field}' must be >= 0")
    return parsed


def _resolve_relative(raw: str, *, config_path: Path) -> Path:
    candidate = Path(raw).expanduser()
    if candidate.is_absolute() or candidate.exists():
        return candidate
    return config_path.parent / candidate


def _load_capabilities(config: dict[str, Any], *, config_path: Path) -> dict[str, Any]:
    context = str(config_path)
    inline = config.get("capabilities")
    if inline is not None:
        if not isinstance(inline, dict) or not inline:
            raise ConfigError(f"{context}: 'capabilities' must be a non-empty object")
        return {"capabilities": inline}

    raw_path = require_key(config, "capabilities_json_path", context=context)
    if not isinstance(raw_path, str) or not raw_path.strip():
        raise ConfigError(f"{context}: 'capabilities_json_path' must be a non-empty string")
    caps_path = _resolve_relative(raw_path.strip(), config_path=config_path)
    payload = load_json_file(caps_path)
    require_key(payload, "capabilities", context=str(caps_path))
    return payload


def appium_url_from_env() -> Optional[str]:
    """
    APPIUM_SERVER_URL wins; otherwise APPIUM_HOST / APPIUM_PORT / APPIUM_BASE_PATH
    are combined, each falling back to the local default.
    """
    explicit = env_str("APPIUM_SERVER_URL")
    if explicit:
        return explicit.rstrip("/")

    host = env_str("APPIUM_HOST")
    port = env_str("APPIUM_PORT")
    base_path = env_str("APPIUM_BASE_PATH")
    if host is None and port is None and base_path is None:
        return None

    if port is not None and not port.isdigit():
        raise ConfigError(f"APPIUM_PORT must be an integer, got {port!r}")
    base = (base_path or "").strip("/")
    url = f"http://{host or '127.0.0.1'}:{port or '4723'}"
    return f"{url}/{base}" if base else url


def load_config(path: str | Path) -> HarnessConfig:
    """
    Read a harness config JSON, overlaying environment overrides (.env included).

    Example:
      {
        "appium_server_url": "http://127.0.0.1:4723",
        "capabilities_json_path": "android_capabilities.example.json",
        "implicit_wait_s": 10,
        "app_load_timeout_s": 30,
        "artifacts_dir": "artifacts",
        "appium_command": ["appium", "--port", "4723"]
      }
    """
    ensure_dotenv_loaded()

    config_path = Path(path).resolve()
    config = load_json_file(config_path)
    context = str(config_path)

    server_url = appium_url_from_env() or config.get("appium_server_url") or DEFAULT_APPIUM_SERVER_URL
    if not isinstance(server_url, str) or not server_url.strip():
        raise ConfigError(f"{context}: 'appium_server_url' must be a non-empty string")

    wait_override = env_str("SWAGLABS_IMPLICIT_WAIT_S")
    if wait_override is not None:
        implicit_wait_s = _as_non_negative_float(wait_override, field="SWAGLABS_IMPLICIT_WAIT_S", context="environment")
    else:
        implicit_wait_s = _as_non_negative_float(
            config.get("implicit_wait_s", DEFAULT_IMPLICIT_WAIT_S), field="implicit_wait_s", context=context
        )

    appium_command_raw = config.get("appium_command")
    appium_command: Optional[tuple[str, ...]] = None
    if appium_command_raw is not None:
        if (
            not isinstance(appium_command_raw, list)
            or not appium_command_raw
            or not all(isinstance(x, str) and x for x in appium_command_raw)
        ):
            raise ConfigError(f"{context}: 'appium_command' must be a non-empty list of strings")
        appium_command = tuple(appium_command_raw)

    poll_s = _as_non_negative_float(config.get("poll_s", DEFAULT_POLL_S), field="poll_s", context=context)

    return HarnessConfig(
        appium_server_url=server_url.strip().rstrip("/"),
        capabilities=_load_capabilities(config, config_path=config_path),
        implicit_wait_s=implicit_wait_s,
        app_load_timeout_s=_as_non_negative_float(
            config.get("app_load_timeout_s", DEFAULT_APP_LOAD_TIMEOUT_S),
            field="app_load_timeout_s",
            context=context,
        ),
        poll_s=max(poll_s, 0.05),
        request_timeout_s=_as_non_negative_float(
            config.get("request_timeout_s", DEFAULT_REQUEST_TIMEOUT_S),
            field="request_timeout_s",
            context=context,
        ),
        server_start_timeout_s=_as_non_negative_float(
            config.get("server_start_timeout_s", DEFAULT_SERVER_START_TIMEOUT_S),
            field="server_start_timeout_s",
            context=context,
        ),
        # relative to the config file, like capabilities_json_path
        artifacts_dir=(config_path.parent / Path(str(config.get("artifacts_dir") or "artifacts")).expanduser()).resolve(),
        appium_command=appium_command,
    )
