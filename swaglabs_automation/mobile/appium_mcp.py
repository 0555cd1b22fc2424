from __future__ import annotations

import copy
import json
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .appium_http_client import AppiumHTTPClient, WebDriverElementRef
from .config import DEFAULT_APPIUM_SERVER_URL, load_json_file, require_key
from .errors import AppiumHTTPError, ElementNotFoundError
from .locators import FIND_STRATEGIES

ANDROID_KEYCODE_HOME = 3

# Appium application states (mobile: queryAppState)
APP_STATE_NOT_RUNNING = 1


@dataclass
class _ManagedSession:
    client: AppiumHTTPClient
    session_id: str
    platform: str
    artifacts_dir: Path


_ACTIVE: dict[str, _ManagedSession] = {}
_SESSION_KEY = "active"

mcp = FastMCP(
    "swaglabs-appium",
    instructions=(
        "Drive a mobile app through Appium. Call start_session first, then use "
        "find_element to get element ids for tap_element / enter_text / get_element_text, "
        "and end_session when done. Only one session is active at a time."
    ),
)


def _log(message: str) -> None:
    # stdout carries the MCP stdio transport
    print(f"{datetime.now().isoformat()} - {message}", file=sys.stderr)


def _must_get_session() -> _ManagedSession:
    session = _ACTIVE.get(_SESSION_KEY)
    if session is None:
        raise RuntimeError("Appium session not active. Call start_session first.")
    return session


def _artifact_path(session: _ManagedSession, *, stem: str, ext: str) -> Path:
    ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    session.artifacts_dir.mkdir(parents=True, exist_ok=True)
    return session.artifacts_dir / f"{stem}_{ts}.{ext}"


def _element(element_id: str) -> WebDriverElementRef:
    if not isinstance(element_id, str) or not element_id.strip():
        raise RuntimeError("'element_id' must be a non-empty string")
    return WebDriverElementRef(element_id=element_id.strip())


def normalize_gesture(sequences: list[dict[str, Any]], *, width: int, height: int) -> list[dict[str, Any]]:
    """
    Scale normalized [0, 1] pointerMove coordinates to absolute pixels.

    Relative moves (origin "pointer") are scaled the same way, as a fraction of
    the screen. The input is not modified.
    """
    scaled = copy.deepcopy(sequences)
    for sequence in scaled:
        if not isinstance(sequence, dict):
            raise ValueError("each action sequence must be an object")
        if sequence.get("type") != "pointer" or not isinstance(sequence.get("actions"), list):
            continue
        for action in sequence["actions"]:
            if not isinstance(action, dict) or action.get("type") != "pointerMove":
                continue
            if isinstance(action.get("x"), (int, float)):
                action["x"] = round(action["x"] * width)
            if isinstance(action.get("y"), (int, float)):
                action["y"] = round(action["y"] * height)
    return scaled


def format_log_entries(entries: list[dict[str, Any]]) -> str:
    lines = []
    for entry in entries:
        ts = entry.get("timestamp", "")
        level = entry.get("level", "")
        message = entry.get("message", "")
        lines.append(" ".join(str(part) for part in (ts, level, message) if part != ""))
    return "\n".join(lines)


@mcp.tool()
def start_session(
    capabilities_json_path: str,
    appium_server_url: str = DEFAULT_APPIUM_SERVER_URL,
    artifacts_dir: str = "artifacts/mcp",
) -> dict[str, Any]:
    """
    Start an Appium session from a capabilities JSON file ({"capabilities": {...}}).
    """
    if _SESSION_KEY in _ACTIVE:
        raise RuntimeError("A session is already active. Call end_session first.")

    payload = load_json_file(capabilities_json_path)
    require_key(payload, "capabilities", context=capabilities_json_path)

    client = AppiumHTTPClient(appium_server_url)
    session_id = client.create_session(payload)
    managed = _ManagedSession(
        client=client,
        session_id=session_id,
        platform=client.platform_name,
        artifacts_dir=Path(artifacts_dir).resolve(),
    )
    _ACTIVE[_SESSION_KEY] = managed
    _log(f"[start_session] session {session_id} on {managed.platform or 'unknown platform'}")
    return {
        "session_id": session_id,
        "platform": managed.platform,
        "artifacts_dir": str(managed.artifacts_dir),
    }


@mcp.tool()
def end_session() -> dict[str, Any]:
    """
    End the active session. Safe to call when none is active.
    """
    session = _ACTIVE.get(_SESSION_KEY)
    if session is None:
        return {"ended": False, "message": "No active session."}
    try:
        session.client.delete_session()
    finally:
        _ACTIVE.pop(_SESSION_KEY, None)
    _log(f"[end_session] session {session.session_id} ended")
    return {"ended": True, "session_id": session.session_id}


@mcp.tool()
def launch_app(app_id: str) -> dict[str, Any]:
    """
    Launch an app by bundle id (iOS) or package name (Android), restarting it if it is already running.
    """
    session = _must_get_session()
    if not isinstance(app_id, str) or not app_id.strip():
        raise RuntimeError("'app_id' must be a non-empty string")
    target = {"appId": app_id, "bundleId": app_id}

    state = session.client.execute_script("mobile: queryAppState", [target])
    restarted = False
    if isinstance(state, int) and state > APP_STATE_NOT_RUNNING:
        try:
            session.client.execute_script("mobile: terminateApp", [target])
            restarted = True
        except AppiumHTTPError as e:
            _log(f"[launch_app] could not terminate {app_id} (state {state}): {e}; launching anyway")

    session.client.execute_script("mobile: activateApp", [target])
    _log(f"[launch_app] {app_id} activated")
    return {"app_id": app_id, "previous_state": state, "restarted": restarted}


@mcp.tool()
def find_element(strategy: str, selector: str) -> dict[str, Any]:
    """
    Find one element and return its id. Strategies: id, accessibility id, xpath, class name,
    name, -ios class chain, -ios predicate string, -android uiautomator.
    """
    session = _must_get_session()
    if strategy not in FIND_STRATEGIES:
        raise RuntimeError(f"Unsupported strategy {strategy!r}; expected one of {list(FIND_STRATEGIES)}")
    if not isinstance(selector, str) or not selector:
        raise RuntimeError("'selector' must be a non-empty string")
    try:
        element = session.client.find_element(using=strategy, value=selector)
    except ElementNotFoundError:
        return {"found": False, "strategy": strategy, "selector": selector}
    return {"found": True, "element_id": element.element_id, "strategy": strategy, "selector": selector}


@mcp.tool()
def tap_element(element_id: str) -> dict[str, Any]:
    """
    Tap an element previously returned by find_element.
    """
    session = _must_get_session()
    session.client.click(_element(element_id))
    return {"tapped": True, "element_id": element_id}


@mcp.tool()
def enter_text(element_id: str, text: str) -> dict[str, Any]:
    """
    Type text into an element previously returned by find_element.
    """
    session = _must_get_session()
    if not isinstance(text, str):
        raise RuntimeError("'text' must be a string")
    session.client.send_keys(_element(element_id), text=text)
    return {"typed": True, "element_id": element_id, "text_length": len(text)}


@mcp.tool()
def get_element_text(element_id: str) -> dict[str, Any]:
    """
    Return the visible text of an element.
    """
    session = _must_get_session()
    return {"element_id": element_id, "text": session.client.get_element_text(_element(element_id))}


@mcp.tool()
def get_page_source() -> dict[str, Any]:
    """
    Return the current UI hierarchy XML.
    """
    session = _must_get_session()
    return {"xml": session.client.get_page_source()}


@mcp.tool()
def get_page_source_file() -> dict[str, Any]:
    """
    Save the current UI hierarchy XML under the session artifacts dir and return its path.
    """
    session = _must_get_session()
    path = _artifact_path(session, stem="page_source", ext="xml")
    path.write_text(session.client.get_page_source(), encoding="utf-8")
    return {"path": str(path)}


@mcp.tool()
def get_screenshot() -> dict[str, Any]:
    """
    Return a PNG screenshot as base64.
    """
    session = _must_get_session()
    return {"png_base64": session.client.get_screenshot_base64()}


@mcp.tool()
def get_screenshot_file() -> dict[str, Any]:
    """
    Save a PNG screenshot under the session artifacts dir and return its path.
    """
    session = _must_get_session()
    png = session.client.get_screenshot_png_bytes()
    path = _artifact_path(session, stem="screenshot", ext="png")
    path.write_bytes(png)
    return {"path": str(path), "bytes": len(png)}


@mcp.tool()
def press_home_button() -> dict[str, Any]:
    """
    Send the app to the background without ending the session.
    """
    session = _must_get_session()
    if session.platform == "ios":
        session.client.execute_script("mobile: pressButton", [{"name": "home"}])
    elif session.platform == "android":
        session.client.press_keycode(keycode=ANDROID_KEYCODE_HOME)
    else:
        raise RuntimeError(f"Unsupported platform {session.platform!r}; only iOS and Android are supported")
    return {"pressed": True, "platform": session.platform}


@mcp.tool()
def simulate_gesture(gesture_description: str) -> dict[str, Any]:
    """
    Perform W3C pointer actions given as a JSON array. pointerMove x/y must be normalized
    to [0, 1] and are scaled to the screen size, e.g. a right-to-left swipe:
    [{"type":"pointer","id":"finger1","parameters":{"pointerType":"touch"},"actions":[
      {"type":"pointerMove","duration":0,"x":0.9,"y":0.5},{"type":"pointerDown","button":0},
      {"type":"pause","duration":200},
      {"type":"pointerMove","duration":500,"origin":"pointer","x":-0.8,"y":0},
      {"type":"pointerUp","button":0}]}]
    """
    session = _must_get_session()
    try:
        sequences = json.loads(gesture_description)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Error parsing gesture_description JSON: {e}") from e
    if not isinstance(sequences, list) or not sequences:
        raise RuntimeError("gesture_description must be a non-empty JSON array of action sequences")

    rect = session.client.get_window_rect()
    scaled = normalize_gesture(sequences, width=rect["width"], height=rect["height"])
    session.client.perform_actions(scaled)
    return {"performed": True, "screen": {"width": rect["width"], "height": rect["height"]}, "actions": scaled}


@mcp.tool()
def get_device_logs() -> dict[str, Any]:
    """
    Return device logs (logcat on Android, syslog on iOS) captured since the previous call.
    """
    session = _must_get_session()
    log_type: Optional[str] = {"android": "logcat", "ios": "syslog"}.get(session.platform)
    if log_type is None:
        raise RuntimeError(f"Unsupported platform {session.platform!r} for device logs")
    entries = session.client.get_log(log_type)
    if not entries:
        return {"log_type": log_type, "count": 0, "logs": f"No new {session.platform} logs since last retrieval."}
    return {"log_type": log_type, "count": len(entries), "logs": format_log_entries(entries)}


def main() -> None:
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
