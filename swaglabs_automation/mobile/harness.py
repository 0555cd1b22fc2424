"""
Session lifecycle for the SwagLabs scenarios.

Setup runs in a fixed order: start_server -> initialize_driver ->
wait_for_app_to_load. harness_session() wires them together and guarantees
tear_down() runs exactly once, whichever step fails.
"""

from __future__ import annotations

import subprocess
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from .appium_http_client import AppiumHTTPClient
from .config import HarnessConfig, load_config
from .errors import AppiumHTTPError, InfrastructureError
from .login_scenario import USERNAME_FIELD

__all__ = [
    "HarnessSession",
    "capture_artifacts",
    "harness_session",
    "initialize_driver",
    "load_config",
    "start_server",
    "tear_down",
    "wait_for_app_to_load",
]


@dataclass
class HarnessSession:
    config: HarnessConfig
    client: Optional[AppiumHTTPClient] = None
    server_process: Optional[subprocess.Popen] = None
    torn_down: bool = field(default=False)


def _server_ready(server_url: str, *, timeout_s: float) -> bool:
    probe = AppiumHTTPClient(server_url, timeout_s=timeout_s)
    try:
        status = probe.status()
    except AppiumHTTPError:
        return False
    # Appium 2 reports {"ready": true, ...}; older servers only return build info.
    return bool(status.get("ready", True))


def start_server(config: HarnessConfig) -> Optional[subprocess.Popen]:
    """
    Make sure an Appium server answers at config.appium_server_url.

    Returns the spawned process when this call had to start one (the caller
    owns it and must pass it to tear_down), or None if a server was already up.
    """
    if _server_ready(config.appium_server_url, timeout_s=5.0):
        print(f"Appium server ready: {config.appium_server_url}")
        return None

    if not config.appium_command:
        raise InfrastructureError(
            f"Appium server not reachable at {config.appium_server_url} "
            "and no 'appium_command' is configured to start one"
        )

    config.artifacts_dir.mkdir(parents=True, exist_ok=True)
    log_path = config.artifacts_dir / "appium_server.log"
    print(f"Starting Appium server: {' '.join(config.appium_command)} (log: {log_path})")
    log_file = log_path.open("ab")
    try:
        process = subprocess.Popen(
            list(config.appium_command),
            stdout=log_file,
            stderr=subprocess.STDOUT,
        )
    except OSError as e:
        log_file.close()
        raise InfrastructureError(f"Failed to start Appium server {config.appium_command[0]!r}: {e}") from e
    log_file.close()

    deadline = time.time() + config.server_start_timeout_s
    while time.time() <= deadline:
        if process.poll() is not None:
            raise InfrastructureError(
                f"Appium server exited with code {process.returncode} during startup; see {log_path}"
            )
        if _server_ready(config.appium_server_url, timeout_s=2.0):
            print(f"Appium server ready: {config.appium_server_url}")
            return process
        time.sleep(config.poll_s)

    _stop_server(process)
    raise InfrastructureError(
        f"Appium server did not become ready within {config.server_start_timeout_s}s; see {log_path}"
    )


def initialize_driver(config: HarnessConfig) -> AppiumHTTPClient:
    client = AppiumHTTPClient(config.appium_server_url, timeout_s=config.request_timeout_s)
    session_id = client.create_session(config.capabilities)
    print(f"Session started: {session_id}")
    try:
        client.set_implicit_wait(config.implicit_wait_s)
    except Exception:
        # the caller never receives this client, so release the session here
        try:
            client.delete_session()
        except AppiumHTTPError as e:
            print(f"WARNING: could not delete session {session_id}: {e}", file=sys.stderr)
        raise
    return client


def wait_for_app_to_load(client: AppiumHTTPClient, config: HarnessConfig) -> None:
    """
    Block until the login form is on screen or app_load_timeout_s elapses.
    """
    deadline = time.time() + config.app_load_timeout_s
    while True:
        if client.find_elements(using=USERNAME_FIELD.using, value=USERNAME_FIELD.value):
            print("App loaded: login form visible")
            return
        if time.time() > deadline:
            break
        time.sleep(config.poll_s)
    raise InfrastructureError(
        f"App did not show {USERNAME_FIELD} within {config.app_load_timeout_s}s"
    )


def _stop_server(process: subprocess.Popen) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=10)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait(timeout=10)


def tear_down(
    client: Optional[AppiumHTTPClient],
    server_process: Optional[subprocess.Popen] = None,
) -> None:
    try:
        if client is not None and client.session_id:
            session_id = client.session_id
            client.delete_session()
            print(f"Session ended: {session_id}")
    finally:
        if server_process is not None:
            _stop_server(server_process)
            print("Appium server stopped")


def capture_artifacts(client: AppiumHTTPClient, *, artifacts_dir: Path, stem: str) -> list[Path]:
    """
    Save a screenshot and the UI XML for post-mortem debugging.

    Failures are reported on stderr and skipped so they never mask the error
    that triggered the capture.
    """
    try:
        artifacts_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"WARNING: cannot create artifacts dir {artifacts_dir}: {e}", file=sys.stderr)
        return []
    safe_stem = "".join(c if c.isalnum() or c in ("-", "_") else "_" for c in stem.strip()) or "artifact"
    ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    saved: list[Path] = []

    screenshot_path = artifacts_dir / f"{safe_stem}_{ts}.png"
    try:
        screenshot_path.write_bytes(client.get_screenshot_png_bytes())
        saved.append(screenshot_path)
    except (AppiumHTTPError, OSError) as e:
        print(f"WARNING: screenshot capture failed: {e}", file=sys.stderr)

    source_path = artifacts_dir / f"{safe_stem}_{ts}.xml"
    try:
        source_path.write_text(client.get_page_source(), encoding="utf-8")
        saved.append(source_path)
    except (AppiumHTTPError, OSError) as e:
        print(f"WARNING: page source capture failed: {e}", file=sys.stderr)

    return saved


@contextmanager
def harness_session(config: HarnessConfig, *, wait_for_app: bool = True) -> Iterator[HarnessSession]:
    """
    Run the full setup and yield a HarnessSession whose client is ready for a
    scenario. tear_down runs exactly once on exit, including when setup fails
    half way through.
    """
    state = HarnessSession(config=config)
    try:
        state.server_process = start_server(config)
        state.client = initialize_driver(config)
        if wait_for_app:
            wait_for_app_to_load(state.client, config)
        yield state
    finally:
        if not state.torn_down:
            state.torn_down = True
            tear_down(state.client, state.server_process)
