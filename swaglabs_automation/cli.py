#!/usr/bin/env python3
"""
CLI entry point for SwagLabs mobile automation.

Exit codes for `login`: 0 passed, 1 login/assertion failure or missing
element, 2 broken environment (server, session, app launch).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from swaglabs_automation.mobile.config import load_config
from swaglabs_automation.mobile.errors import (
    ConfigError,
    ElementNotFoundError,
    InfrastructureError,
    failure_category,
)
from swaglabs_automation.mobile.harness import capture_artifacts, harness_session
from swaglabs_automation.mobile.login_scenario import STANDARD_USER, Credentials, run_login_scenario
from swaglabs_automation.mobile.login_screen_probe import is_login_screen_visible

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INFRASTRUCTURE = 2

DEFAULT_CONFIG_PATH = str(Path(__file__).resolve().parent / "mobile_examples" / "swaglabs_login.example.json")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swaglabs-automation",
        description="Drive the SwagLabs mobile app through an Appium server.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Run the login scenario and verify the inventory screen.")
    login.add_argument("--config", default=DEFAULT_CONFIG_PATH, help=f"Harness config JSON (default: {DEFAULT_CONFIG_PATH}).")
    login.add_argument("--username", default=STANDARD_USER.username)
    login.add_argument("--password", default=STANDARD_USER.password)
    login.add_argument(
        "--no-artifacts",
        action="store_true",
        help="Do not save a screenshot and UI XML when the scenario fails.",
    )

    probe = sub.add_parser("check-login-screen", help="Check whether the SwagLabs login form is visible.")
    probe.add_argument("--config", default=DEFAULT_CONFIG_PATH, help=f"Harness config JSON (default: {DEFAULT_CONFIG_PATH}).")

    sub.add_parser("mcp", help="Serve Appium tools over MCP (stdio).")
    return parser


def _run_login(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    credentials = Credentials(username=args.username, password=args.password)

    print("\n=== SwagLabs login scenario ===")
    try:
        with harness_session(config) as session:
            try:
                result = run_login_scenario(session.client, credentials)
            except (AssertionError, ElementNotFoundError):
                if not args.no_artifacts:
                    for path in capture_artifacts(session.client, artifacts_dir=config.artifacts_dir, stem="login_failure"):
                        print(f"  artifact: {path}")
                raise
    except InfrastructureError as e:
        print(f"ERROR [{failure_category(e)}]: {e}", file=sys.stderr)
        return EXIT_INFRASTRUCTURE
    except (AssertionError, ElementNotFoundError) as e:
        print(f"FAILED [{failure_category(e)}]: {e}", file=sys.stderr)
        return EXIT_FAILED

    print(f"\nPASSED: {result.message}")
    return EXIT_OK


def _run_probe(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    try:
        with harness_session(config, wait_for_app=False) as session:
            result = is_login_screen_visible(session.client)
    except InfrastructureError as e:
        print(f"ERROR [{failure_category(e)}]: {e}", file=sys.stderr)
        return EXIT_INFRASTRUCTURE

    if result.found:
        print(f"Login screen visible (matched {result.matched_locator}).")
        return EXIT_OK
    print("Could not find the SwagLabs username field.")
    return EXIT_FAILED


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "mcp":
        from swaglabs_automation.mobile.appium_mcp import main as serve_mcp

        serve_mcp()
        return EXIT_OK

    try:
        if args.command == "login":
            return _run_login(args)
        return _run_probe(args)
    except (ConfigError, FileNotFoundError, IsADirectoryError) as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return EXIT_INFRASTRUCTURE


if __name__ == "__main__":
    raise SystemExit(main())
