"""
Appium-driven helpers for the SwagLabs mobile app.

Fail-fast by design of the protocol client: capabilities come from explicit
JSON, and every error is raised with the locator or endpoint that caused it.
"""

from .appium_http_client import AppiumHTTPClient, WebDriverElementRef
from .errors import (
    AppiumHTTPError,
    AssertionFailure,
    ConfigError,
    ElementNotFoundError,
    InfrastructureError,
)
from .harness import harness_session
from .locators import Locator
from .login_scenario import (
    LOCKED_OUT_USER,
    STANDARD_USER,
    Credentials,
    LoginScenario,
    ScenarioResult,
    run_login_scenario,
)

__all__ = [
    "AppiumHTTPClient",
    "AppiumHTTPError",
    "AssertionFailure",
    "ConfigError",
    "Credentials",
    "ElementNotFoundError",
    "InfrastructureError",
    "LOCKED_OUT_USER",
    "Locator",
    "LoginScenario",
    "STANDARD_USER",
    "ScenarioResult",
    "WebDriverElementRef",
    "harness_session",
    "run_login_scenario",
]
