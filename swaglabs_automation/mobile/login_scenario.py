from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .appium_http_client import AppiumHTTPClient
from .errors import AssertionFailure
from .locators import Locator, accessibility_id, first_present, resource_id

LOGIN_FAILED_MESSAGE = "Login failed or inventory screen not found"

USERNAME_FIELD = accessibility_id("test-Username")
PASSWORD_FIELD = accessibility_id("test-Password")
LOGIN_BUTTON = accessibility_id("test-LOGIN")

# Checked in order. The accessibility id is shared by both platforms; the
# resource id only exists on Android builds.
INVENTORY_MARKERS: tuple[Locator, ...] = (
    accessibility_id("test-Products"),
    resource_id("com.swaglabsmobileapp:id/product_list"),
)


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


STANDARD_USER = Credentials(username="standard_user", password="secret_sauce")
LOCKED_OUT_USER = Credentials(username="locked_out_user", password="secret_sauce")


@dataclass(frozen=True)
class ScenarioResult:
    passed: bool
    message: str
    matched_locator: Optional[Locator] = None


def _type_into(client: AppiumHTTPClient, locator: Locator, text: str) -> None:
    element = client.find_element(using=locator.using, value=locator.value)
    client.send_keys(element, text=text)


def perform_login(client: AppiumHTTPClient, credentials: Credentials = STANDARD_USER) -> ScenarioResult:
    """
    Fill the login form, tap LOGIN and evaluate whether the inventory screen
    showed up. Does not raise on a false postcondition; see run_login_scenario.

    Missing form elements raise ElementNotFoundError before any check happens.
    """
    print(f"  login: typing username {credentials.username!r}")
    _type_into(client, USERNAME_FIELD, credentials.username)
    print("  login: typing password")
    _type_into(client, PASSWORD_FIELD, credentials.password)

    button = client.find_element(using=LOGIN_BUTTON.using, value=LOGIN_BUTTON.value)
    client.click(button)
    print("  login: tapped LOGIN")

    matched = first_present(client, INVENTORY_MARKERS)
    if matched is None:
        return ScenarioResult(passed=False, message=LOGIN_FAILED_MESSAGE)
    print(f"  login: inventory marker found via {matched}")
    return ScenarioResult(passed=True, message=f"Inventory screen found via {matched}", matched_locator=matched)


def run_login_scenario(client: AppiumHTTPClient, credentials: Credentials = STANDARD_USER) -> ScenarioResult:
    """
    One deterministic pass/fail login run against an already-prepared session.
    Raises AssertionFailure when the inventory screen is not reached.
    """
    result = perform_login(client, credentials)
    if not result.passed:
        raise AssertionFailure(result.message)
    return result


class LoginScenario:
    """
    Binds a ready session and the caller's teardown callback to one login run.

    `teardown` is invoked exactly once after run(), whatever the outcome.
    A second run() on the same instance is rejected since the session is gone.
    """

    def __init__(
        self,
        client: AppiumHTTPClient,
        *,
        teardown: Callable[[], None],
        credentials: Credentials = STANDARD_USER,
    ) -> None:
        self.client = client
        self.credentials = credentials
        self._teardown = teardown
        self._consumed = False

    def run(self) -> ScenarioResult:
        if self._consumed:
            raise RuntimeError("LoginScenario.run() was already called; its session has been torn down")
        self._consumed = True
        try:
            return run_login_scenario(self.client, self.credentials)
        finally:
            self._teardown()
