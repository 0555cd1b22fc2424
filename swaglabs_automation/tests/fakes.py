"""In-memory stand-in for AppiumHTTPClient used by the unit tests."""
from __future__ import annotations

from typing import Any, Iterable, Optional

from swaglabs_automation.mobile.appium_http_client import WebDriverElementRef
from swaglabs_automation.mobile.errors import AppiumHTTPError, ElementNotFoundError
from swaglabs_automation.mobile.locators import Locator
from swaglabs_automation.mobile.login_scenario import (
    INVENTORY_MARKERS,
    LOGIN_BUTTON,
    PASSWORD_FIELD,
    STANDARD_USER,
    USERNAME_FIELD,
)

LOGIN_FORM = (USERNAME_FIELD, PASSWORD_FIELD, LOGIN_BUTTON)


def element_id_for(locator: Locator) -> str:
    return f"{locator.using}:{locator.value}"


class FakeAppiumClient:
    """
    Simulates the SwagLabs login screen.

    Tapping LOGIN with `valid_credentials` typed makes `after_login` locators
    visible; anything else leaves the screen unchanged.
    """

    def __init__(
        self,
        *,
        visible: Iterable[Locator] = LOGIN_FORM,
        after_login: Iterable[Locator] = INVENTORY_MARKERS,
        valid_credentials: tuple[str, str] = (STANDARD_USER.username, STANDARD_USER.password),
        platform: str = "android",
        broken_locators: Iterable[Locator] = (),
    ) -> None:
        self.visible = set(visible)
        self.after_login = set(after_login)
        self.valid_credentials = valid_credentials
        self.broken_locators = set(broken_locators)
        self.typed: dict[str, str] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.session_id: Optional[str] = "fake-session"
        self.capabilities = {"platformName": platform}
        self.delete_count = 0
        self.implicit_wait_s: Optional[float] = None

    @property
    def platform_name(self) -> str:
        return str(self.capabilities.get("platformName") or "").lower()

    def _lookup(self, using: str, value: str) -> Optional[Locator]:
        locator = Locator(using=using, value=value)
        if locator in self.broken_locators:
            raise AppiumHTTPError(
                message="Appium HTTP 400: invalid selector",
                method="POST",
                url="http://fake/elements",
                status_code=400,
                error_code="invalid selector",
            )
        return locator if locator in self.visible else None

    def find_element(self, *, using: str, value: str) -> WebDriverElementRef:
        self.calls.append(("find_element", using, value))
        locator = self._lookup(using, value)
        if locator is None:
            raise ElementNotFoundError(using=using, value=value)
        return WebDriverElementRef(element_id=element_id_for(locator))

    def find_elements(self, *, using: str, value: str) -> list[WebDriverElementRef]:
        self.calls.append(("find_elements", using, value))
        locator = self._lookup(using, value)
        if locator is None:
            return []
        return [WebDriverElementRef(element_id=element_id_for(locator))]

    def send_keys(self, element: WebDriverElementRef, *, text: str) -> None:
        self.calls.append(("send_keys", element.element_id, text))
        self.typed[element.element_id] = text

    def click(self, element: WebDriverElementRef) -> None:
        self.calls.append(("click", element.element_id))
        if element.element_id != element_id_for(LOGIN_BUTTON):
            return
        entered = (
            self.typed.get(element_id_for(USERNAME_FIELD)),
            self.typed.get(element_id_for(PASSWORD_FIELD)),
        )
        if entered == self.valid_credentials:
            self.visible |= self.after_login

    def set_implicit_wait(self, seconds: float) -> None:
        self.implicit_wait_s = seconds

    def delete_session(self) -> None:
        self.delete_count += 1
        self.session_id = None

    def get_screenshot_png_bytes(self) -> bytes:
        return b"\x89PNG fake"

    def get_screenshot_base64(self) -> str:
        return "iVBORw0KGgo="

    def get_page_source(self) -> str:
        return "<hierarchy/>"

    def get_element_text(self, element: WebDriverElementRef) -> str:
        self.calls.append(("get_element_text", element.element_id))
        return "PRODUCTS"

    def get_window_rect(self) -> dict[str, int]:
        return {"x": 0, "y": 0, "width": 1000, "height": 2000}

    def perform_actions(self, sequences: list[dict[str, Any]]) -> None:
        self.calls.append(("perform_actions", sequences))

    def execute_script(self, script: str, args: Optional[list[Any]] = None) -> Any:
        self.calls.append(("execute_script", script, args))
        if script == "mobile: queryAppState":
            return 4
        return None

    def press_keycode(self, *, keycode: int, metastate: Optional[int] = None) -> None:
        self.calls.append(("press_keycode", keycode))

    def get_log(self, log_type: str) -> list[dict[str, Any]]:
        self.calls.append(("get_log", log_type))
        return []

    def queried(self) -> list[tuple[str, str]]:
        return [(c[1], c[2]) for c in self.calls if c[0] == "find_elements"]
