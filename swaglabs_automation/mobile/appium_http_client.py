from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Optional

import requests

from .errors import AppiumHTTPError, ElementNotFoundError

W3C_ELEMENT_KEY = "element-6066-11e4-a52e-4f735466cecf"


@dataclass(frozen=True)
class WebDriverElementRef:
    element_id: str


def _extract_webdriver_value(payload: dict[str, Any]) -> Any:
    # W3C WebDriver wraps results in {"value": ...}
    if "value" in payload:
        return payload["value"]
    return payload


def _extract_error_code(payload: Optional[dict[str, Any]]) -> Optional[str]:
    if payload is None:
        return None
    value = _extract_webdriver_value(payload)
    if isinstance(value, dict) and isinstance(value.get("error"), str):
        return value["error"]
    return None


def _extract_element_id(element_obj: Any) -> str:
    if not isinstance(element_obj, dict):
        raise ValueError(f"Unexpected element payload type: {type(element_obj)}")

    if element_obj.get(W3C_ELEMENT_KEY):
        return str(element_obj[W3C_ELEMENT_KEY])

    # Legacy JSONWire key, still returned by some older drivers
    if element_obj.get("ELEMENT"):
        return str(element_obj["ELEMENT"])

    raise ValueError(f"Could not extract element id from payload keys: {list(element_obj.keys())}")


class AppiumHTTPClient:
    """
    Minimal Appium client speaking the W3C WebDriver HTTP protocol.

    One instance owns at most one session. Element references it hands out are
    only meaningful while that session is alive.
    """

    def __init__(self, server_url: str, *, timeout_s: float = 30.0) -> None:
        if not server_url:
            raise ValueError("server_url is required")
        self.server_url = server_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session_id: Optional[str] = None
        self.capabilities: dict[str, Any] = {}
        self._http = requests.Session()

    def _request(self, method: str, path: str, *, json: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        url = f"{self.server_url}{path}"
        try:
            response = self._http.request(method, url, json=json, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise AppiumHTTPError(
                message=f"Failed to call Appium server: {e}",
                method=method,
                url=url,
            ) from e

        response_text = None
        response_json: Optional[dict[str, Any]] = None
        try:
            parsed = response.json()
        except ValueError:
            response_text = response.text
        else:
            if isinstance(parsed, dict):
                response_json = parsed
            else:
                response_text = response.text

        if response.status_code >= 400:
            error_code = _extract_error_code(response_json)
            details = None
            if response_json is not None:
                value = _extract_webdriver_value(response_json)
                if isinstance(value, dict):
                    details = value.get("message") or value.get("error")
            raise AppiumHTTPError(
                message=f"Appium HTTP {response.status_code} for {method} {path}"
                + (f": {details}" if details else ""),
                method=method,
                url=url,
                status_code=response.status_code,
                error_code=error_code,
                response_json=response_json,
                response_text=response_text,
            )

        if response_json is None:
            raise AppiumHTTPError(
                message=f"Appium returned non-JSON response for {method} {path}",
                method=method,
                url=url,
                status_code=response.status_code,
                response_text=response_text,
            )

        return response_json

    def _session_path(self, suffix: str = "") -> str:
        if not self.session_id:
            raise RuntimeError("No active Appium session. Call create_session() first.")
        return f"/session/{self.session_id}{suffix}"

    def _value(self, method: str, path: str, *, expect: type, json: Optional[dict[str, Any]] = None) -> Any:
        response = self._request(method, path, json=json)
        value = _extract_webdriver_value(response)
        if not isinstance(value, expect):
            raise AppiumHTTPError(
                message=f"Unexpected {path} response shape (expected {expect.__name__})",
                method=method,
                url=f"{self.server_url}{path}",
                response_json=response,
            )
        return value

    def status(self) -> dict[str, Any]:
        """
        GET /status. Works without a session; used to probe server readiness.
        """
        return self._value("GET", "/status", expect=dict)

    def create_session(self, session_payload: dict[str, Any]) -> str:
        """
        Create an Appium session.

        `session_payload` must be a WebDriver new-session payload, usually
          {"capabilities": {"alwaysMatch": {...}, "firstMatch": [{}]}}
        """
        if not isinstance(session_payload, dict) or not session_payload:
            raise ValueError("session_payload must be a non-empty dict")
        if self.session_id:
            raise RuntimeError(f"Session {self.session_id} is already active on this client")

        response = self._request("POST", "/session", json=session_payload)

        # Seen in the wild:
        # - {"value": {"sessionId": "...", "capabilities": {...}}}
        # - {"sessionId": "...", "value": {...}}
        value = _extract_webdriver_value(response)
        session_id = None
        capabilities: Any = None
        if isinstance(value, dict):
            session_id = value.get("sessionId")
            capabilities = value.get("capabilities", value)
        session_id = session_id or response.get("sessionId")

        if not session_id:
            raise AppiumHTTPError(
                message="Appium did not return a sessionId in the create_session response",
                method="POST",
                url=f"{self.server_url}/session",
                response_json=response,
            )

        self.session_id = str(session_id)
        self.capabilities = capabilities if isinstance(capabilities, dict) else {}
        return self.session_id

    def delete_session(self) -> None:
        if not self.session_id:
            return
        path = self._session_path()
        try:
            self._request("DELETE", path)
        finally:
            self.session_id = None
            self.capabilities = {}

    @property
    def platform_name(self) -> str:
        raw = self.capabilities.get("platformName") or ""
        return str(raw).lower()

    def set_implicit_wait(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("implicit wait must be >= 0")
        self._request("POST", self._session_path("/timeouts"), json={"implicit": int(seconds * 1000)})

    def find_element(self, *, using: str, value: str) -> WebDriverElementRef:
        """
        Find exactly one element, honouring the session's implicit wait.

        Raises ElementNotFoundError when the server reports "no such element".
        """
        if not using or not value:
            raise ValueError("'using' and 'value' are required to find an element")
        path = self._session_path("/element")
        try:
            payload = self._value("POST", path, expect=dict, json={"using": using, "value": value})
        except AppiumHTTPError as e:
            if e.error_code == "no such element" or (e.status_code == 404 and e.error_code is None):
                raise ElementNotFoundError(using=using, value=value, detail=str(e)) from e
            raise
        return WebDriverElementRef(element_id=_extract_element_id(payload))

    def find_elements(self, *, using: str, value: str) -> list[WebDriverElementRef]:
        """
        Find all matching elements. Zero matches is an empty list, never an error.
        """
        if not using or not value:
            raise ValueError("'using' and 'value' are required to find elements")
        payload = self._value(
            "POST",
            self._session_path("/elements"),
            expect=list,
            json={"using": using, "value": value},
        )
        return [WebDriverElementRef(element_id=_extract_element_id(item)) for item in payload]

    def click(self, element: WebDriverElementRef) -> None:
        self._request("POST", self._session_path(f"/element/{element.element_id}/click"), json={})

    def send_keys(self, element: WebDriverElementRef, *, text: str) -> None:
        if text is None:
            raise ValueError("text must not be None")
        # Older servers read `value` as a list of chars, W3C ones read `text`.
        self._request(
            "POST",
            self._session_path(f"/element/{element.element_id}/value"),
            json={"text": text, "value": list(text)},
        )

    def get_element_text(self, element: WebDriverElementRef) -> str:
        return self._value("GET", self._session_path(f"/element/{element.element_id}/text"), expect=str)

    def get_page_source(self) -> str:
        return self._value("GET", self._session_path("/source"), expect=str)

    def get_screenshot_base64(self) -> str:
        return self._value("GET", self._session_path("/screenshot"), expect=str)

    def get_screenshot_png_bytes(self) -> bytes:
        encoded = self.get_screenshot_base64()
        try:
            return base64.b64decode(encoded)
        except ValueError as e:
            raise AppiumHTTPError(
                message=f"Failed to decode screenshot base64: {e}",
                method="GET",
                url=f"{self.server_url}{self._session_path('/screenshot')}",
            ) from e

    def get_window_rect(self) -> dict[str, int]:
        path = self._session_path("/window/rect")
        value = self._value("GET", path, expect=dict)
        required = {"x", "y", "width", "height"}
        if not required.issubset(value.keys()):
            raise AppiumHTTPError(
                message=f"/window/rect missing keys (expected {sorted(required)})",
                method="GET",
                url=f"{self.server_url}{path}",
            )
        return {k: int(value[k]) for k in required}

    def perform_actions(self, sequences: list[dict[str, Any]]) -> None:
        if not isinstance(sequences, list) or not sequences:
            raise ValueError("sequences must be a non-empty list of W3C action sequences")
        self._request("POST", self._session_path("/actions"), json={"actions": sequences})

    def execute_script(self, script: str, args: Optional[list[Any]] = None) -> Any:
        """
        Run an Appium `mobile:` extension (or plain script) via /execute/sync.
        """
        response = self._request(
            "POST",
            self._session_path("/execute/sync"),
            json={"script": script, "args": args or []},
        )
        return _extract_webdriver_value(response)

    def press_keycode(self, *, keycode: int, metastate: Optional[int] = None) -> None:
        body: dict[str, Any] = {"keycode": int(keycode)}
        if metastate is not None:
            body["metastate"] = int(metastate)
        self._request("POST", self._session_path("/appium/device/press_keycode"), json=body)

    def get_log(self, log_type: str) -> list[dict[str, Any]]:
        """
        Fetch buffered log entries (e.g. "logcat", "syslog"). The server clears
        its buffer on each call, so entries are returned only once.
        """
        if not log_type:
            raise ValueError("log_type is required")
        return self._value("POST", self._session_path("/se/log"), expect=list, json={"type": log_type})
