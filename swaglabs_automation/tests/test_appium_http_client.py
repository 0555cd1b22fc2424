"""Tests for the W3C WebDriver HTTP client."""
import json

import pytest
import requests

from swaglabs_automation.mobile.appium_http_client import W3C_ELEMENT_KEY, AppiumHTTPClient, WebDriverElementRef
from swaglabs_automation.mobile.errors import AppiumHTTPError, ElementNotFoundError, InfrastructureError

SERVER = "http://appium.test:4723"


class FakeResponse:
    def __init__(self, status_code, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


@pytest.fixture
def http(monkeypatch):
    """Route requests.Session.request through a scripted responder."""
    state = {"routes": {}, "calls": []}

    def fake_request(self, method, url, json=None, timeout=None):
        path = url[len(SERVER):]
        state["calls"].append((method, path, json))
        route = state["routes"].get((method, path))
        if route is None:
            raise AssertionError(f"unexpected request {method} {path}")
        if isinstance(route, Exception):
            raise route
        return route

    monkeypatch.setattr(requests.Session, "request", fake_request)
    return state


@pytest.fixture
def client(http):
    http["routes"][("POST", "/session")] = FakeResponse(
        200, {"value": {"sessionId": "abc", "capabilities": {"platformName": "Android"}}}
    )
    c = AppiumHTTPClient(SERVER + "/")
    c.create_session({"capabilities": {"alwaysMatch": {}}})
    return c


def test_create_session_w3c_shape(client):
    assert client.session_id == "abc"
    assert client.platform_name == "android"


def test_create_session_legacy_shape(http):
    http["routes"][("POST", "/session")] = FakeResponse(200, {"sessionId": "legacy", "value": {}})
    c = AppiumHTTPClient(SERVER)
    assert c.create_session({"capabilities": {}}) == "legacy"


def test_create_session_without_id_fails(http):
    http["routes"][("POST", "/session")] = FakeResponse(200, {"value": {}})
    with pytest.raises(AppiumHTTPError):
        AppiumHTTPClient(SERVER).create_session({"capabilities": {}})


def test_create_session_requires_payload():
    with pytest.raises(ValueError):
        AppiumHTTPClient(SERVER).create_session({})


def test_connection_error_is_infrastructure_error(http):
    http["routes"][("GET", "/status")] = requests.ConnectionError("refused")
    with pytest.raises(InfrastructureError) as excinfo:
        AppiumHTTPClient(SERVER).status()
    assert excinfo.value.status_code is None


def test_find_elements_zero_matches_is_empty(client, http):
    http["routes"][("POST", "/session/abc/elements")] = FakeResponse(200, {"value": []})
    assert client.find_elements(using="accessibility id", value="test-Products") == []


def test_find_elements_parses_w3c_and_legacy_ids(client, http):
    http["routes"][("POST", "/session/abc/elements")] = FakeResponse(
        200, {"value": [{W3C_ELEMENT_KEY: "e1"}, {"ELEMENT": "e2"}]}
    )
    elements = client.find_elements(using="id", value="com.swaglabsmobileapp:id/product_list")
    assert [e.element_id for e in elements] == ["e1", "e2"]
    assert http["calls"][-1][2] == {"using": "id", "value": "com.swaglabsmobileapp:id/product_list"}


def test_find_element_no_such_element(client, http):
    http["routes"][("POST", "/session/abc/element")] = FakeResponse(
        404, {"value": {"error": "no such element", "message": "An element could not be located"}}
    )
    with pytest.raises(ElementNotFoundError) as excinfo:
        client.find_element(using="accessibility id", value="test-Username")
    assert "test-Username" in str(excinfo.value)


def test_find_element_other_errors_propagate(client, http):
    http["routes"][("POST", "/session/abc/element")] = FakeResponse(
        404, {"value": {"error": "invalid session id", "message": "gone"}}
    )
    with pytest.raises(AppiumHTTPError) as excinfo:
        client.find_element(using="accessibility id", value="test-Username")
    assert excinfo.value.error_code == "invalid session id"


def test_send_keys_sends_text_and_chars(client, http):
    http["routes"][("POST", "/session/abc/element/e1/value")] = FakeResponse(200, {"value": None})
    client.send_keys(WebDriverElementRef("e1"), text="ab")
    assert http["calls"][-1][2] == {"text": "ab", "value": ["a", "b"]}


def test_set_implicit_wait_uses_milliseconds(client, http):
    http["routes"][("POST", "/session/abc/timeouts")] = FakeResponse(200, {"value": None})
    client.set_implicit_wait(2.5)
    assert http["calls"][-1][2] == {"implicit": 2500}


def test_non_json_response(client, http):
    http["routes"][("GET", "/session/abc/source")] = FakeResponse(200, None, text="<html>proxy</html>")
    with pytest.raises(AppiumHTTPError) as excinfo:
        client.get_page_source()
    assert excinfo.value.response_text == "<html>proxy</html>"


def test_unexpected_shape(client, http):
    http["routes"][("GET", "/session/abc/source")] = FakeResponse(200, {"value": 42})
    with pytest.raises(AppiumHTTPError):
        client.get_page_source()


def test_delete_session_clears_id_even_on_error(client, http):
    http["routes"][("DELETE", "/session/abc")] = FakeResponse(500, {"value": {"error": "unknown error"}})
    with pytest.raises(AppiumHTTPError):
        client.delete_session()
    assert client.session_id is None
    # second call is a no-op
    client.delete_session()


def test_commands_require_session():
    with pytest.raises(RuntimeError):
        AppiumHTTPClient(SERVER).find_elements(using="id", value="x")


def test_screenshot_decodes_base64(client, http):
    http["routes"][("GET", "/session/abc/screenshot")] = FakeResponse(200, {"value": "iVBORw0KGgo="})
    assert client.get_screenshot_png_bytes().startswith(b"\x89PNG")


def test_get_log_posts_type(client, http):
    http["routes"][("POST", "/session/abc/se/log")] = FakeResponse(
        200, {"value": [{"timestamp": 1, "level": "INFO", "message": "hi"}]}
    )
    assert client.get_log("logcat")[0]["message"] == "hi"
    assert http["calls"][-1][2] == {"type": "logcat"}
