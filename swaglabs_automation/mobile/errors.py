from __future__ import annotations

from typing import Any, Optional


class ConfigError(ValueError):
    pass


class InfrastructureError(RuntimeError):
    """
    The environment is broken (server unreachable, session could not be
    created, app never became ready), as opposed to the app misbehaving.
    """


class AppiumHTTPError(InfrastructureError):
    def __init__(
        self,
        *,
        message: str,
        method: str,
        url: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        response_json: Optional[dict[str, Any]] = None,
        response_text: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
        # W3C error code, e.g. "no such element", "invalid session id"
        self.error_code = error_code
        self.response_json = response_json
        self.response_text = response_text


class ElementNotFoundError(Exception):
    def __init__(self, *, using: str, value: str, detail: Optional[str] = None) -> None:
        message = f"Element not found for locator using={using!r} value={value!r}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.using = using
        self.value = value


class AssertionFailure(AssertionError):
    """
    Raised when a scenario's postcondition is false.

    Subclasses AssertionError so test runners report it as a test failure
    rather than an error.
    """


def failure_category(error: BaseException) -> str:
    if isinstance(error, InfrastructureError):
        return "infrastructure"
    if isinstance(error, ElementNotFoundError):
        return "element_not_found"
    if isinstance(error, AssertionError):
        return "assertion"
    return "unexpected"
