from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .appium_http_client import AppiumHTTPClient
from .errors import AppiumHTTPError
from .locators import XPATH, Locator
from .login_scenario import USERNAME_FIELD

USERNAME_FIELD_CANDIDATES: tuple[Locator, ...] = (
    USERNAME_FIELD,
    Locator(using=XPATH, value='//*[@content-desc="test-Username"]'),
    Locator(using=XPATH, value='//*[@resource-id="com.swaglabsmobileapp:id/username"]'),
    Locator(using=XPATH, value='//*[@resource-id="username"]'),
)


@dataclass(frozen=True)
class ProbeResult:
    found: bool
    matched_locator: Optional[Locator] = None
    checked: list[str] = field(default_factory=list)


def is_login_screen_visible(
    client: AppiumHTTPClient,
    *,
    candidates: Sequence[Locator] = USERNAME_FIELD_CANDIDATES,
) -> ProbeResult:
    """
    Look for the username field with each candidate in turn.

    A candidate the server rejects (e.g. an xpath the driver cannot evaluate)
    is reported and skipped; an unreachable server still aborts the probe.
    """
    checked: list[str] = []
    for locator in candidates:
        try:
            count = len(client.find_elements(using=locator.using, value=locator.value))
        except AppiumHTTPError as e:
            if e.status_code is None or e.error_code == "invalid session id":
                raise
            print(f"  probe: {locator} error: {e}", file=sys.stderr)
            checked.append(f"{locator} (error)")
            continue
        print(f"  probe: {locator} exists={count > 0}")
        checked.append(str(locator))
        if count > 0:
            return ProbeResult(found=True, matched_locator=locator, checked=checked)
    return ProbeResult(found=False, checked=checked)
