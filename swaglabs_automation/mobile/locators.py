from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

ACCESSIBILITY_ID = "accessibility id"
RESOURCE_ID = "id"
XPATH = "xpath"

FIND_STRATEGIES = (
    RESOURCE_ID,
    ACCESSIBILITY_ID,
    XPATH,
    "class name",
    "name",
    "-ios class chain",
    "-ios predicate string",
    "-android uiautomator",
)


@dataclass(frozen=True)
class Locator:
    using: str
    value: str

    def __str__(self) -> str:
        return f"{self.using}:{self.value}"


def accessibility_id(value: str) -> Locator:
    return Locator(using=ACCESSIBILITY_ID, value=value)


def resource_id(value: str) -> Locator:
    return Locator(using=RESOURCE_ID, value=value)


class _FindsElements(Protocol):
    def find_elements(self, *, using: str, value: str) -> list: ...


def first_present(client: _FindsElements, locators: Sequence[Locator]) -> Optional[Locator]:
    """
    Evaluate `locators` left to right and return the first one with at least
    one match, or None. Order matters: later entries are platform fallbacks.
    """
    for locator in locators:
        if client.find_elements(using=locator.using, value=locator.value):
            return locator
    return None
