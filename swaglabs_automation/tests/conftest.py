"""
Shared pytest wiring.

Failed tests are tagged with a `failure_category` user property
(infrastructure / element_not_found / assertion) so a broken device farm is
not mistaken for a login regression. The tag ends up in --junitxml output and
in a short terminal summary.
"""
from collections import Counter

import pytest

from swaglabs_automation.mobile import env as env_module
from swaglabs_automation.mobile.errors import failure_category


@pytest.fixture(autouse=True)
def no_repo_dotenv(request, monkeypatch):
    """Keep a developer's .env out of unit tests."""
    if request.node.get_closest_marker("e2e") is not None:
        return
    monkeypatch.setattr(env_module, "_DOTENV_LOADED", True)
    for name in ("APPIUM_SERVER_URL", "APPIUM_HOST", "APPIUM_PORT", "APPIUM_BASE_PATH", "SWAGLABS_IMPLICIT_WAIT_S"):
        monkeypatch.delenv(name, raising=False)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    # fixtures read item.rep_call to react to the test outcome
    setattr(item, f"rep_{report.when}", report)
    if report.failed and call.excinfo is not None:
        entry = ("failure_category", failure_category(call.excinfo.value))
        # junitxml reads properties from the teardown report, built from the item
        item.user_properties.append(entry)
        report.user_properties.append(entry)


def pytest_terminal_summary(terminalreporter):
    counts = Counter()
    for key in ("failed", "error"):
        for report in terminalreporter.stats.get(key, []):
            for name, value in getattr(report, "user_properties", []):
                if name == "failure_category":
                    counts[value] += 1
    if not counts:
        return
    terminalreporter.write_sep("-", "failure categories")
    for category, count in sorted(counts.items()):
        terminalreporter.write_line(f"{category}: {count}")
