"""
Shared fixtures: Playwright page/locator doubles and an action layer over them.
"""

import pytest
from unittest.mock import MagicMock

from browser_control.config import BrowserKind, ControlConfig
from browser_control.overlays import DismissalReport
from browser_control.tools import BrowserTools


@pytest.fixture
def config():
    return ControlConfig(
        browser=BrowserKind.CHROMIUM,
        chrome_binary=None,
        cdp_port=9222,
        model="gpt-4o",
        api_key=None,
        model_endpoint=None,
        debug=False,
    )


@pytest.fixture
def page():
    page = MagicMock()
    page.url = "https://example.com/"
    page.is_closed.return_value = False
    return page


@pytest.fixture
def session(page):
    session = MagicMock()
    session.acquire_page.return_value = page
    return session


@pytest.fixture
def overlays():
    overlays = MagicMock()
    overlays.dismiss.return_value = DismissalReport()
    return overlays


@pytest.fixture
def prompt():
    return MagicMock(return_value="42")


@pytest.fixture
def tools(session, config, overlays, prompt):
    return BrowserTools(session, config=config, overlays=overlays, prompt=prompt)
