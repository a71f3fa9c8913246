import os

# Select the testing configuration before the package (and its global
# ConfigurationManager) is imported by any test module.
os.environ.setdefault("APP_ENV", "testing")

from unittest.mock import AsyncMock, MagicMock

import pytest


class MockConfigurationManager:
    """Dict-backed stand-in for ConfigurationManager with dot-notation `get`."""

    def __init__(self, settings=None):
        self.settings = settings if settings is not None else {}

    def get(self, key, default=None):
        try:
            value = self.settings
            for k_part in key.split('.'):
                value = value[k_part]
            return value
        except KeyError:
            return default
        except TypeError:
            return default


def make_fake_page(html="<html><body>配送</body></html>", marker="配送"):
    page = MagicMock(name="page")
    page.goto = AsyncMock(return_value=None)
    page.evaluate = AsyncMock(return_value={"html": html, "marker": marker})
    page.content = AsyncMock(return_value=html)
    page.screenshot = AsyncMock(return_value=b"")
    page.close = AsyncMock(return_value=None)
    return page


def make_fake_context(page=None):
    context = MagicMock(name="context")
    context.new_page = AsyncMock(return_value=page or make_fake_page())
    context.add_init_script = AsyncMock(return_value=None)
    context.close = AsyncMock(return_value=None)
    return context


def make_fake_browser(context=None):
    browser = MagicMock(name="browser")
    browser.new_context = AsyncMock(return_value=context or make_fake_context())
    browser.close = AsyncMock(return_value=None)
    browser.is_connected = MagicMock(return_value=True)
    return browser


def make_fake_playwright(browsers=None):
    """
    A fake `async_playwright()` factory and the engine it starts.

    Each launch returns the next browser from `browsers` (fresh fakes when exhausted).
    """
    browsers = list(browsers or [])
    engine = MagicMock(name="playwright")
    engine.stop = AsyncMock(return_value=None)

    async def launch(**kwargs):
        return browsers.pop(0) if browsers else make_fake_browser()

    engine.chromium.launch = AsyncMock(side_effect=launch)
    starter = MagicMock(name="async_playwright")
    starter.start = AsyncMock(return_value=engine)
    factory = MagicMock(return_value=starter)
    return factory, engine


@pytest.fixture
def mock_config():
    return MockConfigurationManager


@pytest.fixture
def fake_page():
    return make_fake_page()


@pytest.fixture
def screenshot_dir(tmp_path):
    return tmp_path


@pytest.fixture
def fakes():
    """Factories for Playwright fakes: page, context, browser, playwright."""
    from types import SimpleNamespace
    return SimpleNamespace(
        page=make_fake_page,
        context=make_fake_context,
        browser=make_fake_browser,
        playwright=make_fake_playwright,
    )
