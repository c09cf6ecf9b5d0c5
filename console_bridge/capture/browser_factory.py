"""Browser factory for the in-process capture path.

This module provides the BrowserFactory class that owns one Playwright
browser for the lifetime of a bridge session and hands out long-lived pages,
one per monitored URL, each in its own context.
"""

import logging
from typing import Any, Dict, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

logger = logging.getLogger(__name__)


class BrowserEngineType:
    """Supported browser engine types."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class BrowserConfig:
    """Configuration for browser launch and page contexts."""

    def __init__(
        self,
        engine: str = BrowserEngineType.CHROMIUM,
        headless: bool = True,
        devtools: bool = False,
        slow_mo: int = 0,
        viewport: Optional[Dict[str, int]] = None,
        ignore_https_errors: bool = True,
        **kwargs
    ):
        """Initialize browser configuration.

        Args:
            engine: Browser engine to use (chromium, firefox, webkit)
            headless: Run browser in headless mode
            devtools: Open DevTools automatically (headful only)
            slow_mo: Slow down operations by specified milliseconds
            viewport: Viewport size dict with 'width' and 'height'
            ignore_https_errors: Ignore certificate errors of local dev servers
        """
        self.engine = engine
        self.headless = headless
        self.devtools = devtools
        self.slow_mo = slow_mo
        self.viewport = viewport or {'width': 1280, 'height': 800}
        self.ignore_https_errors = ignore_https_errors
        self.extra_options = kwargs

    def to_browser_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser launch options."""
        options = {
            'headless': self.headless,
            'slow_mo': self.slow_mo,
        }

        if self.devtools and not self.headless:
            options['devtools'] = True

        options.update(self.extra_options)
        return options

    def to_context_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser context options."""
        options: Dict[str, Any] = {}

        if self.viewport:
            options['viewport'] = self.viewport

        if self.ignore_https_errors:
            options['ignore_https_errors'] = True

        return options


class BrowserFactory:
    """Owns the Playwright browser and the pages opened for monitoring."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        """Initialize browser factory with configuration.

        Args:
            config: Browser configuration object
        """
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._contexts: Dict[int, BrowserContext] = {}

    async def start(self) -> None:
        """Start Playwright and launch browser."""
        if self.playwright is not None:
            logger.warning("Browser factory already started")
            return

        logger.info(f"Starting browser factory with engine: {self.config.engine}")

        try:
            self.playwright = await async_playwright().start()

            if self.config.engine == BrowserEngineType.FIREFOX:
                browser_type = self.playwright.firefox
            elif self.config.engine == BrowserEngineType.WEBKIT:
                browser_type = self.playwright.webkit
            else:
                browser_type = self.playwright.chromium

            self.browser = await browser_type.launch(**self.config.to_browser_options())
            logger.info(f"Browser launched successfully (headless={self.config.headless})")

        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Close all pages, the browser and Playwright."""
        logger.info("Stopping browser factory")

        try:
            for context in list(self._contexts.values()):
                try:
                    await context.close()
                except Exception as e:
                    logger.warning(f"Error closing context: {e}")
            self._contexts.clear()

            if self.browser:
                await self.browser.close()
                self.browser = None

            if self.playwright:
                await self.playwright.stop()
                self.playwright = None

            logger.info("Browser factory stopped successfully")

        except Exception as e:
            logger.error(f"Error stopping browser factory: {e}")

    async def new_page(self) -> Page:
        """Open a page in a fresh context.

        Returns:
            New page, closed by close_page() or stop()

        Raises:
            RuntimeError: If browser factory not started
        """
        if not self.browser:
            raise RuntimeError("Browser factory not started. Call start() first.")

        context = await self.browser.new_context(**self.config.to_context_options())
        page = await context.new_page()
        self._contexts[id(page)] = context
        logger.debug(f"Opened page #{len(self._contexts)}")
        return page

    async def close_page(self, page: Page) -> None:
        """Close a page and its context.

        Args:
            page: Page previously returned by new_page()
        """
        context = self._contexts.pop(id(page), None)
        try:
            if context is not None:
                await context.close()
            else:
                await page.close()
        except Exception as e:
            logger.warning(f"Error closing page: {e}")

    @property
    def is_running(self) -> bool:
        """Check if browser factory is running."""
        if self.browser is None:
            return False
        return self.browser.is_connected()

    @property
    def page_count(self) -> int:
        """Get current number of open pages."""
        return len(self._contexts)

    def __repr__(self) -> str:
        """String representation of browser factory."""
        return (
            f"BrowserFactory(engine={self.config.engine}, "
            f"headless={self.config.headless}, "
            f"running={self.is_running}, "
            f"pages={self.page_count})"
        )
