"""
Browser manager for Playwright.
Handles browser lifecycle and hands out one session per run.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from playwright.async_api import async_playwright, Browser, BrowserContext, Playwright, Error as PlaywrightError

from ..errors import SessionFailure
from ..models import BrowserConfig
from ..utils import get_logger
from .session import BrowserSession


class BrowserManager:
    """
    Manages the Playwright browser lifecycle.
    A run acquires exactly one session through session() and owns it until
    the block exits.
    """

    def __init__(self, config: BrowserConfig):
        self.config = config
        self.logger = get_logger()

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self):
        """Initialize Playwright and launch browser."""
        self.logger.info("Starting browser manager...")

        try:
            self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=[
                    '--disable-blink-features=AutomationControlled',
                    '--no-sandbox',
                    '--disable-setuid-sandbox',
                    '--disable-dev-shm-usage',
                    '--window-size=1920,1080',
                ]
            )

            self.logger.info(f"Browser launched (headless={self.config.headless})")

        except PlaywrightError as e:
            self.logger.error(f"Failed to start browser: {e}", exc_info=True)
            await self.stop()
            raise SessionFailure(f"Failed to start browser: {e}") from e

    async def stop(self):
        """Close browser and cleanup."""
        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                self.logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                self.logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None

        self.logger.info("Browser manager stopped")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        """
        Open a browser context with a single page and close it on exit,
        whatever happens inside the block.
        """
        if not self._browser:
            raise SessionFailure("Browser not started. Call start() first.")

        try:
            context = await self._browser.new_context(
                user_agent=self.config.user_agent or self._get_default_user_agent(),
                viewport={'width': 1920, 'height': 1080},
                locale=self.config.locale,
                timezone_id=self.config.timezone,
                accept_downloads=False,
            )
            context.set_default_timeout(self.config.page_timeout_ms)
        except PlaywrightError as e:
            raise SessionFailure(f"Could not open browser context: {e}") from e

        try:
            page = await context.new_page()
        except PlaywrightError as e:
            await self._close_context(context)
            raise SessionFailure(f"Could not open browser page: {e}") from e

        self.logger.debug("Opened browser session")

        try:
            yield BrowserSession(page, page_timeout_ms=self.config.page_timeout_ms)
        finally:
            await self._close_context(context)
            self.logger.debug("Closed browser session")

    async def _close_context(self, context: BrowserContext):
        try:
            await context.close()
        except PlaywrightError as e:
            self.logger.warning(f"Error closing browser context: {e}")

    def _get_default_user_agent(self) -> str:
        """Get default realistic user agent."""
        return (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
