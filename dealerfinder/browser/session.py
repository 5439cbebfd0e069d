"""
Browser session wrapper.
Exposes the page operations site adapters need and translates Playwright
failures into pipeline errors.
"""

from contextlib import contextmanager
from typing import Optional, Union
from playwright.async_api import (
    Error as PlaywrightError,
    Frame,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from ..errors import ExtractionTimeout, NavigationError, SessionFailure
from ..utils import get_logger

# Messages Playwright uses once the page, context or browser is gone
_CLOSED_MARKERS = (
    'target closed',
    'has been closed',
    'browser has disconnected',
    'connection closed',
)


def _is_closed_error(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in _CLOSED_MARKERS)


class BrowserSession:
    """
    One page (or a frame inside it) driven by a site adapter.

    The session is owned by the runner; adapters drive it but never close it.
    """

    def __init__(self, page: Page, target: Optional[Union[Page, Frame]] = None,
                 page_timeout_ms: int = 30000):
        self.page = page
        self.target = target or page
        self.page_timeout_ms = page_timeout_ms
        self.logger = get_logger()

    @contextmanager
    def _translate_errors(self, action: str):
        try:
            yield
        except PlaywrightTimeoutError as e:
            raise ExtractionTimeout(f"Timed out: {action}") from e
        except PlaywrightError as e:
            if _is_closed_error(e):
                raise SessionFailure(f"Browser session lost during {action}: {e}") from e
            raise NavigationError(f"{action} failed: {e}") from e

    async def goto(self, url: str, wait_until: str = "networkidle") -> None:
        """Navigate the page to url."""
        self.logger.debug(f"Navigating to {url}")
        with self._translate_errors(f"goto {url}"):
            response = await self.page.goto(url, wait_until=wait_until, timeout=self.page_timeout_ms)
        if response is not None and response.status >= 400:
            raise NavigationError(f"HTTP {response.status} for {url}")

    async def reload(self, wait_until: str = "domcontentloaded") -> None:
        with self._translate_errors("reload"):
            await self.page.reload(wait_until=wait_until, timeout=self.page_timeout_ms)

    async def count(self, selector: str) -> int:
        """Number of elements currently matching selector."""
        with self._translate_errors(f"count {selector}"):
            return await self.target.locator(selector).count()

    async def click_if_present(self, selector: str) -> bool:
        """Click the first match via DOM click; False if nothing matches."""
        with self._translate_errors(f"click {selector}"):
            handle = await self.target.query_selector(selector)
            if handle is None:
                return False
            await handle.evaluate("el => el.click()")
            return True

    async def click(self, selector: str, timeout_ms: Optional[int] = None) -> None:
        """Wait for a visible element and click it."""
        with self._translate_errors(f"click {selector}"):
            await self.target.click(selector, timeout=timeout_ms or self.page_timeout_ms)

    async def wait_for_selector(self, selector: str, timeout_ms: int,
                                visible: bool = True) -> bool:
        """True once selector appears, False if timeout_ms elapses first."""
        state = "visible" if visible else "attached"
        try:
            with self._translate_errors(f"wait for {selector}"):
                await self.target.wait_for_selector(selector, state=state, timeout=timeout_ms)
            return True
        except ExtractionTimeout:
            return False

    async def type_text(self, selector: str, text: str, delay_ms: int = 100) -> None:
        """Clear the input and type text key by key, the way a user would."""
        with self._translate_errors(f"type into {selector}"):
            await self.target.fill(selector, "", timeout=self.page_timeout_ms)
            await self.target.type(selector, text, delay=delay_ms, timeout=self.page_timeout_ms)

    async def evaluate(self, script: str, arg=None):
        """Execute JavaScript in the target's context."""
        with self._translate_errors("evaluate script"):
            return await self.target.evaluate(script, arg)

    async def content(self) -> str:
        with self._translate_errors("read page content"):
            return await self.target.content()

    async def enter_frame(self, selector: str, timeout_ms: int = 10000) -> "BrowserSession":
        """Session scoped to the iframe matched by selector."""
        with self._translate_errors(f"enter frame {selector}"):
            element = await self.target.wait_for_selector(selector, timeout=timeout_ms)
            frame = await element.content_frame() if element else None
        if frame is None:
            raise NavigationError(f"No frame content behind {selector}")
        return BrowserSession(self.page, target=frame, page_timeout_ms=self.page_timeout_ms)

