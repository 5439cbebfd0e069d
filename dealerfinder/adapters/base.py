"""
Base site adapter.
Every manufacturer locator is driven through the same interaction script;
concrete adapters only supply selectors, the search interaction and the
listing parser.
"""

import asyncio
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from ..browser import BrowserSession
from ..errors import ExtractionTimeout, NavigationError
from ..models import RawDealer
from ..utils import get_logger


@dataclass
class ExtractionContext:
    """State threaded through the steps of one extract() call."""
    session: BrowserSession
    term: str
    scope: Optional[BrowserSession] = field(default=None)

    def __post_init__(self):
        if self.scope is None:
            self.scope = self.session


@dataclass(frozen=True)
class InteractionStep:
    """
    One named step of a locator script.

    action returns True when the step completed. A required step that
    returns False or runs out of time fails the extraction with
    ExtractionTimeout; an optional one is skipped.
    """
    name: str
    action: Callable[[ExtractionContext], Awaitable[bool]]
    timeout_sec: float
    required: bool = True


class PaginationMode(str, Enum):
    """How a locator reveals results beyond the first screen."""
    NONE = "none"
    PAGES = "pages"      # numbered pages behind a "next" control
    EXPAND = "expand"    # a "load more" control appends to the list


class SiteAdapter(ABC):
    """
    Abstract base class for all locator adapters.
    """

    source: str = ""
    locator_url: str = ""

    # Overlays dismissed by polling after navigation
    consent_selectors: Sequence[str] = ()
    consent_timeout_sec: float = 5.0
    poll_interval_sec: float = 0.2

    # Result list
    results_selector: str = ""
    pagination: PaginationMode = PaginationMode.NONE
    next_page_selector: str = ""
    last_page_selector: str = ""
    expand_selector: str = ""
    max_pages: int = 50

    # Step budgets
    navigation_timeout_sec: float = 60.0
    prepare_timeout_sec: float = 15.0
    search_timeout_sec: float = 30.0
    results_timeout_sec: float = 20.0
    settle_delay_sec: float = 2.0

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.logger = get_logger()
        self._sleep = sleep

    # ------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------

    async def extract(self, search_term: str, session: BrowserSession) -> List[RawDealer]:
        """
        Run the locator script for one search term.

        Args:
            search_term: City name typed into the locator search
            session: Caller-owned browser session

        Returns:
            Raw dealer tuples, without empty entries and without repeats
            of the same (name, street) within this listing

        Raises:
            ExtractionTimeout: search submission or results wait timed out
            NavigationError: the locator could not be driven
        """
        ctx = ExtractionContext(session=session, term=search_term.strip())

        for step in self.steps():
            await self._run_step(step, ctx)

        rows = await self.collect_results(ctx)

        dealers: List[RawDealer] = []
        seen = set()
        for row in rows:
            if not row.has_content():
                continue
            key = row.listing_key()
            if key in seen:
                self.logger.debug(f"[{self.source}] Skipping repeated listing entry {key}")
                continue
            seen.add(key)
            dealers.append(row)

        self.logger.info(
            f"[{self.source}] '{ctx.term}': {len(dealers)} dealer(s) "
            f"({len(rows) - len(dealers)} empty or repeated dropped)"
        )
        return dealers

    def steps(self) -> List[InteractionStep]:
        """The ordered interaction script. Adapters may override."""
        return [
            InteractionStep("open locator", self.open_locator, self.navigation_timeout_sec),
            InteractionStep(
                "dismiss overlays", self.dismiss_overlays,
                self.consent_timeout_sec * max(1, len(self.consent_selectors)) + 1.0,
                required=False,
            ),
            InteractionStep("prepare search", self.prepare_search, self.prepare_timeout_sec, required=False),
            InteractionStep("submit search", self.submit_search, self.search_timeout_sec),
            InteractionStep("wait for results", self.wait_for_results, self.results_timeout_sec + 1.0),
        ]

    @abstractmethod
    async def submit_search(self, ctx: ExtractionContext) -> bool:
        """Enter ctx.term into the locator search and trigger it."""

    @abstractmethod
    def parse_listing(self, html: str) -> List[RawDealer]:
        """Turn the rendered result list into raw dealer tuples."""

    # ------------------------------------------------------------
    # Default steps
    # ------------------------------------------------------------

    async def open_locator(self, ctx: ExtractionContext) -> bool:
        await ctx.session.goto(self.locator_url)
        return True

    async def dismiss_overlays(self, ctx: ExtractionContext) -> bool:
        return await self._dismiss_all(ctx.scope, self.consent_selectors)

    async def prepare_search(self, ctx: ExtractionContext) -> bool:
        return True

    async def wait_for_results(self, ctx: ExtractionContext) -> bool:
        return await self.wait_for_count(ctx.scope, self.results_selector, self.results_timeout_sec)

    async def collect_results(self, ctx: ExtractionContext) -> List[RawDealer]:
        """Read every result page / expansion of the current search."""
        scope = ctx.scope
        rows: List[RawDealer] = []

        if self.pagination is PaginationMode.EXPAND:
            expansions = 0
            while expansions < self.max_pages and await scope.click_if_present(self.expand_selector):
                expansions += 1
                await self._sleep(self.settle_delay_sec)
            self._warn_if_capped(expansions, ctx.term)
            rows.extend(self.parse_listing(await scope.content()))

        elif self.pagination is PaginationMode.PAGES:
            pages = 1
            rows.extend(self.parse_listing(await scope.content()))
            while pages < self.max_pages and await self.advance_page(scope):
                pages += 1
                await self._sleep(self.settle_delay_sec)
                await self.wait_for_count(scope, self.results_selector, self.results_timeout_sec)
                rows.extend(self.parse_listing(await scope.content()))
            self._warn_if_capped(pages, ctx.term)

        else:
            rows.extend(self.parse_listing(await scope.content()))

        return rows

    async def advance_page(self, scope: BrowserSession) -> bool:
        """Move to the next result page; False on the last one."""
        if self.last_page_selector and await scope.count(self.last_page_selector) > 0:
            return False
        return await scope.click_if_present(self.next_page_selector)

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    async def poll_and_click(self, scope: BrowserSession, selector: str,
                             timeout_sec: Optional[float] = None,
                             interval_sec: Optional[float] = None) -> bool:
        """
        Poll for a control and click it once it shows up.
        Returns False when it never appeared within timeout_sec.
        """
        timeout_sec = self.consent_timeout_sec if timeout_sec is None else timeout_sec
        interval_sec = self.poll_interval_sec if interval_sec is None else interval_sec
        checks = max(1, math.ceil(timeout_sec / interval_sec))

        for _ in range(checks):
            if await scope.click_if_present(selector):
                await self._sleep(0.5)
                return True
            await self._sleep(interval_sec)
        return False

    async def wait_for_count(self, scope: BrowserSession, selector: str, timeout_sec: float) -> bool:
        """True as soon as selector matches at least one element."""
        checks = max(1, math.ceil(timeout_sec / self.poll_interval_sec))
        for _ in range(checks):
            if await scope.count(selector) > 0:
                return True
            await self._sleep(self.poll_interval_sec)
        return False

    async def _dismiss_all(self, scope: BrowserSession, selectors: Sequence[str]) -> bool:
        dismissed = False
        for selector in selectors:
            if await self.poll_and_click(scope, selector):
                self.logger.debug(f"[{self.source}] Dismissed overlay {selector}")
                dismissed = True
            else:
                self.logger.debug(f"[{self.source}] Overlay {selector} not shown")
        return dismissed

    async def _run_step(self, step: InteractionStep, ctx: ExtractionContext):
        self.logger.debug(f"[{self.source}] '{ctx.term}': {step.name}")
        try:
            completed = await asyncio.wait_for(step.action(ctx), timeout=step.timeout_sec)
        except (asyncio.TimeoutError, ExtractionTimeout):
            completed = False
        except NavigationError as e:
            if step.required:
                e.source, e.term, e.step = self.source, ctx.term, step.name
                raise
            self.logger.warning(f"[{self.source}] Optional step '{step.name}' failed: {e}")
            return

        if completed:
            return
        if step.required:
            raise ExtractionTimeout(
                f"Step '{step.name}' did not complete within {step.timeout_sec:.0f}s",
                source=self.source, term=ctx.term, step=step.name,
            )
        self.logger.debug(f"[{self.source}] Optional step '{step.name}' skipped")

    def _warn_if_capped(self, count: int, term: str):
        if count >= self.max_pages:
            self.logger.warning(
                f"[{self.source}] '{term}': stopped after {count} page(s), more may exist"
            )

    def __repr__(self):
        return f"{type(self).__name__}(source={self.source!r})"


