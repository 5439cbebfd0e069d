"""
Opel dealer locator (opel.de/tools/haendlersuche.html).
Locality suggestion search, results grown with a "Mehr" button.
"""

from typing import List
from bs4 import BeautifulSoup

from .base import ExtractionContext, PaginationMode, SiteAdapter
from ..models import RawDealer
from ..utils import clean, clean_optional, collapse_whitespace
from ..utils.text import CITY_COMMA_POSTAL_PATTERN


class OpelAdapter(SiteAdapter):
    source = "opel"
    locator_url = "https://www.opel.de/tools/haendlersuche.html"

    # The refuse button is injected late
    consent_selectors = ("#_psaihm_refuse_all",)
    consent_timeout_sec = 10.0

    search_input_selector = "#dealerSearchBox"
    clear_search_selector = ".clear-searchbox"
    suggestion_selector = ".localities-container .localities-item:first-child"
    search_button_selector = ".dealer-search-button.stat-search-submit"

    results_selector = "li.q-dealer-info h5.q-dealer-name"
    pagination = PaginationMode.EXPAND
    expand_selector = "a.q-button.expand"

    async def prepare_search(self, ctx: ExtractionContext) -> bool:
        # The box keeps the previous term when the page is reused
        cleared = await ctx.scope.click_if_present(self.clear_search_selector)
        if cleared:
            await self._sleep(0.5)
        return cleared

    async def submit_search(self, ctx: ExtractionContext) -> bool:
        scope = ctx.scope
        if not await scope.wait_for_selector(self.search_input_selector, timeout_ms=15000):
            return False
        await scope.type_text(self.search_input_selector, ctx.term)

        if not await scope.wait_for_selector(self.suggestion_selector, timeout_ms=10000):
            self.logger.warning(f"[{self.source}] No locality suggestion for '{ctx.term}'")
            return False
        await scope.click(self.suggestion_selector)
        await scope.click(self.search_button_selector)
        return True

    def parse_listing(self, html: str) -> List[RawDealer]:
        soup = BeautifulSoup(html, 'lxml')
        dealers = []

        for item in soup.select("li.q-dealer-info"):
            name = item.select_one("h5.q-dealer-name")
            street = item.select_one("p[ng-if*='addressLine1']")
            formatted = item.select_one("p[ng-if*='formattedAddress']")
            phone = item.select_one("a.phone")
            website = item.select_one("a.web")

            dealer = RawDealer(
                name=name.get_text(strip=True) if name else None,
                street=street.get_text(strip=True) if street else None,
                phone=clean_optional(collapse_whitespace(phone.get_text())) if phone else None,
                website=clean_optional(website.get("href")) if website else None,
            )

            # Rendered as "City, 12345"
            formatted_text = clean(formatted.get_text()) if formatted else ""
            match = CITY_COMMA_POSTAL_PATTERN.match(formatted_text)
            if match:
                dealer.city = match.group('city').strip()
                dealer.postal_code = match.group('postal')
            elif formatted_text:
                dealer.postal_city = formatted_text

            dealers.append(dealer)

        return dealers
