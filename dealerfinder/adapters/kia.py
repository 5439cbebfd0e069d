"""
Kia dealer locator (kia.com/de/haendlersuche).
Autocomplete search, list view with numbered pages.
"""

from typing import List
from bs4 import BeautifulSoup

from .base import ExtractionContext, PaginationMode, SiteAdapter
from ..models import RawDealer
from ..utils import clean_optional, collapse_whitespace, strip_phone_label


class KiaAdapter(SiteAdapter):
    source = "kia"
    locator_url = "https://www.kia.com/de/haendlersuche/#/"

    consent_selectors = (
        "#onetrust-accept-btn-handler",
        ".bbapp-global-popup__container .bbapp-global-popup__close",
    )

    search_input_selector = "#search_input"
    suggestion_selector = "#myInputautocomplete-list div"

    results_selector = "li.dealers-list-item"
    pagination = PaginationMode.PAGES
    next_page_selector = "ul.eut_pagination li.next a"
    last_page_selector = "ul.eut_pagination li.next a.disabled"

    async def submit_search(self, ctx: ExtractionContext) -> bool:
        scope = ctx.scope
        if not await scope.wait_for_selector(self.search_input_selector, timeout_ms=15000):
            return False

        await scope.type_text(self.search_input_selector, ctx.term)
        await scope.evaluate(
            "sel => document.querySelector(sel)"
            ".dispatchEvent(new Event('input', { bubbles: true }))",
            self.search_input_selector,
        )

        if not await self.wait_for_count(scope, self.suggestion_selector, timeout_sec=15.0):
            self.logger.warning(f"[{self.source}] No suggestions for '{ctx.term}'")
            return False
        await scope.click_if_present(self.suggestion_selector)
        await self._sleep(1.5)

        # Results default to the map; the list view carries the contact details
        await scope.evaluate(
            "() => {"
            " const btn = Array.from(document.querySelectorAll('button'))"
            "   .find(b => (b.textContent || '').includes('Listenansicht'));"
            " if (btn) btn.click();"
            "}"
        )
        return True

    def parse_listing(self, html: str) -> List[RawDealer]:
        soup = BeautifulSoup(html, 'lxml')
        dealers = []

        for item in soup.select("li.dealers-list-item"):
            title = item.select_one("div.title")
            address = [dd.get_text(strip=True) for dd in item.select("dl.eut_info_area dd.ng-binding")]
            phone = item.select_one("dl.bdnone dd div.ng-binding")
            website = item.select_one("ul.right_area a.dealer_website_link")
            services = [li.get_text(strip=True) for li in item.select("div.vertical_line ul.blt_list li")]

            dealers.append(RawDealer(
                name=title.get_text(strip=True) if title else None,
                street=address[0] if len(address) > 0 else None,
                postal_city=address[1] if len(address) > 1 else None,
                phone=clean_optional(strip_phone_label(phone.get_text())) if phone else None,
                website=clean_optional(website.get("href")) if website else None,
                services=[collapse_whitespace(s) for s in services if s],
            ))

        return dealers
