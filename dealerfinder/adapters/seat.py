"""
SEAT dealer locator (seat.de/kontakt/haendlersuche).
The locator lives in an iframe with its own consent layer.
"""

from typing import List
from bs4 import BeautifulSoup

from .base import ExtractionContext, InteractionStep, SiteAdapter
from ..models import RawDealer
from ..utils import clean_optional


class SeatAdapter(SiteAdapter):
    source = "seat"
    locator_url = "https://www.seat.de/kontakt/haendlersuche"

    consent_selectors = ("#onetrust-reject-all-handler",)
    frame_selector = "#iFrameResizer0"
    frame_consent_selectors = ("#onetrust-accept-btn-handler", "#acceptCookie")

    filter_selector = "#filter"
    search_button_selector = "#button-search"

    results_selector = "div#dealerList > div.dealer"
    results_timeout_sec = 30.0

    def steps(self) -> List[InteractionStep]:
        return [
            InteractionStep("open locator", self.open_locator, self.navigation_timeout_sec),
            InteractionStep("dismiss overlays", self.dismiss_overlays, self.consent_timeout_sec + 1.0,
                            required=False),
            InteractionStep("enter locator frame", self.enter_locator_frame, 30.0),
            InteractionStep("dismiss frame overlays", self.dismiss_frame_overlays,
                            self.consent_timeout_sec * len(self.frame_consent_selectors) + 1.0,
                            required=False),
            InteractionStep("submit search", self.submit_search, self.search_timeout_sec),
            InteractionStep("wait for results", self.wait_for_results, self.results_timeout_sec + 1.0),
        ]

    async def enter_locator_frame(self, ctx: ExtractionContext) -> bool:
        # The iframe only initialises after a reload once consent is set
        await ctx.session.evaluate("() => window.scrollBy(0, window.innerHeight)")
        await self._sleep(3)
        await ctx.session.reload()
        await self._sleep(3)
        ctx.scope = await ctx.session.enter_frame(self.frame_selector, timeout_ms=10000)
        return True

    async def dismiss_frame_overlays(self, ctx: ExtractionContext) -> bool:
        return await self._dismiss_all(ctx.scope, self.frame_consent_selectors)

    async def submit_search(self, ctx: ExtractionContext) -> bool:
        scope = ctx.scope
        if not await scope.wait_for_selector(self.filter_selector, timeout_ms=15000):
            return False
        await scope.type_text(self.filter_selector, ctx.term)
        await self._sleep(1)
        await scope.click(self.search_button_selector, timeout_ms=5000)
        return True

    def parse_listing(self, html: str) -> List[RawDealer]:
        soup = BeautifulSoup(html, 'lxml')
        dealers = []

        for item in soup.select("div#dealerList > div.dealer"):
            name = item.select_one("div.dealerName")

            street = postal_city = None
            address_lines = item.select("div.dealerAdress p.mb-0")
            if address_lines:
                # Street and "PLZ City" separated by <br> in the last paragraph
                parts = list(address_lines[-1].stripped_strings)
                street = parts[0] if len(parts) > 0 else None
                postal_city = parts[1] if len(parts) > 1 else None

            contact = item.select("div.dealerContact p")
            phone = contact[0].select_one("a") if len(contact) > 0 else None
            email = contact[1].select_one("a") if len(contact) > 1 else None
            website = contact[2].select_one("a") if len(contact) > 2 else None

            services = [
                img.get("title", "").strip()
                for img in item.select(".dealerFeatures img")
                if img.get("title", "").strip()
            ]

            dealers.append(RawDealer(
                name=name.get_text(strip=True) if name else None,
                street=street,
                postal_city=postal_city,
                phone=clean_optional(phone.get_text()) if phone else None,
                email=clean_optional(email.get_text()) if email else None,
                website=clean_optional(website.get("href")) if website else None,
                services=services,
            ))

        return dealers
