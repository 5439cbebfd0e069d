"""
Unit Tests for the SiteAdapter interaction script

A scripted fake session stands in for the browser.
"""

import asyncio
from typing import List

import pytest
from bs4 import BeautifulSoup

from dealerfinder.adapters import InteractionStep, PaginationMode, SiteAdapter
from dealerfinder.errors import ExtractionTimeout, NavigationError
from dealerfinder.models import RawDealer


def _listing(*dealers):
    items = "".join(
        f'<li class="dealer"><span class="name">{name}</span><span class="street">{street}</span>'
        f'<span class="plz">{plz}</span></li>'
        for name, street, plz in dealers
    )
    return f'<ul class="results">{items}</ul>'


class FakeSession:
    """
    Serves a list of result pages. Clicking the "next" control moves to the
    following page; any selector in `present` can be clicked once.
    """

    def __init__(self, pages, present=(), fail_goto=False):
        self.pages = list(pages)
        self.page_index = 0
        self.present = set(present)
        self.fail_goto = fail_goto
        self.visited = []
        self.clicked = []

    async def goto(self, url):
        if self.fail_goto:
            raise NavigationError(f"HTTP 502 for {url}")
        self.visited.append(url)

    async def count(self, selector):
        if selector == "li.dealer":
            return 1 if self.pages and "<li" in self.pages[self.page_index] else 0
        return 1 if selector in self.present else 0

    async def click_if_present(self, selector):
        if selector in ("a.next", "a.more") and self.page_index < len(self.pages) - 1:
            self.page_index += 1
            self.clicked.append(selector)
            return True
        if selector in self.present:
            self.present.discard(selector)
            self.clicked.append(selector)
            return True
        return False

    async def content(self):
        return self.pages[self.page_index] if self.pages else ""


class ListingAdapter(SiteAdapter):
    source = "test"
    locator_url = "https://locator.example/haendlersuche"
    consent_selectors = ("#accept",)
    results_selector = "li.dealer"
    next_page_selector = "a.next"
    expand_selector = "a.more"

    def __init__(self, pagination=PaginationMode.NONE, search_ok=True, **kwargs):
        super().__init__(**kwargs)
        self.pagination = pagination
        self.search_ok = search_ok
        self.searched = []

    async def submit_search(self, ctx):
        self.searched.append(ctx.term)
        return self.search_ok

    def parse_listing(self, html) -> List[RawDealer]:
        soup = BeautifulSoup(html, "lxml")
        return [
            RawDealer(
                name=item.select_one(".name").get_text(strip=True),
                street=item.select_one(".street").get_text(strip=True),
                postal_code=item.select_one(".plz").get_text(strip=True),
            )
            for item in soup.select("li.dealer")
        ]


# ============================================
# Script
# ============================================

def test_extract_runs_script(fake_sleep):
    adapter = ListingAdapter(sleep=fake_sleep)
    session = FakeSession([_listing(("A", "Weg 1", "10115"))], present={"#accept"})

    dealers = asyncio.run(adapter.extract(" Berlin ", session))

    assert [d.name for d in dealers] == ["A"]
    assert session.visited == ["https://locator.example/haendlersuche"]
    assert session.clicked == ["#accept"]
    assert adapter.searched == ["Berlin"]


def test_missing_consent_banner_is_not_an_error(fake_sleep):
    adapter = ListingAdapter(sleep=fake_sleep)
    session = FakeSession([_listing(("A", "Weg 1", "10115"))])

    dealers = asyncio.run(adapter.extract("Berlin", session))

    assert len(dealers) == 1
    assert session.clicked == []


def test_results_timeout_raises(fake_sleep):
    adapter = ListingAdapter(sleep=fake_sleep)
    session = FakeSession(["<ul class='results'></ul>"])

    with pytest.raises(ExtractionTimeout) as exc_info:
        asyncio.run(adapter.extract("Nirgendwo", session))

    assert exc_info.value.step == "wait for results"
    assert exc_info.value.term == "Nirgendwo"
    assert exc_info.value.source == "test"


def test_failed_search_submission_raises(fake_sleep):
    adapter = ListingAdapter(search_ok=False, sleep=fake_sleep)
    session = FakeSession([_listing(("A", "Weg 1", "10115"))])

    with pytest.raises(ExtractionTimeout) as exc_info:
        asyncio.run(adapter.extract("Berlin", session))

    assert exc_info.value.step == "submit search"


def test_navigation_error_carries_context(fake_sleep):
    adapter = ListingAdapter(sleep=fake_sleep)
    session = FakeSession([], fail_goto=True)

    with pytest.raises(NavigationError) as exc_info:
        asyncio.run(adapter.extract("Berlin", session))

    assert exc_info.value.step == "open locator"
    assert exc_info.value.term == "Berlin"


def test_step_running_out_of_time_raises(fake_sleep):
    class SlowAdapter(ListingAdapter):
        def steps(self):
            async def hang(ctx):
                await asyncio.sleep(1)
                return True
            return [InteractionStep("hang", hang, timeout_sec=0.01)]

    adapter = SlowAdapter(sleep=fake_sleep)

    with pytest.raises(ExtractionTimeout) as exc_info:
        asyncio.run(adapter.extract("Berlin", FakeSession([])))

    assert exc_info.value.step == "hang"


# ============================================
# Results
# ============================================

def test_pages_are_followed_and_deduplicated(fake_sleep):
    adapter = ListingAdapter(pagination=PaginationMode.PAGES, sleep=fake_sleep)
    session = FakeSession([
        _listing(("A", "Weg 1", "10115"), ("B", "Weg 2", "10115")),
        _listing(("b ", "WEG 2", "10115"), ("C", "Weg 3", "10117")),
    ])

    dealers = asyncio.run(adapter.extract("Berlin", session))

    assert [d.name for d in dealers] == ["A", "B", "C"]
    assert session.clicked == ["a.next"]


def test_expand_mode_reads_final_list(fake_sleep):
    adapter = ListingAdapter(pagination=PaginationMode.EXPAND, sleep=fake_sleep)
    session = FakeSession([
        _listing(("A", "Weg 1", "10115")),
        _listing(("A", "Weg 1", "10115"), ("B", "Weg 2", "10115")),
    ])

    dealers = asyncio.run(adapter.extract("Berlin", session))

    assert [d.name for d in dealers] == ["A", "B"]
    assert session.clicked == ["a.more"]


def test_empty_entries_are_dropped(fake_sleep):
    adapter = ListingAdapter(sleep=fake_sleep)
    session = FakeSession([_listing(("", "", ""), ("A", "Weg 1", "10115"))])

    dealers = asyncio.run(adapter.extract("Berlin", session))

    assert [d.name for d in dealers] == ["A"]


def test_page_cap_stops_pagination(fake_sleep):
    adapter = ListingAdapter(pagination=PaginationMode.PAGES, sleep=fake_sleep)
    adapter.max_pages = 2
    session = FakeSession([_listing((name, "Weg", "10115")) for name in "ABCD"])

    dealers = asyncio.run(adapter.extract("Berlin", session))

    assert [d.name for d in dealers] == ["A", "B"]


def test_page_that_never_fills_keeps_earlier_results(fake_sleep):
    adapter = ListingAdapter(pagination=PaginationMode.PAGES, sleep=fake_sleep)
    session = FakeSession([_listing(("A", "Weg 1", "10115")), "<ul class='results'></ul>"])

    dealers = asyncio.run(adapter.extract("Berlin", session))

    assert [d.name for d in dealers] == ["A"]
    assert session.clicked == ["a.next"]
