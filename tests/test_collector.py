from __future__ import annotations

import asyncio

from furnicrawl.collector import collect_links, dedupe_links
from furnicrawl.errors import PageLoadError
from furnicrawl.retailers.base import CategoryDescriptor, RetailerAdapter

START_URL = "https://shop.test/category/chairs"


class DummyPage:
    def __init__(self) -> None:
        self.url = START_URL
        self.reloads = 0

    async def reload(self, **kwargs) -> None:
        self.reloads += 1


class ScriptedAdapter(RetailerAdapter):
    base_url = "https://shop.test"

    def __init__(
        self,
        pages: list[list[str]],
        *,
        first_failures: int = 0,
        first_empty: int = 0,
        next_errors: int = 0,
    ) -> None:
        super().__init__("us", "en")
        self.pages = pages
        self.current = 0
        self.first_failures = first_failures
        self.first_empty = first_empty
        self.next_errors = next_errors
        self.extract_calls = 0
        self.next_calls = 0

    def get_retailer_name(self) -> str:
        return "Shop"

    def get_categories(self) -> list[CategoryDescriptor]:
        return [CategoryDescriptor("Chairs", START_URL)]

    async def extract_product_links_from_category(self, page, url):
        self.extract_calls += 1
        if self.first_failures:
            self.first_failures -= 1
            raise PageLoadError("timeout", url=url)
        if self.first_empty:
            self.first_empty -= 1
            return []
        return list(self.pages[self.current])

    async def go_to_next_page(self, page):
        self.next_calls += 1
        if self.next_errors:
            self.next_errors -= 1
            raise RuntimeError("pager detached")
        if self.current + 1 < len(self.pages):
            self.current += 1
            return True
        return False

    async def extract_product_data(self, page, url):
        return None

    def transform_product_data(self, raw):
        return None


def _links(page_no: int, count: int = 5) -> list[str]:
    return [f"https://shop.test/p/{page_no}-{index}" for index in range(count)]


def _collect(adapter: ScriptedAdapter, page: DummyPage | None = None, **kwargs):
    kwargs.setdefault("retry_multiplier", 0)
    kwargs.setdefault("pace", None)
    return asyncio.run(collect_links(adapter, page or DummyPage(), START_URL, **kwargs))


def test_two_pages_of_five_links_yield_ten_unique_urls() -> None:
    adapter = ScriptedAdapter([_links(1), _links(2)])

    collection = _collect(adapter)

    assert len(collection) == 10
    assert collection.pages == 2
    assert collection.duplicates_removed == 0
    assert set(collection.urls) == set(_links(1) + _links(2))


def test_single_page_when_next_page_returns_false() -> None:
    adapter = ScriptedAdapter([_links(1)])

    collection = _collect(adapter)

    assert collection.urls == _links(1)
    assert collection.pages == 1
    assert adapter.next_calls == 1


def test_duplicates_are_removed_in_first_seen_order() -> None:
    a, b, c = "https://shop.test/p/a", "https://shop.test/p/b", "https://shop.test/p/c"
    adapter = ScriptedAdapter([[a, b, a], [b, c]])

    collection = _collect(adapter)

    assert collection.urls == [a, b, c]
    assert collection.raw_count == 5
    assert collection.duplicates_removed == 2


def test_dedupe_links_matches_distinct_count() -> None:
    feed = ["x", "y", "x", "z", "y", "x"]
    unique, removed = dedupe_links(feed)
    assert len(unique) == len(set(feed))
    assert removed == len(feed) - len(set(feed))


def test_first_page_errors_are_retried_with_reload() -> None:
    adapter = ScriptedAdapter([_links(1)], first_failures=2)
    page = DummyPage()

    collection = _collect(adapter, page)

    assert len(collection) == 5
    assert adapter.extract_calls == 3
    assert page.reloads == 2


def test_empty_first_page_gives_up_after_max_attempts() -> None:
    adapter = ScriptedAdapter([_links(1)], first_empty=10)

    collection = _collect(adapter, max_attempts=3)

    assert collection.urls == []
    assert collection.pages == 0
    assert adapter.extract_calls == 3
    assert adapter.next_calls == 0


def test_failing_category_returns_empty_instead_of_raising() -> None:
    adapter = ScriptedAdapter([_links(1)], first_failures=99)

    collection = _collect(adapter, max_attempts=2)

    assert len(collection) == 0


def test_max_pages_limits_pagination() -> None:
    adapter = ScriptedAdapter([_links(1), _links(2), _links(3)])

    collection = _collect(adapter, max_pages=2)

    assert collection.pages == 2
    assert set(collection.urls) == set(_links(1) + _links(2))


def test_transient_pagination_errors_are_retried() -> None:
    adapter = ScriptedAdapter([_links(1), _links(2)], next_errors=1)

    collection = _collect(adapter)

    assert len(collection) == 10


def test_exhausted_pagination_retries_end_collection() -> None:
    adapter = ScriptedAdapter([_links(1), _links(2)], next_errors=5)

    collection = _collect(adapter, max_attempts=3)

    assert collection.urls == _links(1)
    assert adapter.next_calls == 3
