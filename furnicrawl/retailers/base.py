"""Retailer adapter contract shared by every supported storefront."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Iterable

from playwright.async_api import Page
from pydantic import ValidationError

from furnicrawl.errors import PageLoadError
from furnicrawl.extractors.dom_utils import safe_wait_for_load
from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.logging_config import get_logger
from furnicrawl.normalizers import absolute_url, clean_text, coerce_identifier

LOGGER = get_logger(__name__)

RawProductRecord = dict[str, Any]

DEFAULT_NAVIGATION_TIMEOUT_MS = 45000


@dataclass(frozen=True)
class CategoryDescriptor:
    """A named entry point into a retailer's catalog."""

    name: str
    url: str


class RetailerAdapter(abc.ABC):
    """Scraping logic for one retailer's category and product pages.

    Adapters are cheap to construct and never touch the network until one of
    the async methods is called with a live page.
    """

    base_url: str = ""

    def __init__(
        self,
        country: str = "us",
        language: str = "en",
        *,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
    ) -> None:
        self.country = country.lower()
        self.language = language.lower()
        self.navigation_timeout_ms = navigation_timeout_ms

    def __repr__(self) -> str:
        return f"{type(self).__name__}(country={self.country!r}, language={self.language!r})"

    @abc.abstractmethod
    def get_retailer_name(self) -> str:
        """Stable identifier used in records and storage partitioning."""

    @abc.abstractmethod
    def get_categories(self) -> list[CategoryDescriptor]:
        """Default category entry points; never empty."""

    @abc.abstractmethod
    async def extract_product_links_from_category(self, page: Page, url: str) -> list[str]:
        """Return absolute product URLs visible on the category page at *url*.

        An empty list means no listings were found. Hard navigation failures
        raise :class:`PageLoadError`.
        """

    @abc.abstractmethod
    async def go_to_next_page(self, page: Page) -> bool:
        """Advance the listing; ``False`` when there is nothing more to load."""

    @abc.abstractmethod
    async def extract_product_data(self, page: Page, url: str) -> RawProductRecord | None:
        """Capture every extractable field from the product page at *url*."""

    @abc.abstractmethod
    def transform_product_data(self, raw: RawProductRecord | None) -> StandardProductRecord | None:
        """Turn a raw record into a standard one, or ``None`` when it is unusable."""

    async def _goto(self, page: Page, url: str, *, wait_until: str = "domcontentloaded") -> None:
        try:
            response = await page.goto(url, wait_until=wait_until, timeout=self.navigation_timeout_ms)
        except Exception as exc:
            raise PageLoadError(str(exc), url=url, retailer=self.get_retailer_name()) from exc
        if response is not None and response.status >= 400:
            raise PageLoadError(
                f"HTTP {response.status}",
                url=url,
                retailer=self.get_retailer_name(),
            )
        await safe_wait_for_load(page, "networkidle", timeout=min(self.navigation_timeout_ms, 15000))

    async def _ensure_at(self, page: Page, url: str) -> None:
        if (page.url or "").rstrip("/") == url.rstrip("/"):
            return
        await self._goto(page, url)

    def _absolute_links(
        self,
        hrefs: Iterable[str],
        *,
        must_contain: tuple[str, ...] = (),
    ) -> list[str]:
        links: list[str] = []
        for href in hrefs:
            url = absolute_url(href, self.base_url)
            if url is None:
                continue
            if must_contain and not all(fragment in url.lower() for fragment in must_contain):
                continue
            links.append(url)
        return links

    def _build_record(
        self,
        *,
        product_id: Any,
        name: Any,
        slug: str | None,
        url: str | None,
        price: Any,
        raw_data: dict[str, Any],
        description: Any = None,
        image_url: str | None = None,
        specifications: dict[str, Any] | None = None,
    ) -> StandardProductRecord | None:
        identifier = coerce_identifier(product_id)
        title = clean_text(name)
        if identifier is None or title is None or not url:
            return None
        try:
            return StandardProductRecord(
                retailer=self.get_retailer_name(),
                product_id=identifier,
                name=title,
                slug=slug or identifier,
                price=price,
                raw_data=raw_data,
                url=url,
                description=clean_text(description),
                image_url=image_url or None,
                specifications=specifications,
            )
        except ValidationError as exc:
            LOGGER.warning(
                "Discarding invalid %s record for %s: %s",
                self.get_retailer_name(),
                url,
                exc,
            )
            return None


__all__ = [
    "CategoryDescriptor",
    "DEFAULT_NAVIGATION_TIMEOUT_MS",
    "RawProductRecord",
    "RetailerAdapter",
]
