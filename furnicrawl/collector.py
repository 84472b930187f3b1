"""Drive an adapter across a paginated category listing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Iterator

from playwright.async_api import Page

from furnicrawl.extractors.dom_utils import human_wait
from furnicrawl.health import HealthMonitor
from furnicrawl.logging_config import get_logger
from furnicrawl.retailers.base import RetailerAdapter
from furnicrawl.retry import retry_async

LOGGER = get_logger(__name__)

Pace = Callable[[], Awaitable[None]]


async def page_pause() -> None:
    await human_wait(800, 1800)


@dataclass
class LinkCollection:
    urls: list[str] = field(default_factory=list)
    pages: int = 0
    raw_count: int = 0
    duplicates_removed: int = 0

    def __len__(self) -> int:
        return len(self.urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self.urls)


def dedupe_links(links: Iterable[str]) -> tuple[list[str], int]:
    """Drop repeated URLs, keeping first-seen order; return the removed count."""

    seen: set[str] = set()
    unique: list[str] = []
    total = 0
    for link in links:
        total += 1
        if link in seen:
            continue
        seen.add(link)
        unique.append(link)
    return unique, total - len(unique)


async def collect_links(
    adapter: RetailerAdapter,
    page: Page,
    start_url: str,
    max_pages: int | None = None,
    *,
    max_attempts: int = 3,
    retry_multiplier: float = 0.5,
    pace: Pace | None = page_pause,
    health: HealthMonitor | None = None,
) -> LinkCollection:
    """Collect every product URL reachable from *start_url*.

    A category that yields nothing, or fails outright, produces an empty
    collection; this never raises for per-category problems.
    """

    retailer = adapter.get_retailer_name()
    log_extra = {"retailer": retailer, "url": start_url}

    async def _first_page(attempt: int) -> list[str]:
        if attempt > 1:
            await page.reload(wait_until="domcontentloaded", timeout=adapter.navigation_timeout_ms)
        return await adapter.extract_product_links_from_category(page, start_url)

    first = await retry_async(
        _first_page,
        max_attempts=max_attempts,
        multiplier=retry_multiplier,
        accept=bool,
        label=f"{retailer} first page",
    )
    accumulated: list[str] = list(first.value or [])
    if not accumulated:
        if first.error is not None:
            LOGGER.warning(
                "Category %s failed after %s attempts: %s",
                start_url,
                first.attempts,
                first.error_message,
                extra=log_extra,
            )
            if health is not None:
                health.record_dom_error(context=start_url, reason=first.error_message or "error")
        else:
            LOGGER.warning("Category %s returned no product links", start_url, extra=log_extra)
            if health is not None:
                health.record_zero_items(context=start_url)
        return LinkCollection(pages=0)

    pages = 1
    if health is not None:
        health.record_items(context=start_url, count=len(accumulated))
    LOGGER.info("Page %s of %s: %s links", pages, start_url, len(accumulated), extra=log_extra)

    while max_pages is None or pages < max_pages:
        if pace is not None:
            await pace()

        advanced = await retry_async(
            lambda _attempt: adapter.go_to_next_page(page),
            max_attempts=max_attempts,
            multiplier=retry_multiplier,
            label=f"{retailer} pagination",
        )
        if not advanced.ok:
            LOGGER.warning(
                "Pagination stopped after %s attempts: %s",
                advanced.attempts,
                advanced.error_message,
                extra=log_extra,
            )
            break
        if not advanced.value:
            break

        current_url = page.url or start_url
        extracted = await retry_async(
            lambda _attempt: adapter.extract_product_links_from_category(page, current_url),
            max_attempts=max_attempts,
            multiplier=retry_multiplier,
            label=f"{retailer} page {pages + 1}",
        )
        links = list(extracted.value or [])
        pages += 1
        if not links:
            LOGGER.info("Page %s of %s was empty; stopping", pages, start_url, extra=log_extra)
            break
        accumulated.extend(links)
        LOGGER.info("Page %s of %s: %s links", pages, start_url, len(links), extra=log_extra)

    unique, duplicates = dedupe_links(accumulated)
    LOGGER.info(
        "Collected %s unique links from %s pages (%s duplicates removed)",
        len(unique),
        pages,
        duplicates,
        extra=log_extra,
    )
    return LinkCollection(
        urls=unique,
        pages=pages,
        raw_count=len(accumulated),
        duplicates_removed=duplicates,
    )
