"""End-to-end crawls of retailer categories."""

from __future__ import annotations

import asyncio
import os
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Mapping
from urllib.parse import urlparse

import requests
from playwright.async_api import async_playwright

from furnicrawl.artifacts import RunArtifacts
from furnicrawl.cache import CrawlCache
from furnicrawl.collector import Pace, collect_links, page_pause
from furnicrawl.errors import BrowserLaunchError, ConfigurationError
from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.health import HealthMonitor
from furnicrawl.logging_config import get_logger
from furnicrawl.pipeline import PipelineCallbacks, ProductPipeline, ProgressSnapshot, SessionFactory
from furnicrawl.playwright_env import (
    BrowserSessionFactory,
    apply_stealth,
    close_browser,
    debug_screenshots_enabled,
    launch_browser,
    request_delay_bounds,
)
from furnicrawl.retailers import registry
from furnicrawl.retailers.base import RetailerAdapter
from furnicrawl.storage.sink import NullSink, SqlStorageSink, StorageSink

LOGGER = get_logger(__name__)


@dataclass
class CrawlSettings:
    delay_between_requests_ms: int = 1500
    max_concurrent_requests: int = 2
    cache_location: str = "crawled.json"
    country: str = "ca"
    language: str = "en"
    headless: bool = True
    max_pages: int | None = None
    navigation_timeout_ms: int = 45000
    max_attempts: int = 3
    retry_multiplier: float = 0.5
    checkpoint_every: int = 10
    results_dir: str | None = "results"
    sqlite_path: str = "furnicrawl.sqlite"
    health_log: str | None = "logs/health.jsonl"
    healthcheck_url: str | None = None
    user_agent: str | None = None
    validate_only: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "CrawlSettings":
        known = cls.__dataclass_fields__
        values = {key: value for key, value in config.items() if key in known and value is not None}
        return cls(**values)


@dataclass
class RunSummary:
    run_id: str
    retailer: str
    category_url: str
    links_found: int = 0
    pages: int = 0
    duplicates_removed: int = 0
    skipped_cached: int = 0
    total: int = 0
    completed: int = 0
    success: int = 0
    failure: int = 0
    elapsed_seconds: float = 0.0
    rate_per_minute: float = 0.0
    started_at: str = ""
    finished_at: str | None = None
    status: str = "running"
    artifacts_dir: str | None = None
    failures: list[dict[str, str]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CategoryRun:
    """Outcome of one category inside a multi-category crawl."""

    name: str
    url: str
    status: str
    started_at: str
    finished_at: str
    error: str | None = None
    summary: RunSummary | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


BrowserLauncher = Callable[[CrawlSettings], AsyncContextManager[SessionFactory]]
SinkFactory = Callable[[CrawlSettings], StorageSink]


@asynccontextmanager
async def playwright_sessions(settings: CrawlSettings) -> AsyncIterator[SessionFactory]:
    """Launch the shared Chromium for one run and hand out isolated sessions."""

    async with async_playwright() as playwright:
        apply_stealth(playwright)
        try:
            browser = await launch_browser(playwright, headless=settings.headless)
        except Exception as exc:
            raise BrowserLaunchError(str(exc)) from exc
        try:
            yield BrowserSessionFactory(
                browser,
                user_agent=settings.user_agent,
                locale=f"{settings.language}-{settings.country.upper()}",
                navigation_timeout_ms=settings.navigation_timeout_ms,
            )
        finally:
            await close_browser(browser)


def default_sink_factory(settings: CrawlSettings) -> StorageSink:
    if settings.validate_only:
        return NullSink()
    return SqlStorageSink.from_path(settings.sqlite_path)


def _ping_healthcheck(url: str | None) -> None:
    if not url:
        LOGGER.info("healthcheck: disabled")
        return
    host = urlparse(str(url)).netloc or urlparse(str(url)).path
    verify_env = os.getenv("HEALTHCHECK_VERIFY")
    verify = True if verify_env is None else verify_env.strip().lower() not in {"0", "false", "no"}
    try:
        response = requests.get(url, timeout=5, verify=verify)
    except requests.RequestException as exc:
        LOGGER.warning("Healthcheck ping failed for host=%s: %s", host, exc)
        return
    if response.status_code >= 400:
        LOGGER.warning("Healthcheck returned status %s for host=%s", response.status_code, host)
    else:
        LOGGER.info("Healthcheck ping ok for host=%s", host)


class CrawlOrchestrator:
    """Owns the browser and storage handles for the duration of one run."""

    def __init__(
        self,
        settings: CrawlSettings | None = None,
        *,
        launcher: BrowserLauncher = playwright_sessions,
        sink_factory: SinkFactory = default_sink_factory,
        page_pace: Pace | None = page_pause,
    ) -> None:
        self.settings = settings or CrawlSettings()
        self._launcher = launcher
        self._sink_factory = sink_factory
        self._page_pace = page_pace

    def resolve_adapter(self, retailer_id: str) -> RetailerAdapter:
        return registry.resolve(
            retailer_id,
            {
                "country": self.settings.country,
                "language": self.settings.language,
                "navigation_timeout_ms": self.settings.navigation_timeout_ms,
            },
        )

    def resolve_category(self, adapter: RetailerAdapter, category_url: str | None) -> str:
        if category_url:
            return category_url
        categories = adapter.get_categories()
        if not categories:
            raise ConfigurationError(
                "No category URL given and the adapter has no default categories",
                retailer=adapter.get_retailer_name(),
            )
        return categories[0].url

    async def run(self, retailer_id: str, category_url: str | None = None, *, run_id: str | None = None) -> RunSummary:
        """Crawl one category and return its summary.

        Raises :class:`ConfigurationError` before any browser work when the
        retailer or category cannot be resolved, and :class:`BrowserLaunchError`
        when Chromium cannot start. Everything else is counted per product.
        """

        settings = self.settings
        if settings.max_concurrent_requests <= 0:
            raise ConfigurationError("max_concurrent_requests must be positive")

        adapter = self.resolve_adapter(retailer_id)
        retailer = adapter.get_retailer_name()
        target_url = self.resolve_category(adapter, category_url)

        started_dt = datetime.now(timezone.utc)
        started = time.monotonic()
        summary = RunSummary(
            run_id=run_id or uuid.uuid4().hex[:12],
            retailer=retailer,
            category_url=target_url,
            started_at=started_dt.isoformat(),
        )
        log_extra = {"retailer": retailer, "url": target_url}
        LOGGER.info("Run %s starting: %s %s", summary.run_id, retailer, target_url, extra=log_extra)

        cache = CrawlCache(settings.cache_location)
        cache.load()

        artifacts: RunArtifacts | None = None
        if settings.results_dir:
            artifacts = RunArtifacts(
                settings.results_dir,
                started_at=started_dt,
                checkpoint_every=settings.checkpoint_every,
            )
            summary.artifacts_dir = str(artifacts.root)

        health = HealthMonitor(
            run_id=summary.run_id,
            log_path=Path(settings.health_log) if settings.health_log else None,
        )
        pace_min, pace_max = request_delay_bounds(settings.delay_between_requests_ms)
        sink = self._sink_factory(settings)
        cache_lock = asyncio.Lock()

        def _on_success(record: StandardProductRecord, index: int) -> None:
            if artifacts is not None:
                artifacts.write_product(record, index)

        def _on_failure(url: str, error: str, index: int) -> None:
            summary.failures.append({"url": url, "error": error})

        def _on_progress(snapshot: ProgressSnapshot) -> None:
            if artifacts is not None:
                artifacts.write_progress(snapshot)

        pipeline = ProductPipeline(
            pace_min_ms=pace_min,
            pace_max_ms=pace_max,
            max_attempts=settings.max_attempts,
            retry_multiplier=settings.retry_multiplier,
            checkpoint_every=settings.checkpoint_every,
            sink=sink,
            health=health,
        )

        records: list[StandardProductRecord] = []
        try:
            async with self._launcher(settings) as sessions:
                async with sessions() as page:
                    collection = await collect_links(
                        adapter,
                        page,
                        target_url,
                        settings.max_pages,
                        max_attempts=settings.max_attempts,
                        retry_multiplier=settings.retry_multiplier,
                        health=health,
                        pace=self._page_pace,
                    )
                    if artifacts is not None and debug_screenshots_enabled():
                        await artifacts.write_screenshot(page)
                summary.links_found = len(collection)
                summary.pages = collection.pages
                summary.duplicates_removed = collection.duplicates_removed
                if artifacts is not None:
                    artifacts.write_links(collection.urls)

                to_process = [url for url in collection.urls if url not in cache]
                summary.skipped_cached = len(collection.urls) - len(to_process)
                summary.total = len(to_process)
                LOGGER.info(
                    "%s links found, %s already cached, %s to process",
                    summary.links_found,
                    summary.skipped_cached,
                    summary.total,
                    extra=log_extra,
                )

                records = await pipeline.process(
                    adapter,
                    sessions,
                    to_process,
                    settings.max_concurrent_requests,
                    PipelineCallbacks(
                        on_success=_on_success,
                        on_failure=_on_failure,
                        on_progress=_on_progress,
                    ),
                )
        finally:
            close = getattr(sink, "close", None)
            if callable(close):
                close()

        async with cache_lock:
            # Input URLs are authoritative even if an adapter rewrote record.url.
            cache.update(pipeline.stats.succeeded_urls)
        try:
            cache.save()
        except OSError as exc:
            LOGGER.error("Unable to save crawl cache %s: %s", cache.path, exc, extra=log_extra)

        elapsed = time.monotonic() - started
        summary.completed = summary.total
        summary.success = len(records)
        summary.failure = summary.total - summary.success
        summary.elapsed_seconds = round(elapsed, 3)
        summary.rate_per_minute = round(summary.total / elapsed * 60, 2) if elapsed > 0 else 0.0
        summary.finished_at = datetime.now(timezone.utc).isoformat()
        summary.status = "completed"

        if artifacts is not None:
            artifacts.write_all_products(records)
            artifacts.write_summary(summary.as_dict())

        if summary.success and settings.healthcheck_url:
            await asyncio.to_thread(_ping_healthcheck, settings.healthcheck_url)

        LOGGER.info(
            "Run %s finished: success=%s failure=%s skipped=%s duration=%.1fs",
            summary.run_id,
            summary.success,
            summary.failure,
            summary.skipped_cached,
            elapsed,
            extra=log_extra,
        )
        return summary

    async def run_categories(self, retailer_id: str) -> list[CategoryRun]:
        """Crawl every default category of one retailer, one after another.

        The runs share the configured cache file, so a product listed in two
        categories is only extracted once. A category that fails is logged
        and recorded and the loop moves on; a browser that cannot start
        stops the whole crawl.
        """

        adapter = self.resolve_adapter(retailer_id)
        retailer = adapter.get_retailer_name()
        categories = adapter.get_categories()
        if not categories:
            raise ConfigurationError("The adapter has no default categories", retailer=retailer)

        LOGGER.info("Crawling %s categories for %s", len(categories), retailer, extra={"retailer": retailer})
        results: list[CategoryRun] = []
        for category in categories:
            started_at = datetime.now(timezone.utc).isoformat()
            try:
                summary = await self.run(retailer_id, category.url)
            except BrowserLaunchError:
                raise
            except Exception as exc:
                LOGGER.exception(
                    "Category %s failed", category.name, extra={"retailer": retailer, "url": category.url}
                )
                results.append(
                    CategoryRun(
                        name=category.name,
                        url=category.url,
                        status="error",
                        started_at=started_at,
                        finished_at=datetime.now(timezone.utc).isoformat(),
                        error=str(exc) or type(exc).__name__,
                    )
                )
                continue
            results.append(
                CategoryRun(
                    name=category.name,
                    url=category.url,
                    status=summary.status,
                    started_at=started_at,
                    finished_at=summary.finished_at or datetime.now(timezone.utc).isoformat(),
                    summary=summary,
                )
            )
        return results
