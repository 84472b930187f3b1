"""Concurrency-bounded processing of product URLs."""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import asdict, dataclass, field
from typing import Any, AsyncContextManager, Callable, Sequence

from playwright.async_api import Page

from furnicrawl.errors import ExtractionError, SelectorChangedError, StorageError
from furnicrawl.extractors.dom_utils import human_wait
from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.health import HealthMonitor
from furnicrawl.logging_config import get_logger
from furnicrawl.retailers.base import RetailerAdapter
from furnicrawl.retry import retry_async
from furnicrawl.storage.sink import StorageSink

LOGGER = get_logger(__name__)

SessionFactory = Callable[[], AsyncContextManager[Page]]


@dataclass
class ProgressSnapshot:
    total: int
    completed: int
    success: int
    failure: int
    elapsed_seconds: float
    rate_per_minute: float
    eta_seconds: float | None
    percent: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineCallbacks:
    """Optional hooks; each may be a plain function or a coroutine function."""

    on_success: Callable[[StandardProductRecord, int], Any] | None = None
    on_failure: Callable[[str, str, int], Any] | None = None
    on_progress: Callable[[ProgressSnapshot], Any] | None = None


@dataclass
class PipelineStats:
    succeeded_urls: list[str] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)


async def _invoke(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        LOGGER.warning("Pipeline callback %s failed: %s", getattr(callback, "__name__", callback), exc)


class ProductPipeline:
    """Fan product URLs out over isolated browser sessions.

    At most ``concurrency`` sessions are open at once. Per-product failures
    are counted and reported through callbacks, never raised.
    """

    def __init__(
        self,
        *,
        pace_min_ms: int = 1500,
        pace_max_ms: int = 2000,
        max_attempts: int = 3,
        retry_multiplier: float = 0.5,
        checkpoint_every: int = 10,
        sink: StorageSink | None = None,
        health: HealthMonitor | None = None,
    ) -> None:
        self.pace_min_ms = max(pace_min_ms, 0)
        self.pace_max_ms = max(pace_max_ms, self.pace_min_ms)
        self.max_attempts = max_attempts
        self.retry_multiplier = retry_multiplier
        self.checkpoint_every = max(checkpoint_every, 1)
        self.sink = sink
        self.health = health
        self.stats = PipelineStats()

    async def _pace(self) -> None:
        extra_ms = int((self.health.recommended_extra_delay() if self.health else 0.0) * 1000)
        await human_wait(self.pace_min_ms + extra_ms, self.pace_max_ms + extra_ms, obey_policy=False)

    async def _run_unit(
        self,
        adapter: RetailerAdapter,
        session_factory: SessionFactory,
        url: str,
    ) -> StandardProductRecord:
        async with session_factory() as page:
            await self._pace()
            outcome = await retry_async(
                lambda _attempt: adapter.extract_product_data(page, url),
                max_attempts=self.max_attempts,
                multiplier=self.retry_multiplier,
                label=f"extract {url}",
            )
        if not outcome.ok:
            if isinstance(outcome.error, SelectorChangedError) and self.health is not None:
                self.health.record_dom_error(context=url, reason=outcome.error_message or "selector changed")
            raise ExtractionError(f"extraction failed after {outcome.attempts} attempts: {outcome.error_message}")
        if outcome.value is None:
            raise ExtractionError("no product data extracted")

        record = adapter.transform_product_data(outcome.value)
        if record is None:
            raise ExtractionError("raw data lacks a name or product identifier")

        if self.sink is not None:
            result = await self.sink.save(record)
            if not result.ok:
                raise StorageError(f"storage rejected record: {result.describe()}")
        return record

    async def process(
        self,
        adapter: RetailerAdapter,
        session_factory: SessionFactory,
        urls: Sequence[str],
        concurrency: int,
        callbacks: PipelineCallbacks | None = None,
    ) -> list[StandardProductRecord]:
        if concurrency <= 0:
            raise ValueError(f"concurrency must be positive, got {concurrency}")

        self.stats = PipelineStats()
        if not urls:
            return []

        callbacks = callbacks or PipelineCallbacks()
        retailer = adapter.get_retailer_name()
        total = len(urls)
        semaphore = asyncio.Semaphore(concurrency)
        lock = asyncio.Lock()
        started = time.monotonic()
        results: list[StandardProductRecord] = []
        counters = {"completed": 0, "success": 0, "failure": 0}

        def _snapshot() -> ProgressSnapshot:
            elapsed = time.monotonic() - started
            completed = counters["completed"]
            rate = completed / elapsed * 60 if elapsed > 0 else 0.0
            remaining = total - completed
            eta = remaining / (rate / 60) if rate > 0 else None
            return ProgressSnapshot(
                total=total,
                completed=completed,
                success=counters["success"],
                failure=counters["failure"],
                elapsed_seconds=round(elapsed, 3),
                rate_per_minute=round(rate, 2),
                eta_seconds=round(eta, 1) if eta is not None else None,
                percent=round(completed / total * 100, 1),
            )

        async def _unit(index: int, url: str) -> None:
            record: StandardProductRecord | None = None
            error: str | None = None
            async with semaphore:
                try:
                    record = await self._run_unit(adapter, session_factory, url)
                except Exception as exc:
                    error = str(exc) or type(exc).__name__

            async with lock:
                counters["completed"] += 1
                if record is not None:
                    counters["success"] += 1
                    results.append(record)
                    self.stats.succeeded_urls.append(url)
                else:
                    counters["failure"] += 1
                    self.stats.failures.append((url, error or "unknown error"))
                snapshot = _snapshot()

            log_extra = {"retailer": retailer, "url": url, "index": index}
            if record is not None:
                if self.health is not None:
                    self.health.record_product_success(url=url)
                LOGGER.debug(
                    "Processed %s (%s via %s)", url, record.product_id, record.extraction_method, extra=log_extra
                )
                await _invoke(callbacks.on_success, record, index)
            else:
                if self.health is not None:
                    self.health.record_product_failure(url=url, reason=error or "")
                LOGGER.warning("Failed %s: %s", url, error, extra=log_extra)
                await _invoke(callbacks.on_failure, url, error or "unknown error", index)

            await _invoke(callbacks.on_progress, snapshot)
            if snapshot.completed % self.checkpoint_every == 0 or snapshot.completed == total:
                LOGGER.info(
                    "Progress %s/%s (%.1f%%) success=%s failure=%s rate=%.1f/min",
                    snapshot.completed,
                    total,
                    snapshot.percent,
                    snapshot.success,
                    snapshot.failure,
                    snapshot.rate_per_minute,
                    extra={"retailer": retailer},
                )

        await asyncio.gather(*(_unit(index, url) for index, url in enumerate(urls)))
        return results
