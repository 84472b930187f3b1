from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import pytest

from furnicrawl.errors import SelectorChangedError
from furnicrawl.health import HealthMonitor, HealthState
from furnicrawl import pipeline as pipeline_module
from furnicrawl.pipeline import PipelineCallbacks, ProductPipeline
from furnicrawl.retailers.base import CategoryDescriptor, RetailerAdapter
from furnicrawl.storage.sink import StoreResult


class DummyPage:
    def __init__(self, number: int) -> None:
        self.number = number


class FakeSessions:
    """Session factory that records how many sessions are open at once."""

    def __init__(self) -> None:
        self.opened = 0
        self.open_now = 0
        self.max_open = 0
        self.closed = 0

    @asynccontextmanager
    async def _session(self):
        self.opened += 1
        self.open_now += 1
        self.max_open = max(self.max_open, self.open_now)
        try:
            yield DummyPage(self.opened)
        finally:
            self.open_now -= 1
            self.closed += 1

    def __call__(self):
        return self._session()


class ProductAdapter(RetailerAdapter):
    base_url = "https://shop.test"

    def __init__(self, *, failing: set[str] | None = None, nameless: set[str] | None = None) -> None:
        super().__init__("us", "en")
        self.failing = failing or set()
        self.nameless = nameless or set()
        self.extracted: list[str] = []

    def get_retailer_name(self) -> str:
        return "Shop"

    def get_categories(self) -> list[CategoryDescriptor]:
        return [CategoryDescriptor("All", "https://shop.test/all")]

    async def extract_product_links_from_category(self, page, url):
        return []

    async def go_to_next_page(self, page):
        return False

    async def extract_product_data(self, page, url):
        self.extracted.append(url)
        await asyncio.sleep(0.01)
        if url in self.failing:
            raise RuntimeError(f"detached frame on {url}")
        name = None if url in self.nameless else "Chair"
        return {"url": url, "name": name, "product_id": url.rsplit("/", 1)[-1]}

    def transform_product_data(self, raw):
        if not raw:
            return None
        return self._build_record(
            product_id=raw.get("product_id"),
            name=raw.get("name"),
            slug=raw.get("product_id"),
            url=raw.get("url"),
            price=None,
            raw_data=dict(raw),
        )


class RecordingSink:
    def __init__(self, rejected: set[str] | None = None) -> None:
        self.rejected = rejected or set()
        self.calls: list[tuple[str, bool]] = []

    async def save(self, record):
        ok = record.url not in self.rejected
        self.calls.append((record.url, ok))
        if ok:
            return StoreResult(ok=True, code="created")
        return StoreResult(ok=False, code="integrity_error", details="duplicate key", hint="check keys")


def _urls(count: int) -> list[str]:
    return [f"https://shop.test/p/item-{index}" for index in range(1, count + 1)]


def _pipeline(**kwargs) -> ProductPipeline:
    kwargs.setdefault("pace_min_ms", 0)
    kwargs.setdefault("pace_max_ms", 0)
    kwargs.setdefault("retry_multiplier", 0)
    return ProductPipeline(**kwargs)


def test_one_failing_url_is_reported_once() -> None:
    urls = _urls(3)
    adapter = ProductAdapter(failing={urls[1]})
    failures: list[tuple[str, str, int]] = []
    successes: list[int] = []

    records = asyncio.run(
        _pipeline().process(
            adapter,
            FakeSessions(),
            urls,
            2,
            PipelineCallbacks(
                on_success=lambda record, index: successes.append(index),
                on_failure=lambda url, error, index: failures.append((url, error, index)),
            ),
        )
    )

    assert len(records) == 2
    assert {record.url for record in records} == {urls[0], urls[2]}
    assert len(failures) == 1
    assert failures[0][0] == urls[1]
    assert failures[0][2] == 1
    assert "detached frame" in failures[0][1]
    assert sorted(successes) == [0, 2]


def test_open_sessions_never_exceed_concurrency() -> None:
    sessions = FakeSessions()

    records = asyncio.run(_pipeline().process(ProductAdapter(), sessions, _urls(12), 3))

    assert len(records) == 12
    assert sessions.max_open <= 3
    assert sessions.opened == sessions.closed == 12


def test_sessions_are_released_when_extraction_fails() -> None:
    urls = _urls(4)
    sessions = FakeSessions()

    asyncio.run(_pipeline(max_attempts=2).process(ProductAdapter(failing=set(urls)), sessions, urls, 2))

    assert sessions.open_now == 0
    assert sessions.opened == sessions.closed == 4


def test_empty_urls_do_not_touch_the_session_factory() -> None:
    sessions = FakeSessions()

    records = asyncio.run(_pipeline().process(ProductAdapter(), sessions, [], 2))

    assert records == []
    assert sessions.opened == 0


@pytest.mark.parametrize("concurrency", [0, -1])
def test_non_positive_concurrency_is_rejected(concurrency: int) -> None:
    sessions = FakeSessions()
    with pytest.raises(ValueError):
        asyncio.run(_pipeline().process(ProductAdapter(), sessions, _urls(2), concurrency))
    assert sessions.opened == 0


def test_transform_rejection_counts_as_failure() -> None:
    urls = _urls(2)
    failures: list[str] = []

    records = asyncio.run(
        _pipeline().process(
            ProductAdapter(nameless={urls[0]}),
            FakeSessions(),
            urls,
            1,
            PipelineCallbacks(on_failure=lambda url, error, index: failures.append(url)),
        )
    )

    assert [record.url for record in records] == [urls[1]]
    assert failures == [urls[0]]


def test_sink_failure_is_a_unit_failure() -> None:
    urls = _urls(3)
    sink = RecordingSink(rejected={urls[2]})
    pipeline = _pipeline(sink=sink)

    records = asyncio.run(pipeline.process(ProductAdapter(), FakeSessions(), urls, 2))

    assert {record.url for record in records} == set(urls[:2])
    assert pipeline.stats.failures[0][0] == urls[2]
    assert "integrity_error" in pipeline.stats.failures[0][1]


def test_every_returned_record_had_exactly_one_successful_save() -> None:
    urls = _urls(6)
    sink = RecordingSink(rejected={urls[4]})

    records = asyncio.run(_pipeline(sink=sink).process(ProductAdapter(failing={urls[0]}), FakeSessions(), urls, 3))

    for record in records:
        assert sink.calls.count((record.url, True)) == 1
    assert len(records) == sum(1 for _, ok in sink.calls if ok)


def test_progress_reports_every_completion() -> None:
    snapshots = []

    asyncio.run(
        _pipeline(checkpoint_every=2).process(
            ProductAdapter(),
            FakeSessions(),
            _urls(5),
            2,
            PipelineCallbacks(on_progress=snapshots.append),
        )
    )

    assert [snapshot.completed for snapshot in snapshots] == [1, 2, 3, 4, 5]
    assert snapshots[-1].percent == 100.0
    assert snapshots[-1].success == 5
    assert snapshots[-1].total == 5


def test_callback_errors_do_not_escalate() -> None:
    async def broken_async(record, index):
        raise RuntimeError("callback exploded")

    def broken_progress(snapshot):
        raise ValueError("progress exploded")

    records = asyncio.run(
        _pipeline().process(
            ProductAdapter(),
            FakeSessions(),
            _urls(3),
            2,
            PipelineCallbacks(on_success=broken_async, on_progress=broken_progress),
        )
    )

    assert len(records) == 3


def test_extraction_is_retried_before_failing() -> None:
    urls = _urls(1)
    adapter = ProductAdapter(failing=set(urls))

    asyncio.run(_pipeline(max_attempts=3).process(adapter, FakeSessions(), urls, 1))

    assert adapter.extracted == urls * 3


def test_selector_changes_are_reported_to_health() -> None:
    class DriftingAdapter(ProductAdapter):
        async def extract_product_data(self, page, url):
            raise SelectorChangedError("title selector missing", url=url)

    health = HealthMonitor(run_id="drift")
    failures: list[str] = []

    asyncio.run(
        _pipeline(max_attempts=1, health=health).process(
            DriftingAdapter(),
            FakeSessions(),
            _urls(2),
            1,
            PipelineCallbacks(on_failure=lambda url, error, index: failures.append(error)),
        )
    )

    assert health.dom_errors == 2
    assert health.state == HealthState.SUSPECT
    assert all("title selector missing" in error for error in failures)


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(logging.DEBUG)
        self.messages: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.messages.append(record.getMessage())


def test_success_log_names_the_extraction_method() -> None:
    logger = pipeline_module.LOGGER
    handler = _ListHandler()
    previous_level = logger.level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    try:
        asyncio.run(_pipeline().process(ProductAdapter(), FakeSessions(), _urls(1), 1))
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)

    assert any("item-1 via json-ld" in message for message in handler.messages)
