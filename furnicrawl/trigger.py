"""Background run supervision for externally triggered crawls."""

from __future__ import annotations

import asyncio
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from furnicrawl.errors import BrowserLaunchError, ConfigurationError
from furnicrawl.logging_config import get_logger
from furnicrawl.orchestrator import CrawlOrchestrator, RunSummary

LOGGER = get_logger(__name__)

OrchestratorFactory = Callable[[], CrawlOrchestrator]


@dataclass
class RunRecord:
    run_id: str
    retailer: str
    category_url: str | None
    state: str = "queued"
    submitted_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: str | None = None
    error: str | None = None
    summary: RunSummary | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "retailer": self.retailer,
            "category_url": self.category_url,
            "state": self.state,
            "submitted_at": self.submitted_at,
            "finished_at": self.finished_at,
            "error": self.error,
            "summary": self.summary.as_dict() if self.summary is not None else None,
        }


class RunSupervisor:
    """Accept run requests and execute each on its own worker thread.

    ``submit`` returns a run id immediately; the caller polls ``status``.
    Each worker thread owns a fresh event loop, so a run's lifetime is
    independent of whatever request submitted it.
    """

    def __init__(self, orchestrator_factory: OrchestratorFactory) -> None:
        self._factory = orchestrator_factory
        self._runs: dict[str, RunRecord] = {}
        self._threads: dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    def submit(self, retailer: str, category_url: str | None = None) -> str:
        run_id = uuid.uuid4().hex[:12]
        record = RunRecord(run_id=run_id, retailer=retailer, category_url=category_url)
        thread = threading.Thread(
            target=self._execute,
            args=(record,),
            name=f"crawl-{run_id}",
            daemon=True,
        )
        with self._lock:
            self._runs[run_id] = record
            self._threads[run_id] = thread
        thread.start()
        LOGGER.info("Submitted run %s for %s", run_id, retailer, extra={"retailer": retailer})
        return run_id

    def _set(self, record: RunRecord, **changes: Any) -> None:
        with self._lock:
            for key, value in changes.items():
                setattr(record, key, value)

    def _execute(self, record: RunRecord) -> None:
        self._set(record, state="running")
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            orchestrator = self._factory()
            summary = loop.run_until_complete(
                orchestrator.run(record.retailer, record.category_url, run_id=record.run_id)
            )
        except (ConfigurationError, BrowserLaunchError) as exc:
            LOGGER.error("Run %s aborted: %s", record.run_id, exc)
            self._set(record, state="failed", error=str(exc), finished_at=_now())
        except Exception as exc:
            LOGGER.exception("Run %s crashed", record.run_id)
            self._set(record, state="failed", error=str(exc) or type(exc).__name__, finished_at=_now())
        else:
            self._set(record, state="completed", summary=summary, finished_at=_now())
        finally:
            loop.close()
            asyncio.set_event_loop(None)

    def status(self, run_id: str) -> RunRecord | None:
        with self._lock:
            return self._runs.get(run_id)

    def runs(self) -> list[RunRecord]:
        with self._lock:
            return list(self._runs.values())

    def wait(self, run_id: str, timeout: float | None = None) -> RunRecord | None:
        with self._lock:
            thread = self._threads.get(run_id)
        if thread is not None:
            thread.join(timeout)
        return self.status(run_id)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
