"""Block and anomaly detection for a running crawl."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from furnicrawl.logging_config import get_logger

LOGGER = get_logger(__name__)

EMPTY_LISTING = "empty_listing"
PRODUCT_FAILURE = "product_failure"
DOM_ERROR = "dom_error"


class HealthState(str, Enum):
    HEALTHY = "healthy"
    SUSPECT = "suspect"
    BLOCKED = "blocked"


EXTRA_DELAY_SECONDS = {
    HealthState.HEALTHY: 0.0,
    HealthState.SUSPECT: 5.0,
    HealthState.BLOCKED: 15.0,
}


@dataclass
class HealthMonitor:
    """Classify the crawl from consecutive anomalies and journal the changes.

    Each signal has a ``(suspect, blocked)`` threshold pair. Empty listings
    and product failures count as streaks reset by a success; DOM errors
    decay by one per success. When ``log_path`` is set every event is
    appended to it as one JSON line.
    """

    run_id: str
    log_path: Path | None = None
    zero_threshold: tuple[int, int] = (3, 6)
    failure_threshold: tuple[int, int] = (3, 8)
    dom_threshold: tuple[int, int] = (2, 4)
    state: HealthState = field(init=False, default=HealthState.HEALTHY)

    def __post_init__(self) -> None:
        self._counts = {EMPTY_LISTING: 0, PRODUCT_FAILURE: 0, DOM_ERROR: 0}
        if self.log_path is not None:
            self.log_path = Path(self.log_path)
            try:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                LOGGER.warning("Health log %s unavailable, journaling disabled: %s", self.log_path, exc)
                self.log_path = None

    @property
    def zero_streak(self) -> int:
        return self._counts[EMPTY_LISTING]

    @property
    def failure_streak(self) -> int:
        return self._counts[PRODUCT_FAILURE]

    @property
    def dom_errors(self) -> int:
        return self._counts[DOM_ERROR]

    def _thresholds(self) -> dict[str, tuple[int, int]]:
        return {
            EMPTY_LISTING: self.zero_threshold,
            PRODUCT_FAILURE: self.failure_threshold,
            DOM_ERROR: self.dom_threshold,
        }

    def _journal(self, event: str, message: str, **details: Any) -> None:
        if self.log_path is None:
            return
        line = json.dumps(
            {
                "ts": time.time(),
                "run_id": self.run_id,
                "state": self.state.value,
                "event": event,
                "message": message,
                "details": details,
            },
            ensure_ascii=False,
            default=str,
        )
        try:
            with self.log_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            LOGGER.warning("Unable to append health event: %s", exc)

    def _classify(self) -> HealthState:
        state = HealthState.HEALTHY
        for signal, (suspect, blocked) in self._thresholds().items():
            count = self._counts[signal]
            if count >= blocked:
                return HealthState.BLOCKED
            if count >= suspect:
                state = HealthState.SUSPECT
        return state

    def _refresh(self) -> None:
        previous = self.state
        self.state = self._classify()
        if self.state is previous:
            return
        LOGGER.warning("Crawler health %s -> %s (%s)", previous.value, self.state.value, self._counts)
        self._journal("state_change", f"{previous.value} -> {self.state.value}", **self._counts)

    def _bump(self, signal: str, event_message: str, **details: Any) -> None:
        self._counts[signal] += 1
        self._journal(signal, event_message, count=self._counts[signal], **details)
        self._refresh()

    def _relax(self) -> None:
        self._counts[DOM_ERROR] = max(0, self._counts[DOM_ERROR] - 1)

    def record_items(self, *, context: str, count: int) -> None:
        """A listing page produced links."""
        self._counts[EMPTY_LISTING] = 0
        self._relax()
        if self.state is not HealthState.HEALTHY:
            self._journal("recovered", f"Recovered on {context}", items=count)
        self._refresh()

    def record_zero_items(self, *, context: str, message: str | None = None) -> None:
        self._bump(EMPTY_LISTING, message or f"No items returned for {context}")

    def record_product_success(self, *, url: str) -> None:
        self._counts[PRODUCT_FAILURE] = 0
        self._relax()
        self._refresh()

    def record_product_failure(self, *, url: str, reason: str) -> None:
        self._bump(PRODUCT_FAILURE, reason, url=url)

    def record_dom_error(self, *, context: str, reason: str, details: dict[str, Any] | None = None) -> None:
        self._bump(DOM_ERROR, reason, context=context, **(details or {}))

    def recommended_extra_delay(self) -> float:
        """Extra seconds to wait before the next request."""
        return EXTRA_DELAY_SECONDS[self.state]
