"""Write-once, per-run output files for observability and hand inspection."""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Iterable

from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.logging_config import get_logger
from furnicrawl.pipeline import ProgressSnapshot

LOGGER = get_logger(__name__)


def run_timestamp(moment: datetime | None = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-%f")[:-3] + "Z"


class RunArtifacts:
    """Directory ``<results_dir>/scrape-<timestamp>/`` holding one run's outputs.

    Every write goes through a temp file and ``os.replace``; failures are
    logged and swallowed so artifacts never affect the crawl itself.
    """

    def __init__(
        self,
        results_dir: str | os.PathLike[str],
        *,
        started_at: datetime | None = None,
        checkpoint_every: int = 10,
        progress_interval: float = 2.0,
    ) -> None:
        self.root = Path(results_dir) / f"scrape-{run_timestamp(started_at)}"
        self.products_dir = self.root / "products"
        self.checkpoint_every = max(checkpoint_every, 1)
        self.progress_interval = progress_interval
        self._last_progress: float | None = None
        self._records: list[StandardProductRecord] = []

    def _write_json(self, path: Path, payload: Any) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=str(path.parent),
                prefix=f".{path.name}.",
                delete=False,
            ) as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False, default=str)
                handle.flush()
                tmp_name = handle.name
            os.replace(tmp_name, path)
            return True
        except (OSError, TypeError, ValueError) as exc:
            LOGGER.warning("Unable to write artifact %s: %s", path, exc)
            return False

    def write_links(self, urls: Iterable[str]) -> None:
        self._write_json(self.root / "product-links.json", list(urls))

    def write_product(self, record: StandardProductRecord, index: int) -> None:
        self._records.append(record)
        self._write_json(self.products_dir / f"product_{index + 1}.json", record.model_dump(mode="json"))
        if len(self._records) % self.checkpoint_every == 0:
            self.write_all_products(self._records)

    def write_progress(self, snapshot: ProgressSnapshot) -> None:
        now = time.monotonic()
        final = snapshot.completed >= snapshot.total
        if not final and self._last_progress is not None and now - self._last_progress < self.progress_interval:
            return
        self._last_progress = now
        payload = snapshot.as_dict()
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        self._write_json(self.root / "progress.json", payload)

    def write_all_products(self, records: Iterable[StandardProductRecord]) -> None:
        records = list(records)
        self._write_json(self.root / "all_products.json", [record.model_dump(mode="json") for record in records])
        keyed = {":".join(record.key): record.model_dump(mode="json") for record in records}
        self._write_json(self.root / "all_products_object.json", keyed)

    def write_summary(self, summary: dict[str, Any]) -> None:
        self._write_json(self.root / "summary.json", summary)

    async def write_screenshot(self, page: Any, name: str = "category-page.png") -> Path | None:
        """Save a full-page screenshot of *page* into the run directory."""

        path = self.root / name
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
        except Exception as exc:
            LOGGER.warning("Unable to capture screenshot %s: %s", path, exc)
            return None
        return path
