"""Persisted set of product URLs already processed by earlier runs."""

from __future__ import annotations

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Iterable, Iterator

from furnicrawl.logging_config import get_logger

LOGGER = get_logger(__name__)


class CrawlCache:
    """JSON-list backed URL cache.

    ``load`` never raises: a missing, unreadable or malformed file yields an
    empty set. ``save`` rewrites the whole file through a temporary sibling
    and ``os.replace`` so a crash mid-write leaves the previous state intact.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._urls: set[str] = set()

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    def __iter__(self) -> Iterator[str]:
        return iter(self._urls)

    @property
    def urls(self) -> set[str]:
        return set(self._urls)

    def add(self, url: str) -> None:
        self._urls.add(url)

    def update(self, urls: Iterable[str]) -> None:
        self._urls.update(urls)

    def load(self) -> set[str]:
        self._urls = set()
        if not self.path.exists():
            return set()

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable crawl cache %s: %s", self.path, exc)
            return set()

        if not isinstance(payload, list):
            LOGGER.warning("Ignoring crawl cache %s: expected a JSON list", self.path)
            return set()

        self._urls = {entry for entry in payload if isinstance(entry, str) and entry}
        LOGGER.info("Loaded %s cached URLs from %s", len(self._urls), self.path)
        return set(self._urls)

    def save(self, urls: Iterable[str] | None = None) -> None:
        if urls is not None:
            self._urls = set(urls)

        os.makedirs(self.path.parent, exist_ok=True)
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(self.path.parent),
            prefix=f".{self.path.name}.",
            delete=False,
        ) as handle:
            json.dump(sorted(self._urls), handle, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
            tmp_name = handle.name

        os.replace(tmp_name, self.path)
        LOGGER.info("Saved %s URLs to crawl cache %s", len(self._urls), self.path)
