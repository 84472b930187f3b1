"""Storage sinks that accept one standard record at a time."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from furnicrawl.extractors.schemas import StandardProductRecord
from furnicrawl.logging_config import get_logger

from . import repo
from .db import get_engine, init_db_safe, make_session

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class StoreResult:
    ok: bool
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    def describe(self) -> str:
        if self.ok:
            return "stored"
        parts = [part for part in (self.code, self.details, self.hint) if part]
        return "; ".join(parts) or "storage failure"


class StorageSink(Protocol):
    async def save(self, record: StandardProductRecord) -> StoreResult:
        ...


class NullSink:
    """Accepts every record without persisting it (dry runs and validation)."""

    def __init__(self) -> None:
        self.saved: list[StandardProductRecord] = []

    async def save(self, record: StandardProductRecord) -> StoreResult:
        self.saved.append(record)
        return StoreResult(ok=True, code="skipped")


def _error_result(exc: SQLAlchemyError) -> StoreResult:
    details = str(getattr(exc, "orig", None) or exc)
    if isinstance(exc, IntegrityError):
        return StoreResult(False, "integrity_error", details, "A constraint rejected the row; check for duplicate keys.")
    if isinstance(exc, OperationalError):
        return StoreResult(False, "operational_error", details, "Database unavailable or locked; retry the run.")
    return StoreResult(False, type(exc).__name__, details, None)


class SqlStorageSink:
    """Upserts records through SQLAlchemy, one transaction per record.

    Writes run in a worker thread and are serialised with a lock so the
    SQLite file sees a single writer.
    """

    def __init__(self, session_factory: sessionmaker[Session], *, engine: Engine | None = None) -> None:
        self._session_factory = session_factory
        self._engine = engine
        self._lock = asyncio.Lock()
        self.created = 0
        self.updated = 0

    @classmethod
    def from_path(cls, sqlite_path: str) -> "SqlStorageSink":
        """Open (and own) an engine on *sqlite_path*, creating tables as needed."""

        engine = get_engine(sqlite_path)
        init_db_safe(engine)
        return cls(make_session(engine), engine=engine)

    def close(self) -> None:
        if self._engine is None:
            return
        try:
            with self._session_factory() as session:
                total = repo.count_products(session)
            LOGGER.info("Storage closed: created=%s updated=%s stored=%s", self.created, self.updated, total)
        except SQLAlchemyError as exc:
            LOGGER.warning("Unable to count stored products: %s", exc)
        try:
            self._engine.dispose()
        except Exception as exc:
            LOGGER.warning("Failed to dispose storage engine: %s", exc)
        self._engine = None

    def _write(self, record: StandardProductRecord) -> StoreResult:
        with self._session_factory() as session:
            try:
                _, created = repo.upsert_product(session, record)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                LOGGER.error(
                    "Failed to store %s/%s: %s",
                    record.retailer,
                    record.product_id,
                    exc,
                    extra={"retailer": record.retailer, "url": record.url},
                )
                return _error_result(exc)
        if created:
            self.created += 1
        else:
            self.updated += 1
        return StoreResult(ok=True, code="created" if created else "updated")

    async def save(self, record: StandardProductRecord) -> StoreResult:
        async with self._lock:
            return await asyncio.to_thread(self._write, record)
