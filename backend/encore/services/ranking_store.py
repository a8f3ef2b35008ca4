"""
Ranking persistence — load and save the ordered list.

RankingStore talks to the database through a SQLAlchemy session.
PersistenceWriter subscribes to the engine's RankingChanged events and
replays each snapshot into the store on a single background worker, so a
slow write never delays the next ranking session. Snapshots carry the
engine version, so writes are applied in publish order and a stale
snapshot never overwrites a newer one.
"""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from sqlalchemy.orm import Session

from encore.core.logging import setup_logger
from encore.db.models import RankedSong
from encore.services.ranked_list import RankedItem
from encore.services.ranking_engine import RankedEntry, RankingChanged

logger = setup_logger(__name__)


class RankingStore:
    """Stateless mapping between RankedSong rows and RankedItem values."""

    @staticmethod
    def load_items(db: Session) -> list[RankedItem]:
        """Return every stored song in stored position order."""
        rows = db.query(RankedSong).order_by(RankedSong.position.asc()).all()
        return [
            RankedItem(
                id=row.id,
                title=row.title,
                artist=row.artist,
                band=row.band,
                score=float(row.score),
                attributes=dict(row.attributes or {}),
            )
            for row in rows
        ]

    @staticmethod
    def replace_all(db: Session, entries: tuple[RankedEntry, ...]) -> int:
        """
        Rewrite the table from a published snapshot in one transaction.

        Returns the number of rows written.
        """
        try:
            db.query(RankedSong).delete(synchronize_session=False)
            db.add_all(
                RankedSong(
                    id=entry.item.id,
                    title=entry.item.title,
                    artist=entry.item.artist,
                    band=entry.item.band,
                    score=entry.score,
                    position=entry.rank - 1,
                    attributes=dict(entry.item.attributes),
                )
                for entry in entries
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return len(entries)


class PersistenceWriter:
    """
    Engine listener that persists every RankingChanged snapshot.

    A snapshot older than the last one written is skipped. A failed write
    is retried up to *attempts* times; if it still fails the snapshot is
    kept and written again by flush() unless a newer one landed first.

    Usage:
        writer = PersistenceWriter(SessionLocal)
        engine.subscribe(writer)
        ...
        writer.close()
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        self._session_factory = session_factory
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="encore-persist")
        self._pending: list[Future] = []
        self._state_lock = threading.Lock()
        self.written_version = 0
        self._failed: tuple[int, tuple[RankedEntry, ...]] | None = None

    def __call__(self, event: Any) -> None:
        if isinstance(event, RankingChanged):
            self.submit(event.entries, event.version)

    def submit(self, entries: tuple[RankedEntry, ...], version: int = 0) -> Future:
        future = self._executor.submit(self._write, entries, version)
        with self._state_lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def _write(self, entries: tuple[RankedEntry, ...], version: int) -> int:
        # version 0 means unversioned: always write
        if version and version <= self.written_version:
            logger.debug("skipping stale ranking snapshot v%d", version)
            return 0

        for attempt in range(1, self.attempts + 1):
            db = self._session_factory()
            try:
                written = RankingStore.replace_all(db, entries)
            except Exception:
                if attempt == self.attempts:
                    logger.exception(
                        "failed to persist ranking snapshot v%d (%d item(s)) after %d attempt(s)",
                        version, len(entries), attempt,
                    )
                    self._failed = (version, entries)
                    raise
                logger.warning(
                    "persisting ranking snapshot v%d failed (attempt %d/%d), retrying",
                    version, attempt, self.attempts,
                )
                time.sleep(self.retry_delay)
                continue
            finally:
                db.close()

            if version:
                self.written_version = version
            self._failed = None
            logger.debug("persisted %d ranked item(s) (v%d)", written, version)
            return written
        return 0

    @property
    def has_failed_write(self) -> bool:
        return self._failed is not None

    def flush(self, timeout: float | None = None) -> None:
        """
        Block until every write submitted so far has finished.

        A snapshot whose write failed and was not superseded is written
        once more.
        """
        with self._state_lock:
            pending, self._pending = self._pending, []
        for future in pending:
            future.exception(timeout=timeout)

        failed = self._failed
        if failed is not None:
            version, entries = failed
            self._failed = None
            self.submit(entries, version).exception(timeout=timeout)

    def close(self) -> None:
        self.flush()
        self._executor.shutdown(wait=True)
