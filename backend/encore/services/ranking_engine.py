"""
RankingEngine — the only owner and mutator of the ranked list.

Public operations:
  begin_ranking(candidate)            → SessionHandle
  supply_sentiment(handle, band)
  answer_comparison(handle, answer)
  cancel(handle)
  remove(item_id)
  change_band(item_id, band)
  list_rankings()                     → tuple[RankedEntry, ...]

Concurrency: single writer. Every mutation runs under one lock; the lock is
never held while waiting for a human answer, because a pending session is
just an object between calls. Readers get the immutable snapshot published
after the last mutation and never take the lock.

Listeners receive SentimentRequested / ComparisonRequested prompts and a
RankingChanged snapshot after every committed mutation. Events are queued
under the lock, so queue order is publish order, and delivered after the
lock is released by one thread at a time.
"""
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable
from uuid import UUID

from encore.core.logging import setup_logger
from encore.services import scorer
from encore.services.insertion_session import (
    ComparisonAnswer,
    InsertionSession,
    RankingError,
    SessionState,
    SessionView,
)
from encore.services.ranked_list import RankedItem, RankedList
from encore.services.ranking_math import Band

logger = setup_logger(__name__)


# ── Errors ────────────────────────────────────────────────────────────────────


class InvalidAnswerError(RankingError):
    """Raised when a band or comparison answer is outside its closed set."""


class NoActiveSessionError(RankingError):
    """Raised when a handle does not refer to the active session."""


class ConcurrentSessionError(RankingError):
    """Raised when an operation collides with the session already in progress."""


class ItemNotFoundError(RankingError):
    """Raised when an item id is not in the ranked list."""


class InvariantViolationError(RankingError):
    """
    Raised in fail-fast mode when a post-mutation check finds a broken invariant.

    The mutation itself is kept: its snapshot is published and announced
    before this is raised.
    """

    def __init__(self, violations: list[str]) -> None:
        super().__init__("; ".join(violations))
        self.violations = violations


# ── Values handed to callers ──────────────────────────────────────────────────


@dataclass(frozen=True)
class SessionHandle:
    session_id: UUID


@dataclass(frozen=True)
class RankedEntry:
    """One row of the published list. rank is 1-based."""

    rank: int
    item: RankedItem
    score: float


@dataclass(frozen=True)
class SentimentRequested:
    session_id: UUID
    candidate: RankedItem


@dataclass(frozen=True)
class ComparisonRequested:
    session_id: UUID
    candidate: RankedItem
    probe: RankedItem
    probe_index: int
    comparisons: int


@dataclass(frozen=True)
class RankingChanged:
    """
    Full snapshot after a mutation. reason: insert | rerank | remove | band_change | repair.

    version increases by one with every published snapshot.
    """

    reason: str
    entries: tuple[RankedEntry, ...]
    item_id: UUID | None = None
    version: int = 0


Listener = Callable[[Any], None]


class RankingEngine:
    def __init__(
        self,
        items: list[RankedItem] | None = None,
        *,
        fail_fast: bool = False,
    ) -> None:
        self.fail_fast = fail_fast
        self._list = RankedList()
        self._lock = threading.RLock()
        self._session: InsertionSession | None = None
        self._listeners: list[Listener] = []
        self._snapshot: tuple[RankedEntry, ...] = ()
        self._version = 0
        self._outbox: deque = deque()
        self._dispatching = threading.Lock()
        if items:
            self.load(items)

    @property
    def version(self) -> int:
        """Version of the snapshot returned by list_rankings()."""
        return self._version

    # ── Observers ─────────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _queue(self, events: list[Any]) -> None:
        # Caller holds self._lock
        self._outbox.extend(events)

    def _drain(self) -> None:
        """
        Deliver queued events in order.

        Only one thread delivers at a time. A thread that finds delivery
        already running leaves its events to that thread, which re-checks
        the queue after releasing the dispatch lock.
        """
        while self._outbox:
            if not self._dispatching.acquire(blocking=False):
                return
            try:
                while self._outbox:
                    event = self._outbox.popleft()
                    with self._lock:
                        listeners = list(self._listeners)
                    for listener in listeners:
                        try:
                            listener(event)
                        except Exception:
                            logger.exception(
                                "listener %r failed on %s", listener, type(event).__name__
                            )
            finally:
                self._dispatching.release()

    # ── Reads ─────────────────────────────────────────────────────────────────

    def list_rankings(self) -> tuple[RankedEntry, ...]:
        """Snapshot of the list as of the last committed mutation."""
        return self._snapshot

    def current_session(self) -> SessionView | None:
        with self._lock:
            return self._session.view() if self._session is not None else None

    def find_ranked(self, title: str, artist: str) -> RankedItem | None:
        """Return a copy of the ranked item with this title/artist, if any."""
        with self._lock:
            item = self._list.find_by_title_artist(title, artist)
            return item.copy() if item is not None else None

    # ── Startup ───────────────────────────────────────────────────────────────

    def load(self, items: list[RankedItem]) -> bool:
        """
        Replace the list with previously persisted *items* (stored order).

        Stored order and scores are not trusted: band contiguity is
        re-established and every band rescored. Returns True when the stored
        data had to be repaired.
        """
        try:
            with self._lock:
                if self._session is not None:
                    raise ConcurrentSessionError("cannot load while a ranking session is active")

                accepted: list[RankedItem] = []
                seen: set[UUID] = set()
                dropped = 0
                for item in items:
                    if item.id in seen or item.band is None:
                        dropped += 1
                        continue
                    seen.add(item.id)
                    accepted.append(item.copy())

                self._list = RankedList(accepted)
                violations = self._list.find_violations()
                if violations:
                    logger.warning(
                        "repairing persisted ranking (%d issue(s)): %s",
                        len(violations), "; ".join(violations[:5]),
                    )
                    self._repair()
                if dropped:
                    logger.warning("dropped %d persisted item(s) with duplicate id or no band", dropped)

                repaired = bool(violations) or dropped > 0
                self._publish()
                logger.info("loaded %d ranked item(s)", len(self._list))
                if repaired:
                    self._queue([self._changed("repair")])
        finally:
            self._drain()
        return repaired

    # ── Session operations ────────────────────────────────────────────────────

    def begin_ranking(self, candidate: RankedItem) -> SessionHandle:
        """
        Open a session for *candidate*.

        If the candidate (by id, or by title and artist) is already ranked,
        the existing entry is taken out of the list first; cancelling the
        session puts it back where it was.
        """
        try:
            with self._lock:
                if self._session is not None:
                    raise ConcurrentSessionError(
                        f"session {self._session.id} is already in progress"
                    )

                candidate = candidate.copy()
                candidate.band = None
                candidate.score = 0.0

                existing_index = self._list.index_of(candidate.id)
                if existing_index is None:
                    match = self._list.find_by_title_artist(candidate.title, candidate.artist)
                    if match is not None:
                        existing_index = self._list.index_of(match.id)

                displaced = None
                if existing_index is not None:
                    existing = self._list[existing_index]
                    self._list.remove(existing.id)
                    scorer.recompute(self._list, existing.band)
                    displaced = (existing_index, existing)

                session = InsertionSession(candidate, self._list, displaced=displaced)
                self._session = session
                logger.info(
                    "session %s: ranking %r by %r%s",
                    session.id, candidate.title, candidate.artist,
                    " (re-rank)" if displaced else "",
                )
                self._queue([SentimentRequested(session.id, candidate.copy())])
        finally:
            self._drain()
        return SessionHandle(session.id)

    def supply_sentiment(self, handle: SessionHandle, band: Band | str) -> SessionView:
        try:
            band = Band(band)
        except ValueError as exc:
            raise InvalidAnswerError(f"unknown band {band!r}") from exc

        try:
            with self._lock:
                session = self._require_session(handle)
                session.supply_sentiment(band)
                self._after_step(session)
                view = session.view()
        finally:
            self._drain()
        return view

    def answer_comparison(
        self,
        handle: SessionHandle,
        answer: ComparisonAnswer | str,
    ) -> SessionView:
        try:
            answer = ComparisonAnswer(answer)
        except ValueError as exc:
            raise InvalidAnswerError(f"unknown comparison answer {answer!r}") from exc

        try:
            with self._lock:
                session = self._require_session(handle)
                session.answer(answer)
                self._after_step(session)
                view = session.view()
        finally:
            self._drain()
        return view

    def cancel(self, handle: SessionHandle) -> bool:
        """
        Discard the session behind *handle*. Idempotent: returns False when
        the handle is not the active session (already cancelled or done).
        """
        with self._lock:
            session = self._session
            if session is None or session.id != handle.session_id:
                return False

            session.cancel()
            if session.displaced is not None:
                index, item = session.displaced
                self._list.insert(item, index)
                scorer.recompute(self._list, item.band)
            self._session = None
            logger.info("session %s: cancelled", session.id)
        return True

    def _require_session(self, handle: SessionHandle) -> InsertionSession:
        session = self._session
        if session is None or session.id != handle.session_id:
            raise NoActiveSessionError(f"no active session {handle.session_id}")
        return session

    def _after_step(self, session: InsertionSession) -> None:
        if session.state == SessionState.FINALIZING:
            self._commit(session)
            return

        probe = session.probe_item
        self._queue([
            ComparisonRequested(
                session_id=session.id,
                candidate=session.candidate.copy(),
                probe=probe.copy(),
                probe_index=session.probe,
                comparisons=session.comparisons,
            )
        ])

    def _commit(self, session: InsertionSession) -> None:
        """The single insertion point: insert, rescore, then settle."""
        candidate = session.candidate
        self._list.insert(candidate, session.insertion_index)
        scorer.recompute(self._list, candidate.band)
        session.complete()
        self._session = None

        reason = "rerank" if session.displaced is not None else "insert"
        self._settle(reason, candidate.id)

    # ── Direct mutations ──────────────────────────────────────────────────────

    def remove(self, item_id: UUID) -> RankedItem | None:
        """Remove an item by id. Returns None when it is not ranked."""
        try:
            with self._lock:
                self._reject_during_session("remove")
                removed = self._list.remove(item_id)
                if removed is None:
                    return None
                scorer.recompute(self._list, removed.band)
                logger.info("removed %r from %s", removed.title, removed.band.value)
                self._settle("remove", item_id)
        finally:
            self._drain()
        return removed.copy()

    def change_band(self, item_id: UUID, band: Band | str) -> RankedItem:
        """Move an existing item to another band, keeping relative order."""
        try:
            band = Band(band)
        except ValueError as exc:
            raise InvalidAnswerError(f"unknown band {band!r}") from exc

        try:
            with self._lock:
                self._reject_during_session("change band")
                index = self._list.index_of(item_id)
                if index is None:
                    raise ItemNotFoundError(f"item {item_id} is not ranked")

                item = self._list[index]
                if item.band == band:
                    return item.copy()

                item.band = band
                self._list.reestablish_band_contiguity()
                scorer.recompute_all(self._list)
                logger.info("moved %r to %s", item.title, band.value)
                result = item.copy()
                self._settle("band_change", item_id)
        finally:
            self._drain()
        return result

    def _reject_during_session(self, operation: str) -> None:
        if self._session is not None:
            raise ConcurrentSessionError(
                f"cannot {operation} while session {self._session.id} is in progress"
            )

    # ── Invariants ────────────────────────────────────────────────────────────

    def _settle(self, reason: str, item_id: UUID | None = None) -> None:
        """
        Check invariants, publish the snapshot and queue RankingChanged.

        In fail-fast mode a broken list is still published, so readers and
        persistence see exactly what the engine holds, and the error is
        raised afterwards.
        """
        violations = self._list.find_violations()
        if violations:
            logger.error("ranking invariants broken: %s", "; ".join(violations))
            if not self.fail_fast:
                self._repair()

        self._publish()
        self._queue([self._changed(reason, item_id)])

        if violations and self.fail_fast:
            raise InvariantViolationError(violations)

    def _repair(self) -> None:
        self._list.reestablish_band_contiguity()
        scorer.recompute_all(self._list)

    def _publish(self) -> None:
        self._snapshot = tuple(
            RankedEntry(rank=index + 1, item=item.copy(), score=item.score)
            for index, item in enumerate(self._list)
        )
        self._version += 1

    def _changed(self, reason: str, item_id: UUID | None = None) -> RankingChanged:
        return RankingChanged(reason, self._snapshot, item_id, self._version)
