"""
InsertionSession
────────────────
Drives the placement of one candidate song into the ranked list.

    AWAITING_SENTIMENT ──band──▶ SEEDING ──▶ COMPARING ──answers──▶ FINALIZING ──▶ DONE
            │                       │            │
            └───────────────────────┴────────────┴──cancel──▶ CANCELLED

The search window [lower, upper] is a closed range of list indices inside the
candidate's band. Each CANDIDATE_BETTER / PROBE_BETTER answer halves it;
TOO_CLOSE answers step the probe one slot at a time and give up after
MAX_TOO_CLOSE ties. An index is never asked about twice.

The session never mutates the list. It only computes insertion_index; the
RankingEngine performs the insert when the session reaches FINALIZING.
"""
from dataclasses import dataclass
from enum import Enum
from uuid import UUID, uuid4

from encore.core.logging import setup_logger
from encore.services.ranked_list import RankedItem, RankedList
from encore.services.ranking_math import Band

logger = setup_logger(__name__)

# Windows this small use a sentiment-biased first probe instead of the midpoint
SMALL_WINDOW_SIZE = 4
# First-probe offset as a fraction of the window: Love leans top, Dislike bottom
SMALL_WINDOW_BIAS: dict[Band, tuple[int, int]] = {
    Band.LOVE: (1, 3),
    Band.FINE: (1, 2),
    Band.DISLIKE: (2, 3),
}
# Ties allowed before the session gives up and places the candidate
MAX_TOO_CLOSE = 3


class RankingError(Exception):
    """Base class for ranking-core errors."""


class InvalidSessionStateError(RankingError):
    """Raised when an operation does not apply to the session's current state."""


class SessionState(str, Enum):
    AWAITING_SENTIMENT = "awaiting_sentiment"
    SEEDING = "seeding"
    COMPARING = "comparing"
    FINALIZING = "finalizing"
    DONE = "done"
    CANCELLED = "cancelled"


class ComparisonAnswer(str, Enum):
    CANDIDATE_BETTER = "candidate_better"
    PROBE_BETTER = "probe_better"
    TOO_CLOSE = "too_close"


@dataclass(frozen=True)
class SessionView:
    """Read-only picture of a session, safe to hand to other threads."""

    session_id: UUID
    state: SessionState
    candidate: RankedItem
    band: Band | None
    probe_index: int | None
    probe: RankedItem | None
    lower: int | None
    upper: int | None
    comparisons: int
    insertion_index: int | None
    is_rerank: bool


class InsertionSession:
    def __init__(
        self,
        candidate: RankedItem,
        ranked_list: RankedList,
        *,
        displaced: tuple[int, RankedItem] | None = None,
    ) -> None:
        self.id: UUID = uuid4()
        self.candidate = candidate
        self.state = SessionState.AWAITING_SENTIMENT
        # (original index, item) removed from the list because this is a re-rank
        self.displaced = displaced

        self.band: Band | None = None
        self.lower: int | None = None
        self.upper: int | None = None
        self.probe: int | None = None
        self.compared: set[int] = set()
        self.last_direction: ComparisonAnswer | None = None
        self.too_close_count = 0
        self.comparisons = 0
        self.insertion_index: int | None = None

        self._list = ranked_list

    # ── Introspection ─────────────────────────────────────────────────────────

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.DONE, SessionState.CANCELLED)

    @property
    def probe_item(self) -> RankedItem | None:
        if self.state != SessionState.COMPARING or self.probe is None:
            return None
        return self._list[self.probe]

    def view(self) -> SessionView:
        probe_item = self.probe_item
        return SessionView(
            session_id=self.id,
            state=self.state,
            candidate=self.candidate.copy(),
            band=self.band,
            probe_index=self.probe if probe_item is not None else None,
            probe=probe_item.copy() if probe_item is not None else None,
            lower=self.lower,
            upper=self.upper,
            comparisons=self.comparisons,
            insertion_index=self.insertion_index,
            is_rerank=self.displaced is not None,
        )

    # ── Transitions ───────────────────────────────────────────────────────────

    def supply_sentiment(self, band: Band) -> None:
        """AWAITING_SENTIMENT → SEEDING → COMPARING or FINALIZING."""
        self._require(SessionState.AWAITING_SENTIMENT)
        self.band = Band(band)
        self.candidate.band = self.band

        if len(self._list) == 0:
            self._finalize_at(0)
            return

        self.state = SessionState.SEEDING
        self._seed()

    def answer(self, answer: ComparisonAnswer) -> None:
        """Apply one comparison answer while COMPARING."""
        self._require(SessionState.COMPARING)
        answer = ComparisonAnswer(answer)
        self.comparisons += 1
        logger.debug(
            "session %s: answer %s for probe %s (window %s..%s)",
            self.id, answer.value, self.probe, self.lower, self.upper,
        )

        if answer == ComparisonAnswer.TOO_CLOSE:
            self._step_too_close()
            return

        self.last_direction = answer
        if answer == ComparisonAnswer.CANDIDATE_BETTER:
            self.upper = self.probe - 1
        else:
            self.lower = self.probe + 1

        if self.lower > self.upper:
            self._finalize_at(self._implied_position())
            return

        next_probe = self.lower + (self.upper - self.lower) // 2
        if next_probe in self.compared:
            next_probe = next(
                (i for i in range(self.lower, self.upper + 1) if i not in self.compared),
                None,
            )
            if next_probe is None:
                self._finalize_at(self._implied_position())
                return

        self._ask(next_probe)

    def complete(self) -> None:
        """FINALIZING → DONE, once the engine has inserted the candidate."""
        self._require(SessionState.FINALIZING)
        self.state = SessionState.DONE

    def cancel(self) -> bool:
        """
        Move to CANCELLED. Idempotent: returns False when the session was
        already cancelled.
        """
        if self.state == SessionState.CANCELLED:
            return False
        if self.state in (SessionState.FINALIZING, SessionState.DONE):
            raise InvalidSessionStateError(
                f"session {self.id} is {self.state.value} and can no longer be cancelled"
            )
        self.state = SessionState.CANCELLED
        return True

    # ── Internals ─────────────────────────────────────────────────────────────

    def _require(self, expected: SessionState) -> None:
        if self.state != expected:
            raise InvalidSessionStateError(
                f"session {self.id} is {self.state.value}, expected {expected.value}"
            )

    def _seed(self) -> None:
        first, last_exclusive = self._list.band_range(self.band)
        if first == last_exclusive:
            # Band is empty: the candidate opens it
            self._finalize_at(first)
            return

        self.lower, self.upper = first, last_exclusive - 1
        size = self.upper - self.lower + 1
        if size <= SMALL_WINDOW_SIZE:
            numerator, denominator = SMALL_WINDOW_BIAS[self.band]
            probe = self.lower + min(size - 1, size * numerator // denominator)
        else:
            probe = self.lower + (self.upper - self.lower) // 2

        logger.info(
            "session %s: seeded %s window %d..%d, first probe %d",
            self.id, self.band.value, self.lower, self.upper, probe,
        )
        self._ask(probe)

    def _ask(self, probe: int) -> None:
        self.probe = probe
        self.compared.add(probe)
        self.state = SessionState.COMPARING

    def _step_too_close(self) -> None:
        self.too_close_count += 1
        # With no directional answer yet, walk toward the top
        toward_top = self.last_direction != ComparisonAnswer.PROBE_BETTER
        next_probe = self.probe - 1 if toward_top else self.probe + 1

        if (
            self.too_close_count >= MAX_TOO_CLOSE
            or not self.lower <= next_probe <= self.upper
            or next_probe in self.compared
        ):
            self._finalize_at(self._implied_position())
            return

        # The tied probe bounds the window on the side we step away from
        if toward_top:
            self.upper = self.probe - 1
        else:
            self.lower = self.probe + 1
        self._ask(next_probe)

    def _implied_position(self) -> int:
        """Slot implied by the last directional answer relative to the probe."""
        if self.last_direction == ComparisonAnswer.PROBE_BETTER:
            return self.probe + 1
        return self.probe

    def _finalize_at(self, index: int) -> None:
        first, last_exclusive = self._list.band_range(self.band)
        index = max(first, min(last_exclusive, index))
        index = max(0, min(len(self._list), index))
        self.insertion_index = index
        self.probe = None
        self.state = SessionState.FINALIZING
        logger.info(
            "session %s: placing %r at index %d after %d comparison(s)",
            self.id, self.candidate.title, index, self.comparisons,
        )
