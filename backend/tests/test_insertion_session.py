import math
import unittest

from encore.services import scorer
from encore.services.insertion_session import (
    MAX_TOO_CLOSE,
    ComparisonAnswer,
    InsertionSession,
    InvalidSessionStateError,
    SessionState,
)
from encore.services.ranked_list import RankedItem, RankedList
from encore.services.ranking_math import Band

BETTER = ComparisonAnswer.CANDIDATE_BETTER
WORSE = ComparisonAnswer.PROBE_BETTER
TIE = ComparisonAnswer.TOO_CLOSE


def _build_list(love: int = 0, fine: int = 0, dislike: int = 0) -> RankedList:
    """
    Build a sound list. Each item carries a hidden "taste" value in
    attributes; values decrease down the list so within-band order matches.
    """
    items = []
    taste = 1000
    for band, count in ((Band.LOVE, love), (Band.FINE, fine), (Band.DISLIKE, dislike)):
        for i in range(count):
            items.append(
                RankedItem(
                    title=f"{band.value} {i}",
                    artist="Oracle",
                    band=band,
                    attributes={"taste": taste},
                )
            )
            taste -= 10
    ranked = RankedList(items)
    scorer.recompute_all(ranked)
    return ranked


def _candidate(taste: int) -> RankedItem:
    return RankedItem(title="Candidate", artist="Oracle", attributes={"taste": taste})


def _oracle_answer(session: InsertionSession) -> ComparisonAnswer:
    if session.candidate.attributes["taste"] > session.probe_item.attributes["taste"]:
        return BETTER
    return WORSE


def _run(session: InsertionSession, band: Band, answer=_oracle_answer) -> int:
    """Drive a session to FINALIZING; returns the number of questions asked."""
    session.supply_sentiment(band)
    while session.state == SessionState.COMPARING:
        session.answer(answer(session))
    return session.comparisons


def _expected_index(ranked: RankedList, band: Band, taste: int) -> int:
    first, last_exclusive = ranked.band_range(band)
    better = sum(
        1 for i in range(first, last_exclusive) if ranked[i].attributes["taste"] > taste
    )
    return first + better


class TestSeeding(unittest.TestCase):
    def test_empty_list_finalizes_at_zero(self) -> None:
        session = InsertionSession(_candidate(50), RankedList())
        _run(session, Band.FINE)
        self.assertEqual(session.state, SessionState.FINALIZING)
        self.assertEqual(session.insertion_index, 0)
        self.assertEqual(session.comparisons, 0)

    def test_empty_band_opens_where_band_belongs(self) -> None:
        ranked = _build_list(love=2, dislike=3)
        session = InsertionSession(_candidate(0), ranked)
        _run(session, Band.FINE)
        self.assertEqual(session.insertion_index, 2)
        self.assertEqual(session.comparisons, 0)

    def test_empty_love_band_goes_to_top(self) -> None:
        ranked = _build_list(fine=1)
        session = InsertionSession(_candidate(0), ranked)
        _run(session, Band.LOVE)
        self.assertEqual(session.insertion_index, 0)

    def test_empty_dislike_band_goes_to_bottom(self) -> None:
        ranked = _build_list(love=1, fine=2)
        session = InsertionSession(_candidate(9999), ranked)
        _run(session, Band.DISLIKE)
        self.assertEqual(session.insertion_index, 3)

    def test_small_window_first_probe_is_biased_by_band(self) -> None:
        cases = [
            (Band.LOVE, dict(love=4), 1),
            (Band.FINE, dict(love=1, fine=4), 3),
            (Band.DISLIKE, dict(dislike=4), 2),
            (Band.LOVE, dict(love=3), 1),
            (Band.DISLIKE, dict(fine=2, dislike=3), 4),
            (Band.FINE, dict(fine=1), 0),
        ]
        for band, sizes, expected_probe in cases:
            with self.subTest(band=band, sizes=sizes):
                session = InsertionSession(_candidate(0), _build_list(**sizes))
                session.supply_sentiment(band)
                self.assertEqual(session.state, SessionState.COMPARING)
                self.assertEqual(session.probe, expected_probe)

    def test_large_window_starts_at_midpoint(self) -> None:
        ranked = _build_list(love=2, fine=9, dislike=1)
        session = InsertionSession(_candidate(0), ranked)
        session.supply_sentiment(Band.FINE)
        self.assertEqual((session.lower, session.upper), (2, 10))
        self.assertEqual(session.probe, 6)


class TestBinaryInsertion(unittest.TestCase):
    def test_finds_every_slot_in_band(self) -> None:
        for band in Band:
            for size in range(1, 13):
                sizes = {"love": 2, "fine": 3, "dislike": 2}
                sizes[band.value] = size
                ranked = _build_list(**sizes)
                first, last_exclusive = ranked.band_range(band)
                tastes = [ranked[i].attributes["taste"] for i in range(first, last_exclusive)]
                # One candidate per gap: above the top, between neighbours, below the bottom
                candidates = [tastes[0] + 5] + [t - 5 for t in tastes]
                for taste in candidates:
                    with self.subTest(band=band, size=size, taste=taste):
                        session = InsertionSession(_candidate(taste), ranked)
                        _run(session, band)
                        self.assertEqual(
                            session.insertion_index,
                            _expected_index(ranked, band, taste),
                        )

    def test_comparisons_are_logarithmic(self) -> None:
        for size in range(1, 65):
            ranked = _build_list(fine=size)
            bound = math.ceil(math.log2(size + 1)) + 1
            tastes = [item.attributes["taste"] for item in ranked]
            for taste in [tastes[0] + 5] + [t - 5 for t in tastes]:
                session = InsertionSession(_candidate(taste), ranked)
                asked = _run(session, Band.FINE)
                self.assertLessEqual(asked, bound, (size, taste))

    def test_never_asks_the_same_probe_twice(self) -> None:
        ranked = _build_list(love=20)
        session = InsertionSession(_candidate(915), ranked)
        session.supply_sentiment(Band.LOVE)
        asked = []
        while session.state == SessionState.COMPARING:
            asked.append(session.probe)
            session.answer(_oracle_answer(session))
        self.assertEqual(len(asked), len(set(asked)))

    def test_scenario_three_love_items_converges_to_middle(self) -> None:
        ranked = _build_list(love=3)
        session = InsertionSession(_candidate(0), ranked)
        session.supply_sentiment(Band.LOVE)
        session.answer(BETTER)
        self.assertEqual(session.state, SessionState.COMPARING)
        session.answer(WORSE)
        self.assertEqual(session.state, SessionState.FINALIZING)
        self.assertEqual(session.insertion_index, 1)

    def test_insertion_index_stays_inside_band(self) -> None:
        ranked = _build_list(love=3, fine=3, dislike=3)
        for answer in (BETTER, WORSE):
            session = InsertionSession(_candidate(0), ranked)
            _run(session, Band.FINE, answer=lambda _s, a=answer: a)
            self.assertGreaterEqual(session.insertion_index, 3)
            self.assertLessEqual(session.insertion_index, 6)


class TestTooClose(unittest.TestCase):
    def test_all_ties_terminate_within_limit(self) -> None:
        for band in Band:
            for size in (1, 2, 3, 4, 5, 9, 33, 100):
                sizes = {"love": 1, "fine": 1, "dislike": 1}
                sizes[band.value] = size
                session = InsertionSession(_candidate(0), _build_list(**sizes))
                asked = _run(session, band, answer=lambda _s: TIE)
                self.assertEqual(session.state, SessionState.FINALIZING)
                self.assertLessEqual(asked, MAX_TOO_CLOSE, (band, size))

    def test_first_answer_tie_walks_toward_top(self) -> None:
        ranked = _build_list(fine=5)
        session = InsertionSession(_candidate(0), ranked)
        session.supply_sentiment(Band.FINE)
        self.assertEqual(session.probe, 2)

        session.answer(TIE)
        self.assertEqual(session.probe, 1)
        session.answer(TIE)
        self.assertEqual(session.probe, 0)
        session.answer(TIE)

        self.assertEqual(session.state, SessionState.FINALIZING)
        self.assertEqual(session.insertion_index, 0)
        self.assertEqual(session.comparisons, 3)

    def test_tie_follows_last_directional_answer(self) -> None:
        ranked = _build_list(fine=5)
        session = InsertionSession(_candidate(0), ranked)
        session.supply_sentiment(Band.FINE)
        session.answer(WORSE)
        self.assertEqual(session.probe, 3)

        session.answer(TIE)
        self.assertEqual(session.probe, 4)
        # Probe is now at the bottom of the window: finalize below it
        session.answer(TIE)
        self.assertEqual(session.state, SessionState.FINALIZING)
        self.assertEqual(session.insertion_index, 5)

    def test_tie_at_window_boundary_finalizes_immediately(self) -> None:
        ranked = _build_list(love=3)
        session = InsertionSession(_candidate(0), ranked)
        session.supply_sentiment(Band.LOVE)
        session.answer(BETTER)
        self.assertEqual(session.probe, 0)

        session.answer(TIE)
        self.assertEqual(session.state, SessionState.FINALIZING)
        self.assertEqual(session.insertion_index, 0)

    def test_directional_answer_after_tie_keeps_candidate_next_to_tied_item(self) -> None:
        ranked = _build_list(fine=7)
        session = InsertionSession(_candidate(0), ranked)
        session.supply_sentiment(Band.FINE)
        self.assertEqual(session.probe, 3)

        session.answer(TIE)
        self.assertEqual(session.probe, 2)
        session.answer(WORSE)
        self.assertEqual(session.state, SessionState.FINALIZING)
        self.assertEqual(session.insertion_index, 3)


class TestSessionLifecycle(unittest.TestCase):
    def test_answer_before_sentiment_is_rejected(self) -> None:
        session = InsertionSession(_candidate(0), _build_list(love=2))
        with self.assertRaises(InvalidSessionStateError):
            session.answer(BETTER)
        self.assertEqual(session.state, SessionState.AWAITING_SENTIMENT)

    def test_sentiment_twice_is_rejected(self) -> None:
        session = InsertionSession(_candidate(0), _build_list(love=2))
        session.supply_sentiment(Band.LOVE)
        with self.assertRaises(InvalidSessionStateError):
            session.supply_sentiment(Band.FINE)

    def test_cancel_is_idempotent(self) -> None:
        session = InsertionSession(_candidate(0), _build_list(love=2))
        session.supply_sentiment(Band.LOVE)
        self.assertTrue(session.cancel())
        self.assertFalse(session.cancel())
        self.assertEqual(session.state, SessionState.CANCELLED)
        with self.assertRaises(InvalidSessionStateError):
            session.answer(BETTER)

    def test_finished_session_cannot_be_cancelled(self) -> None:
        session = InsertionSession(_candidate(0), RankedList())
        session.supply_sentiment(Band.LOVE)
        session.complete()
        self.assertEqual(session.state, SessionState.DONE)
        with self.assertRaises(InvalidSessionStateError):
            session.cancel()

    def test_session_never_mutates_the_list(self) -> None:
        ranked = _build_list(love=2, fine=2)
        before = ranked.items()
        session = InsertionSession(_candidate(995), ranked)
        _run(session, Band.LOVE)
        self.assertEqual(ranked.items(), before)

    def test_view_exposes_probe_only_while_comparing(self) -> None:
        ranked = _build_list(love=2)
        session = InsertionSession(_candidate(0), ranked)
        self.assertIsNone(session.view().probe)
        session.supply_sentiment(Band.LOVE)
        view = session.view()
        self.assertEqual(view.state, SessionState.COMPARING)
        self.assertEqual(view.probe.id, ranked[view.probe_index].id)
