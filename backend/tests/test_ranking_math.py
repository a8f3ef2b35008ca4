import unittest

from encore.services.ranking_math import Band, RankingMath, bands_in_order


class TestBand(unittest.TestCase):
    def test_order_is_love_fine_dislike(self) -> None:
        self.assertEqual(Band.LOVE.order(), 0)
        self.assertEqual(Band.FINE.order(), 1)
        self.assertEqual(Band.DISLIKE.order(), 2)
        self.assertEqual(bands_in_order(), [Band.LOVE, Band.FINE, Band.DISLIKE])

    def test_score_intervals_are_disjoint_and_ordered(self) -> None:
        self.assertEqual(Band.LOVE.score_interval(), (7.0, 10.0))
        self.assertEqual(Band.FINE.score_interval(), (4.0, 6.9))
        self.assertEqual(Band.DISLIKE.score_interval(), (1.0, 3.9))

        bands = bands_in_order()
        for higher, lower in zip(bands, bands[1:]):
            self.assertGreater(higher.score_interval()[0], lower.score_interval()[1])

    def test_band_parses_from_value(self) -> None:
        self.assertIs(Band("love"), Band.LOVE)
        with self.assertRaises(ValueError):
            Band("neutral")


class TestRankingMathScores(unittest.TestCase):
    def test_single_member_band_gets_max(self) -> None:
        self.assertEqual(RankingMath.score_at(Band.LOVE, 0, 1), 10.0)
        self.assertEqual(RankingMath.score_at(Band.FINE, 0, 1), 6.9)
        self.assertEqual(RankingMath.score_at(Band.DISLIKE, 0, 1), 3.9)

    def test_four_love_items_spread_evenly(self) -> None:
        self.assertEqual(RankingMath.band_scores(Band.LOVE, 4), [10.0, 9.0, 8.0, 7.0])

    def test_rounds_half_up_to_one_decimal(self) -> None:
        # 6.9 - 0.5 * 2.9 = 5.45
        self.assertEqual(RankingMath.band_scores(Band.FINE, 3), [6.9, 5.5, 4.0])

    def test_two_dislike_items_hit_both_ends(self) -> None:
        self.assertEqual(RankingMath.band_scores(Band.DISLIKE, 2), [3.9, 1.0])

    def test_scores_are_non_increasing_and_in_range(self) -> None:
        for band in Band:
            for size in range(1, 40):
                scores = RankingMath.band_scores(band, size)
                self.assertEqual(scores, sorted(scores, reverse=True))
                for score in scores:
                    self.assertTrue(RankingMath.in_interval(band, score), (band, size, score))

    def test_position_outside_band_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            RankingMath.score_at(Band.LOVE, 3, 3)
        with self.assertRaises(ValueError):
            RankingMath.score_at(Band.LOVE, 0, 0)
