"""
Scorer — rewrites item scores from their position inside a band.

Must run for the whole affected band after any change in that band's
membership or order, since every member's relative position shifts.
"""
from encore.services.ranked_list import RankedList
from encore.services.ranking_math import Band, RankingMath, bands_in_order


def recompute(ranked_list: RankedList, band: Band) -> None:
    """Assign interpolated scores to every member of *band*, top first."""
    members = ranked_list.members(band)
    for position, item in enumerate(members):
        item.score = RankingMath.score_at(band, position, len(members))


def recompute_all(ranked_list: RankedList) -> None:
    for band in bands_in_order():
        recompute(ranked_list, band)
