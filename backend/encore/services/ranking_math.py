"""
Ranking Math
────────────
Pure helpers for the sentiment bands and the per-band score scale.

Every band owns a closed score interval. Within a band, scores are spread
linearly from the band maximum (top of the band) down to the band minimum
(bottom of the band), rounded to one decimal place:

    score(i, n) = max - (i / (n - 1)) * (max - min)     when n > 1
    score(0, 1) = max

Decimal arithmetic keeps values such as 9.0 from drifting to 8.9999… before
rounding.
"""
from decimal import ROUND_HALF_UP, Decimal, getcontext
from enum import Enum

getcontext().prec = 28

SCORE_QUANTUM = Decimal("0.1")


class Band(str, Enum):
    """Coarse sentiment category. Declaration order is rank order."""

    LOVE = "love"
    FINE = "fine"
    DISLIKE = "dislike"

    def order(self) -> int:
        """Love=0, Fine=1, Dislike=2. Lower sorts higher in the list."""
        return _BAND_ORDER[self]

    def score_interval(self) -> tuple[float, float]:
        """Return the (min, max) score range owned by this band."""
        low, high = BAND_SCORE_RANGES[self]
        return float(low), float(high)

    @property
    def label(self) -> str:
        return _BAND_LABELS[self]


_BAND_ORDER: dict[Band, int] = {band: index for index, band in enumerate(Band)}

_BAND_LABELS: dict[Band, str] = {
    Band.LOVE: "Love It",
    Band.FINE: "It's Fine",
    Band.DISLIKE: "Dislike",
}

# ── Band score ranges ─────────────────────────────────────────────────────────
# Disjoint and ordered consistently with Band.order().

BAND_SCORE_RANGES: dict[Band, tuple[Decimal, Decimal]] = {
    Band.LOVE: (Decimal("7.0"), Decimal("10.0")),
    Band.FINE: (Decimal("4.0"), Decimal("6.9")),
    Band.DISLIKE: (Decimal("1.0"), Decimal("3.9")),
}


def bands_in_order() -> list[Band]:
    """All bands from highest (Love) to lowest (Dislike)."""
    return sorted(Band, key=Band.order)


class RankingMath:
    """
    Stateless helper class for band score calculations.
    All methods are @staticmethod — instantiation is optional.
    """

    @staticmethod
    def score_at(band: Band, position: int, band_size: int) -> float:
        """
        Return the score of the item at 0-based *position* in a band of
        *band_size* members.

        Raises:
            ValueError: If the position does not fall inside the band.
        """
        if band_size < 1 or not 0 <= position < band_size:
            raise ValueError(
                f"position {position} is outside a band of size {band_size}"
            )

        low, high = BAND_SCORE_RANGES[Band(band)]
        if band_size == 1:
            raw = high
        else:
            fraction = Decimal(position) / Decimal(band_size - 1)
            raw = high - fraction * (high - low)

        clamped = max(low, min(high, raw))
        return float(clamped.quantize(SCORE_QUANTUM, rounding=ROUND_HALF_UP))

    @staticmethod
    def band_scores(band: Band, band_size: int) -> list[float]:
        """Scores for every position of a band of *band_size*, top first."""
        return [RankingMath.score_at(band, i, band_size) for i in range(band_size)]

    @staticmethod
    def in_interval(band: Band, score: float) -> bool:
        """Return True if *score* lies inside the band's closed interval."""
        low, high = Band(band).score_interval()
        return low <= score <= high
