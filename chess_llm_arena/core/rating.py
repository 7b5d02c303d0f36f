"""
Maximum-likelihood rating fit over a grid.

Each observation is a ``(level, score)`` pair: the nominal rating of an
opponent and the percentage score obtained against it. The expected score at
rating R is the logistic ``1 / (1 + 10 ** ((level - R) / 400))`` and each
observation contributes ``log(e*s + (1-e)*(1-s))``. The point estimate is the
grid maximizer; the plausible band is the contiguous run of curve points
within two log-likelihood units of the maximum.
"""

import math
from typing import List, Optional, Sequence, Tuple

from .models import EloEstimate, LevelResult

Observation = Tuple[float, float]  # (opponent rating, score in percent)

MIN_RATING = 800
MAX_RATING = 2600
FIT_STEP = 10
CURVE_STEP = 20
PLAUSIBLE_DROP = 2.0
EPSILON = 1e-10
TIE_TOLERANCE = 1e-9


def expected_score(rating: float, opponent: float) -> float:
    """Expected score (0-1) of ``rating`` against ``opponent``."""
    return 1 / (1 + 10 ** ((opponent - rating) / 400))


def log_likelihood(rating: float, observations: Sequence[Observation]) -> float:
    total = 0.0
    for level, score in observations:
        expected = expected_score(rating, level)
        observed = score / 100
        prob = expected * observed + (1 - expected) * (1 - observed)
        total += math.log(max(prob, EPSILON))
    return total


def _grid(step: int, low: int = MIN_RATING, high: int = MAX_RATING) -> range:
    return range(low, high + 1, step)


def fit_rating(observations: Sequence[Observation], step: int = FIT_STEP) -> Optional[int]:
    """
    Grid point with the highest log-likelihood.

    A flat likelihood (e.g. a single 50% result) has many maximizers; ties
    go to the grid point closest to the mean observed level.
    """
    if not observations:
        return None

    center = sum(level for level, _ in observations) / len(observations)
    scored = [(rating, log_likelihood(rating, observations)) for rating in _grid(step)]
    best = max(value for _, value in scored)
    tied = [rating for rating, value in scored if value >= best - TIE_TOLERANCE]
    return min(tied, key=lambda rating: (abs(rating - center), rating))


def likelihood_curve(observations: Sequence[Observation], step: int = CURVE_STEP) -> List[Tuple[int, float]]:
    return [(rating, log_likelihood(rating, observations)) for rating in _grid(step)]


def plausible_band(curve: Sequence[Tuple[int, float]], drop: float = PLAUSIBLE_DROP) -> Tuple[int, int]:
    """
    Contiguous run of curve points around the peak within ``drop`` of it.

    Returns:
        (lowest rating, highest rating) of the band
    """
    peak = max(range(len(curve)), key=lambda i: curve[i][1])
    threshold = curve[peak][1] - drop

    low = peak
    while low > 0 and curve[low - 1][1] > threshold:
        low -= 1
    high = peak
    while high < len(curve) - 1 and curve[high + 1][1] > threshold:
        high += 1
    return curve[low][0], curve[high][0]


def build_estimate(results: Sequence[LevelResult]) -> Optional[EloEstimate]:
    """
    Full estimate from the levels tested so far.

    Returns:
        The estimate, or None when nothing was tested
    """
    observations = [(result.level, result.score) for result in results if result.total > 0]
    if not observations:
        return None

    elo = fit_rating(observations)
    curve = likelihood_curve(observations)
    band_low, band_high = plausible_band(curve)
    half_width = round((band_high - band_low) / 2)
    confidence = max(50.0, min(95.0, 100 - half_width / 10))

    return EloEstimate(
        elo=elo,
        range=half_width,
        confidence=confidence,
        curve=tuple(curve),
    )
