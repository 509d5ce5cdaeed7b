# ==========================================
# RATE / TOC estimation from sorted cumulative statistics.
# ==========================================
from __future__ import annotations

from enum import Enum
from typing import Callable, Tuple

import numpy as np

from rate_toc.aggregate import SortedCumulativeStats


class Target(str, Enum):
    """RATE weighting scheme."""

    AUTOC = "AUTOC"
    QINI = "QINI"

    @classmethod
    def parse(cls, value) -> "Target":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise TypeError("target must be a string or Target")
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"target must be one of {[t.value for t in cls]}, got {value!r}") from None


WeightingFn = Callable[[np.ndarray, np.ndarray, np.ndarray], float]


def autoc_weighting(toc: np.ndarray, weights: np.ndarray, weights_cumsum: np.ndarray) -> float:
    """Weighted mean of the TOC, each boundary weighted by its sample weight."""
    return float(np.sum(toc * weights) / np.sum(weights))


def qini_weighting(toc: np.ndarray, weights: np.ndarray, weights_cumsum: np.ndarray) -> float:
    """
    Weighted mean of the TOC where each boundary weight is also scaled by its
    cumulative-weight fraction, so larger-q boundaries count more.
    """
    total = float(weights_cumsum[-1])
    return float(np.sum(toc * (weights_cumsum / total) * weights) / total)


_WEIGHTING_FUNCTIONS = {
    Target.AUTOC: autoc_weighting,
    Target.QINI: qini_weighting,
}


def get_weighting_fn(target) -> WeightingFn:
    return _WEIGHTING_FUNCTIONS[Target.parse(target)]


def toc_at_grid(
    stats: SortedCumulativeStats,
    q: np.ndarray,
    tol: float = 1e-15,
) -> np.ndarray:
    """
    Evaluate the TOC at arbitrary fractions q by interpolating between rank boundaries.
    Parameters
    ----------
    stats : SortedCumulativeStats
        output of `aggregate`
    q : np.ndarray
        grid of fractions in (0, 1]
    tol : float
        slack added to q * total_weight before locating it among the
        cumulative weights, since floating-point cumsums rarely hit it exactly.
    Returns
    -------
    np.ndarray
        TOC(q), shape (len(q),)
    ------------------------------------------------------
    Interpolation
    ------------------------------------------------------
    With k boundaries fully covered by nw = q * total_weight, the remainder
    nw - W_k is filled with the score of unit k + 1, so

        TOC(q) = (S_k + (nw - W_k) * score_{k+1}) / nw - ATE

    which is continuous in q instead of a step function.
    """
    q_arr = np.asarray(q, dtype=float).reshape(-1)
    cw = stats.weights_cumsum
    cs = stats.scores_cumsum
    n = cw.size

    nw = q_arr * cw[-1]
    # Number of boundaries with cumulative weight <= nw (+ tol).
    k = np.searchsorted(cw, nw + tol, side="right")

    prev = np.maximum(k - 1, 0)
    base_w = np.where(k > 0, cw[prev], 0.0)
    base_s = np.where(k > 0, cs[prev], 0.0)

    remainder = nw - base_w
    next_score = stats.scores[np.minimum(k, n - 1)]

    numerator = base_s + remainder * next_score
    denominator = base_w + remainder
    return numerator / denominator - stats.ate


def estimate(
    stats: SortedCumulativeStats,
    q: np.ndarray,
    weighting_fn: WeightingFn,
    tol: float = 1e-15,
) -> Tuple[float, np.ndarray]:
    """
    Compute the RATE and the TOC on the grid `q` for one draw.
    Parameters
    ----------
    stats : SortedCumulativeStats
        output of `aggregate`
    q : np.ndarray
        grid of fractions in (0, 1], last value 1
    weighting_fn : WeightingFn
        `autoc_weighting` or `qini_weighting`
    tol : float
        grid matching tolerance, see `toc_at_grid`
    Returns
    -------
    (float, np.ndarray)
        RATE, and TOC values at each q
    """
    ate = stats.ate
    # TOC at every rank boundary, not only on the grid.
    toc = stats.scores_cumsum / stats.weights_cumsum - ate
    rate = weighting_fn(toc, stats.weights, stats.weights_cumsum)

    return rate, toc_at_grid(stats, q, tol=tol)
