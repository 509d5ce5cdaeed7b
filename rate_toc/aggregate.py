# ==========================================
# Rank aggregation: sort a sample by priority and build cumulative sums.
# ==========================================
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class SortedCumulativeStats:
    """
    Per-draw statistics ordered from highest to lowest priority.
    Attributes
    ----------
    scores : np.ndarray
        effective DR scores (tie-group weighted averages when ties exist)
    weights : np.ndarray
        sample weights in the same order
    weights_cumsum : np.ndarray
        running sum of `weights`
    scores_cumsum : np.ndarray
        running sum of `scores * weights`
    """

    scores: np.ndarray
    weights: np.ndarray
    weights_cumsum: np.ndarray
    scores_cumsum: np.ndarray

    @property
    def total_weight(self) -> float:
        return float(self.weights_cumsum[-1])

    @property
    def ate(self) -> float:
        return float(self.scores_cumsum[-1] / self.weights_cumsum[-1])


def encode_priorities(values) -> np.ndarray:
    """
    Collapse raw priority scores into dense rank-preserving integer groups 0..k-1.
    Parameters
    ----------
    values : array-like, shape (n,)
        raw priorities of one rule. Numeric-looking values (including numeric
        strings) are compared as numbers, so 1, 1.0 and "1" share a group.
        Anything non-numeric makes the whole column compare as strings.
    Returns
    -------
    np.ndarray
        int64 group labels, larger label = higher priority.
    """
    if isinstance(values, pd.Series):
        series = values
    else:
        series = pd.Series(np.asarray(values, dtype=object).reshape(-1)).infer_objects()
    if len(series) == 0:
        raise ValueError("priorities cannot be empty")
    if series.isnull().any():
        raise ValueError("priorities contain missing values")

    if pd.api.types.is_bool_dtype(series):
        series = series.astype(int)

    numeric = pd.to_numeric(series, errors="coerce")
    if numeric.notnull().all():
        keys = numeric.to_numpy(dtype=float)
    else:
        keys = series.astype(str).to_numpy()

    # np.unique sorts ascending, so the inverse is a dense rank.
    _, codes = np.unique(keys, return_inverse=True)
    return codes.reshape(-1).astype(np.int64)


def aggregate(
    scores: np.ndarray,
    weights: np.ndarray,
    priority_groups: np.ndarray,
    index_set: Optional[np.ndarray] = None,
) -> SortedCumulativeStats:
    """
    Sort the selected rows by priority (highest first) and build cumulative sums.
    Parameters
    ----------
    scores : np.ndarray
        DR scores of the full sample, shape (n,)
    weights : np.ndarray
        positive sample weights, shape (n,)
    priority_groups : np.ndarray
        dense integer priority groups from `encode_priorities`, shape (n,)
    index_set : np.ndarray, optional
        row indices of the draw (may repeat). None means every row, in order.
    Returns
    -------
    SortedCumulativeStats
        Units in the same priority group share one effective score: the
        weighted mean of the group's DR scores within this draw.
    """
    if index_set is None:
        idx = np.arange(len(scores))
    else:
        idx = np.asarray(index_set, dtype=np.int64).reshape(-1)
    if idx.size == 0:
        raise ValueError("index_set cannot be empty")

    # Fancy indexing returns copies; the base arrays are never modified.
    s = np.asarray(scores, dtype=float)[idx]
    w = np.asarray(weights, dtype=float)[idx]
    p = np.asarray(priority_groups, dtype=np.int64)[idx]

    # -------------------------------------------
    # 1) Sort by priority group, descending
    # -------------------------------------------
    # mergesort: stable, so equal groups keep draw order.
    order = np.argsort(-p, kind="mergesort")
    s_sorted = s[order]
    w_sorted = w[order]
    p_sorted = p[order]
    sw_sorted = s_sorted * w_sorted

    # -------------------------------------------
    # 2) Tie-group averaging (single scan over sorted groups)
    # -------------------------------------------
    if np.bincount(p_sorted).max() > 1:
        starts = np.concatenate(([0], np.flatnonzero(np.diff(p_sorted)) + 1))
        lengths = np.diff(np.concatenate((starts, [p_sorted.size])))
        group_sw = np.add.reduceat(sw_sorted, starts)
        group_w = np.add.reduceat(w_sorted, starts)
        s_sorted = np.repeat(group_sw / group_w, lengths)
        sw_sorted = s_sorted * w_sorted

    # -------------------------------------------
    # 3) Running sums
    # -------------------------------------------
    weights_cumsum = np.cumsum(w_sorted)
    scores_cumsum = np.cumsum(sw_sorted)

    return SortedCumulativeStats(
        scores=s_sorted,
        weights=w_sorted,
        weights_cumsum=weights_cumsum,
        scores_cumsum=scores_cumsum,
    )
