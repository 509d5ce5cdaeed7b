# ===============================================
# Clustered (half-sample) bootstrap engine.
# ===============================================
from __future__ import annotations

from typing import Callable, Optional

import numpy as np
import pandas as pd
from loguru import logger


def encode_clusters(clusters, n: int) -> np.ndarray:
    """
    Factor-encode cluster identifiers to dense integer ids 0..k-1.
    Parameters
    ----------
    clusters : array-like, shape (n,), optional
        arbitrary cluster labels. None puts every unit in its own cluster.
    n : int
        number of units
    Returns
    -------
    np.ndarray
        int64 cluster ids, shape (n,)
    """
    if clusters is None:
        return np.arange(n, dtype=np.int64)

    if isinstance(clusters, pd.Series):
        series = clusters
    else:
        series = pd.Series(np.asarray(clusters, dtype=object).reshape(-1)).infer_objects()
    if len(series) != n:
        raise ValueError(f"Length mismatch: clusters has {len(series)} rows, expected {n}")
    if series.isnull().any():
        raise ValueError("clusters contain missing values")

    # sort=True: cluster ids follow the sorted order of the labels.
    codes, _ = pd.factorize(series.astype(str) if series.dtype == object else series, sort=True)
    return codes.astype(np.int64)


def group_by_cluster(cluster_ids: np.ndarray) -> list[np.ndarray]:
    """Unit indices of each cluster, clusters in id order, units in original order."""
    ids = np.asarray(cluster_ids, dtype=np.int64).reshape(-1)
    order = np.argsort(ids, kind="mergesort")
    boundaries = np.flatnonzero(np.diff(ids[order])) + 1
    return np.split(order, boundaries)


def draw_bootstrap_indices(
    samples_by_cluster: list[np.ndarray],
    R: int,
    half_sample: bool = True,
    rng: Optional[np.random.RandomState] = None,
) -> list[np.ndarray]:
    """
    Draw R bootstrap replicates of clusters and expand them to unit indices.
    Parameters
    ----------
    samples_by_cluster : list[np.ndarray]
        output of `group_by_cluster`
    R : int
        number of replicates
    half_sample : bool
        True: floor(n_clusters / 2) clusters without replacement.
        False: n_clusters clusters with replacement.
    rng : np.random.RandomState
        single random source for every draw
    Returns
    -------
    list[np.ndarray]
        one index array per replicate. A cluster always enters a draw whole.
    """
    n_clusters = len(samples_by_cluster)
    if n_clusters <= 1 or (half_sample and n_clusters // 2 <= 1):
        raise ValueError(
            f"Cannot bootstrap sample with only one effective unit "
            f"(n_clusters={n_clusters}, half_sample={half_sample})."
        )
    if rng is None:
        rng = np.random.RandomState()

    draws: list[np.ndarray] = []
    for _ in range(R):
        if half_sample:
            chosen = rng.choice(n_clusters, size=n_clusters // 2, replace=False)
        else:
            chosen = rng.randint(0, n_clusters, size=n_clusters)
        draws.append(np.concatenate([samples_by_cluster[c] for c in chosen]))

    return draws


def bootstrap_std_err(replicates: np.ndarray) -> np.ndarray:
    """Column-wise sample standard deviation (ddof=1); zeros when fewer than 2 replicates."""
    t = np.asarray(replicates, dtype=float)
    if t.ndim != 2:
        raise ValueError("replicates must be a 2D (R, n_statistics) array")
    if t.shape[0] < 2:
        return np.zeros(t.shape[1], dtype=float)
    return np.std(t, axis=0, ddof=1)


def snap_to_zero(values: np.ndarray, threshold: float = 1e-15) -> np.ndarray:
    """Replace entries with magnitude below `threshold` by exactly 0."""
    out = np.array(values, dtype=float, copy=True)
    out[np.abs(out) < threshold] = 0.0
    return out


def run_bootstrap(
    statistic: Callable[[np.ndarray], np.ndarray],
    n_samples: int,
    R: int,
    cluster_ids: Optional[np.ndarray] = None,
    half_sample: bool = True,
    random_state: Optional[int] = 42,
) -> dict:
    """
    Evaluate `statistic` on the full sample and on R clustered bootstrap draws.
    Parameters
    ----------
    statistic : Callable[[np.ndarray], np.ndarray]
        maps an index set (row indices, may repeat) to a 1D vector of statistics.
        Must only read the shared sample.
    n_samples : int
        number of units
    R : int
        number of replicates (>= 0)
    cluster_ids : np.ndarray, optional
        dense cluster ids from `encode_clusters`; None = one cluster per unit
    half_sample : bool
        default=True
    random_state : int, optional
        seed of the single RandomState used for all draws
    Returns
    -------
    dict
        {
          "point_estimate": np.ndarray,  # statistic on the identity draw, shape (m,)
          "replicates": np.ndarray,      # shape (R, m)
        }
    """
    try:
        if not isinstance(R, (int, np.integer)) or isinstance(R, bool):
            raise TypeError("R must be an int")
        if R < 0:
            raise ValueError("R must be a non-negative int")
        if not isinstance(n_samples, (int, np.integer)) or n_samples <= 0:
            raise ValueError("n_samples must be a positive int")

        ids = encode_clusters(None, n_samples) if cluster_ids is None else np.asarray(cluster_ids, dtype=np.int64)
        if ids.shape != (n_samples,):
            raise ValueError(f"cluster_ids must have shape ({n_samples},)")

        samples_by_cluster = group_by_cluster(ids)

        # All random draws come from one seeded source, before any statistic runs.
        rng = np.random.RandomState(random_state)
        draws = draw_bootstrap_indices(samples_by_cluster, R, half_sample=half_sample, rng=rng)
        logger.debug(
            "Bootstrap: {} draws over {} clusters (half_sample={})",
            R,
            len(samples_by_cluster),
            half_sample,
        )

        point_estimate = np.asarray(statistic(np.arange(n_samples)), dtype=float).reshape(-1)

        # Map: every replicate writes only its own row.
        replicates = np.empty((R, point_estimate.size), dtype=float)
        for r, index_set in enumerate(draws):
            replicates[r] = np.asarray(statistic(index_set), dtype=float).reshape(-1)

        assert replicates.shape == (R, point_estimate.size), "Replicate matrix shape mismatch"

        return {
            "point_estimate": point_estimate,
            "replicates": replicates,
        }

    except Exception as exc:
        raise RuntimeError(f"run_bootstrap failed: {exc}") from exc
