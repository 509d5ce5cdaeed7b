# ===============================================
# Rank-Weighted Average Treatment Effect (RATE) with TOC curve.
# ===============================================
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import pandas as pd
from loguru import logger
from scipy.stats import norm

from rate_toc.aggregate import aggregate, encode_priorities
from rate_toc.bootstrap import bootstrap_std_err, encode_clusters, run_bootstrap, snap_to_zero
from rate_toc.config import get_setting, load_config
from rate_toc.estimator import Target, estimate, get_weighting_fn


@dataclass
class RATEResult:
    """
    Output of `rank_average_treatment_effect`.
    Attributes
    ----------
    estimate : np.ndarray
        RATE per rule; with two rules a 3rd entry holds rule1 - rule2.
    std_err : np.ndarray
        bootstrap standard errors matching `estimate` (all 0 when R < 2)
    target_label : list[str]
        "<rule> | <TARGET>" per entry of `estimate`
    toc_table : pd.DataFrame
        columns [estimate, std_err, q, priority], one row per grid point per rule
    target : Target
    q : np.ndarray
    R : int
    """

    estimate: np.ndarray
    std_err: np.ndarray
    target_label: list[str]
    toc_table: pd.DataFrame
    target: Target
    q: np.ndarray
    R: int

    @property
    def priority_labels(self) -> list[str]:
        return list(pd.unique(self.toc_table["priority"]))

    def summary(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "estimate": self.estimate,
                "std_err": self.std_err,
                "target": self.target_label,
            }
        )

    def conf_int(self, level: float = 0.95) -> pd.DataFrame:
        """Normal-approximation interval estimate ± z * std_err for each RATE."""
        if not (0.0 < float(level) < 1.0):
            raise ValueError("level must be in (0, 1)")
        z = float(norm.ppf(0.5 + float(level) / 2.0))
        return pd.DataFrame(
            {
                "target": self.target_label,
                "lower": self.estimate - z * self.std_err,
                "upper": self.estimate + z * self.std_err,
            }
        )

    def toc(self, priority: Optional[str] = None) -> pd.DataFrame:
        """TOC rows for one rule label (default: the first rule)."""
        labels = self.priority_labels
        key = labels[0] if priority is None else priority
        if key not in labels:
            raise KeyError(f"Unknown priority label {key!r}; available: {labels}")
        return self.toc_table.loc[self.toc_table["priority"] == key].reset_index(drop=True)

    def __str__(self) -> str:
        return self.summary().to_string(index=False)


# Helper: coerce priorities to a DataFrame of 1 or 2 raw columns + labels
def _as_priority_frame(priorities: Any, n: int) -> tuple[pd.DataFrame, list[str]]:
    if priorities is None:
        raise ValueError("priorities cannot be None")

    if isinstance(priorities, pd.DataFrame):
        frame = priorities.reset_index(drop=True)
        labels = [str(c) for c in frame.columns]
    elif isinstance(priorities, Mapping):
        # Keys 1 and "1" map to the same label; reject before building the frame.
        labels = [str(k) for k in priorities]
        if len(set(labels)) != len(labels):
            raise ValueError(f"priority columns must have distinct names, got {labels}")
        frame = pd.DataFrame({label: list(v) for label, v in zip(labels, priorities.values())})
    elif isinstance(priorities, pd.Series):
        frame = priorities.reset_index(drop=True).to_frame()
        labels = [str(priorities.name) if priorities.name is not None else "priority"]
        frame.columns = labels
    else:
        arr = np.asarray(priorities, dtype=object)
        if arr.ndim == 1:
            frame = pd.DataFrame({"priority": arr})
        elif arr.ndim == 2:
            frame = pd.DataFrame(arr)
            if frame.shape[1] == 1:
                frame.columns = ["priority"]
            else:
                frame.columns = [f"priority{j + 1}" for j in range(frame.shape[1])]
        else:
            raise ValueError("priorities must be 1D, or 2D with one column per rule")
        labels = list(frame.columns)

    if frame.shape[1] == 0:
        raise ValueError("priorities must have at least one column")
    if frame.shape[1] > 2:
        raise ValueError(
            f"priorities must have at most two columns (got {frame.shape[1]}); "
            "at most two rules can be compared at once"
        )
    if len(set(labels)) != len(labels):
        raise ValueError(f"priority columns must have distinct names, got {labels}")
    if len(frame) != n:
        raise ValueError(f"Length mismatch: DR_scores has {n} rows, priorities has {len(frame)} rows")
    if frame.isnull().any().any():
        raise ValueError("priorities contain missing values")

    return frame, labels


# Helper: validate DR scores
def _validate_scores(DR_scores: Any) -> np.ndarray:
    if DR_scores is None:
        raise ValueError("DR_scores cannot be None")
    series = DR_scores if isinstance(DR_scores, pd.Series) else pd.Series(np.asarray(DR_scores, dtype=object).reshape(-1))
    if len(series) == 0:
        raise ValueError("DR_scores cannot be empty")
    if series.isnull().any():
        raise ValueError("DR_scores contains missing values")

    scores = pd.to_numeric(series, errors="coerce")
    if scores.isnull().any():
        raise ValueError("DR_scores contains non-numeric values")
    scores_arr = scores.to_numpy(dtype=float)
    if not np.isfinite(scores_arr).all():
        raise ValueError("DR_scores contains inf/-inf values")
    return scores_arr


# Helper: validate and normalize sample weights to sum to 1
def _normalize_weights(sample_weights: Any, n: int) -> np.ndarray:
    if sample_weights is None:
        return np.full(n, 1.0 / n, dtype=float)

    series = sample_weights if isinstance(sample_weights, pd.Series) else pd.Series(np.asarray(sample_weights, dtype=object).reshape(-1))
    if len(series) != n:
        raise ValueError(f"Length mismatch: DR_scores has {n} rows, sample_weights has {len(series)} rows")
    weights = pd.to_numeric(series, errors="coerce")
    if weights.isnull().any():
        raise ValueError("sample_weights contains missing/non-numeric values")
    w = weights.to_numpy(dtype=float)
    if not np.isfinite(w).all():
        raise ValueError("sample_weights contains inf/-inf values")
    if (w <= 0).any():
        raise ValueError("sample_weights must be strictly positive")
    return w / w.sum()


# Helper: validate the TOC grid
def _validate_grid(q: Any) -> np.ndarray:
    if q is None:
        raise ValueError("q cannot be None")
    q_series = pd.to_numeric(pd.Series(np.asarray(q, dtype=object).reshape(-1)), errors="coerce")
    if len(q_series) == 0:
        raise ValueError("q cannot be empty")
    if q_series.isnull().any():
        raise ValueError("q contains missing/non-numeric values")
    q_arr = q_series.to_numpy(dtype=float)
    if (q_arr <= 0).any() or (q_arr > 1).any():
        raise ValueError("q must be a grid of fractions on the interval (0, 1]")
    if (np.diff(q_arr) <= 0).any():
        raise ValueError("q must be strictly increasing")
    if q_arr[-1] != 1.0:
        raise ValueError("q must end at 1")
    return q_arr


def rank_average_treatment_effect(
    DR_scores,
    priorities,
    target=None,
    q=None,
    R: Optional[int] = None,
    sample_weights=None,
    clusters=None,
    *,
    half_sample: Optional[bool] = None,
    random_state: Optional[int] = None,
    grid_tolerance: Optional[float] = None,
    config: Any = None,
) -> RATEResult:
    """
    Estimate the RATE and TOC curve of one or two prioritization rules with bootstrap standard errors.
    Parameters
    ----------
    DR_scores : array-like, shape (n,)
        doubly-robust treatment-effect scores, no missing values
    priorities : array-like, shape (n,) or (n, 2), pd.Series, pd.DataFrame or mapping
        one or two prioritization rules; higher value = treated first.
        Column names (DataFrame / mapping / named Series) become rule labels.
    target : {"AUTOC", "QINI"}
        default from config ("AUTOC")
    q : array-like
        strictly increasing grid in (0, 1] ending at 1; default from config
    R : int
        number of bootstrap replicates; default from config (200). R < 2 gives zero std errors.
    sample_weights : array-like, shape (n,), optional
        strictly positive weights, normalized to sum to 1
    clusters : array-like, shape (n,), optional
        cluster labels; clusters are resampled whole. Default: one cluster per unit.
    half_sample : bool
        half-sample bootstrap (default) or ordinary bootstrap with replacement
    random_state : int
        seed for the bootstrap draws; default from config (42)
    grid_tolerance : float
        tolerance used when locating q * total_weight among cumulative weights
    config : dict | object, optional
        settings as returned by `load_config`; packaged defaults when None
    Returns
    -------
    RATEResult
        point estimates on the full sample, bootstrap std errors, labels and TOC table.
    """
    try:
        # ------------------------------------------
        # 1) Resolve settings
        # ------------------------------------------
        cfg = load_config() if config is None else config
        target_enum = Target.parse(get_setting(cfg, "target") if target is None else target)
        q_raw = get_setting(cfg, "q") if q is None else q
        R_val = get_setting(cfg, "R") if R is None else R
        half = bool(get_setting(cfg, "half_sample") if half_sample is None else half_sample)
        seed = get_setting(cfg, "random_state") if random_state is None else random_state
        tol = float(get_setting(cfg, "grid_tolerance") if grid_tolerance is None else grid_tolerance)
        zero_threshold = float(get_setting(cfg, "zero_threshold"))

        if not isinstance(R_val, (int, np.integer)) or isinstance(R_val, bool) or R_val < 0:
            raise ValueError("R must be a non-negative int")
        R_val = int(R_val)
        if not np.isfinite(tol) or tol < 0:
            raise ValueError("grid_tolerance must be a finite non-negative float")

        # ------------------------------------------
        # 2) Input validation & preprocessing
        # ------------------------------------------
        scores = _validate_scores(DR_scores)
        n = int(scores.size)
        priority_frame, labels = _as_priority_frame(priorities, n)
        weights = _normalize_weights(sample_weights, n)
        cluster_ids = encode_clusters(clusters, n)
        q_arr = _validate_grid(q_raw)

        groups = np.column_stack([encode_priorities(priority_frame.iloc[:, j]) for j in range(priority_frame.shape[1])])
        n_rules = groups.shape[1]
        m = q_arr.size
        weighting_fn = get_weighting_fn(target_enum)

        logger.debug(
            "RATE input: n={}, rules={}, clusters={}, target={}, R={}",
            n,
            labels,
            int(cluster_ids.max()) + 1,
            target_enum.value,
            R_val,
        )

        # ------------------------------------------
        # 3) Paired statistic: every rule on the same draw
        # ------------------------------------------
        def statistic(index_set: np.ndarray) -> np.ndarray:
            out = np.empty((n_rules, m + 1), dtype=float)
            for j in range(n_rules):
                stats = aggregate(scores, weights, groups[:, j], index_set)
                rate, toc = estimate(stats, q_arr, weighting_fn, tol=tol)
                out[j, 0] = rate
                out[j, 1:] = toc
            return out.reshape(-1)

        boot = run_bootstrap(
            statistic,
            n,
            R_val,
            cluster_ids=cluster_ids,
            half_sample=half,
            random_state=seed,
        )

        point = boot["point_estimate"].reshape(n_rules, m + 1)
        replicates = boot["replicates"].reshape(R_val, n_rules, m + 1)
        std_errors = bootstrap_std_err(boot["replicates"]).reshape(n_rules, m + 1)

        # ------------------------------------------
        # 4) Difference of rules (paired replicates)
        # ------------------------------------------
        # Snap the per-rule rows before differencing so the difference row is
        # exactly rule1 - rule2 of the reported values.
        point = snap_to_zero(point, zero_threshold)
        if n_rules == 2:
            point = np.vstack([point, point[0] - point[1]])
            std_errors = np.vstack([std_errors, bootstrap_std_err(replicates[:, 0, :] - replicates[:, 1, :])])
            labels = labels + [f"{labels[0]} - {labels[1]}"]

        point = snap_to_zero(point, zero_threshold)
        std_errors = snap_to_zero(std_errors, zero_threshold)

        # ------------------------------------------
        # 5) Assemble result
        # ------------------------------------------
        toc_table = pd.DataFrame(
            {
                "estimate": point[:, 1:].reshape(-1),
                "std_err": std_errors[:, 1:].reshape(-1),
                "q": np.tile(q_arr, len(labels)),
                "priority": np.repeat(labels, m),
            }
        )
        assert len(toc_table) == m * len(labels), "TOC table row count mismatch"

        result = RATEResult(
            estimate=point[:, 0].copy(),
            std_err=std_errors[:, 0].copy(),
            target_label=[f"{label} | {target_enum.value}" for label in labels],
            toc_table=toc_table,
            target=target_enum,
            q=q_arr,
            R=R_val,
        )
        logger.debug("RATE estimate: {}", dict(zip(result.target_label, result.estimate.tolist())))

        return result

    except Exception as exc:
        raise RuntimeError(f"rank_average_treatment_effect failed: {exc}") from exc
