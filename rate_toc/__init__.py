"""
Rank-Weighted Average Treatment Effect (RATE) and Targeting Operator Characteristic (TOC).

Evaluates how well one or two prioritization rules concentrate treatment
benefit among top-ranked units, given doubly-robust scores, with clustered
half-sample bootstrap standard errors.
"""

from rate_toc.aggregate import SortedCumulativeStats, aggregate, encode_priorities
from rate_toc.bootstrap import run_bootstrap
from rate_toc.config import load_config
from rate_toc.estimator import Target, autoc_weighting, estimate, qini_weighting
from rate_toc.rate import RATEResult, rank_average_treatment_effect

__all__ = [
    "rank_average_treatment_effect",
    "RATEResult",
    "Target",
    "aggregate",
    "encode_priorities",
    "SortedCumulativeStats",
    "estimate",
    "autoc_weighting",
    "qini_weighting",
    "run_bootstrap",
    "load_config",
]

__version__ = "0.1.0"
