"""
Variance calculation functions for two-stage Horvitz-Thompson estimation.

This module provides the variance and interval functions used by the
aggregator, implementing the double-sampling estimator for a population
total under PPS sampling of primary units without replacement and simple
random sub-sampling of plots within each selected unit.

Population Total (T):
---------------------

    T_hat = Σ_i t_i / π_i

Where:
- t_i = estimated total of sampled unit i (mean plot value × unit area)
- π_i = first-order inclusion probability of unit i

Total Variance (V(T)):
----------------------

    V(T_hat) = fpc × [V1 + V2 + V3]

    V1 = Σ_i (1 - π_i) / π_i² × t_i²                    (single-unit term)
    V2 = Σ_{i≠k} (π_ik - π_i π_k) / π_ik × (t_i/π_i)(t_k/π_k)
                                                        (pairwise term)
    V3 = Σ_i v_i / π_i                                  (within-unit term)

Where:
- fpc = 1 - n/N (finite population correction)
- π_ik = joint inclusion probability of units i and k
- v_i = variance of t_i from plot sub-sampling, A_i² × s²_i / m_i
- the pairwise term sums over every ordered pair of distinct sampled units

Standard error and interval:
----------------------------

    SE = sqrt(V / n)            (se_normalization='sample_size', default)
    SE = sqrt(V)                (se_normalization='none')

    half width = t_{1-α/2, n-1} × SE

Dividing by the number of sampled units and using n - 1 degrees of freedom
are modelling conventions kept for comparability with earlier analyses.

Key implementation requirements:
- Every division by π_i or π_ik is guarded; a zero or non-finite
  probability raises ComputationError instead of returning NaN
- Fewer than 2 sampled units raises InvalidDesignError (df would be 0)
- A negative variance (possible with the HT form) is clamped to zero

Reference:
    Horvitz, D.G.; Thompson, D.J. 1952. A generalization of sampling
    without replacement from a finite universe. Journal of the American
    Statistical Association 47(260): 663-685.
    Särndal, C.-E.; Swensson, B.; Wretman, J. 1992. Model Assisted Survey
    Sampling. Springer. Chapter 4 (two-stage sampling).
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Sequence

import numpy as np
from scipy import stats

from ..core.exceptions import ComputationError, InvalidDesignError
from .constants import Z_SCORE_90, Z_SCORE_95, Z_SCORE_99

logger = logging.getLogger(__name__)

JointProbability = Callable[[int, int], float]


def _require_probability(value: float, label: str) -> float:
    if not np.isfinite(value) or value <= 0:
        raise ComputationError(f"{label} is {value}; cannot divide by it")
    if value > 1 + 1e-12:
        raise ComputationError(f"{label} is {value}, greater than 1")
    return float(value)


def horvitz_thompson_total(t_hat: Sequence[float], pi: Sequence[float]) -> float:
    """
    Horvitz-Thompson estimate of a population total.

    Parameters
    ----------
    t_hat : sequence of float
        Estimated total for each sampled unit.
    pi : sequence of float
        Inclusion probability of each sampled unit.

    Returns
    -------
    float
        Σ t_i / π_i
    """
    if len(t_hat) != len(pi):
        raise ValueError("t_hat and pi must have the same length")
    total = 0.0
    for i, (t_i, pi_i) in enumerate(zip(t_hat, pi)):
        total += t_i / _require_probability(pi_i, f"pi for sampled unit {i}")
    return total


def finite_population_correction(n_sampled: int, n_total: int) -> float:
    """
    Finite population correction 1 - n/N.

    Parameters
    ----------
    n_sampled : int
        Number of sampled units
    n_total : int
        Total population size

    Returns
    -------
    float
        Correction factor in (0, 1)
    """
    if n_sampled >= n_total:
        raise InvalidDesignError(
            f"sample size {n_sampled} must be smaller than the population "
            f"size {n_total}",
            "sample_size",
        )
    return 1.0 - n_sampled / n_total


def apply_finite_population_correction(
    variance: float, n_sampled: int, n_total: int
) -> float:
    """
    Apply finite population correction factor.

    Parameters
    ----------
    variance : float
        Uncorrected variance
    n_sampled : int
        Number of sampled units
    n_total : int
        Total population size

    Returns
    -------
    float
        Corrected variance
    """
    return variance * finite_population_correction(n_sampled, n_total)


def horvitz_thompson_variance_components(
    t_hat: Sequence[float],
    var_t_hat: Sequence[float],
    pi: Sequence[float],
    joint: JointProbability,
) -> dict[str, float]:
    """
    Uncorrected components of the two-stage HT variance.

    Parameters
    ----------
    t_hat : sequence of float
        Estimated total for each sampled unit.
    var_t_hat : sequence of float
        Within-unit variance of each ``t_hat``.
    pi : sequence of float
        Inclusion probability of each sampled unit.
    joint : callable
        ``joint(i, k)`` returns π_ik for positions ``i != k`` in the sample.

    Returns
    -------
    dict
        Dictionary with keys:
        - single_unit: Σ (1 - π_i)/π_i² × t_i²
        - pairwise: Σ_{i≠k} (π_ik - π_i π_k)/π_ik × (t_i/π_i)(t_k/π_k)
        - within_unit: Σ v_i/π_i
    """
    n = len(t_hat)
    if not (len(var_t_hat) == len(pi) == n):
        raise ValueError("t_hat, var_t_hat and pi must have the same length")

    pis = [_require_probability(pi_i, f"pi for sampled unit {i}") for i, pi_i in enumerate(pi)]
    expanded = [t_i / pi_i for t_i, pi_i in zip(t_hat, pis)]

    single_unit = 0.0
    within_unit = 0.0
    for i in range(n):
        single_unit += (1.0 - pis[i]) / pis[i] ** 2 * t_hat[i] ** 2
        within_unit += var_t_hat[i] / pis[i]

    pairwise = 0.0
    for i in range(n):
        for k in range(n):
            if i == k:
                continue
            pi_ik = _require_probability(
                joint(i, k), f"joint inclusion probability for sampled units ({i}, {k})"
            )
            pairwise += (pi_ik - pis[i] * pis[k]) / pi_ik * expanded[i] * expanded[k]

    return {
        "single_unit": single_unit,
        "pairwise": pairwise,
        "within_unit": within_unit,
    }


def horvitz_thompson_variance(
    t_hat: Sequence[float],
    var_t_hat: Sequence[float],
    pi: Sequence[float],
    joint: JointProbability,
    n_population: int,
    apply_fpc: bool = True,
) -> dict[str, float]:
    """
    Calculate the variance of the two-stage Horvitz-Thompson total.

    Parameters
    ----------
    t_hat, var_t_hat, pi : sequence of float
        Per-sampled-unit totals, within-unit variances and inclusion
        probabilities.
    joint : callable
        ``joint(i, k)`` returns π_ik for sample positions ``i != k``.
    n_population : int
        Number of primary units in the population (N).
    apply_fpc : bool, default True
        Multiply the bracketed sum by 1 - n/N.

    Returns
    -------
    dict
        Dictionary with keys:
        - variance_total: Variance of total estimate (clamped at 0)
        - single_unit, pairwise, within_unit: components after the fpc
        - fpc: The correction factor applied (1.0 when disabled)

    Notes
    -----
    The HT form can return a negative value for unlucky samples; it is
    clamped to zero and a warning is logged.
    """
    n = len(t_hat)
    if n < 2:
        raise InvalidDesignError(
            f"at least 2 sampled units are required for a variance, got {n}",
            "sample_size",
        )

    components = horvitz_thompson_variance_components(t_hat, var_t_hat, pi, joint)
    if apply_fpc:
        fpc = finite_population_correction(n, n_population)
        scaled = {
            name: apply_finite_population_correction(value, n, n_population)
            for name, value in components.items()
        }
    else:
        fpc = 1.0
        scaled = dict(components)
    variance_total = scaled["single_unit"] + scaled["pairwise"] + scaled["within_unit"]

    if not math.isfinite(variance_total):
        raise ComputationError(f"variance is not finite: {variance_total}")
    if variance_total < 0:
        logger.warning(
            "Horvitz-Thompson variance is negative (%.6g); clamping to 0",
            variance_total,
        )
        variance_total = 0.0

    return {"variance_total": variance_total, "fpc": fpc, **scaled}


def standard_error(variance: float, n_sampled: int, normalization: str = "sample_size") -> float:
    """
    Standard error of the total.

    ``'sample_size'`` divides the variance by the number of sampled units
    before taking the square root; ``'none'`` does not.
    """
    if variance < 0:
        raise ComputationError(f"variance is negative: {variance}")
    if normalization == "sample_size":
        return math.sqrt(variance / n_sampled)
    if normalization == "none":
        return math.sqrt(variance)
    raise ValueError(f"Unknown se normalization: {normalization}")


def t_critical(confidence: float, df: int) -> float:
    """Two-sided Student-t critical value ``t_{1-α/2, df}``."""
    if df < 1:
        raise InvalidDesignError(
            f"at least 1 degree of freedom is required, got {df}", "sample_size"
        )
    if not 0 < confidence < 1:
        raise ValueError(f"confidence must be in (0, 1), got {confidence}")
    return float(stats.t.ppf(1.0 - (1.0 - confidence) / 2.0, df))


def calculate_confidence_interval(
    estimate: float, se: float, confidence: float = 0.90, df: int | None = None
) -> tuple[float, float]:
    """
    Calculate a confidence interval around an estimate.

    Parameters
    ----------
    estimate : float
        Point estimate
    se : float
        Standard error
    confidence : float
        Confidence level (default 0.90 for 90% CI)
    df : int, optional
        Degrees of freedom. When given, a Student-t critical value is used;
        otherwise the normal approximation.

    Returns
    -------
    tuple[float, float]
        Lower and upper bounds of confidence interval
    """
    if df is not None:
        crit = t_critical(confidence, df)
    elif confidence == 0.95:
        crit = Z_SCORE_95
    elif confidence == 0.90:
        crit = Z_SCORE_90
    elif confidence == 0.99:
        crit = Z_SCORE_99
    else:
        crit = float(stats.norm.ppf(1.0 - (1.0 - confidence) / 2.0))

    lower = estimate - crit * se
    upper = estimate + crit * se

    return lower, upper


def calculate_cv(estimate: float, se: float) -> float:
    """
    Calculate coefficient of variation as percentage.

    Parameters
    ----------
    estimate : float
        Point estimate
    se : float
        Standard error

    Returns
    -------
    float
        Coefficient of variation as percentage
    """
    if estimate != 0:
        return 100 * se / abs(estimate)
    return 0.0
