"""
Inclusion probabilities for fixed-size PPS sampling without replacement.

Units are drawn one at a time with probability proportional to ``p_i``
among the units not yet selected (successive sampling). The marginal
inclusion probability ``pi_i`` of that design has no closed form, so three
routes are provided:

Analytic approximation
    ``pi_i ~= min(1, n * p_i)``. Fast but biased when ``p_i`` is large
    relative to ``1/n``; kept for diagnostics.

Monte Carlo
    Repeat the draw ``S`` times and count how often each unit appears. The
    draws are generated in batches with the Efraimidis-Spirakis key trick
    (keep the ``n`` largest ``log(U_i) / p_i``), which has exactly the
    successive-sampling distribution. Because every replicate contains
    exactly ``n`` units, ``sum(pi) == n`` holds to rounding.

Exact enumeration
    Walk every ordered draw sequence and accumulate its probability. Only
    feasible for small populations; refused above ``max_sequences``.

Joint inclusion probabilities ``pi_ik`` are either approximated with

    pi_ik ~= pi_i + pi_k - (1 - (1 - p_i - p_k)**n)

(valid only when ``p_i`` and ``p_k`` are small) or taken from the Monte
Carlo or exact routes, which produce the full matrix.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..core.exceptions import DegenerateWeightError, InvalidDesignError
from .constants import DEFAULT_MAX_EXACT_SEQUENCES, MC_BATCH_SIZE
from .design import SamplingDesign

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class InclusionProbabilities:
    """First-order (and optionally second-order) inclusion probabilities.

    Attributes
    ----------
    pi : np.ndarray
        Marginal inclusion probability per population unit.
    p : np.ndarray
        Normalized selection weights the probabilities were derived from.
    sample_size : int
        Fixed sample size ``n``.
    method : str
        How ``pi`` was computed.
    joint : np.ndarray, optional
        ``N x N`` matrix of joint inclusion probabilities, with ``pi`` on
        the diagonal. ``None`` means the approximation is used.
    joint_method : str
        How joint probabilities are obtained.
    trials : int, optional
        Monte Carlo replicates, when simulation was used.
    """

    pi: np.ndarray
    p: np.ndarray
    sample_size: int
    method: str
    joint: Optional[np.ndarray] = None
    joint_method: str = "approximate"
    trials: Optional[int] = None

    def joint_probability(self, i: int, k: int) -> float:
        """Joint inclusion probability of population units ``i`` and ``k``."""
        if i == k:
            return float(self.pi[i])
        if self.joint is not None:
            return float(self.joint[i, k])
        return approximate_joint_probability(
            self.pi[i], self.pi[k], self.p[i], self.p[k], self.sample_size
        )


def check_weights(p: np.ndarray, n: int) -> np.ndarray:
    """Validate normalized weights against a sample size.

    Returns the weights as a float array.

    Raises
    ------
    DegenerateWeightError
        Negative, non-finite or unnormalized weights.
    InvalidDesignError
        ``n < 2``, ``n >= N`` or fewer than ``n`` units with positive weight.
    """
    p = np.asarray(p, dtype=float)
    if p.ndim != 1:
        raise DegenerateWeightError(f"weights must be one-dimensional, got shape {p.shape}")
    if not np.all(np.isfinite(p)):
        raise DegenerateWeightError("weights contain non-finite values")
    if np.any(p < 0):
        raise DegenerateWeightError("weights contain negative values")
    if not np.isclose(p.sum(), 1.0):
        raise DegenerateWeightError(f"weights must sum to 1, got {p.sum():.6g}")

    n_population = len(p)
    if n < 2:
        raise InvalidDesignError(
            f"at least 2 primary units are required, got {n}", "sample_size"
        )
    if n >= n_population:
        raise InvalidDesignError(
            f"sample size {n} must be smaller than the population size {n_population}",
            "sample_size",
        )
    n_eligible = int((p > 0).sum())
    if n_eligible < n:
        raise InvalidDesignError(
            f"only {n_eligible} units have positive weight, cannot draw {n}",
            "sample_size",
        )
    return p


def analytic_inclusion_probabilities(p: np.ndarray, n: int) -> np.ndarray:
    """Approximate ``pi_i`` as ``min(1, n * p_i)``."""
    p = check_weights(p, n)
    raw = n * p
    n_over = int((raw > 1).sum())
    if n_over:
        logger.warning(
            "%d unit(s) have n * p_i > 1; analytic inclusion probabilities "
            "are capped at 1 and no longer sum to n",
            n_over,
        )
    return np.minimum(1.0, raw)


def approximate_joint_probability(
    pi_i: float, pi_k: float, p_i: float, p_k: float, n: int
) -> float:
    """Approximate joint inclusion probability of two distinct units.

    ``pi_ik ~= pi_i + pi_k - (1 - (1 - p_i - p_k)**n)``

    The last term is the probability that at least one of the two units
    appears in ``n`` independent draws, so the formula is only accurate
    when both weights are small. Use ``joint_method='exact'`` or
    ``'monte_carlo'`` otherwise.
    """
    return float(pi_i + pi_k - (1.0 - (1.0 - p_i - p_k) ** n))


def selection_keys(p: np.ndarray, rng: np.random.Generator, size: int) -> np.ndarray:
    """Efraimidis-Spirakis keys for ``size`` independent replicates.

    Taking the ``n`` largest keys of a row is a weighted draw of ``n``
    units without replacement. Zero-weight units get ``-inf`` and are never
    selected.
    """
    u = rng.random((size, len(p)))
    positive = p > 0
    keys = np.full(u.shape, -np.inf)
    with np.errstate(divide="ignore"):
        keys[:, positive] = np.log(u[:, positive]) / p[positive]
    return keys


def monte_carlo_inclusion(
    p: np.ndarray,
    n: int,
    trials: int,
    rng: np.random.Generator,
    joint: bool = False,
    batch_size: int = MC_BATCH_SIZE,
) -> InclusionProbabilities:
    """Estimate inclusion probabilities by repeated weighted sampling.

    Parameters
    ----------
    p : np.ndarray
        Normalized selection weights.
    n : int
        Sample size per replicate.
    trials : int
        Number of replicates ``S``.
    rng : np.random.Generator
        Source of randomness.
    joint : bool, default False
        Also tally pairwise co-selection to estimate ``pi_ik``.
    batch_size : int
        Replicates generated per vectorized batch.

    Returns
    -------
    InclusionProbabilities
        ``pi = counts / trials``.
    """
    p = check_weights(p, n)
    if trials < 1:
        raise InvalidDesignError("must be positive", "mc_trials")

    n_population = len(p)
    counts = np.zeros(n_population, dtype=np.int64)
    pair_counts = np.zeros((n_population, n_population), dtype=np.int64) if joint else None

    done = 0
    while done < trials:
        size = min(batch_size, trials - done)
        keys = selection_keys(p, rng, size)
        chosen = np.argpartition(-keys, n - 1, axis=1)[:, :n]
        counts += np.bincount(chosen.ravel(), minlength=n_population)
        if pair_counts is not None:
            indicator = np.zeros((size, n_population), dtype=np.int64)
            np.put_along_axis(indicator, chosen, 1, axis=1)
            pair_counts += indicator.T @ indicator
        done += size
        logger.debug("Monte Carlo inclusion: %d/%d replicates", done, trials)

    pi = counts / trials
    joint_matrix = pair_counts / trials if pair_counts is not None else None
    return InclusionProbabilities(
        pi=pi,
        p=p,
        sample_size=n,
        method="monte_carlo",
        joint=joint_matrix,
        joint_method="monte_carlo" if joint else "approximate",
        trials=trials,
    )


def exact_inclusion_probabilities(
    p: np.ndarray, n: int, max_sequences: int = DEFAULT_MAX_EXACT_SEQUENCES
) -> InclusionProbabilities:
    """Exact first- and second-order inclusion probabilities.

    Every ordered sequence of ``n`` distinct positive-weight units is
    visited once. When unit ``j`` is added to a partial sequence with
    probability ``q`` of having occurred, every completion of that sequence
    contains ``j`` and all earlier units, so ``q`` is credited to ``pi_j``
    and to ``pi_jk`` for each earlier ``k`` without descending to the
    leaves first.

    Raises
    ------
    InvalidDesignError
        If the number of ordered sequences exceeds ``max_sequences``.
    """
    p = check_weights(p, n)
    eligible = [int(j) for j in np.flatnonzero(p > 0)]
    n_sequences = math.perm(len(eligible), n)
    if n_sequences > max_sequences:
        raise InvalidDesignError(
            f"exact enumeration needs {n_sequences:,} ordered sequences "
            f"(limit {max_sequences:,}); use the Monte Carlo method instead",
            "max_exact_sequences",
        )

    n_population = len(p)
    pi = np.zeros(n_population)
    joint = np.zeros((n_population, n_population))
    selected = [False] * n_population

    def visit(path: list[int], prob: float, remaining: float) -> None:
        for j in eligible:
            if selected[j]:
                continue
            q = prob * p[j] / remaining
            pi[j] += q
            for k in path:
                joint[j, k] += q
                joint[k, j] += q
            if len(path) + 1 < n:
                selected[j] = True
                path.append(j)
                visit(path, q, remaining - p[j])
                path.pop()
                selected[j] = False

    visit([], 1.0, float(p.sum()))
    np.fill_diagonal(joint, pi)
    logger.debug("Exact inclusion: enumerated %d ordered sequences", n_sequences)

    return InclusionProbabilities(
        pi=pi,
        p=p,
        sample_size=n,
        method="exact",
        joint=joint,
        joint_method="exact",
    )


def inclusion_probabilities(
    p: np.ndarray, design: SamplingDesign, rng: Optional[np.random.Generator] = None
) -> InclusionProbabilities:
    """Compute inclusion probabilities as configured by ``design``.

    The first-order method comes from ``design.inclusion_method`` and the
    joint method from ``design.joint_method``; the two may differ (for
    example Monte Carlo ``pi`` with approximate ``pi_ik``).
    """
    n = design.sample_size
    p = check_weights(p, n)
    if rng is None:
        rng = np.random.default_rng()

    exact = None
    if "exact" in (design.inclusion_method, design.joint_method):
        exact = exact_inclusion_probabilities(p, n, design.max_exact_sequences)

    simulated = None
    if "monte_carlo" in (design.inclusion_method, design.joint_method):
        simulated = monte_carlo_inclusion(
            p,
            n,
            design.mc_trials,
            rng,
            joint=design.joint_method == "monte_carlo",
        )

    if design.inclusion_method == "exact":
        pi = exact.pi
    elif design.inclusion_method == "monte_carlo":
        pi = simulated.pi
    else:
        pi = analytic_inclusion_probabilities(p, n)

    if design.joint_method == "exact":
        joint = exact.joint.copy()
    elif design.joint_method == "monte_carlo":
        joint = simulated.joint.copy()
    else:
        joint = None
    if joint is not None:
        np.fill_diagonal(joint, pi)

    if simulated is not None and np.any((p > 0) & (pi == 0)):
        logger.warning(
            "%d positive-weight unit(s) were never drawn in %d Monte Carlo "
            "replicates; selecting one will fail",
            int(((p > 0) & (pi == 0)).sum()),
            design.mc_trials,
        )

    logger.debug(
        "Inclusion probabilities: method=%s joint=%s sum(pi)=%.4f",
        design.inclusion_method,
        design.joint_method,
        pi.sum(),
    )
    return InclusionProbabilities(
        pi=pi,
        p=p,
        sample_size=n,
        method=design.inclusion_method,
        joint=joint,
        joint_method=design.joint_method,
        trials=design.mc_trials if simulated is not None else None,
    )

