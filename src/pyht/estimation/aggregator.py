"""
Horvitz-Thompson aggregation of a two-stage sample.

:class:`HorvitzThompsonEstimator` turns a :class:`TwoStageSample` into a
:class:`PopulationEstimate`: the population total, its variance, standard
error, Student-t confidence interval and per-acre equivalents, together
with the per-stand intermediate quantities for inspection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, Optional

import numpy as np
import polars as pl

from ..core.exceptions import InvalidDesignError
from ..core.population import Population, WeightFunction
from .design import DesignLike, as_design
from .inclusion import InclusionProbabilities
from .sampler import TwoStageSample, TwoStageSampler
from .variance import (
    calculate_confidence_interval,
    calculate_cv,
    horvitz_thompson_total,
    horvitz_thompson_variance,
    standard_error,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitDiagnostics:
    """Intermediate quantities for one sampled stand."""

    unit_id: Hashable
    pi: float
    p: float
    t_hat: float
    var_t_hat: float
    n_plots: int


@dataclass(frozen=True)
class PopulationEstimate:
    """Result of one two-stage Horvitz-Thompson estimate."""

    total: float
    variance: float
    se: float
    half_width: float
    confidence: float
    mean_per_acre: float
    half_width_per_acre: float
    sample_size: int
    n_population: int
    units: tuple[UnitDiagnostics, ...]

    @property
    def lower(self) -> float:
        return self.total - self.half_width

    @property
    def upper(self) -> float:
        return self.total + self.half_width

    @property
    def cv_percent(self) -> float:
        return calculate_cv(self.total, self.se)

    def covers(self, value: float) -> bool:
        """Whether the confidence interval contains ``value``."""
        return self.lower <= value <= self.upper

    def to_frame(self) -> pl.DataFrame:
        """One-row summary in the column style of the estimation functions."""
        return pl.DataFrame(
            {
                "TOTAL": [self.total],
                "TOTAL_VARIANCE": [self.variance],
                "TOTAL_SE": [self.se],
                "TOTAL_SE_PERCENT": [self.cv_percent],
                "CI_HALF_WIDTH": [self.half_width],
                "CI_LOWER": [self.lower],
                "CI_UPPER": [self.upper],
                "CONFIDENCE": [self.confidence],
                "MEAN_ACRE": [self.mean_per_acre],
                "CI_HALF_WIDTH_ACRE": [self.half_width_per_acre],
                "N_SAMPLED": [self.sample_size],
                "N_UNITS": [self.n_population],
            }
        )

    def units_frame(self) -> pl.DataFrame:
        return pl.DataFrame(
            {
                "STAND_ID": [u.unit_id for u in self.units],
                "PI": [u.pi for u in self.units],
                "P": [u.p for u in self.units],
                "T_HAT": [u.t_hat for u in self.units],
                "VAR_T_HAT": [u.var_t_hat for u in self.units],
                "N_PLOTS": [u.n_plots for u in self.units],
            }
        )


def aggregate(
    units: list[UnitDiagnostics],
    indices: list[int],
    inclusion: InclusionProbabilities,
    n_population: int,
    total_size: float,
    confidence: float = 0.90,
    apply_fpc: bool = True,
    se_normalization: str = "sample_size",
) -> PopulationEstimate:
    """Combine per-stand estimates into a population estimate.

    Parameters
    ----------
    units : list[UnitDiagnostics]
        One entry per sampled stand.
    indices : list[int]
        Population index of each sampled stand, aligned with ``units``;
        used to look up joint inclusion probabilities.
    inclusion : InclusionProbabilities
        Source of π_ik.
    n_population : int
        Number of stands in the population (N).
    total_size : float
        Total population acres, for per-acre conversions.

    Raises
    ------
    InvalidDesignError
        Fewer than 2 sampled stands.
    ComputationError
        A zero or non-finite π_i or π_ik.
    """
    n = len(units)
    if n < 2:
        raise InvalidDesignError(
            f"at least 2 sampled units are required, got {n}", "sample_size"
        )
    if len(indices) != n:
        raise ValueError("indices must align with units")

    t_hat = [u.t_hat for u in units]
    var_t_hat = [u.var_t_hat for u in units]
    pi = [u.pi for u in units]

    def joint(i: int, k: int) -> float:
        return inclusion.joint_probability(indices[i], indices[k])

    total = horvitz_thompson_total(t_hat, pi)
    var_stats = horvitz_thompson_variance(
        t_hat, var_t_hat, pi, joint, n_population, apply_fpc=apply_fpc
    )
    variance = var_stats["variance_total"]
    se = standard_error(variance, n, se_normalization)
    lower, upper = calculate_confidence_interval(total, se, confidence, df=n - 1)
    half_width = (upper - lower) / 2.0

    logger.debug(
        "HT aggregate: n=%d total=%.6g variance=%.6g (single=%.6g pairwise=%.6g within=%.6g)",
        n,
        total,
        variance,
        var_stats["single_unit"],
        var_stats["pairwise"],
        var_stats["within_unit"],
    )

    return PopulationEstimate(
        total=total,
        variance=variance,
        se=se,
        half_width=half_width,
        confidence=confidence,
        mean_per_acre=total / total_size,
        half_width_per_acre=half_width / total_size,
        sample_size=n,
        n_population=n_population,
        units=tuple(units),
    )


class HorvitzThompsonEstimator:
    """Two-stage Horvitz-Thompson estimator for a stand population.

    Parameters
    ----------
    population : Population
        Sampling frame.
    config : SamplingDesign or dict
        Design parameters, e.g. ``{"sample_size": 10, "confidence": 0.9}``.
    weight_fn : callable, optional
        Raw weight function; defaults to ``sqrt(age) * acres``.
    rng : np.random.Generator, optional
        Used for Monte Carlo inclusion probabilities at construction.
    inclusion : InclusionProbabilities, optional
        Precomputed inclusion probabilities, reused across trials.
    weights : np.ndarray, optional
        Precomputed normalized weights.

    Examples
    --------
    >>> from pyht import simulate_population
    >>> rng = np.random.default_rng(42)
    >>> population = simulate_population(50, rng)
    >>> estimator = HorvitzThompsonEstimator(population, {"sample_size": 8}, rng=rng)
    >>> result = estimator.estimate(estimator.sampler.draw(rng))
    >>> result.sample_size
    8
    """

    def __init__(
        self,
        population: Population,
        config: DesignLike,
        weight_fn: Optional[WeightFunction] = None,
        rng: Optional[np.random.Generator] = None,
        inclusion: Optional[InclusionProbabilities] = None,
        weights: Optional[np.ndarray] = None,
    ):
        self.population = population
        self.design = as_design(config)
        self.sampler = TwoStageSampler(
            population,
            self.design,
            weights=weights,
            inclusion=inclusion,
            weight_fn=weight_fn,
            rng=rng,
        )

    @property
    def inclusion(self) -> InclusionProbabilities:
        return self.sampler.inclusion

    @property
    def weights(self) -> np.ndarray:
        return self.sampler.weights

    def estimate(self, sample: TwoStageSample) -> PopulationEstimate:
        """Aggregate a drawn sample into a population estimate."""
        units = [
            UnitDiagnostics(
                unit_id=stand.unit_id,
                pi=stand.pi,
                p=stand.p,
                t_hat=stand.t_hat,
                var_t_hat=stand.var_t_hat,
                n_plots=stand.n_plots,
            )
            for stand in sample.stands
        ]
        return aggregate(
            units,
            sample.indices,
            self.inclusion,
            n_population=self.population.n_units,
            total_size=self.population.total_size,
            confidence=self.design.confidence,
            apply_fpc=self.design.finite_population_correction,
            se_normalization=self.design.se_normalization,
        )

    def run_trial(self, rng: np.random.Generator) -> PopulationEstimate:
        """Draw a fresh sample and estimate from it."""
        return self.estimate(self.sampler.draw(rng))


def estimate(
    population: Population,
    config: DesignLike,
    rng: Optional[np.random.Generator] = None,
    weight_fn: Optional[WeightFunction] = None,
) -> PopulationEstimate:
    """
    Run one two-stage sample and Horvitz-Thompson estimate.

    Parameters
    ----------
    population : Population
        Sampling frame.
    config : SamplingDesign or dict
        Design parameters.
    rng : np.random.Generator, optional
        Source of randomness for inclusion probabilities and the draw.
    weight_fn : callable, optional
        Raw weight function.

    Returns
    -------
    PopulationEstimate
    """
    if rng is None:
        rng = np.random.default_rng()
    estimator = HorvitzThompsonEstimator(population, config, weight_fn=weight_fn, rng=rng)
    return estimator.run_trial(rng)
