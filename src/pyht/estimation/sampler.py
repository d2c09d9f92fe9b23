"""
Two-stage sampler: PPS stands, then plots within stands.

Stage one draws ``n`` stands without replacement with probability
proportional to ``p_i``. Stage two lays out ``ceil(acres / plot_spacing)``
plots in each selected stand, clamped to ``[min_plots, max_plots]``, and
measures each plot. Measurements are simulated from a normal distribution
centred on the stand's true per-acre mean with standard deviation
``cv * mean``, truncated to ``[0, upper_bound]``. Truncation (not
clipping) keeps the shape of the distribution above zero.

The sampler holds no state besides the population and its precomputed
weights; all randomness comes from the ``np.random.Generator`` passed to
:meth:`TwoStageSampler.draw`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Hashable, Optional

import numpy as np
from scipy import stats

from ..core.exceptions import (
    ComputationError,
    DegenerateWeightError,
    InsufficientObservationsError,
)
from ..core.population import Population, WeightFunction, sampling_weights
from .design import DesignLike, SamplingDesign, as_design
from .inclusion import InclusionProbabilities, check_weights, inclusion_probabilities

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class StandSample:
    """Secondary observations from one selected stand."""

    index: int
    unit_id: Hashable
    size: float
    p: float
    pi: float
    observations: np.ndarray

    @property
    def n_plots(self) -> int:
        return len(self.observations)

    def _require_observations(self) -> None:
        if self.n_plots < 2:
            raise InsufficientObservationsError(self.unit_id, self.n_plots)

    @property
    def mean_value(self) -> float:
        """Mean observation per acre."""
        self._require_observations()
        return float(np.mean(self.observations))

    @property
    def t_hat(self) -> float:
        """Estimated stand total: mean per acre times acres."""
        return self.mean_value * self.size

    @property
    def var_t_hat(self) -> float:
        """Variance of ``t_hat`` due to plot sub-sampling.

        ``size**2 * s**2 / m`` with ``s**2`` the sample variance of the
        ``m`` plot observations (ddof=1).
        """
        self._require_observations()
        s2 = float(np.var(self.observations, ddof=1))
        return self.size**2 * s2 / self.n_plots


@dataclass(frozen=True)
class TwoStageSample:
    """One realized two-stage sample."""

    stands: tuple[StandSample, ...]
    n_population: int

    @property
    def sample_size(self) -> int:
        return len(self.stands)

    @property
    def indices(self) -> list[int]:
        return [s.index for s in self.stands]

    @property
    def unit_ids(self) -> list:
        return [s.unit_id for s in self.stands]


def draw_primary_sample(p: np.ndarray, n: int, rng: np.random.Generator) -> np.ndarray:
    """Draw ``n`` distinct unit indices with probability proportional to ``p``.

    Units are drawn one at a time from those not yet selected, so no index
    repeats. Zero-weight units are never drawn.
    """
    p = check_weights(p, n)
    return rng.choice(len(p), size=n, replace=False, p=p / p.sum())


def plot_count(size: float, design: SamplingDesign) -> int:
    """Number of secondary plots for a stand of ``size`` acres."""
    n_plots = math.ceil(size / design.plot_spacing)
    return int(min(max(n_plots, design.min_plots), design.max_plots))


def draw_observations(
    mean: float,
    cv: float,
    n_plots: int,
    rng: np.random.Generator,
    upper_bound: float = math.inf,
) -> np.ndarray:
    """Simulate ``n_plots`` per-acre measurements for one stand.

    Draws come from a normal distribution with location ``mean`` and scale
    ``cv * mean``, truncated to ``[0, upper_bound]``. A zero scale yields
    ``n_plots`` copies of the mean, clipped into the valid range.
    """
    scale = cv * mean
    if scale <= 0:
        return np.full(n_plots, float(min(max(mean, 0.0), upper_bound)))

    a = (0.0 - mean) / scale
    b = (upper_bound - mean) / scale
    return stats.truncnorm.rvs(
        a, b, loc=mean, scale=scale, size=n_plots, random_state=rng
    )


class TwoStageSampler:
    """Draw two-stage samples from a fixed population.

    Weights and inclusion probabilities are computed once at construction
    (or passed in) and reused for every draw.

    Parameters
    ----------
    population : Population
        Sampling frame of stands.
    config : SamplingDesign or dict
        Design parameters.
    weights : np.ndarray, optional
        Precomputed normalized weights. Computed with ``weight_fn`` if not
        given.
    inclusion : InclusionProbabilities, optional
        Precomputed inclusion probabilities.
    weight_fn : callable, optional
        Raw weight function for :func:`sampling_weights`.
    rng : np.random.Generator, optional
        Used only for Monte Carlo inclusion probabilities at construction.
    """

    def __init__(
        self,
        population: Population,
        config: DesignLike,
        weights: Optional[np.ndarray] = None,
        inclusion: Optional[InclusionProbabilities] = None,
        weight_fn: Optional[WeightFunction] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.population = population
        self.design = as_design(config)
        self.design.check_population_size(population.n_units)

        if weights is None:
            weights = sampling_weights(population, weight_fn)
        self.weights = check_weights(weights, self.design.sample_size)
        if len(self.weights) != population.n_units:
            raise DegenerateWeightError(
                f"{len(self.weights)} weights for {population.n_units} units"
            )

        if inclusion is None:
            inclusion = inclusion_probabilities(self.weights, self.design, rng)
        self.inclusion = inclusion

    def plot_counts(self) -> np.ndarray:
        """Plot count for every stand in the population."""
        return np.array([plot_count(u.size, self.design) for u in self.population])

    def draw(self, rng: np.random.Generator) -> TwoStageSample:
        """Draw one two-stage sample.

        Raises
        ------
        DegenerateWeightError
            A selected stand has non-positive weight.
        ComputationError
            A selected stand has a zero inclusion probability.
        """
        indices = draw_primary_sample(self.weights, self.design.sample_size, rng)

        stands = []
        for index in indices:
            index = int(index)
            unit = self.population[index]
            p_i = float(self.weights[index])
            pi_i = float(self.inclusion.pi[index])
            if p_i <= 0:
                raise DegenerateWeightError("selected unit has zero weight", unit.unit_id)
            if not pi_i > 0:
                raise ComputationError(
                    f"selected unit {unit.unit_id!r} has inclusion probability {pi_i}"
                )

            observations = draw_observations(
                unit.mean,
                unit.cv,
                plot_count(unit.size, self.design),
                rng,
                self.design.upper_bound,
            )
            stands.append(
                StandSample(
                    index=index,
                    unit_id=unit.unit_id,
                    size=unit.size,
                    p=p_i,
                    pi=pi_i,
                    observations=observations,
                )
            )

        return TwoStageSample(stands=tuple(stands), n_population=self.population.n_units)
