"""
Two-stage Horvitz-Thompson estimation.

Stages run in order: inclusion probabilities, two-stage sampling, then
aggregation into a population total with variance and confidence interval.
"""

from .aggregator import (
    HorvitzThompsonEstimator,
    PopulationEstimate,
    UnitDiagnostics,
    aggregate,
    estimate,
)
from .design import SamplingDesign
from .inclusion import (
    InclusionProbabilities,
    analytic_inclusion_probabilities,
    approximate_joint_probability,
    exact_inclusion_probabilities,
    inclusion_probabilities,
    monte_carlo_inclusion,
)
from .sampler import (
    StandSample,
    TwoStageSample,
    TwoStageSampler,
    draw_observations,
    draw_primary_sample,
    plot_count,
)
from .simulation import SimulationResult, run_simulation
from .variance import (
    calculate_confidence_interval,
    calculate_cv,
    horvitz_thompson_total,
    horvitz_thompson_variance,
    standard_error,
    t_critical,
)

__all__ = [
    "HorvitzThompsonEstimator",
    "InclusionProbabilities",
    "PopulationEstimate",
    "SamplingDesign",
    "SimulationResult",
    "StandSample",
    "TwoStageSample",
    "TwoStageSampler",
    "UnitDiagnostics",
    "aggregate",
    "analytic_inclusion_probabilities",
    "approximate_joint_probability",
    "calculate_confidence_interval",
    "calculate_cv",
    "draw_observations",
    "draw_primary_sample",
    "estimate",
    "exact_inclusion_probabilities",
    "horvitz_thompson_total",
    "horvitz_thompson_variance",
    "inclusion_probabilities",
    "monte_carlo_inclusion",
    "plot_count",
    "run_simulation",
    "standard_error",
    "t_critical",
]
