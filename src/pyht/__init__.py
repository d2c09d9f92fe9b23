"""
pyHT: two-stage Horvitz-Thompson estimation for forest stand inventories.

Stands are sampled with probability proportional to size without
replacement, plots are sub-sampled within each stand, and the population
total is estimated with its variance and a Student-t confidence interval.
"""

__version__ = "0.3.0"

from .core import (
    ComputationError,
    DegenerateWeightError,
    InsufficientObservationsError,
    InvalidDesignError,
    Population,
    PrimaryUnit,
    PyHTError,
    sampling_weights,
    simulate_population,
    size_weight,
    sqrt_age_by_size,
)
from .estimation import (
    HorvitzThompsonEstimator,
    InclusionProbabilities,
    PopulationEstimate,
    SamplingDesign,
    SimulationResult,
    TwoStageSampler,
    estimate,
    exact_inclusion_probabilities,
    inclusion_probabilities,
    monte_carlo_inclusion,
    run_simulation,
)
from .utils import display_estimate, display_simulation, setup_logging

__all__ = [
    "ComputationError",
    "DegenerateWeightError",
    "HorvitzThompsonEstimator",
    "InclusionProbabilities",
    "InsufficientObservationsError",
    "InvalidDesignError",
    "Population",
    "PopulationEstimate",
    "PrimaryUnit",
    "PyHTError",
    "SamplingDesign",
    "SimulationResult",
    "TwoStageSampler",
    "display_estimate",
    "display_simulation",
    "estimate",
    "exact_inclusion_probabilities",
    "inclusion_probabilities",
    "monte_carlo_inclusion",
    "run_simulation",
    "sampling_weights",
    "setup_logging",
    "simulate_population",
    "size_weight",
    "sqrt_age_by_size",
]
