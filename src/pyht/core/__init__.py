"""Core data structures: populations and the exception hierarchy."""

from .exceptions import (
    ComputationError,
    DegenerateWeightError,
    InsufficientObservationsError,
    InvalidDesignError,
    PyHTError,
)
from .population import (
    Population,
    PrimaryUnit,
    sampling_weights,
    simulate_population,
    size_weight,
    sqrt_age_by_size,
)

__all__ = [
    "ComputationError",
    "DegenerateWeightError",
    "InsufficientObservationsError",
    "InvalidDesignError",
    "Population",
    "PrimaryUnit",
    "PyHTError",
    "sampling_weights",
    "simulate_population",
    "size_weight",
    "sqrt_age_by_size",
]
