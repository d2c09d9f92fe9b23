"""
Exception hierarchy for pyHT.

All errors raised by the library derive from :class:`PyHTError` so callers
running repeated simulation trials can catch a single type, discard the
trial and carry on. Each error also subclasses ``ValueError`` because every
one of them describes a bad input or a degenerate numerical state rather
than an I/O problem.
"""

from __future__ import annotations


class PyHTError(ValueError):
    """Base class for all pyHT errors."""


class InvalidDesignError(PyHTError):
    """Raised when the sampling design cannot produce a valid estimate.

    Examples are a sample size at or above the population size, a sample
    size below 2, or design parameters outside their valid ranges.
    """

    def __init__(self, message: str, parameter: str | None = None):
        self.parameter = parameter
        if parameter is not None:
            message = f"Invalid sampling design ({parameter}): {message}"
        else:
            message = f"Invalid sampling design: {message}"
        super().__init__(message)


class DegenerateWeightError(PyHTError):
    """Raised when sampling weights are zero, negative or not finite."""

    def __init__(self, message: str, unit_id: object | None = None):
        self.unit_id = unit_id
        if unit_id is not None:
            message = f"{message} (unit {unit_id!r})"
        super().__init__(message)


class ComputationError(PyHTError):
    """Raised instead of returning NaN or Inf from an estimator.

    Covers division by a zero inclusion probability (first or second
    order) and any other non-finite intermediate quantity.
    """


class InsufficientObservationsError(PyHTError):
    """Raised when a sampled unit has fewer than 2 secondary observations."""

    def __init__(self, unit_id: object, n_observations: int):
        self.unit_id = unit_id
        self.n_observations = n_observations
        super().__init__(
            f"Unit {unit_id!r} has {n_observations} secondary observation(s); "
            "at least 2 are required to estimate within-unit variance. "
            "Increase min_plots in the sampling design."
        )
