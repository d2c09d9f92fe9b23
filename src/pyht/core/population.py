"""
Finite populations of primary sampling units.

A :class:`Population` is an ordered, immutable collection of stands. Each
stand carries its area, an auxiliary covariate (stand age) used to form
the PPS sampling weight, and the true per-acre mean and coefficient of
variation used to simulate plot measurements. The estimators only read
``size`` and the weights; ``mean`` and ``cv`` are ground truth for
simulation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Hashable, Iterator, Optional

import numpy as np
import polars as pl

from .exceptions import DegenerateWeightError, InvalidDesignError

logger = logging.getLogger(__name__)

WeightFunction = Callable[["Population"], np.ndarray]


@dataclass(frozen=True)
class PrimaryUnit:
    """A single stand in the population."""

    unit_id: Hashable
    size: float
    covariate: float
    mean: float
    cv: float

    @property
    def true_total(self) -> float:
        return self.size * self.mean


@dataclass(frozen=True)
class Population:
    """Ordered collection of primary units.

    Parameters
    ----------
    units : tuple[PrimaryUnit, ...]
        Stands in population order. Identifiers must be unique, sizes
        positive, and means and CVs non-negative.
    """

    units: tuple[PrimaryUnit, ...]

    def __post_init__(self):
        units = tuple(self.units)
        object.__setattr__(self, "units", units)

        if not units:
            raise InvalidDesignError("population has no units")

        seen = set()
        for unit in units:
            if unit.unit_id in seen:
                raise InvalidDesignError(f"duplicate unit identifier {unit.unit_id!r}")
            seen.add(unit.unit_id)
            if not np.isfinite(unit.size) or unit.size <= 0:
                raise InvalidDesignError(
                    f"unit {unit.unit_id!r} has non-positive size {unit.size}"
                )
            if not np.isfinite(unit.mean) or unit.mean < 0:
                raise InvalidDesignError(
                    f"unit {unit.unit_id!r} has invalid mean {unit.mean}"
                )
            if not np.isfinite(unit.cv) or unit.cv < 0:
                raise InvalidDesignError(
                    f"unit {unit.unit_id!r} has invalid cv {unit.cv}"
                )

    def __len__(self) -> int:
        return len(self.units)

    def __iter__(self) -> Iterator[PrimaryUnit]:
        return iter(self.units)

    def __getitem__(self, index: int) -> PrimaryUnit:
        return self.units[index]

    @property
    def n_units(self) -> int:
        return len(self.units)

    @property
    def ids(self) -> list:
        return [u.unit_id for u in self.units]

    @property
    def sizes(self) -> np.ndarray:
        return np.array([u.size for u in self.units], dtype=float)

    @property
    def covariates(self) -> np.ndarray:
        return np.array([u.covariate for u in self.units], dtype=float)

    @property
    def means(self) -> np.ndarray:
        return np.array([u.mean for u in self.units], dtype=float)

    @property
    def cvs(self) -> np.ndarray:
        return np.array([u.cv for u in self.units], dtype=float)

    @property
    def total_size(self) -> float:
        return float(self.sizes.sum())

    @property
    def true_total(self) -> float:
        """Population total implied by the true per-acre means."""
        return float((self.sizes * self.means).sum())

    @classmethod
    def from_frame(
        cls,
        df: pl.DataFrame,
        id_col: str = "STAND_ID",
        size_col: str = "ACRES",
        covariate_col: str = "AGE",
        mean_col: str = "MEAN",
        cv_col: str = "CV",
    ) -> "Population":
        """Build a population from a polars DataFrame.

        Parameters
        ----------
        df : pl.DataFrame
            One row per stand.
        id_col, size_col, covariate_col, mean_col, cv_col : str
            Column names for the identifier, area, covariate, true per-acre
            mean and coefficient of variation.

        Returns
        -------
        Population
        """
        required = [id_col, size_col, covariate_col, mean_col, cv_col]
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise InvalidDesignError(f"population frame is missing columns {missing}")

        units = tuple(
            PrimaryUnit(
                unit_id=row[id_col],
                size=float(row[size_col]),
                covariate=float(row[covariate_col]),
                mean=float(row[mean_col]),
                cv=float(row[cv_col]),
            )
            for row in df.select(required).iter_rows(named=True)
        )
        return cls(units)

    def to_frame(self) -> pl.DataFrame:
        return pl.DataFrame(
            {
                "STAND_ID": self.ids,
                "ACRES": self.sizes,
                "AGE": self.covariates,
                "MEAN": self.means,
                "CV": self.cvs,
            }
        )


def sqrt_age_by_size(population: Population) -> np.ndarray:
    """Default raw weight: ``sqrt(age) * acres``."""
    covariates = population.covariates
    if np.any(covariates < 0):
        bad = population.ids[int(np.argmax(covariates < 0))]
        raise DegenerateWeightError("negative covariate for sqrt weight", bad)
    return np.sqrt(covariates) * population.sizes


def size_weight(population: Population) -> np.ndarray:
    """Weight proportional to stand area."""
    return population.sizes


def sampling_weights(
    population: Population, weight_fn: Optional[WeightFunction] = None
) -> np.ndarray:
    """Normalized PPS selection weights ``p_i`` summing to 1.

    Parameters
    ----------
    population : Population
        The sampling frame.
    weight_fn : callable, optional
        Maps a population to raw non-negative weights. Defaults to
        :func:`sqrt_age_by_size`.

    Returns
    -------
    np.ndarray
        Weights in population order.

    Raises
    ------
    DegenerateWeightError
        If any raw weight is negative or not finite, or all are zero.
    """
    if weight_fn is None:
        weight_fn = sqrt_age_by_size

    raw = np.asarray(weight_fn(population), dtype=float)
    if raw.shape != (population.n_units,):
        raise DegenerateWeightError(
            f"weight function returned shape {raw.shape}, "
            f"expected ({population.n_units},)"
        )
    if not np.all(np.isfinite(raw)):
        bad = population.ids[int(np.argmax(~np.isfinite(raw)))]
        raise DegenerateWeightError("non-finite sampling weight", bad)
    if np.any(raw < 0):
        bad = population.ids[int(np.argmax(raw < 0))]
        raise DegenerateWeightError("negative sampling weight", bad)

    total = raw.sum()
    if total <= 0:
        raise DegenerateWeightError("sampling weights sum to zero")

    n_zero = int((raw == 0).sum())
    if n_zero:
        logger.debug("%d units have zero weight and can never be selected", n_zero)

    return raw / total


def simulate_population(
    n_units: int,
    rng: np.random.Generator,
    mean_acres: float = 40.0,
    acres_shape: float = 2.0,
    min_acres: float = 5.0,
    age_range: tuple[float, float] = (10.0, 80.0),
    max_mean: float = 35.0,
    growth_rate: float = 0.04,
    shape: float = 2.5,
    cv_range: tuple[float, float] = (0.1, 0.3),
) -> Population:
    """Simulate a population of forest stands.

    Stand area is gamma distributed with a floor of ``min_acres``. Age is
    uniform over ``age_range``. The true per-acre mean follows a
    Chapman-Richards curve ``max_mean * (1 - exp(-growth_rate * age))**shape``
    so older stands carry more volume per acre. CV is uniform over
    ``cv_range``.

    Parameters
    ----------
    n_units : int
        Number of stands.
    rng : np.random.Generator
        Source of randomness.

    Returns
    -------
    Population
    """
    if n_units < 1:
        raise InvalidDesignError(f"cannot simulate {n_units} units")

    acres = np.maximum(
        rng.gamma(acres_shape, mean_acres / acres_shape, size=n_units), min_acres
    )
    age = rng.uniform(age_range[0], age_range[1], size=n_units)
    mean = max_mean * (1.0 - np.exp(-growth_rate * age)) ** shape
    cv = rng.uniform(cv_range[0], cv_range[1], size=n_units)

    units = tuple(
        PrimaryUnit(
            unit_id=i + 1,
            size=float(acres[i]),
            covariate=float(age[i]),
            mean=float(mean[i]),
            cv=float(cv[i]),
        )
        for i in range(n_units)
    )
    return Population(units)
