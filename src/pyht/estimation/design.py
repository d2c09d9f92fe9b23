"""
Sampling design configuration.

A :class:`SamplingDesign` collects every parameter of the two-stage design
in one immutable object. Estimators accept either a design instance or a
plain ``config`` dict, which is converted with
:meth:`SamplingDesign.from_config`.
"""

from __future__ import annotations

import math
import operator
from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping, Union

from ..core.exceptions import InvalidDesignError
from .constants import (
    DEFAULT_CONFIDENCE,
    DEFAULT_MAX_EXACT_SEQUENCES,
    DEFAULT_MAX_PLOTS,
    DEFAULT_MC_TRIALS,
    DEFAULT_MIN_PLOTS,
    DEFAULT_PLOT_SPACING,
    INCLUSION_METHODS,
    JOINT_METHODS,
    SE_NORMALIZATIONS,
)


INTEGER_FIELDS = ("sample_size", "min_plots", "max_plots", "mc_trials", "max_exact_sequences")


def _as_integer(value: Any, name: str) -> int:
    """Coerce integral values such as ``3.0`` from JSON or YAML configs to ``int``."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return operator.index(value)
    except TypeError:
        raise InvalidDesignError(f"must be an integer, got {value!r}", name) from None


@dataclass(frozen=True)
class SamplingDesign:
    """Parameters of a two-stage PPS design.

    Parameters
    ----------
    sample_size : int
        Number of primary units (stands) drawn without replacement.
    plot_spacing : float, default 10.0
        Acres represented by one secondary plot. The plot count for a stand
        is ``ceil(size / plot_spacing)`` clamped to ``[min_plots, max_plots]``.
    min_plots : int, default 2
        Minimum secondary observations per stand. Must be at least 2 so
        the within-stand variance is defined.
    max_plots : int, default 15
        Maximum secondary observations per stand.
    upper_bound : float, default inf
        Upper truncation point for simulated secondary observations. The
        lower truncation point is always 0.
    confidence : float, default 0.90
        Confidence level for the Student-t interval.
    mc_trials : int, default 10000
        Number of Monte Carlo draws used to estimate inclusion probabilities.
    inclusion_method : {'monte_carlo', 'analytic', 'exact'}
        How first-order inclusion probabilities are computed.
    joint_method : {'approximate', 'monte_carlo', 'exact'}
        How joint inclusion probabilities are computed. ``'approximate'``
        uses ``pi_i + pi_k - (1 - (1 - p_i - p_k)**n)``, which is only
        reasonable when weights are small.
    finite_population_correction : bool, default True
        Multiply the variance by ``1 - n/N``.
    se_normalization : {'sample_size', 'none'}
        ``'sample_size'`` reports ``SE = sqrt(V / n)``; ``'none'`` reports
        ``SE = sqrt(V)``.
    max_exact_sequences : int, default 2000000
        Refuse exact enumeration when more ordered draw sequences than this
        would be visited.
    """

    sample_size: int
    plot_spacing: float = DEFAULT_PLOT_SPACING
    min_plots: int = DEFAULT_MIN_PLOTS
    max_plots: int = DEFAULT_MAX_PLOTS
    upper_bound: float = math.inf
    confidence: float = DEFAULT_CONFIDENCE
    mc_trials: int = DEFAULT_MC_TRIALS
    inclusion_method: str = "monte_carlo"
    joint_method: str = "approximate"
    finite_population_correction: bool = True
    se_normalization: str = "sample_size"
    max_exact_sequences: int = DEFAULT_MAX_EXACT_SEQUENCES

    def __post_init__(self):
        for name in INTEGER_FIELDS:
            object.__setattr__(self, name, _as_integer(getattr(self, name), name))
        if self.sample_size < 2:
            raise InvalidDesignError(
                f"at least 2 primary units are required, got {self.sample_size}",
                "sample_size",
            )
        if not self.plot_spacing > 0:
            raise InvalidDesignError("must be positive", "plot_spacing")
        if self.min_plots < 2:
            raise InvalidDesignError(
                "at least 2 plots per unit are required to estimate "
                "within-unit variance",
                "min_plots",
            )
        if self.max_plots < self.min_plots:
            raise InvalidDesignError(
                f"max_plots ({self.max_plots}) is below min_plots ({self.min_plots})",
                "max_plots",
            )
        if not self.upper_bound > 0:
            raise InvalidDesignError("must be positive", "upper_bound")
        if not 0 < self.confidence < 1:
            raise InvalidDesignError(
                f"must be strictly between 0 and 1, got {self.confidence}",
                "confidence",
            )
        if self.mc_trials < 1:
            raise InvalidDesignError("must be positive", "mc_trials")
        if self.inclusion_method not in INCLUSION_METHODS:
            raise InvalidDesignError(
                f"unknown method {self.inclusion_method!r}, "
                f"expected one of {INCLUSION_METHODS}",
                "inclusion_method",
            )
        if self.joint_method not in JOINT_METHODS:
            raise InvalidDesignError(
                f"unknown method {self.joint_method!r}, "
                f"expected one of {JOINT_METHODS}",
                "joint_method",
            )
        if self.se_normalization not in SE_NORMALIZATIONS:
            raise InvalidDesignError(
                f"unknown normalization {self.se_normalization!r}, "
                f"expected one of {SE_NORMALIZATIONS}",
                "se_normalization",
            )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SamplingDesign":
        """Build a design from a config dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise InvalidDesignError(f"unknown configuration keys: {unknown}")
        if "sample_size" not in config:
            raise InvalidDesignError("is required", "sample_size")
        return cls(**dict(config))

    def check_population_size(self, n_population: int) -> None:
        """Reject designs that would be a census (or impossible)."""
        if self.sample_size >= n_population:
            raise InvalidDesignError(
                f"sample size {self.sample_size} must be smaller than the "
                f"population size {n_population}",
                "sample_size",
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DesignLike = Union[SamplingDesign, Mapping[str, Any]]


def as_design(config: DesignLike) -> SamplingDesign:
    """Coerce a config dict or design into a :class:`SamplingDesign`."""
    if isinstance(config, SamplingDesign):
        return config
    return SamplingDesign.from_config(config)
