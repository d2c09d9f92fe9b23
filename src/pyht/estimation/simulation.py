"""
Repeated-trial simulation of the two-stage estimator.

Weights and inclusion probabilities are computed once; each trial then
draws a fresh sample with its own generator spawned from a single
``SeedSequence``, so results are reproducible and do not depend on how
many workers ran the trials. A trial that raises a :class:`PyHTError` is
logged, recorded as failed and excluded from the summary statistics.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import polars as pl

from ..core.exceptions import InvalidDesignError, PyHTError
from ..core.population import Population, WeightFunction
from .aggregator import HorvitzThompsonEstimator
from .design import DesignLike, as_design

logger = logging.getLogger(__name__)

TRIAL_SCHEMA = {
    "TRIAL": pl.Int64,
    "STATUS": pl.Utf8,
    "ERROR": pl.Utf8,
    "TOTAL": pl.Float64,
    "VARIANCE": pl.Float64,
    "SE": pl.Float64,
    "HALF_WIDTH": pl.Float64,
    "LOWER": pl.Float64,
    "UPPER": pl.Float64,
    "COVERS": pl.Boolean,
}


@dataclass(frozen=True)
class SimulationResult:
    """Per-trial outcomes of a simulation study."""

    trials: pl.DataFrame
    true_total: float
    confidence: float

    @property
    def successful(self) -> pl.DataFrame:
        return self.trials.filter(pl.col("STATUS") == "ok")

    @property
    def n_failed(self) -> int:
        return self.trials.height - self.successful.height

    def summary(self) -> dict[str, Any]:
        """
        Aggregate statistics over successful trials.

        Returns
        -------
        dict
            Dictionary with keys:
            - n_trials: Number of trials attempted
            - n_failed: Trials discarded after an error
            - true_total: Population total from the true means
            - mean_total: Mean of the total estimates
            - relative_bias: (mean_total - true_total) / true_total
            - coverage: Fraction of intervals containing the true total
            - mean_se: Mean reported standard error
            - empirical_se: Standard deviation of the total estimates
            - confidence: Nominal confidence level
        """
        ok = self.successful
        if ok.height == 0:
            mean_total = coverage = mean_se = empirical_se = relative_bias = math.nan
        else:
            mean_total = float(ok["TOTAL"].mean())
            coverage = float(ok["COVERS"].cast(pl.Float64).mean())
            mean_se = float(ok["SE"].mean())
            empirical_se = float(ok["TOTAL"].std(ddof=1)) if ok.height > 1 else math.nan
            relative_bias = (mean_total - self.true_total) / self.true_total

        return {
            "n_trials": self.trials.height,
            "n_failed": self.n_failed,
            "true_total": self.true_total,
            "mean_total": mean_total,
            "relative_bias": relative_bias,
            "coverage": coverage,
            "mean_se": mean_se,
            "empirical_se": empirical_se,
            "confidence": self.confidence,
        }


def _run_one(
    estimator: HorvitzThompsonEstimator,
    trial: int,
    seed: np.random.SeedSequence,
    true_total: float,
) -> dict[str, Any]:
    rng = np.random.default_rng(seed)
    try:
        result = estimator.run_trial(rng)
    except PyHTError as e:
        logger.warning("Trial %d discarded: %s", trial, e)
        return {
            "TRIAL": trial,
            "STATUS": "failed",
            "ERROR": f"{type(e).__name__}: {e}",
            "TOTAL": None,
            "VARIANCE": None,
            "SE": None,
            "HALF_WIDTH": None,
            "LOWER": None,
            "UPPER": None,
            "COVERS": None,
        }
    return {
        "TRIAL": trial,
        "STATUS": "ok",
        "ERROR": None,
        "TOTAL": result.total,
        "VARIANCE": result.variance,
        "SE": result.se,
        "HALF_WIDTH": result.half_width,
        "LOWER": result.lower,
        "UPPER": result.upper,
        "COVERS": result.covers(true_total),
    }


def run_simulation(
    population: Population,
    config: DesignLike,
    n_trials: int,
    seed: Optional[int] = None,
    n_workers: int = 1,
    weight_fn: Optional[WeightFunction] = None,
) -> SimulationResult:
    """
    Repeat the two-stage sample and estimate ``n_trials`` times.

    Parameters
    ----------
    population : Population
        Sampling frame with true means (ground truth).
    config : SamplingDesign or dict
        Design parameters.
    n_trials : int
        Number of independent trials.
    seed : int, optional
        Root seed. The first spawned child seeds the inclusion-probability
        simulation; the rest seed one trial each.
    n_workers : int, default 1
        Run trials on a thread pool of this size.
    weight_fn : callable, optional
        Raw weight function.

    Returns
    -------
    SimulationResult
    """
    if n_trials < 1:
        raise InvalidDesignError(f"n_trials must be positive, got {n_trials}")
    if n_workers < 1:
        raise InvalidDesignError(f"n_workers must be positive, got {n_workers}")

    design = as_design(config)
    root = np.random.SeedSequence(seed)
    setup_seed, *trial_seeds = root.spawn(n_trials + 1)

    estimator = HorvitzThompsonEstimator(
        population,
        design,
        weight_fn=weight_fn,
        rng=np.random.default_rng(setup_seed),
    )
    true_total = population.true_total

    logger.debug("Sampling design: %s", design.to_dict())
    logger.info(
        "Running %d trials: N=%d n=%d inclusion=%s joint=%s workers=%d",
        n_trials,
        population.n_units,
        design.sample_size,
        design.inclusion_method,
        design.joint_method,
        n_workers,
    )

    if n_workers == 1:
        rows = [
            _run_one(estimator, trial, s, true_total)
            for trial, s in enumerate(trial_seeds)
        ]
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            futures = [
                pool.submit(_run_one, estimator, trial, s, true_total)
                for trial, s in enumerate(trial_seeds)
            ]
            rows = [f.result() for f in futures]

    result = SimulationResult(
        trials=pl.DataFrame(rows, schema=TRIAL_SCHEMA),
        true_total=true_total,
        confidence=design.confidence,
    )
    summary = result.summary()
    logger.info(
        "Simulation done: %d/%d ok, relative bias %.4f, coverage %.3f",
        summary["n_trials"] - summary["n_failed"],
        summary["n_trials"],
        summary["relative_bias"],
        summary["coverage"],
    )
    return result
