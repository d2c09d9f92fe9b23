"""Unit tests for the Horvitz-Thompson aggregator and estimator."""

import math

import numpy as np
import polars as pl
import pytest
from scipy import stats

from pyht import (
    HorvitzThompsonEstimator,
    InvalidDesignError,
    Population,
    PrimaryUnit,
    SamplingDesign,
    estimate,
)
from pyht.estimation.aggregator import UnitDiagnostics, aggregate
from pyht.estimation.inclusion import InclusionProbabilities
from pyht.estimation.sampler import StandSample, TwoStageSample
from pyht.estimation.variance import calculate_confidence_interval


@pytest.fixture
def analytic_inclusion():
    """Five-unit frame where units 0 and 1 were sampled."""
    return InclusionProbabilities(
        pi=np.array([0.5, 0.8, 0.3, 0.2, 0.2]),
        p=np.array([0.2, 0.3, 0.2, 0.15, 0.15]),
        sample_size=2,
        method="analytic",
    )


@pytest.fixture
def two_units():
    return [
        UnitDiagnostics(unit_id="A", pi=0.5, p=0.2, t_hat=100.0, var_t_hat=0.0, n_plots=3),
        UnitDiagnostics(unit_id="B", pi=0.8, p=0.3, t_hat=200.0, var_t_hat=0.0, n_plots=4),
    ]


class TestAggregate:
    def test_hand_calculated(self, two_units, analytic_inclusion):
        result = aggregate(
            two_units, [0, 1], analytic_inclusion, n_population=5, total_size=90.0
        )
        variance = 0.6 * (32500.0 + 2 * (0.15 / 0.55) * 200 * 250)
        se = math.sqrt(variance / 2)
        half_width = stats.t.ppf(0.95, 1) * se

        assert result.total == pytest.approx(450.0)
        assert result.variance == pytest.approx(variance)
        assert result.se == pytest.approx(se)
        assert result.half_width == pytest.approx(half_width)
        assert result.lower == pytest.approx(450.0 - half_width)
        assert result.upper == pytest.approx(450.0 + half_width)
        assert result.mean_per_acre == pytest.approx(5.0)
        assert result.half_width_per_acre == pytest.approx(half_width / 90.0)
        assert result.sample_size == 2
        assert result.n_population == 5
        assert result.confidence == 0.90

    def test_se_without_normalization(self, two_units, analytic_inclusion):
        normalized = aggregate(two_units, [0, 1], analytic_inclusion, 5, 90.0)
        plain = aggregate(
            two_units, [0, 1], analytic_inclusion, 5, 90.0, se_normalization="none"
        )
        assert plain.se == pytest.approx(normalized.se * math.sqrt(2))

    def test_confidence_level(self, two_units, analytic_inclusion):
        result = aggregate(two_units, [0, 1], analytic_inclusion, 5, 90.0, confidence=0.95)
        assert result.half_width == pytest.approx(stats.t.ppf(0.975, 1) * result.se)

    def test_interval_matches_student_t_helper(self, two_units, analytic_inclusion):
        result = aggregate(two_units, [0, 1], analytic_inclusion, 5, 90.0)
        lower, upper = calculate_confidence_interval(result.total, result.se, 0.90, df=1)
        assert result.lower == pytest.approx(lower)
        assert result.upper == pytest.approx(upper)

    def test_fpc_disabled(self, two_units, analytic_inclusion):
        with_fpc = aggregate(two_units, [0, 1], analytic_inclusion, 5, 90.0)
        without = aggregate(two_units, [0, 1], analytic_inclusion, 5, 90.0, apply_fpc=False)
        assert with_fpc.variance == pytest.approx(0.6 * without.variance)

    def test_single_unit_rejected(self, two_units, analytic_inclusion):
        with pytest.raises(InvalidDesignError, match="at least 2"):
            aggregate(two_units[:1], [0], analytic_inclusion, 5, 90.0)

    def test_covers(self, two_units, analytic_inclusion):
        result = aggregate(two_units, [0, 1], analytic_inclusion, 5, 90.0)
        assert result.covers(450.0)
        assert not result.covers(result.upper + 1.0)

    def test_frames(self, two_units, analytic_inclusion):
        result = aggregate(two_units, [0, 1], analytic_inclusion, 5, 90.0)
        summary = result.to_frame()
        assert summary.height == 1
        assert summary["TOTAL"][0] == pytest.approx(450.0)
        assert summary["TOTAL_SE_PERCENT"][0] == pytest.approx(100 * result.se / 450.0)

        units = result.units_frame()
        assert units["STAND_ID"].to_list() == ["A", "B"]
        assert units["T_HAT"].to_list() == [100.0, 200.0]
        assert units["N_PLOTS"].to_list() == [3, 4]


class TestEstimatorWithConstantPlots:
    """Stands with zero CV produce constant plots and v_i = 0."""

    @pytest.fixture
    def constant_population(self):
        sizes = [10.0, 20.0, 30.0, 40.0, 50.0, 60.0]
        return Population(
            tuple(
                PrimaryUnit(unit_id=i, size=s, covariate=30.0, mean=10.0 + i, cv=0.0)
                for i, s in enumerate(sizes)
            )
        )

    def test_within_unit_variance_zero(self, constant_population, rng):
        estimator = HorvitzThompsonEstimator(
            constant_population,
            {"sample_size": 3, "inclusion_method": "exact", "joint_method": "exact"},
        )
        sample = estimator.sampler.draw(rng)
        result = estimator.estimate(sample)

        assert all(u.var_t_hat == 0.0 for u in result.units)
        for unit, stand in zip(result.units, sample.stands):
            assert unit.t_hat == pytest.approx(stand.size * constant_population[stand.index].mean)

    def test_total_uses_inverse_inclusion(self, constant_population, rng):
        estimator = HorvitzThompsonEstimator(
            constant_population,
            {"sample_size": 3, "inclusion_method": "exact", "joint_method": "exact"},
        )
        result = estimator.run_trial(rng)
        expected = sum(u.t_hat / u.pi for u in result.units)
        assert result.total == pytest.approx(expected)


class TestEstimator:
    def test_estimate_from_sample(self, eight_stands):
        design = SamplingDesign(sample_size=3, inclusion_method="exact", joint_method="exact")
        estimator = HorvitzThompsonEstimator(eight_stands, design)
        sample = TwoStageSample(
            stands=(
                StandSample(0, 1, 12.0, 0.0, estimator.inclusion.pi[0], np.array([5.0, 7.0])),
                StandSample(3, 4, 40.0, 0.0, estimator.inclusion.pi[3], np.array([20.0, 22.0, 24.0, 26.0])),
                StandSample(6, 7, 60.0, 0.0, estimator.inclusion.pi[6], np.array([30.0, 26.0, 28.0])),
            ),
            n_population=8,
        )
        result = estimator.estimate(sample)

        t_hat = [12.0 * 6.0, 40.0 * 23.0, 60.0 * 28.0]
        pi = estimator.inclusion.pi[[0, 3, 6]]
        assert result.total == pytest.approx(sum(t / p for t, p in zip(t_hat, pi)))
        assert [u.t_hat for u in result.units] == pytest.approx(t_hat)
        assert result.units[0].var_t_hat == pytest.approx(12.0**2 * 2.0 / 2)
        assert result.mean_per_acre == pytest.approx(result.total / eight_stands.total_size)
        assert result.variance >= 0

    def test_convenience_function(self, eight_stands):
        result = estimate(
            eight_stands,
            {"sample_size": 4, "mc_trials": 2_000},
            rng=np.random.default_rng(8),
        )
        assert result.sample_size == 4
        assert len({u.unit_id for u in result.units}) == 4
        assert np.isfinite(result.total)
        assert np.isfinite(result.half_width)
        assert isinstance(result.to_frame(), pl.DataFrame)

    def test_reproducible(self, eight_stands):
        config = {"sample_size": 3, "mc_trials": 1_000}
        a = estimate(eight_stands, config, rng=np.random.default_rng(17))
        b = estimate(eight_stands, config, rng=np.random.default_rng(17))
        assert a.total == b.total
        assert a.variance == b.variance
