"""Unit tests for SamplingDesign validation and Population construction."""

import math

import numpy as np
import polars as pl
import pytest

from pyht import (
    DegenerateWeightError,
    HorvitzThompsonEstimator,
    InvalidDesignError,
    Population,
    PrimaryUnit,
    PyHTError,
    SamplingDesign,
    estimate,
    sampling_weights,
    simulate_population,
    size_weight,
)


class TestSamplingDesign:
    """Tests for design validation."""

    def test_defaults(self):
        design = SamplingDesign(sample_size=5)
        assert design.plot_spacing == 10.0
        assert design.min_plots == 2
        assert design.max_plots == 15
        assert design.confidence == 0.90
        assert design.mc_trials == 10_000
        assert design.inclusion_method == "monte_carlo"
        assert design.joint_method == "approximate"
        assert design.finite_population_correction is True
        assert design.se_normalization == "sample_size"
        assert math.isinf(design.upper_bound)

    @pytest.mark.parametrize("n", [0, 1])
    def test_sample_size_below_two_rejected(self, n):
        with pytest.raises(InvalidDesignError, match="sample_size"):
            SamplingDesign(sample_size=n)

    def test_min_plots_below_two_rejected(self):
        with pytest.raises(InvalidDesignError, match="min_plots"):
            SamplingDesign(sample_size=3, min_plots=1)

    def test_max_below_min_rejected(self):
        with pytest.raises(InvalidDesignError, match="max_plots"):
            SamplingDesign(sample_size=3, min_plots=5, max_plots=4)

    @pytest.mark.parametrize("confidence", [0.0, 1.0, 1.5, -0.1])
    def test_confidence_out_of_range(self, confidence):
        with pytest.raises(InvalidDesignError, match="confidence"):
            SamplingDesign(sample_size=3, confidence=confidence)

    def test_unknown_methods_rejected(self):
        with pytest.raises(InvalidDesignError, match="inclusion_method"):
            SamplingDesign(sample_size=3, inclusion_method="bootstrap")
        with pytest.raises(InvalidDesignError, match="joint_method"):
            SamplingDesign(sample_size=3, joint_method="bootstrap")
        with pytest.raises(InvalidDesignError, match="se_normalization"):
            SamplingDesign(sample_size=3, se_normalization="n_minus_one")

    def test_from_config(self):
        design = SamplingDesign.from_config({"sample_size": 4, "confidence": 0.95})
        assert design.sample_size == 4
        assert design.confidence == 0.95

    def test_from_config_unknown_key(self):
        with pytest.raises(InvalidDesignError, match="unknown configuration keys"):
            SamplingDesign.from_config({"sample_size": 4, "n_plots": 3})

    def test_from_config_requires_sample_size(self):
        with pytest.raises(InvalidDesignError, match="sample_size"):
            SamplingDesign.from_config({"confidence": 0.9})

    def test_integral_floats_coerced(self):
        """Config files often store counts as floats, e.g. 3.0."""
        design = SamplingDesign.from_config(
            {"sample_size": 3.0, "mc_trials": 1500.0, "min_plots": 2.0, "max_plots": 8.0}
        )
        assert design.sample_size == 3
        assert design.mc_trials == 1500
        assert isinstance(design.sample_size, int)
        assert isinstance(design.mc_trials, int)
        assert isinstance(design.max_plots, int)

    @pytest.mark.parametrize(
        "field,value",
        [("sample_size", 3.5), ("mc_trials", 1500.5), ("max_exact_sequences", "big")],
    )
    def test_non_integral_counts_rejected(self, field, value):
        config = {"sample_size": 3, field: value}
        with pytest.raises(InvalidDesignError, match=field):
            SamplingDesign.from_config(config)

    def test_float_sample_size_estimates(self, eight_stands):
        design = SamplingDesign(sample_size=3.0, inclusion_method="exact", joint_method="exact")
        result = estimate(eight_stands, design, rng=np.random.default_rng(1))
        assert result.sample_size == 3

    def test_float_mc_trials_estimates(self, eight_stands):
        design = SamplingDesign(sample_size=3, mc_trials=1500.0)
        estimator = HorvitzThompsonEstimator(eight_stands, design, rng=np.random.default_rng(2))
        assert estimator.inclusion.trials == 1500
        assert estimator.inclusion.pi.sum() == pytest.approx(3.0)

    def test_design_is_immutable(self):
        design = SamplingDesign(sample_size=3)
        with pytest.raises(AttributeError):
            design.sample_size = 4

    def test_errors_share_base_class(self):
        with pytest.raises(PyHTError):
            SamplingDesign(sample_size=1)
        with pytest.raises(ValueError):
            SamplingDesign(sample_size=1)


class TestCensusRejected:
    """Requesting n == N is a census, not a sample."""

    def test_sample_size_equal_to_population(self, five_stands):
        with pytest.raises(InvalidDesignError, match="smaller than the population size"):
            HorvitzThompsonEstimator(five_stands, {"sample_size": 5})

    def test_sample_size_above_population(self, five_stands):
        with pytest.raises(InvalidDesignError):
            HorvitzThompsonEstimator(five_stands, {"sample_size": 6})


class TestPopulation:
    """Tests for Population invariants and accessors."""

    def test_totals(self, five_stands):
        assert five_stands.n_units == 5
        assert five_stands.total_size == 150.0
        # 150 acres at 20 per acre
        assert five_stands.true_total == pytest.approx(3000.0)

    def test_duplicate_ids_rejected(self):
        units = (
            PrimaryUnit("A", 10.0, 20.0, 5.0, 0.1),
            PrimaryUnit("A", 12.0, 25.0, 6.0, 0.1),
        )
        with pytest.raises(InvalidDesignError, match="duplicate"):
            Population(units)

    def test_non_positive_size_rejected(self):
        with pytest.raises(InvalidDesignError, match="size"):
            Population((PrimaryUnit("A", 0.0, 20.0, 5.0, 0.1),))

    def test_negative_mean_rejected(self):
        with pytest.raises(InvalidDesignError, match="mean"):
            Population((PrimaryUnit("A", 10.0, 20.0, -1.0, 0.1),))

    def test_empty_population_rejected(self):
        with pytest.raises(InvalidDesignError):
            Population(())

    def test_frame_round_trip(self, eight_stands):
        df = eight_stands.to_frame()
        assert df.columns == ["STAND_ID", "ACRES", "AGE", "MEAN", "CV"]
        assert Population.from_frame(df) == eight_stands

    def test_from_frame_custom_columns(self):
        df = pl.DataFrame(
            {
                "stand": ["a", "b", "c"],
                "area": [10.0, 20.0, 30.0],
                "age": [15, 30, 45],
                "vol": [5.0, 10.0, 15.0],
                "cv": [0.1, 0.2, 0.3],
            }
        )
        pop = Population.from_frame(
            df, id_col="stand", size_col="area", covariate_col="age", mean_col="vol", cv_col="cv"
        )
        assert pop.ids == ["a", "b", "c"]
        assert pop.true_total == pytest.approx(10 * 5 + 20 * 10 + 30 * 15)

    def test_from_frame_missing_column(self):
        df = pl.DataFrame({"STAND_ID": [1], "ACRES": [10.0]})
        with pytest.raises(InvalidDesignError, match="missing columns"):
            Population.from_frame(df)


class TestSamplingWeights:
    """Tests for normalized PPS weights."""

    def test_default_sqrt_age_by_size(self, eight_stands):
        p = sampling_weights(eight_stands)
        raw = np.sqrt(eight_stands.covariates) * eight_stands.sizes
        np.testing.assert_allclose(p, raw / raw.sum())
        assert p.sum() == pytest.approx(1.0)

    def test_size_weight(self, five_stands):
        p = sampling_weights(five_stands, size_weight)
        np.testing.assert_allclose(p, np.array([10, 20, 30, 40, 50]) / 150)

    def test_negative_weight_rejected(self, five_stands):
        with pytest.raises(DegenerateWeightError, match="negative"):
            sampling_weights(five_stands, lambda pop: np.array([1.0, -1.0, 1.0, 1.0, 1.0]))

    def test_non_finite_weight_rejected(self, five_stands):
        with pytest.raises(DegenerateWeightError, match="non-finite"):
            sampling_weights(five_stands, lambda pop: np.array([1.0, np.nan, 1.0, 1.0, 1.0]))

    def test_all_zero_weights_rejected(self, five_stands):
        with pytest.raises(DegenerateWeightError, match="sum to zero"):
            sampling_weights(five_stands, lambda pop: np.zeros(5))

    def test_wrong_shape_rejected(self, five_stands):
        with pytest.raises(DegenerateWeightError, match="shape"):
            sampling_weights(five_stands, lambda pop: np.ones(3))

    def test_negative_covariate_rejected(self):
        pop = Population(
            (
                PrimaryUnit("A", 10.0, -4.0, 5.0, 0.1),
                PrimaryUnit("B", 10.0, 4.0, 5.0, 0.1),
            )
        )
        with pytest.raises(DegenerateWeightError, match="covariate"):
            sampling_weights(pop)


class TestSimulatePopulation:
    """Tests for the synthetic stand generator."""

    def test_shape_and_ranges(self, rng):
        pop = simulate_population(200, rng, min_acres=5.0, age_range=(10.0, 80.0))
        assert pop.n_units == 200
        assert pop.sizes.min() >= 5.0
        assert pop.covariates.min() >= 10.0
        assert pop.covariates.max() <= 80.0
        assert np.all(pop.means >= 0)
        assert np.all((pop.cvs >= 0.1) & (pop.cvs <= 0.3))

    def test_mean_increases_with_age(self, rng):
        pop = simulate_population(100, rng)
        order = np.argsort(pop.covariates)
        assert np.all(np.diff(pop.means[order]) >= 0)

    def test_reproducible(self):
        a = simulate_population(30, np.random.default_rng(5))
        b = simulate_population(30, np.random.default_rng(5))
        assert a == b
