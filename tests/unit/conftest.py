"""
Configuration and fixtures for unit tests.

Unit tests are fast, isolated tests with small hand-checkable populations
and fixed seeds.
"""

from pathlib import Path

import numpy as np
import pytest

from pyht import Population, PrimaryUnit


def pytest_collection_modifyitems(items):
    """Mark tests in this directory as unit tests."""
    unit_dir = Path(__file__).parent
    for item in items:
        if unit_dir in item.path.parents:
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def five_stands():
    """
    Five stands with sizes [10, 20, 30, 40, 50] acres.

    With weights proportional to size, p = size / 150, so the smallest
    stand has p = 1/15 and the largest p = 1/3.
    """
    return Population(
        tuple(
            PrimaryUnit(unit_id=f"S{i + 1}", size=size, covariate=25.0, mean=20.0, cv=0.2)
            for i, size in enumerate([10.0, 20.0, 30.0, 40.0, 50.0])
        )
    )


@pytest.fixture
def eight_stands():
    """Eight stands small enough for exact inclusion probabilities."""
    sizes = [12.0, 25.0, 8.0, 40.0, 33.0, 18.0, 60.0, 27.0]
    ages = [20.0, 45.0, 15.0, 70.0, 55.0, 30.0, 80.0, 35.0]
    means = [6.0, 15.0, 4.0, 24.0, 20.0, 10.0, 28.0, 12.0]
    return Population(
        tuple(
            PrimaryUnit(unit_id=i + 1, size=s, covariate=a, mean=m, cv=0.25)
            for i, (s, a, m) in enumerate(zip(sizes, ages, means))
        )
    )
