"""
Configuration for property-based and stochastic tests.

Hypothesis generates weight vectors and design parameters; the examples
are derandomized so every run explores the same cases. Stochastic
estimator checks use fixed seeds through ``run_simulation``.
"""

from pathlib import Path

import pytest
from hypothesis import settings

settings.register_profile("pyht", derandomize=True, deadline=None)
settings.load_profile("pyht")


def pytest_collection_modifyitems(items):
    """Mark tests in this directory as property tests."""
    property_dir = Path(__file__).parent
    for item in items:
        if property_dir in item.path.parents:
            item.add_marker(pytest.mark.property)
