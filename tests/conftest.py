"""Shared fixtures for the galaxy generator tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from galaxy_sink import MemorySink
from galaxyparams import ParameterSet


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def params():
    """Smallest valid galaxy, seeded so runs are reproducible."""
    return ParameterSet(count=1_000, seed=42)


@pytest.fixture
def sink():
    return MemorySink()
