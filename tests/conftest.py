"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from pic1d.config import SimulationConfig


@pytest.fixture
def nx():
    """Small grid for fast unit tests."""
    return 32


@pytest.fixture
def box(nx):
    return 0.1 * nx


@pytest.fixture
def electron_params():
    """Cold unit-density electrons."""
    return {"name": "electrons", "m_q": -1.0, "ppc": 4}


@pytest.fixture
def sample_config_dict(nx, box, electron_params):
    """Minimal valid SimulationConfig as a dictionary."""
    return {
        "nx": nx,
        "box": box,
        "dt": 0.05,
        "species": [electron_params],
    }


@pytest.fixture
def small_config(sample_config_dict):
    """Small SimulationConfig for fast unit tests."""
    return SimulationConfig(**sample_config_dict)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
