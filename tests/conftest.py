"""Pytest configuration and shared fixtures."""

import pytest
import sys
import numpy as np
from pathlib import Path

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from galaxy import Population, SimParams
from galaxy.gpu_backend import Backend, force_backend


@pytest.fixture(scope="session", autouse=True)
def cpu_backend():
    """Run every test on the Numba CPU path, whatever hardware is present."""
    force_backend(Backend.CPU)
    yield
    force_backend(None)


@pytest.fixture
def unit_params():
    """g=1, e=0.01, dt=0.1."""
    return SimParams(dt=0.1, g=1.0, e=0.01)


@pytest.fixture
def two_body():
    """Two unit masses at rest, one unit apart along x."""
    return Population(
        positions=[[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]],
        velocities=np.zeros((2, 3)),
        masses=[1.0, 1.0],
    )


@pytest.fixture
def lone_particle():
    return Population(
        positions=[[0.3, -0.2, 0.1]],
        velocities=[[0.0, 0.0, 0.0]],
        masses=[5.0],
    )


@pytest.fixture
def mirrored_cloud():
    """Equal masses placed in pairs at +p and -p with mirrored velocities."""
    rng = np.random.default_rng(7)
    half = rng.uniform(-1.0, 1.0, (16, 3))
    vel = rng.uniform(-0.1, 0.1, (16, 3))
    return Population(
        positions=np.concatenate([half, -half]),
        velocities=np.concatenate([vel, -vel]),
        masses=np.ones(32),
    )


@pytest.fixture
def recordings_dir(tmp_path):
    """Provide a temporary directory for recordings."""
    return tmp_path / "recordings"
