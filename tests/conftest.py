import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from mac.boundary.conditions import BoundaryPolicy
from mac.core.parallel import ChunkedExecutor
from meshing.mac_grid import FieldBuffers, Grid
from smoke import StableFluidsSimulation


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def grid():
    return Grid(nx=8, ny=6, h=1.0)


@pytest.fixture
def fields(grid):
    return FieldBuffers.allocate(grid)


@pytest.fixture
def walls():
    return BoundaryPolicy()


@pytest.fixture
def periodic():
    return BoundaryPolicy("periodic", "periodic", "periodic", "periodic")


@pytest.fixture
def channel():
    """Periodic in x, no-slip walls at bottom and top."""
    return BoundaryPolicy("periodic", "periodic", "no_slip", "no_slip")


@pytest.fixture
def executor():
    with ChunkedExecutor(n_workers=3) as ex:
        yield ex


@pytest.fixture
def make_sim():
    """Factory for simulations; worker pools are closed on teardown."""
    created = []

    def _make(**kwargs):
        sim = StableFluidsSimulation(**kwargs)
        created.append(sim)
        return sim

    yield _make
    for sim in created:
        sim.close()


@pytest.fixture
def plume_kwargs():
    """32x32 box with one velocity and one density source at cell (16, 16)."""
    return dict(
        nx=32,
        ny=32,
        h=1.0,
        dt=0.1,
        n_steps=50,
        viscosity=1e-4,
        diffusion_rate=0.0,
        pressure_iterations=2000,
        tolerance=1e-9,
        sources=[
            {"i": 16, "j": 16, "field": "velocity", "strength": (1.0, 0.0)},
            {"i": 16, "j": 16, "field": "density", "strength": 1.0},
        ],
    )
