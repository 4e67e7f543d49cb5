import numpy as np
import pytest

from mac.errors import ConfigurationError
from smoke import SimulationConfig, SourceTerm, StableFluidsSimulation


@pytest.mark.parametrize(
    "kwargs",
    [
        {"nx": 0},
        {"h": -1.0},
        {"dt": 0.0},
        {"dt": float("inf")},
        {"n_steps": 0},
        {"viscosity": -1e-3},
        {"diffusion_rate": float("nan")},
        {"gravity": (0.0,)},
        {"gravity": 3.0},
        {"gravity": "down"},
        {"boundary_left": "periodic"},
        {"boundary_top": "open"},
        {"diffusion_iterations": 0},
        {"pressure_iterations": 2.5},
        {"tolerance": -1.0},
        {"omega": 2.0},
        {"relaxation": "sor"},
        {"pressure_solver": "multigrid"},
        {"n_workers": 0},
        {"record_every": -1},
        {"sources": [{"i": 0, "j": 4}]},
        {"sources": [{"i": 4, "j": 9}]},
        {"sources": [{"i": 4, "j": 4, "field": "temperature"}]},
        {"sources": [{"i": 4, "j": 4, "field": "density", "strength": float("nan")}]},
        {"sources": [{"i": 4, "j": 4, "field": "velocity", "strength": 1.0}]},
        {"sources": [{"i": 4, "j": 4, "amount": 1.0}]},
        {"sources": [(4, 4, "density", 1.0)]},
    ],
)
def test_invalid_configuration(kwargs):
    params = dict(nx=8, ny=8, n_steps=2)
    params.update(kwargs)
    with pytest.raises(ConfigurationError):
        StableFluidsSimulation(**params)


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)


def test_defaults_are_valid():
    config = SimulationConfig().validate()
    assert config.relaxation == "red_black"
    assert config.boundary.left == 0


def test_sources_from_dicts():
    config = SimulationConfig(
        sources=[{"i": 3, "j": 4, "field": "velocity", "strength": (1.0, -0.5)}]
    )
    assert config.sources == [SourceTerm(3, 4, "velocity", (1.0, -0.5))]

    df = config.sources_dataframe()
    assert list(df.columns) == ["i", "j", "field", "sx", "sy"]
    assert df.loc[0, "sy"] == -0.5


def test_config_dataframe():
    df = SimulationConfig(nx=16, gravity=(0.0, -9.81)).to_dataframe()
    assert len(df) == 1
    assert df.loc[0, "nx"] == 16
    assert df.loc[0, "gravity"] == (0.0, -9.81)
    assert df.loc[0, "n_sources"] == 0


def test_attrs_are_flat():
    attrs = SimulationConfig().to_attrs()
    assert "sources" not in attrs
    assert isinstance(attrs["gravity"], np.ndarray)
