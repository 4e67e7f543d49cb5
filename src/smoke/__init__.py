"""Stable-fluids smoke simulation.

Simulation Hierarchy:
---------------------
FluidSimulation (abstract base - config, state machine, output)
└── StableFluidsSimulation (forces, advection, diffusion, projection on a MAC grid)
"""

from mac.errors import ConfigurationError, ConvergenceWarning, NumericalInstabilityError

from .base_simulation import FluidSimulation, SimulationState
from .datastructures import SimulationConfig, Snapshot, SourceTerm, TimeSeries
from .stable_fluids import StableFluidsSimulation

__all__ = [
    # Base classes
    "FluidSimulation",
    "SimulationState",
    # Configuration
    "SimulationConfig",
    "SourceTerm",
    # Data structures
    "Snapshot",
    "TimeSeries",
    # Concrete simulations
    "StableFluidsSimulation",
    # Errors
    "ConfigurationError",
    "NumericalInstabilityError",
    "ConvergenceWarning",
]
