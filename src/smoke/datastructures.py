"""Data structures for simulation configuration, snapshots and diagnostics.

This module defines the configuration and result data structures
for the stable-fluids smoke simulation.
"""

import math
from dataclasses import asdict, dataclass, field, fields
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from mac.boundary.conditions import BoundaryPolicy
from mac.core.projection import PRESSURE_SOLVERS
from mac.errors import ConfigurationError, ConvergenceWarning
from mac.linear_solvers.relaxation import RELAXATION_METHODS
from meshing.mac_grid import Grid

SOURCE_FIELDS = ("density", "velocity")


def _is_finite_number(value):
    return (
        isinstance(value, (int, float, np.integer, np.floating))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_int(value):
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


# ========================================================
# Configuration
# ========================================================


@dataclass
class SourceTerm:
    """External source injected every step at one interior cell.

    Parameters
    ----------
    i, j : int
        Cell coordinates (interior: ``1..nx``, ``1..ny``).
    field : str
        ``'density'`` or ``'velocity'``.
    strength : float or tuple of float
        Rate added per unit time: a scalar for density, ``(sx, sy)`` for
        velocity. Each step adds ``dt * strength``.
    """

    i: int
    j: int
    field: str = "density"
    strength: Union[float, Tuple[float, float]] = 1.0

    def validate(self, grid: Grid):
        if not (_is_int(self.i) and _is_int(self.j)) or not grid.is_interior(self.i, self.j):
            raise ConfigurationError(
                f"Source position ({self.i}, {self.j}) is not an interior cell of a "
                f"{grid.nx}x{grid.ny} grid"
            )
        if self.field not in SOURCE_FIELDS:
            raise ConfigurationError(
                f"Unknown source field '{self.field}'. Use one of {SOURCE_FIELDS}"
            )
        if self.field == "density":
            if not _is_finite_number(self.strength):
                raise ConfigurationError(f"Density source strength must be a finite number, got {self.strength!r}")
        else:
            strength = tuple(np.atleast_1d(self.strength))
            if len(strength) != 2 or not all(_is_finite_number(s) for s in strength):
                raise ConfigurationError(
                    f"Velocity source strength must be two finite numbers, got {self.strength!r}"
                )


def _as_source(value):
    """SourceTerm from a SourceTerm or a dict of its fields."""
    if isinstance(value, SourceTerm):
        return value
    if not isinstance(value, dict):
        raise ConfigurationError(f"Source must be a SourceTerm or a dict, got {value!r}")
    try:
        return SourceTerm(**value)
    except TypeError as err:
        raise ConfigurationError(f"Invalid source {value!r}: {err}") from err


@dataclass
class SimulationConfig:
    """Simulation configuration and run info.

    Parameters
    ----------
    nx, ny : int, optional
        Interior cells along x and y. Default is 64.
    h : float, optional
        Cell spacing. Default is 1.0.
    dt : float, optional
        Timestep. Default is 0.1.
    n_steps : int, optional
        Number of steps of a run. Default is 100.
    viscosity : float, optional
        Kinematic viscosity used to diffuse velocity. Default is 0.
    diffusion_rate : float, optional
        Molecular diffusion rate of density. Default is 0.
    gravity : tuple of float, optional
        Body force added to velocity every step. Default is (0, 0).
    sources : list of SourceTerm, optional
        Sources injected every step. Dicts are converted to ``SourceTerm``.
    boundary_left, boundary_right, boundary_bottom, boundary_top : str, optional
        ``'no_slip'``, ``'free_slip'`` or ``'periodic'``. Default is no-slip.
    diffusion_iterations : int, optional
        Sweep cap of the diffusion solve. Default is 20.
    pressure_iterations : int, optional
        Sweep cap of the pressure solve. Default is 500.
    tolerance : float, optional
        Early-exit threshold on the max per-cell change of a sweep. Default is 1e-6.
    omega : float, optional
        Over-relaxation factor of the red-black pressure sweeps, in (0, 2).
        Default is 1.7.
    relaxation : str, optional
        ``'red_black'`` or ``'jacobi'``. Default is ``'red_black'``.
    pressure_solver : str, optional
        ``'relaxation'`` or ``'direct'`` (sparse LU). Default is ``'relaxation'``.
    n_workers : int, optional
        Worker threads of the parallel layer. Default is the CPU count.
    record_every : int, optional
        Keep every k-th snapshot as a frame for ``save()``; 0 records none.
    steps_completed : int, optional
        Run info: number of completed steps.
    cancelled : bool, optional
        Run info: whether the run was cancelled.
    final_max_divergence : float, optional
        Run info: max divergence after the last step.
    """

    # Grid parameters
    nx: int = 64
    ny: int = 64
    h: float = 1.0

    # Time stepping
    dt: float = 0.1
    n_steps: int = 100

    # Physics parameters
    viscosity: float = 0.0
    diffusion_rate: float = 0.0
    gravity: Tuple[float, float] = (0.0, 0.0)
    sources: List[SourceTerm] = field(default_factory=list)

    # Boundaries
    boundary_left: str = "no_slip"
    boundary_right: str = "no_slip"
    boundary_bottom: str = "no_slip"
    boundary_top: str = "no_slip"

    # Solver config
    diffusion_iterations: int = 20
    pressure_iterations: int = 500
    tolerance: float = 1e-6
    omega: float = 1.7
    relaxation: str = "red_black"
    pressure_solver: str = "relaxation"
    n_workers: Optional[int] = None
    record_every: int = 0

    # Run info
    steps_completed: int = 0
    cancelled: bool = False
    final_max_divergence: Optional[float] = None

    def __post_init__(self):
        self.sources = [_as_source(s) for s in (self.sources or [])]

    @property
    def boundary(self) -> BoundaryPolicy:
        return BoundaryPolicy(
            left=self.boundary_left,
            right=self.boundary_right,
            bottom=self.boundary_bottom,
            top=self.boundary_top,
        )

    def make_grid(self) -> Grid:
        return Grid(self.nx, self.ny, self.h)

    def validate(self):
        """Check every parameter; raises ``ConfigurationError`` on the first problem."""
        grid = self.make_grid()

        if not _is_finite_number(self.dt) or self.dt <= 0:
            raise ConfigurationError(f"dt must be positive and finite, got {self.dt!r}")
        if not _is_int(self.n_steps) or self.n_steps < 1:
            raise ConfigurationError(f"n_steps must be a positive integer, got {self.n_steps!r}")
        for name in ("viscosity", "diffusion_rate"):
            value = getattr(self, name)
            if not _is_finite_number(value) or value < 0:
                raise ConfigurationError(f"{name} must be finite and >= 0, got {value!r}")
        gravity = tuple(np.atleast_1d(np.asarray(self.gravity, dtype=object)))
        if len(gravity) != 2 or not all(_is_finite_number(g) for g in gravity):
            raise ConfigurationError(f"gravity must be two finite numbers, got {self.gravity!r}")

        self.boundary  # validates the policy names and periodic pairing

        for name in ("diffusion_iterations", "pressure_iterations"):
            value = getattr(self, name)
            if not _is_int(value) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if not _is_finite_number(self.tolerance) or self.tolerance < 0:
            raise ConfigurationError(f"tolerance must be finite and >= 0, got {self.tolerance!r}")
        if not _is_finite_number(self.omega) or not 0.0 < self.omega < 2.0:
            raise ConfigurationError(f"omega must lie in (0, 2), got {self.omega!r}")
        if self.relaxation not in RELAXATION_METHODS:
            raise ConfigurationError(
                f"Unknown relaxation '{self.relaxation}'. Use one of {RELAXATION_METHODS}"
            )
        if self.pressure_solver not in PRESSURE_SOLVERS:
            raise ConfigurationError(
                f"Unknown pressure_solver '{self.pressure_solver}'. Use one of {PRESSURE_SOLVERS}"
            )
        if self.n_workers is not None and (not _is_int(self.n_workers) or self.n_workers < 1):
            raise ConfigurationError(f"n_workers must be a positive integer, got {self.n_workers!r}")
        if not _is_int(self.record_every) or self.record_every < 0:
            raise ConfigurationError(f"record_every must be an integer >= 0, got {self.record_every!r}")

        for source in self.sources:
            source.validate(grid)
        return self

    def to_attrs(self) -> dict:
        """Flat, HDF5-attribute friendly view (sources reduced to a count)."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "sources"}
        data["gravity"] = np.asarray(self.gravity, dtype=np.float64)
        data["n_sources"] = len(self.sources)
        return data

    def to_dataframe(self) -> pd.DataFrame:
        """Convert config/run info to a single-row DataFrame."""
        data = self.to_attrs()
        data["gravity"] = tuple(self.gravity)
        return pd.DataFrame([data])

    def sources_dataframe(self) -> pd.DataFrame:
        """Sources as a DataFrame with columns i, j, field, sx, sy."""
        rows = []
        for s in self.sources:
            strength = np.atleast_1d(s.strength).astype(np.float64)
            sx, sy = (strength[0], 0.0) if s.field == "density" else (strength[0], strength[1])
            rows.append({"i": s.i, "j": s.j, "field": s.field, "sx": sx, "sy": sy})
        return pd.DataFrame(rows, columns=["i", "j", "field", "sx", "sy"])


# ========================================================
# Results
# ========================================================


def _frozen_copy(array):
    out = np.array(array, dtype=np.float64, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class Snapshot:
    """Read-only copy of the fields after one step.

    Arrays include the boundary layer (shape ``grid.shape``) and are not
    writeable.
    """

    step: int
    time: float
    grid: Grid
    u: np.ndarray
    v: np.ndarray
    density: np.ndarray
    pressure: np.ndarray
    max_divergence: float
    warnings: Tuple[ConvergenceWarning, ...] = ()

    @classmethod
    def capture(cls, step, time, grid, fields, max_divergence, warnings=()):
        return cls(
            step=step,
            time=time,
            grid=grid,
            u=_frozen_copy(fields.u),
            v=_frozen_copy(fields.v),
            density=_frozen_copy(fields.density),
            pressure=_frozen_copy(fields.pressure),
            max_divergence=float(max_divergence),
            warnings=tuple(warnings),
        )

    def cell_velocity(self):
        """Velocity averaged from the faces to the interior cell centres."""
        nx, ny = self.grid.nx, self.grid.ny
        uc = 0.5 * (self.u[1:nx + 1, 1:ny + 1] + self.u[2:nx + 2, 1:ny + 1])
        vc = 0.5 * (self.v[1:nx + 1, 1:ny + 1] + self.v[1:nx + 1, 2:ny + 2])
        return uc, vc

    def to_dataframe(self) -> pd.DataFrame:
        """Interior cells as rows: x, y, u, v, density, pressure."""
        x, y = self.grid.cell_centers()
        uc, vc = self.cell_velocity()
        interior = self.grid.interior
        return pd.DataFrame(
            {
                "x": x,
                "y": y,
                "u": uc.ravel(),
                "v": vc.ravel(),
                "density": self.density[interior].ravel(),
                "pressure": self.pressure[interior].ravel(),
            }
        )


@dataclass
class TimeSeries:
    """Per-step diagnostics of a run."""

    step: List[int] = field(default_factory=list)
    time: List[float] = field(default_factory=list)
    max_divergence: List[float] = field(default_factory=list)
    kinetic_energy: List[float] = field(default_factory=list)
    total_density: List[float] = field(default_factory=list)
    pressure_iterations: List[int] = field(default_factory=list)
    n_warnings: List[int] = field(default_factory=list)

    def append(self, **values):
        for key, value in values.items():
            getattr(self, key).append(value)

    def __len__(self):
        return len(self.step)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per step."""
        return pd.DataFrame(asdict(self))
