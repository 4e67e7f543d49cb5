"""
Grid and field storage for a 2D staggered (MAC) grid.

Layout:
- ``nx`` x ``ny`` interior cells plus one boundary layer on every side, so each
  buffer has shape ``(nx + 2, ny + 2)``. Index ``0`` and ``nx + 1`` (``ny + 1``)
  are the boundary layer, ``1..nx`` (``1..ny``) the interior.
- ``u[i, j]`` lives on the left face of cell (i, j)   -> offset (0, 1/2)
- ``v[i, j]`` lives on the bottom face of cell (i, j) -> offset (1/2, 0)
- scalars (density, pressure, divergence) live at cell centres -> offset (1/2, 1/2)

All buffers share one shape; the staggering is carried by the offsets, the
array length is always ``(nx + 2) * (ny + 2)``.

Double buffering:
- every mutable field ``name`` has a ``name_next`` partner of the same shape.
- stages read ``name`` and write ``name_next``; ``swap(name)`` exchanges the two
  references once the stage has finished for every cell.
"""

import math
from dataclasses import dataclass, fields

import numpy as np

from mac.errors import ConfigurationError

# Offsets (in cells) of each field's sample points relative to the cell corner.
OFFSETS = {
    "u": (0.0, 0.5),
    "v": (0.5, 0.0),
    "density": (0.5, 0.5),
    "pressure": (0.5, 0.5),
    "divergence": (0.5, 0.5),
}


@dataclass(frozen=True)
class Grid:
    """Immutable grid dimensions and cell spacing.

    Parameters
    ----------
    nx, ny : int
        Number of interior cells along x and y.
    h : float
        Cell spacing (square cells).
    """

    nx: int
    ny: int
    h: float

    def __post_init__(self):
        for name in ("nx", "ny"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.h, (int, float, np.floating)) or not math.isfinite(self.h) or self.h <= 0:
            raise ConfigurationError(f"Cell spacing h must be positive and finite, got {self.h!r}")

    @property
    def shape(self):
        """Storage shape including the boundary layer."""
        return (self.nx + 2, self.ny + 2)

    @property
    def size(self):
        return (self.nx + 2) * (self.ny + 2)

    @property
    def n_cells(self):
        """Number of interior cells."""
        return self.nx * self.ny

    @property
    def interior(self):
        """Slices selecting the interior cells of a buffer."""
        return (slice(1, self.nx + 1), slice(1, self.ny + 1))

    def contains(self, i, j):
        return 0 <= i < self.nx + 2 and 0 <= j < self.ny + 2

    def is_interior(self, i, j):
        return 1 <= i <= self.nx and 1 <= j <= self.ny

    def index(self, i, j):
        """Flat (row-major) index of cell (i, j), bounds-checked."""
        if not self.contains(i, j):
            raise IndexError(
                f"Cell ({i}, {j}) outside grid of shape {self.shape}"
            )
        return i * (self.ny + 2) + j

    def cell_centers(self):
        """Physical coordinates of the interior cell centres, flattened.

        The domain spans ``[0, nx * h] x [0, ny * h]``; cell ``(i, j)`` is
        centred at ``((i - 0.5) * h, (j - 0.5) * h)``.

        Returns
        -------
        x, y : np.ndarray
            Arrays of length ``nx * ny`` ordered like ``buffer[grid.interior].ravel()``.
        """
        xc = (np.arange(1, self.nx + 1) - 0.5) * self.h
        yc = (np.arange(1, self.ny + 1) - 0.5) * self.h
        X, Y = np.meshgrid(xc, yc, indexing="ij")
        return X.ravel(), Y.ravel()


@dataclass
class FieldBuffers:
    """All field buffers of a simulation, owned by the time-stepper."""

    grid: Grid

    # Current state
    u: np.ndarray
    v: np.ndarray
    density: np.ndarray
    pressure: np.ndarray

    # Write targets of the double-buffered stages
    u_next: np.ndarray
    v_next: np.ndarray
    density_next: np.ndarray
    pressure_next: np.ndarray

    # Work buffers
    divergence: np.ndarray
    scratch: np.ndarray

    @classmethod
    def allocate(cls, grid: Grid):
        """Allocate zero-initialised buffers sized to the grid."""
        arrays = {
            f.name: np.zeros(grid.shape, dtype=np.float64)
            for f in fields(cls)
            if f.name != "grid"
        }
        return cls(grid=grid, **arrays)

    def buffer_names(self):
        return [f.name for f in fields(self) if f.name != "grid"]

    def state_names(self):
        """Buffers that hold physical state (checked for finiteness)."""
        return ["u", "v", "density", "pressure"]

    def _buffer(self, name):
        if name not in self.buffer_names():
            raise KeyError(f"Unknown field buffer '{name}'")
        return getattr(self, name)

    def read(self, name, i, j):
        """Bounds-checked read of one cell."""
        self.grid.index(i, j)
        return float(self._buffer(name)[i, j])

    def write(self, name, i, j, value):
        """Bounds-checked write of one cell."""
        self.grid.index(i, j)
        self._buffer(name)[i, j] = value

    def swap(self, name):
        """Exchange ``name`` and ``name_next`` (reference swap, no copy)."""
        nxt = f"{name}_next"
        current = self._buffer(name)
        new = self._buffer(nxt)
        setattr(self, name, new)
        setattr(self, nxt, current)
