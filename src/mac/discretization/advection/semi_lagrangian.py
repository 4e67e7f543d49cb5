"""Semi-Lagrangian advection on the staggered grid.

Every sample point of the advected field is traced backwards along the velocity
of the start of the timestep (explicit Euler) and the field is bilinearly
interpolated at the departure point. All positions are in grid units, so the
sample point of ``field[i, j]`` sits at ``(i + ox, j + oy)`` for the field's
offsets ``(ox, oy)``.

Departure points are clamped to the storage extent, so near walls the
interpolation reads the already-enforced boundary layer. On periodic axes they
are wrapped into the periodic interval instead.
"""

import numpy as np
from numba import njit


@njit(inline="always")
def _clamp(x, lo, hi):
    if x < lo:
        return lo
    if x > hi:
        return hi
    return x


@njit(inline="always", cache=True)
def sample_bilinear(field, fx, fy):
    """Bilinear interpolation of ``field`` at array coordinates ``(fx, fy)``.

    Returns stored values exactly at integer coordinates.
    """
    n0 = field.shape[0]
    n1 = field.shape[1]
    fx = _clamp(fx, 0.0, n0 - 1.0)
    fy = _clamp(fy, 0.0, n1 - 1.0)

    i0 = int(np.floor(fx))
    j0 = int(np.floor(fy))
    if i0 > n0 - 2:
        i0 = n0 - 2
    if j0 > n1 - 2:
        j0 = n1 - 2
    tx = fx - i0
    ty = fy - j0

    a = field[i0, j0] * (1.0 - tx) + field[i0 + 1, j0] * tx
    b = field[i0, j0 + 1] * (1.0 - tx) + field[i0 + 1, j0 + 1] * tx
    return a * (1.0 - ty) + b * ty


@njit(inline="always", cache=True)
def velocity_at(u, v, x, y):
    """Velocity (grid units per time) at position ``(x, y)`` given in cells."""
    return (
        sample_bilinear(u, x, y - 0.5),
        sample_bilinear(v, x - 0.5, y),
    )


@njit(nogil=True, cache=True)
def advect_rows(start, stop, j0, j1, field, out, u, v, ox, oy, dt_h, nx, ny, periodic_x, periodic_y):
    """Advect rows ``start..stop`` of ``field`` into ``out``.

    Parameters
    ----------
    start, stop : int
        Row range (first array index) handled by this call.
    j0, j1 : int
        Column range of the unknowns.
    field, out : ndarray
        Field being advected and its write buffer. ``out`` must not alias
        ``field``, ``u`` or ``v``.
    u, v : ndarray
        Staggered velocity of the start of the step.
    ox, oy : float
        Offsets of the field's sample points in cells.
    dt_h : float
        ``dt / h``; converts velocity to cells per step.
    """
    for i in range(start, stop):
        for j in range(j0, j1):
            x = i + ox
            y = j + oy
            vel = velocity_at(u, v, x, y)
            x_src = x - dt_h * vel[0]
            y_src = y - dt_h * vel[1]

            if periodic_x:
                x_src = 1.0 + (x_src - 1.0) % nx
            if periodic_y:
                y_src = 1.0 + (y_src - 1.0) % ny

            out[i, j] = sample_bilinear(field, x_src - ox, y_src - oy)


def advect(executor, field, out, u, v, offsets, ranges, dt, h, nx, ny, policy):
    """Advect one field through the executor.

    ``ranges`` are the free index ranges ``(i0, i1, j0, j1)`` of the field; only
    those entries of ``out`` are written.
    """
    i0, i1, j0, j1 = ranges
    ox, oy = offsets
    executor.map_rows(
        advect_rows, i0, i1,
        j0, j1, field, out, u, v,
        float(ox), float(oy), float(dt / h),
        nx, ny, policy.periodic_x, policy.periodic_y,
    )
