"""Pressure projection: make the staggered velocity divergence-free.

1. divergence of every interior cell from its four faces
2. Poisson solve  lap(p) = divergence / dt  (relaxation or direct)
3. velocity -= dt * grad(p) on every free face
4. velocity boundary re-enforced

After a converged solve the discrete divergence of the result is ``dt`` times
the Poisson residual, i.e. near zero in every interior cell.
"""

import logging

import numpy as np
from numba import njit

from mac.boundary.conditions import enforce_scalar, enforce_velocity, free_ranges
from mac.linear_solvers.relaxation import RelaxationResult, relax, select_method

logger = logging.getLogger(__name__)

PRESSURE_SOLVERS = ("relaxation", "direct")


@njit(nogil=True, cache=True)
def divergence_rows(start, stop, ny, u, v, inv_h, out):
    for i in range(start, stop):
        for j in range(1, ny + 1):
            out[i, j] = (u[i + 1, j] - u[i, j] + v[i, j + 1] - v[i, j]) * inv_h


@njit(nogil=True, cache=True)
def subtract_gradient_rows(start, stop, j0, j1, vel, out, p, scale, di, dj):
    """out = vel - scale * (p[c] - p[c - (di, dj)]) on the free faces."""
    for i in range(start, stop):
        for j in range(j0, j1):
            out[i, j] = vel[i, j] - scale * (p[i, j] - p[i - di, j - dj])


def compute_divergence(executor, u, v, h, nx, ny, out):
    """Write the divergence of every interior cell into ``out``."""
    executor.map_rows(divergence_rows, 1, nx + 1, ny, u, v, 1.0 / h, out)
    return out


def max_divergence(u, v, h, nx, ny):
    """Largest absolute discrete divergence over the interior cells."""
    div = (
        u[2:nx + 2, 1:ny + 1] - u[1:nx + 1, 1:ny + 1]
        + v[1:nx + 1, 2:ny + 2] - v[1:nx + 1, 1:ny + 1]
    ) / h
    return float(np.max(np.abs(div))) if div.size else 0.0


def remove_mean(p, nx, ny, policy):
    """Gauge-fix pressure by removing its interior mean."""
    p -= p[1:nx + 1, 1:ny + 1].mean()
    enforce_scalar(p, nx, ny, policy)


def project(
    executor,
    fields,
    h,
    dt,
    nx,
    ny,
    policy,
    max_iterations=500,
    tolerance=1e-6,
    method="red_black",
    omega=1.7,
    direct_solver=None,
):
    """Project ``fields.u``/``fields.v`` onto divergence-free velocity.

    Reads ``fields.u``, ``fields.v`` and warm-starts from ``fields.pressure``;
    writes the corrected velocity into ``fields.u_next``/``fields.v_next`` and
    swaps them in. ``fields.divergence`` and ``fields.scratch`` are used as work
    buffers.

    Parameters
    ----------
    direct_solver : DirectPoissonSolver, optional
        When given, the Poisson equation is solved directly and the relaxation
        settings are ignored.

    Returns
    -------
    RelaxationResult
        Convergence info of the pressure solve.
    """
    div = compute_divergence(executor, fields.u, fields.v, h, nx, ny, fields.divergence)

    # lap(p) = div / dt   <=>   4 p - sum(p_nb) = -h^2 div / dt
    rhs = fields.scratch
    rhs[...] = (-h * h / dt) * div

    p = fields.pressure
    if direct_solver is not None:
        p[1:nx + 1, 1:ny + 1] = direct_solver.solve(rhs[1:nx + 1, 1:ny + 1])
        enforce_scalar(p, nx, ny, policy)
        result = RelaxationResult(iterations=1, converged=True, max_change=0.0)
    else:
        result = relax(
            executor,
            p,
            rhs,
            alpha=1.0,
            beta=4.0,
            ranges=(1, nx + 1, 1, ny + 1),
            enforce=lambda a: enforce_scalar(a, nx, ny, policy),
            max_iterations=max_iterations,
            tolerance=tolerance,
            method=select_method(method, nx, ny, policy.periodic_x, policy.periodic_y),
            omega=omega,
            work=fields.pressure_next,
        )
    remove_mean(p, nx, ny, policy)
    logger.debug(
        "Pressure solve: %d sweep(s), converged=%s, max change %.3e",
        result.iterations, result.converged, result.max_change,
    )

    scale = dt / h
    for name, (di, dj) in (("u", (1, 0)), ("v", (0, 1))):
        i0, i1, j0, j1 = free_ranges(name, nx, ny, policy)
        vel = getattr(fields, name)
        out = getattr(fields, f"{name}_next")
        out[...] = vel
        executor.map_rows(subtract_gradient_rows, i0, i1, j0, j1, vel, out, p, scale, di, dj)
        fields.swap(name)

    enforce_velocity(fields.u, fields.v, nx, ny, policy)
    return result
