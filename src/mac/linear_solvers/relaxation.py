"""Bounded relaxation for five-point stencil systems.

Solves, for every free cell c,

    beta * x[c] - alpha * sum(x[neighbours of c]) = b[c]

which covers both implicit diffusion (``alpha = k``, ``beta = 1 + 4k``,
``b = current field``) and the pressure Poisson equation (``alpha = 1``,
``beta = 4``, ``b = -h**2 * divergence / dt``).

Two sweep types are available, both independent of how rows are chunked:

- ``"red_black"``: Gauss-Seidel with over-relaxation ``omega``. A sweep is two
  passes; each pass updates the cells of one colour and reads only cells of the
  other colour, so no cell is read and written in the same pass. The boundary
  layer is refreshed between the passes so that periodic images hold the
  current value of the cell they mirror. A periodic axis with an odd number of
  cells cannot be coloured consistently across the seam; ``select_method``
  falls back to Jacobi there.
- ``"jacobi"``: every sweep reads ``x`` and writes a second buffer; the two are
  exchanged after the sweep.

The boundary layer is re-enforced after every sweep. Iteration stops after
``max_iterations`` sweeps or once the largest per-cell change of a sweep is at
most ``tolerance``. A non-finite change stops it immediately, unconverged.
"""

import math
from dataclasses import dataclass

import numpy as np
from numba import njit

RELAXATION_METHODS = ("red_black", "jacobi")


def select_method(method, nx, ny, periodic_x, periodic_y):
    """Relaxation method usable on the given extents.

    Red-black colouring wraps consistently around a periodic axis only when the
    axis has an even number of cells; otherwise Jacobi is used.
    """
    odd_periodic = (periodic_x and nx % 2 == 1) or (periodic_y and ny % 2 == 1)
    if method == "red_black" and odd_periodic:
        return "jacobi"
    return method


@dataclass
class RelaxationResult:
    """Outcome of one relaxation solve."""

    iterations: int
    converged: bool
    max_change: float


@njit(nogil=True, cache=True)
def jacobi_rows(start, stop, j0, j1, x, x_new, b, alpha, beta):
    change = 0.0
    for i in range(start, stop):
        for j in range(j0, j1):
            nb = x[i - 1, j] + x[i + 1, j] + x[i, j - 1] + x[i, j + 1]
            value = (b[i, j] + alpha * nb) / beta
            d = abs(value - x[i, j])
            if d > change or np.isnan(d):
                change = d
            x_new[i, j] = value
    return change


@njit(nogil=True, cache=True)
def red_black_rows(start, stop, j0, j1, x, b, alpha, beta, omega, parity):
    change = 0.0
    for i in range(start, stop):
        # first column of this colour: (i + j) % 2 == parity
        first = j0 + ((i + j0 + parity) & 1)
        for j in range(first, j1, 2):
            nb = x[i - 1, j] + x[i + 1, j] + x[i, j - 1] + x[i, j + 1]
            gs = (b[i, j] + alpha * nb) / beta
            value = x[i, j] + omega * (gs - x[i, j])
            d = abs(value - x[i, j])
            if d > change or np.isnan(d):
                change = d
            x[i, j] = value
    return change


def relax(
    executor,
    x,
    b,
    alpha,
    beta,
    ranges,
    enforce,
    max_iterations,
    tolerance,
    method="red_black",
    omega=1.0,
    work=None,
):
    """Relax ``x`` in place towards the solution of the stencil system.

    Parameters
    ----------
    executor : ChunkedExecutor
        Executes the row kernels.
    x : ndarray
        Initial guess, overwritten with the result. Must not alias ``b``.
    b : ndarray
        Right-hand side.
    alpha, beta : float
        Stencil coefficients.
    ranges : tuple
        Free index ranges ``(i0, i1, j0, j1)``.
    enforce : callable
        ``enforce(array)`` re-applies the boundary layer in place.
    max_iterations : int
        Sweep cap.
    tolerance : float
        Early exit once the max per-cell change of a sweep is at most this.
    method : str
        ``'red_black'`` or ``'jacobi'``.
    omega : float
        Over-relaxation factor (red-black only).
    work : ndarray, optional
        Second buffer for Jacobi sweeps; required when ``method='jacobi'``.

    Returns
    -------
    RelaxationResult
    """
    i0, i1, j0, j1 = ranges
    alpha = float(alpha)
    beta = float(beta)

    if method == "jacobi":
        if work is None:
            raise ValueError("Jacobi relaxation needs a work buffer")
        current, target = x, work
    elif method != "red_black":
        raise ValueError(f"Unknown relaxation method '{method}'. Use one of {RELAXATION_METHODS}")

    change = float("inf")
    iterations = 0
    converged = False

    for sweep in range(max_iterations):
        iterations = sweep + 1
        if method == "jacobi":
            change = executor.max_rows(jacobi_rows, i0, i1, j0, j1, current, target, b, alpha, beta)
            enforce(target)
            current, target = target, current
        else:
            red = executor.max_rows(red_black_rows, i0, i1, j0, j1, x, b, alpha, beta, float(omega), 0)
            enforce(x)
            black = executor.max_rows(red_black_rows, i0, i1, j0, j1, x, b, alpha, beta, float(omega), 1)
            enforce(x)
            change = float(np.max((red, black)))

        if not math.isfinite(change):
            break
        if change <= tolerance:
            converged = True
            break

    if method == "jacobi" and current is not x:
        x[...] = current

    return RelaxationResult(iterations=iterations, converged=converged, max_change=float(change))
