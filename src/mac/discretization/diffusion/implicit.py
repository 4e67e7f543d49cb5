"""Implicit (backward Euler) diffusion.

    next[c] = (current[c] + k * sum(next[neighbours])) / (1 + 4k),  k = rate * dt / h**2

The implicit form is stable for any ``k``; it is solved with the shared bounded
relaxation, re-enforcing the boundary layer after every sweep.
"""

from mac.linear_solvers.relaxation import RelaxationResult, relax


def diffusion_coefficient(rate, dt, h):
    return rate * dt / (h * h)


def diffuse(
    executor,
    field,
    out,
    rate,
    dt,
    h,
    ranges,
    enforce,
    max_iterations,
    tolerance,
    method="red_black",
    omega=1.0,
    work=None,
):
    """Diffuse ``field`` into ``out``.

    ``field`` is only read; ``out`` receives the relaxed solution, with its
    boundary layer enforced.

    Returns
    -------
    RelaxationResult
    """
    k = diffusion_coefficient(rate, dt, h)
    out[...] = field  # initial guess
    if k == 0.0:
        enforce(out)
        return RelaxationResult(iterations=0, converged=True, max_change=0.0)

    return relax(
        executor,
        out,
        field,
        alpha=k,
        beta=1.0 + 4.0 * k,
        ranges=ranges,
        enforce=enforce,
        max_iterations=max_iterations,
        tolerance=tolerance,
        method=method,
        omega=omega,
        work=work,
    )
