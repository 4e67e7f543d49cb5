"""Error taxonomy of the simulation.

Configuration and numerical-instability errors are fatal and unwind to the
caller of ``advance()``/``run()``. Convergence problems are only warnings: the
best available estimate is kept and the warning is attached to the step's
snapshot.
"""


class ConfigurationError(ValueError):
    """Invalid grid, timestep, rate or boundary parameters."""


class NumericalInstabilityError(FloatingPointError):
    """A field became non-finite after a stage.

    Parameters
    ----------
    step : int
        Step index (1-based) during which the instability was detected.
    stage : str
        Pipeline stage after which the check failed.
    field : str
        Name of the first offending buffer.
    """

    def __init__(self, step, stage, field):
        self.step = step
        self.stage = stage
        self.field = field
        super().__init__(
            f"Non-finite values in '{field}' after stage '{stage}' of step {step}"
        )


class ConvergenceWarning(UserWarning):
    """A relaxation solve hit its sweep cap before reaching the tolerance."""

    def __init__(self, solver, iterations, max_change, step=None):
        self.solver = solver
        self.iterations = iterations
        self.max_change = max_change
        self.step = step
        where = f" at step {step}" if step is not None else ""
        super().__init__(
            f"{solver} did not converge{where}: "
            f"max change {max_change:.3e} after {iterations} sweeps"
        )
