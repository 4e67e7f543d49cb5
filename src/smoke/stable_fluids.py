"""Stable-fluids smoke simulation on a MAC grid.

One timestep, in fixed order:
forces -> advection -> diffusion -> pressure projection -> boundary enforcement,
with a finiteness check after every stage.
"""

import logging
import warnings

import numpy as np

from mac.boundary.conditions import (
    component_enforcer,
    enforce_scalar,
    enforce_velocity,
    free_ranges,
)
from mac.core.forces import apply_gravity, apply_sources
from mac.core.parallel import ChunkedExecutor
from mac.core.projection import project
from mac.discretization.advection.semi_lagrangian import advect
from mac.discretization.diffusion.implicit import diffuse
from mac.errors import ConvergenceWarning, NumericalInstabilityError
from mac.linear_solvers.relaxation import select_method
from mac.linear_solvers.scipy_solver import DirectPoissonSolver
from meshing.mac_grid import OFFSETS, FieldBuffers

from .base_simulation import FluidSimulation
from .datastructures import SimulationConfig

logger = logging.getLogger(__name__)


class StableFluidsSimulation(FluidSimulation):
    """Incompressible smoke simulation with semi-Lagrangian advection,
    implicit diffusion and pressure projection.

    Parameters
    ----------
    config : SimulationConfig, optional
        Full configuration. If omitted, ``**kwargs`` build one.
    **kwargs
        Configuration parameters passed to SimulationConfig.

    Examples
    --------
    >>> sim = StableFluidsSimulation(nx=32, ny=32, n_steps=10,
    ...                              sources=[{"i": 16, "j": 16, "field": "density"}])
    >>> sim.add_progress_listener(lambda step, total: print(step, total))
    >>> last = sim.run()
    """

    Config = SimulationConfig

    def __init__(self, config=None, **kwargs):
        super().__init__(config=config, **kwargs)

        self.grid = self.config.make_grid()
        self.policy = self.config.boundary
        self.fields = FieldBuffers.allocate(self.grid)
        self.executor = ChunkedExecutor(self.config.n_workers)

        g = self.grid
        self.relaxation = select_method(
            self.config.relaxation, g.nx, g.ny, self.policy.periodic_x, self.policy.periodic_y
        )
        if self.relaxation != self.config.relaxation:
            logger.info(
                "Odd periodic extent (%d x %d): using %s relaxation instead of %s",
                g.nx, g.ny, self.relaxation, self.config.relaxation,
            )

        self.direct_solver = None
        if self.config.pressure_solver == "direct":
            self.direct_solver = DirectPoissonSolver(
                self.grid.nx, self.grid.ny, self.policy.periodic_x, self.policy.periodic_y
            )

        self.last_pressure_iterations = 0

    def close(self):
        """Release the worker threads."""
        self.executor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ---------------------------------------------------------------------
    # Timestep
    # ---------------------------------------------------------------------
    def step(self):
        """Perform one timestep.

        Returns
        -------
        list of ConvergenceWarning
        """
        step_warnings = []

        self._apply_forces()
        self._check_finite("forces")

        self._advect()
        self._check_finite("advection")

        for name, result in self._diffuse():
            self._warn_if_unconverged(f"{name} diffusion", result, step_warnings)
        self._check_finite("diffusion")

        result = self._project()
        self.last_pressure_iterations = result.iterations
        self._warn_if_unconverged("pressure projection", result, step_warnings)
        self._check_finite("projection")

        self._enforce_boundaries()
        self._check_finite("boundary")

        return step_warnings

    def _apply_forces(self):
        f, g = self.fields, self.grid
        apply_sources(f, self.config.sources, self.config.dt)
        apply_gravity(f, self.config.gravity, self.config.dt, g.nx, g.ny, self.policy)
        self._enforce_boundaries()

    def _advect(self):
        """Advect u, v and density with the velocity of the start of the step."""
        f, g = self.fields, self.grid
        for name in ("u", "v", "density"):
            advect(
                self.executor,
                getattr(f, name),
                getattr(f, f"{name}_next"),
                f.u,
                f.v,
                OFFSETS[name],
                free_ranges(name, g.nx, g.ny, self.policy),
                self.config.dt,
                g.h,
                g.nx,
                g.ny,
                self.policy,
            )
        # swap only once every field has read the old velocity
        for name in ("u", "v", "density"):
            f.swap(name)
        self._enforce_boundaries()

    def _diffuse(self):
        f, g, c = self.fields, self.grid, self.config
        results = []
        for name, rate in (("u", c.viscosity), ("v", c.viscosity), ("density", c.diffusion_rate)):
            if rate == 0.0:
                continue
            enforcer = component_enforcer(name)
            result = diffuse(
                self.executor,
                getattr(f, name),
                getattr(f, f"{name}_next"),
                rate,
                c.dt,
                g.h,
                ranges=free_ranges(name, g.nx, g.ny, self.policy),
                enforce=lambda a, enforcer=enforcer: enforcer(a, g.nx, g.ny, self.policy),
                max_iterations=c.diffusion_iterations,
                tolerance=c.tolerance,
                method=self.relaxation,
                work=f.scratch,
            )
            f.swap(name)
            results.append((name, result))
        return results

    def _project(self):
        g, c = self.grid, self.config
        return project(
            self.executor,
            self.fields,
            g.h,
            c.dt,
            g.nx,
            g.ny,
            self.policy,
            max_iterations=c.pressure_iterations,
            tolerance=c.tolerance,
            method=self.relaxation,
            omega=c.omega,
            direct_solver=self.direct_solver,
        )

    def _enforce_boundaries(self):
        f, g = self.fields, self.grid
        enforce_velocity(f.u, f.v, g.nx, g.ny, self.policy)
        enforce_scalar(f.density, g.nx, g.ny, self.policy)

    # ---------------------------------------------------------------------
    # Checks
    # ---------------------------------------------------------------------
    def _check_finite(self, stage):
        for name in self.fields.state_names():
            if not np.isfinite(getattr(self.fields, name)).all():
                logger.error("Non-finite '%s' after %s at step %d", name, stage, self.step_index)
                raise NumericalInstabilityError(self.step_index, stage, name)
        logger.debug("Step %d: %s done", self.step_index, stage)

    def _warn_if_unconverged(self, solver, result, collected):
        if result.converged:
            return
        warning = ConvergenceWarning(solver, result.iterations, result.max_change, self.step_index)
        logger.warning(str(warning))
        warnings.warn(warning, stacklevel=3)
        collected.append(warning)
