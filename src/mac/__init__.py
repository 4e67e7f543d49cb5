"""MAC-grid numerics package.

This package contains the staggered-grid building blocks of the smoke solver:
boundary enforcement, semi-Lagrangian advection, implicit diffusion, pressure
projection and the chunked thread-pool executor they all run on.
"""

# Core stages
from .core.forces import apply_gravity, apply_sources
from .core.parallel import ChunkedExecutor
from .core.projection import compute_divergence, max_divergence, project
from .discretization.advection.semi_lagrangian import advect
from .discretization.diffusion.implicit import diffuse
from .errors import ConfigurationError, ConvergenceWarning, NumericalInstabilityError

__all__ = [
    # Stages
    "apply_sources",
    "apply_gravity",
    "advect",
    "diffuse",
    "project",
    "compute_divergence",
    "max_divergence",
    # Parallel layer
    "ChunkedExecutor",
    # Errors
    "ConfigurationError",
    "NumericalInstabilityError",
    "ConvergenceWarning",
]
