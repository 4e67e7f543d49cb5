"""Scipy-based direct pressure solve (sparse LU, factorised once)."""

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.linalg import factorized

from mac.assembly.pressure_poisson_assembly import assemble_pressure_poisson_matrix


class DirectPoissonSolver:
    """Direct solver for the pressure Poisson equation on the interior cells.

    The pure-Neumann (or periodic) operator is singular; cell 0 is pinned to
    remove the constant null space.
    """

    def __init__(self, nx, ny, periodic_x=False, periodic_y=False):
        self.nx = nx
        self.ny = ny
        n_cells = nx * ny

        row, col, data = assemble_pressure_poisson_matrix(nx, ny, periodic_x, periodic_y)
        A = csr_matrix((data, (row, col)), shape=(n_cells, n_cells))

        # Pin node 0 to remove nullspace: set row 0 to identity
        A = A.tolil()
        A[0, :] = 0.0
        A[0, 0] = 1.0
        self._solve = factorized(A.tocsc())

    def solve(self, rhs):
        """Solve ``A p = rhs`` for the interior pressure.

        Parameters
        ----------
        rhs : ndarray, shape (nx, ny)
            ``-h**2 * divergence / dt`` on the interior cells.

        Returns
        -------
        ndarray, shape (nx, ny)
        """
        b = np.ascontiguousarray(rhs, dtype=np.float64).ravel().copy()
        b[0] = 0.0
        return self._solve(b).reshape(self.nx, self.ny)
