import numpy as np
from numba import njit


@njit(cache=True)
def assemble_pressure_poisson_matrix(nx, ny, periodic_x, periodic_y):
    """
    Assemble the negative five-point Laplacian (scaled by h**2) over the
    interior cells, row-major in (i, j) with cell index (i - 1) * ny + (j - 1).

    Wall neighbours drop out (zero-gradient pressure); periodic neighbours wrap.
    Each row holds the neighbour count on the diagonal and -1 per neighbour.
    """
    max_nnz = 5 * nx * ny
    row = np.zeros(max_nnz, dtype=np.int64)
    col = np.zeros(max_nnz, dtype=np.int64)
    data = np.zeros(max_nnz, dtype=np.float64)

    idx = 0
    for i in range(nx):
        for j in range(ny):
            P = i * ny + j
            diag = 0.0

            # ––– x neighbours ––––––––––––––––––––––––––––––––––––––––––––––
            for di in (-1, 1):
                ii = i + di
                if ii < 0 or ii >= nx:
                    if not periodic_x:
                        continue
                    ii = ii % nx
                if ii == i:
                    continue
                row[idx] = P
                col[idx] = ii * ny + j
                data[idx] = -1.0
                idx += 1
                diag += 1.0

            # ––– y neighbours ––––––––––––––––––––––––––––––––––––––––––––––
            for dj in (-1, 1):
                jj = j + dj
                if jj < 0 or jj >= ny:
                    if not periodic_y:
                        continue
                    jj = jj % ny
                if jj == j:
                    continue
                row[idx] = P
                col[idx] = i * ny + jj
                data[idx] = -1.0
                idx += 1
                diag += 1.0

            row[idx] = P
            col[idx] = P
            data[idx] = diag
            idx += 1

    return row[:idx], col[:idx], data[:idx]
