import numpy as np
import pytest

from mac.errors import ConfigurationError
from meshing.mac_grid import FieldBuffers, Grid


def test_grid_dimensions(grid):
    assert grid.shape == (10, 8)
    assert grid.size == 80
    assert grid.n_cells == 48


@pytest.mark.parametrize(
    "nx, ny, h",
    [(0, 4, 1.0), (4, -1, 1.0), (4.5, 4, 1.0), (True, 4, 1.0), (4, 4, 0.0), (4, 4, float("nan"))],
)
def test_invalid_grid(nx, ny, h):
    with pytest.raises(ConfigurationError):
        Grid(nx, ny, h)


def test_index_is_bounds_checked(grid):
    assert grid.index(0, 0) == 0
    assert grid.index(1, 2) == 1 * (grid.ny + 2) + 2
    assert grid.index(grid.nx + 1, grid.ny + 1) == grid.size - 1
    with pytest.raises(IndexError):
        grid.index(grid.nx + 2, 0)
    with pytest.raises(IndexError):
        grid.index(-1, 0)


def test_cell_centers_span_domain(grid):
    x, y = grid.cell_centers()
    assert len(x) == len(y) == grid.n_cells
    assert x.min() == pytest.approx(0.5 * grid.h)
    assert x.max() == pytest.approx((grid.nx - 0.5) * grid.h)
    assert y.max() == pytest.approx((grid.ny - 0.5) * grid.h)


def test_allocate_zeroed_buffers(grid):
    fields = FieldBuffers.allocate(grid)
    arrays = [getattr(fields, name) for name in fields.buffer_names()]
    assert len(arrays) == 10
    for a in arrays:
        assert a.shape == grid.shape
        assert not a.any()
    assert len({id(a) for a in arrays}) == len(arrays)


def test_read_write(fields):
    fields.write("density", 3, 2, 1.5)
    assert fields.read("density", 3, 2) == 1.5
    assert fields.density[3, 2] == 1.5
    with pytest.raises(IndexError):
        fields.write("density", 10, 0, 1.0)
    with pytest.raises(KeyError):
        fields.read("temperature", 1, 1)


def test_swap_exchanges_references(fields):
    current, nxt = fields.u, fields.u_next
    nxt[2, 2] = 7.0
    fields.swap("u")
    assert fields.u is nxt
    assert fields.u_next is current
    assert fields.u[2, 2] == 7.0
    assert np.all(fields.u_next == 0.0)
