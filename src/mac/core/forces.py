"""External force injection: point sources and a uniform body force.

Sources are added in place, in configuration order, before advection. A
velocity source at cell ``(i, j)`` feeds the two faces bounding the cell along
each axis, so it acts at the cell centre.
"""

from mac.boundary.conditions import free_ranges


def apply_sources(fields, sources, dt):
    """Add ``dt * strength`` of every source to its field.

    Parameters
    ----------
    fields : FieldBuffers
        Buffers with ``u``, ``v`` and ``density`` arrays.
    sources : iterable
        Objects with ``i``, ``j``, ``field`` (``'density'`` or ``'velocity'``)
        and ``strength`` (scalar, or ``(sx, sy)`` for velocity).
    dt : float
        Timestep.
    """
    for source in sources:
        i, j = source.i, source.j
        if source.field == "density":
            fields.density[i, j] += dt * source.strength
        else:
            sx, sy = source.strength
            fields.u[i, j] += dt * sx
            fields.u[i + 1, j] += dt * sx
            fields.v[i, j] += dt * sy
            fields.v[i, j + 1] += dt * sy


def apply_gravity(fields, gravity, dt, nx, ny, policy):
    """Add ``dt * gravity`` to every free velocity face."""
    gx, gy = gravity
    if gx != 0.0:
        i0, i1, j0, j1 = free_ranges("u", nx, ny, policy)
        fields.u[i0:i1, j0:j1] += dt * gx
    if gy != 0.0:
        i0, i1, j0, j1 = free_ranges("v", nx, ny, policy)
        fields.v[i0:i1, j0:j1] += dt * gy
