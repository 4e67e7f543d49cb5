"""Boundary enforcement on the outermost cell layer.

Policies per face:
- no-slip   : normal velocity zero on the wall face, tangential velocity negated
              into the boundary layer so the wall value interpolates to zero.
- free-slip : normal velocity zero, tangential velocity copied from the interior.
- periodic  : the boundary layer equals the interior value of the opposite face.

Scalars (density, pressure) use zero-gradient at walls and wrap-around on
periodic axes.

Each velocity component is enforced on its own. ``u`` is handled directly and
``v`` through its transpose, so a single kernel covers both: the first array
axis is always the component's normal direction.
"""

from numba import njit

from mac.errors import ConfigurationError

NO_SLIP = 0
FREE_SLIP = 1
PERIODIC = 2

POLICY_CODES = {
    "no_slip": NO_SLIP,
    "free_slip": FREE_SLIP,
    "periodic": PERIODIC,
}


class BoundaryPolicy:
    """Boundary policy of the four domain faces.

    Parameters
    ----------
    left, right, bottom, top : str
        One of ``'no_slip'``, ``'free_slip'``, ``'periodic'``. Periodic faces
        must come in opposite pairs.
    """

    def __init__(self, left="no_slip", right="no_slip", bottom="no_slip", top="no_slip"):
        faces = {"left": left, "right": right, "bottom": bottom, "top": top}
        for face, name in faces.items():
            if name not in POLICY_CODES:
                raise ConfigurationError(
                    f"Unknown boundary policy '{name}' on {face} face. "
                    f"Use one of {sorted(POLICY_CODES)}"
                )
        if (left == "periodic") != (right == "periodic"):
            raise ConfigurationError("Periodic boundaries must be set on both left and right faces")
        if (bottom == "periodic") != (top == "periodic"):
            raise ConfigurationError("Periodic boundaries must be set on both bottom and top faces")

        self.left = POLICY_CODES[left]
        self.right = POLICY_CODES[right]
        self.bottom = POLICY_CODES[bottom]
        self.top = POLICY_CODES[top]

    @property
    def periodic_x(self):
        return self.left == PERIODIC

    @property
    def periodic_y(self):
        return self.bottom == PERIODIC

    def __repr__(self):
        names = {code: name for name, code in POLICY_CODES.items()}
        return (
            f"BoundaryPolicy(left={names[self.left]!r}, right={names[self.right]!r}, "
            f"bottom={names[self.bottom]!r}, top={names[self.top]!r})"
        )


def free_ranges(field, nx, ny, policy):
    """Index ranges ``(i0, i1, j0, j1)`` of the unknowns of a field.

    Wall-normal faces are fixed by the boundary and excluded; on periodic axes
    the face at index 1 is free and index ``n + 1`` is its periodic image.
    """
    i0, i1, j0, j1 = 1, nx + 1, 1, ny + 1
    if field == "u" and not policy.periodic_x:
        i0 = 2
    elif field == "v" and not policy.periodic_y:
        j0 = 2
    return i0, i1, j0, j1


# ──────────────────────────────────────────────────────────────────────────────
# Kernels
# ──────────────────────────────────────────────────────────────────────────────
@njit(cache=True)
def _enforce_component(a, n_norm, n_tan, norm, lo_tan, hi_tan):
    """Boundary layer of one velocity component.

    ``a`` is indexed ``[normal, tangential]``: ``u`` as is, ``v`` transposed.
    ``norm`` is the policy of both normal faces, which are periodic together
    or not at all.
    """
    # Faces normal to this component
    for t in range(n_tan + 2):
        if norm == PERIODIC:
            a[0, t] = a[n_norm, t]
            a[n_norm + 1, t] = a[1, t]
        else:
            a[0, t] = 0.0
            a[1, t] = 0.0
            a[n_norm + 1, t] = 0.0

    # Faces tangential to this component
    for s in range(n_norm + 2):
        if lo_tan == PERIODIC:
            a[s, 0] = a[s, n_tan]
            a[s, n_tan + 1] = a[s, 1]
        else:
            if lo_tan == NO_SLIP:
                a[s, 0] = -a[s, 1]
            else:
                a[s, 0] = a[s, 1]
            if hi_tan == NO_SLIP:
                a[s, n_tan + 1] = -a[s, n_tan]
            else:
                a[s, n_tan + 1] = a[s, n_tan]


@njit(cache=True)
def _enforce_scalar(s, nx, ny, periodic_x, periodic_y):
    for j in range(ny + 2):
        if periodic_x:
            s[0, j] = s[nx, j]
            s[nx + 1, j] = s[1, j]
        else:
            s[0, j] = s[1, j]
            s[nx + 1, j] = s[nx, j]
    for i in range(nx + 2):
        if periodic_y:
            s[i, 0] = s[i, ny]
            s[i, ny + 1] = s[i, 1]
        else:
            s[i, 0] = s[i, 1]
            s[i, ny + 1] = s[i, ny]


def enforce_u(u, nx, ny, policy):
    _enforce_component(u, nx, ny, policy.left, policy.bottom, policy.top)


def enforce_v(v, nx, ny, policy):
    _enforce_component(v.T, ny, nx, policy.bottom, policy.left, policy.right)


def enforce_velocity(u, v, nx, ny, policy):
    """Apply the velocity boundary policy to both components in place."""
    enforce_u(u, nx, ny, policy)
    enforce_v(v, nx, ny, policy)


def enforce_scalar(s, nx, ny, policy):
    """Zero-gradient (walls) or periodic boundary layer of a cell-centred field."""
    _enforce_scalar(s, nx, ny, policy.periodic_x, policy.periodic_y)


def component_enforcer(field):
    """Boundary function for a single field name."""
    if field == "u":
        return enforce_u
    if field == "v":
        return enforce_v
    return enforce_scalar
