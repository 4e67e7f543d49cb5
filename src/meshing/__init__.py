"""Grid geometry and field storage."""

from .mac_grid import OFFSETS, FieldBuffers, Grid

__all__ = [
    "Grid",
    "FieldBuffers",
    "OFFSETS",
]
