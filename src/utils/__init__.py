"""Plotting and path helpers for the experiment scripts."""

from pathlib import Path

from .field_plotter import FieldPlotter


def get_project_root():
    """Repository root (the directory holding ``pyproject.toml``)."""
    return Path(__file__).resolve().parents[2]


__all__ = [
    "FieldPlotter",
    "get_project_root",
]
