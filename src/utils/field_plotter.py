"""Smoke simulation results plotter."""

from pathlib import Path

import h5py
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns


class FieldPlotter:
    """Plotter for smoke simulation results saved with ``FluidSimulation.save``.

    Parameters
    ----------
    h5_path : str or Path
        Path to HDF5 file.

    Attributes
    ----------
    fields : pd.DataFrame
        Final cell-centred fields (x, y, u, v, density, pressure).
    time_series : pd.DataFrame
        Per-step diagnostics.
    metadata : pd.DataFrame
        Configuration and run info (single row).
    frames : dict
        Recorded frames keyed by step: ``{'time', 'density', 'u', 'v'}``.

    Examples
    --------
    >>> plotter = FieldPlotter('plume.h5')
    >>> plotter.plot_density(output_path='density.pdf')
    """

    def __init__(self, h5_path):
        h5_path = Path(h5_path)
        if not h5_path.exists():
            raise FileNotFoundError(f"HDF5 file not found: {h5_path}")
        self.h5_path = h5_path

        with h5py.File(h5_path, "r") as f:
            self.metadata = pd.DataFrame([{key: _attr(val) for key, val in f.attrs.items()}])
            self.fields = pd.DataFrame({key: ds[()] for key, ds in f["fields"].items()})
            self.time_series = pd.DataFrame({key: ds[()] for key, ds in f["time_series"].items()})
            self.frames = {
                int(name): {
                    "time": float(grp.attrs["time"]),
                    "density": grp["density"][()],
                    "u": grp["u"][()],
                    "v": grp["v"][()],
                }
                for name, grp in f["frames"].items()
            }

        self.nx = int(self.metadata["nx"].iloc[0])
        self.ny = int(self.metadata["ny"].iloc[0])
        self.h = float(self.metadata["h"].iloc[0])

    def _grid(self, column):
        """Column of ``fields`` reshaped to ``(nx, ny)``."""
        return self.fields[column].to_numpy().reshape(self.nx, self.ny)

    def _extent(self):
        return (0.0, self.nx * self.h, 0.0, self.ny * self.h)

    def _imshow(self, ax, values, cmap, label, fig):
        im = ax.imshow(values.T, origin="lower", extent=self._extent(), cmap=cmap)
        ax.set_xlabel("x")
        ax.set_ylabel("y")
        ax.set_aspect("equal")
        fig.colorbar(im, ax=ax, label=label)
        return im

    def plot_density(self, output_path=None):
        """Plot the final density field.

        Parameters
        ----------
        output_path : str or Path, optional
            Path to save figure. If None, figure is not saved.
        """
        step = int(self.metadata["steps_completed"].iloc[0])
        fig, ax = plt.subplots(figsize=(8, 7))
        self._imshow(ax, self._grid("density"), "magma", "Density", fig)
        ax.set_title(f"Density (step {step})", fontweight="bold")
        plt.tight_layout()

        if output_path:
            plt.savefig(output_path, bbox_inches="tight", dpi=300)
            print(f"Density plot saved to: {output_path}")
        return fig

    def plot_pressure(self, output_path=None):
        """Plot the final pressure field."""
        fig, ax = plt.subplots(figsize=(8, 7))
        self._imshow(ax, self._grid("pressure"), "coolwarm", "Pressure", fig)
        ax.set_title("Pressure Field", fontweight="bold")
        plt.tight_layout()

        if output_path:
            plt.savefig(output_path, bbox_inches="tight", dpi=300)
            print(f"Pressure plot saved to: {output_path}")
        return fig

    def plot_velocity_magnitude(self, output_path=None):
        """Plot velocity magnitude with streamlines.

        Parameters
        ----------
        output_path : str or Path, optional
            Path to save figure. If None, figure is not saved.
        """
        u = self._grid("u")
        v = self._grid("v")
        vel_mag = np.sqrt(u**2 + v**2)

        fig, ax = plt.subplots(figsize=(8, 7))
        self._imshow(ax, vel_mag, "coolwarm", "Velocity magnitude", fig)

        # Cell centres are already a uniform grid
        x = (np.arange(self.nx) + 0.5) * self.h
        y = (np.arange(self.ny) + 0.5) * self.h
        if np.any(vel_mag > 0):
            stream = ax.streamplot(
                x, y, u.T, v.T,
                color="white", linewidth=1, density=1.5,
                arrowsize=1.2, arrowstyle="->"
            )
            stream.lines.set_alpha(0.6)

        ax.set_title("Velocity Magnitude with Streamlines", fontweight="bold")
        plt.tight_layout()

        if output_path:
            plt.savefig(output_path, bbox_inches="tight", dpi=300)
            print(f"Velocity magnitude plot saved to: {output_path}")
        return fig

    def plot_diagnostics(self, output_path=None):
        """Plot divergence, kinetic energy and total density over time using seaborn.

        Parameters
        ----------
        output_path : str or Path, optional
            Path to save figure. If None, figure is not saved.
        """
        data = self.time_series.melt(
            id_vars=["step", "time"],
            value_vars=["max_divergence", "kinetic_energy", "total_density"],
            var_name="quantity",
        )

        g = sns.relplot(
            data=data,
            x="time",
            y="value",
            col="quantity",
            kind="line",
            height=4,
            aspect=1.1,
            linewidth=2,
            facet_kws={"sharey": False},
        )
        g.set_titles("{col_name}")
        g.axes.flat[0].set_yscale("log")
        for ax in g.axes.flat:
            ax.grid(True, alpha=0.3)
        g.set_axis_labels("Time", "")

        if output_path:
            g.savefig(output_path, bbox_inches="tight", dpi=300)
            print(f"Diagnostics plot saved to: {output_path}")
        return g

    def save_frames(self, output_dir, field="density", cmap="magma"):
        """Write one PNG per recorded frame.

        Parameters
        ----------
        output_dir : str or Path
            Directory for ``<field>_<step>.png`` images.
        field : str
            ``'density'`` or ``'speed'``.

        Returns
        -------
        list of Path
            Written files in step order.
        """
        if field not in ("density", "speed"):
            raise ValueError(f"Unknown frame field '{field}'. Use 'density' or 'speed'")

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        # Shared colour scale across frames
        values = {
            step: frame["density"] if field == "density" else np.hypot(frame["u"], frame["v"])
            for step, frame in sorted(self.frames.items())
        }
        vmax = max((float(np.max(a)) for a in values.values()), default=1.0) or 1.0

        paths = []
        for step, a in values.items():
            path = output_dir / f"{field}_{step:06d}.png"
            plt.imsave(path, a.T, origin="lower", cmap=cmap, vmin=0.0, vmax=vmax)
            paths.append(path)

        print(f"{len(paths)} frame(s) saved to: {output_dir}")
        return paths


def _attr(value):
    """HDF5 attribute to a plain Python value."""
    if isinstance(value, bytes):
        return value.decode()
    if isinstance(value, np.ndarray):
        return tuple(value.tolist())
    if isinstance(value, np.generic):
        return value.item()
    return value
