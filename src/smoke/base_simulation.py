"""Abstract base simulation: configuration, state machine, run loop, output."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from enum import Enum
from pathlib import Path

import numpy as np

from mac.core.projection import max_divergence
from .datastructures import Snapshot, TimeSeries

logger = logging.getLogger(__name__)

INTEGER_SERIES = ("step", "pressure_iterations", "n_warnings")


class SimulationState(Enum):
    INITIALIZED = "initialized"
    STEPPING = "stepping"
    FINISHED = "finished"


class FluidSimulation(ABC):
    """Abstract base for grid-based fluid simulations.

    Handles:
    - Configuration management
    - The INITIALIZED -> STEPPING -> FINISHED state machine
    - Snapshot and progress emission to listeners
    - Diagnostics time series and HDF5 output

    Subclasses must:
    - Set the Config class attribute
    - Allocate ``self.grid`` and ``self.fields`` in ``__init__``
    - Implement step() - advance the physics by one timestep
    """

    Config = None

    def __init__(self, config=None, **kwargs):
        """Initialize simulation with configuration.

        Parameters
        ----------
        config : Config, optional
            Configuration object. If not provided, kwargs are used to create config.
        **kwargs
            Configuration parameters passed to Config class if config is None.

        Raises
        ------
        ConfigurationError
            If any parameter is invalid. Raised before any buffer is allocated.
        """
        # Create config from kwargs if not provided
        if config is None:
            if self.Config is None:
                raise ValueError("Subclass must define Config class attribute")
            config = self.Config(**kwargs)

        self.config = config.validate()
        self.metadata = self.config

        self.state = SimulationState.INITIALIZED
        self.step_index = 0
        self.time = 0.0
        self.time_series = TimeSeries()
        self.frames = []
        self.last_snapshot = None

        self._cancel_event = threading.Event()
        self._snapshot_listeners = []
        self._progress_listeners = []

    @abstractmethod
    def step(self):
        """Perform one timestep of the solver.

        Runs under ``self.step_index`` (already incremented). May raise
        ``NumericalInstabilityError``.

        Returns
        -------
        list of ConvergenceWarning
            Non-fatal convergence warnings of this step.
        """

    # ---------------------------------------------------------------------
    # Listeners
    # ---------------------------------------------------------------------
    def add_snapshot_listener(self, callback):
        """Register ``callback(snapshot)``, called once per completed step."""
        self._snapshot_listeners.append(callback)

    def add_progress_listener(self, callback):
        """Register ``callback(step, n_steps)``, called once per completed step."""
        self._progress_listeners.append(callback)

    # ---------------------------------------------------------------------
    # State machine
    # ---------------------------------------------------------------------
    @property
    def finished(self):
        return self.state is SimulationState.FINISHED

    @property
    def cancelled(self):
        return self._cancel_event.is_set()

    def cancel(self):
        """Request the run to stop; honoured at the start of the next ``advance()``.

        Safe to call from another thread. A step in progress is never interrupted.
        """
        self._cancel_event.set()

    def advance(self):
        """Advance by one timestep.

        Returns
        -------
        Snapshot or None
            Read-only snapshot of the step, or ``None`` when the simulation is
            already finished or was cancelled. Calling ``advance()`` after the
            last step is a no-op.
        """
        if self.finished:
            return None
        if self.cancelled:
            logger.warning("Run cancelled before step %d", self.step_index + 1)
            self.state = SimulationState.FINISHED
            self._store_results()
            return None

        self.state = SimulationState.STEPPING
        self.step_index += 1
        try:
            step_warnings = self.step()
        except Exception:
            # a failed step leaves the buffers corrupted; the run is over
            self.state = SimulationState.FINISHED
            self._store_results()
            raise
        self.time = self.step_index * self.config.dt

        div = max_divergence(self.fields.u, self.fields.v, self.grid.h, self.grid.nx, self.grid.ny)
        snapshot = Snapshot.capture(
            self.step_index, self.time, self.grid, self.fields, div, step_warnings
        )
        self.last_snapshot = snapshot
        self._record(snapshot)

        if self.step_index >= self.config.n_steps:
            self.state = SimulationState.FINISHED
            self._store_results()

        for callback in self._snapshot_listeners:
            callback(snapshot)
        for callback in self._progress_listeners:
            callback(self.step_index, self.config.n_steps)

        return snapshot

    def run(self):
        """Advance until finished (or cancelled).

        Returns
        -------
        Snapshot or None
            Snapshot of the last completed step.
        """
        logger.info(
            "Starting run: %dx%d cells, %d steps, dt=%g",
            self.grid.nx, self.grid.ny, self.config.n_steps, self.config.dt,
        )
        time_start = time.time()
        while not self.finished:
            self.advance()
        time_end = time.time()
        logger.info(
            "Run finished after %d step(s) in %.2f seconds", self.step_index, time_end - time_start
        )
        return self.last_snapshot

    # ---------------------------------------------------------------------
    # Diagnostics
    # ---------------------------------------------------------------------
    def _kinetic_energy(self) -> float:
        """
        Kinetic energy:
            E = 0.5 * sum(u^2 + v^2) * h^2
        over the free faces of the interior.
        """
        nx, ny, h = self.grid.nx, self.grid.ny, self.grid.h
        u = self.fields.u[1:nx + 1, 1:ny + 1]
        v = self.fields.v[1:nx + 1, 1:ny + 1]
        return 0.5 * float(np.sum(u * u) + np.sum(v * v)) * h * h

    def _total_density(self) -> float:
        return float(np.sum(self.fields.density[self.grid.interior])) * self.grid.h ** 2

    def _record(self, snapshot):
        self.time_series.append(
            step=snapshot.step,
            time=snapshot.time,
            max_divergence=snapshot.max_divergence,
            kinetic_energy=self._kinetic_energy(),
            total_density=self._total_density(),
            pressure_iterations=getattr(self, "last_pressure_iterations", 0),
            n_warnings=len(snapshot.warnings),
        )
        every = self.config.record_every
        if every and snapshot.step % every == 0:
            self.frames.append(snapshot)

    def _store_results(self):
        """Store run info in self.metadata."""
        self.metadata = replace(
            self.config,
            steps_completed=self.step_index,
            cancelled=self.cancelled,
            final_max_divergence=(
                self.last_snapshot.max_divergence if self.last_snapshot is not None else None
            ),
        )

    # ---------------------------------------------------------------------
    # Output
    # ---------------------------------------------------------------------
    def save(self, filepath):
        """Save results to HDF5 file.

        Layout: metadata as root attributes, ``fields`` (final interior fields at
        cell centres), ``sources``, ``time_series`` and ``frames/<step>`` groups.

        Parameters
        ----------
        filepath : str or Path
            Output file path.
        """
        import h5py

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        snapshot = self.last_snapshot or Snapshot.capture(
            self.step_index, self.time, self.grid, self.fields,
            max_divergence(self.fields.u, self.fields.v, self.grid.h, self.grid.nx, self.grid.ny),
        )

        with h5py.File(filepath, "w") as f:
            # Save metadata as root-level attributes
            for key, val in self.metadata.to_attrs().items():
                # Skip None values
                if val is None:
                    continue
                f.attrs[key] = val

            fields_grp = f.create_group("fields")
            for key, val in snapshot.to_dataframe().items():
                fields_grp.create_dataset(key, data=val.to_numpy())
            fields_grp.attrs["step"] = snapshot.step

            sources = self.config.sources_dataframe()
            src_grp = f.create_group("sources")
            for key, dtype in (("i", np.int64), ("j", np.int64), ("sx", np.float64), ("sy", np.float64)):
                src_grp.create_dataset(key, data=sources[key].to_numpy(dtype=dtype))
            src_grp.create_dataset("field", data=np.array(list(sources["field"]), dtype="S16"))

            ts_grp = f.create_group("time_series")
            for key, val in self.time_series.to_dataframe().items():
                dtype = np.int64 if key in INTEGER_SERIES else np.float64
                ts_grp.create_dataset(key, data=val.to_numpy(dtype=dtype))

            frames_grp = f.create_group("frames")
            for frame in self.frames:
                grp = frames_grp.create_group(f"{frame.step:06d}")
                grp.attrs["time"] = frame.time
                grp.create_dataset("density", data=frame.density[self.grid.interior])
                uc, vc = frame.cell_velocity()
                grp.create_dataset("u", data=uc)
                grp.create_dataset("v", data=vc)

        logger.info("Results saved to %s", filepath)
