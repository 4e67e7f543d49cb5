import numpy as np
import pytest

from mac.core.projection import max_divergence
from smoke import (
    ConvergenceWarning,
    NumericalInstabilityError,
    SimulationState,
    Snapshot,
)


def test_rest_stays_at_rest(make_sim):
    sim = make_sim(nx=8, ny=8, n_steps=10, viscosity=0.1, diffusion_rate=0.1)
    sim.run()

    for name in ("u", "v", "density", "pressure"):
        assert not getattr(sim.fields, name).any()
    assert sim.metadata.final_max_divergence == 0.0


def test_state_machine(make_sim):
    sim = make_sim(nx=8, ny=8, n_steps=3)
    assert sim.state is SimulationState.INITIALIZED

    snapshot = sim.advance()
    assert sim.state is SimulationState.STEPPING
    assert isinstance(snapshot, Snapshot)
    assert snapshot.step == 1
    assert snapshot.time == pytest.approx(0.1)

    sim.advance()
    last = sim.advance()
    assert last.step == 3
    assert sim.finished
    assert sim.metadata.steps_completed == 3

    # advancing a finished run is a no-op
    assert sim.advance() is None
    assert sim.step_index == 3
    assert len(sim.time_series) == 3


def test_snapshot_is_read_only_copy(make_sim, plume_kwargs):
    plume_kwargs.update(nx=16, ny=16, n_steps=2)
    plume_kwargs["sources"] = [{"i": 8, "j": 8, "field": "density", "strength": 1.0}]
    sim = make_sim(**plume_kwargs)

    snapshot = sim.advance()
    assert not snapshot.density.flags.writeable
    with pytest.raises(ValueError):
        snapshot.density[8, 8] = 0.0

    density = snapshot.density.copy()
    sim.advance()
    np.testing.assert_array_equal(snapshot.density, density)
    assert snapshot.density[8, 8] == pytest.approx(0.1)


def test_cancel_before_step(make_sim):
    sim = make_sim(nx=8, ny=8, n_steps=5)
    sim.cancel()

    assert sim.advance() is None
    assert sim.finished
    assert sim.step_index == 0
    assert sim.metadata.cancelled


def test_cancel_from_listener(make_sim):
    sim = make_sim(nx=8, ny=8, n_steps=10)
    sim.add_progress_listener(lambda step, total: sim.cancel() if step == 2 else None)

    last = sim.run()

    assert last.step == 2
    assert sim.metadata.steps_completed == 2
    assert sim.metadata.cancelled


def test_listeners(make_sim):
    sim = make_sim(nx=8, ny=8, n_steps=3)
    progress, steps = [], []
    sim.add_progress_listener(lambda step, total: progress.append((step, total)))
    sim.add_snapshot_listener(lambda snapshot: steps.append(snapshot.step))

    sim.run()

    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert steps == [1, 2, 3]


def test_plume_scenario(make_sim, plume_kwargs):
    sim = make_sim(**plume_kwargs)
    divergences = []
    sim.add_snapshot_listener(lambda snapshot: divergences.append(snapshot.max_divergence))

    last = sim.run()

    assert len(divergences) == 50
    assert max(divergences) < 1e-5
    for name in ("u", "v", "density", "pressure"):
        assert np.all(np.isfinite(getattr(last, name)))

    # the plume is carried downstream of the source
    density = last.density
    assert density[17:, :].sum() > density[:16, :].sum()
    assert density[sim.grid.interior].max() > 0.0
    assert not np.any(sim.time_series.n_warnings)


def test_plume_direct_solver(make_sim, plume_kwargs):
    plume_kwargs.update(n_steps=10, pressure_solver="direct")
    sim = make_sim(**plume_kwargs)

    sim.run()

    assert max(sim.time_series.max_divergence) < 1e-9
    assert sim.time_series.pressure_iterations == [1] * 10


def test_independent_of_worker_count(make_sim, plume_kwargs):
    plume_kwargs.update(n_steps=10, viscosity=0.05, diffusion_rate=0.01)
    runs = [make_sim(n_workers=n, **plume_kwargs).run() for n in (1, 4)]

    for name in ("u", "v", "density", "pressure"):
        np.testing.assert_array_equal(getattr(runs[0], name), getattr(runs[1], name))


def test_jacobi_relaxation(make_sim, plume_kwargs):
    plume_kwargs.update(nx=16, ny=16, n_steps=5, relaxation="jacobi", pressure_iterations=10000)
    plume_kwargs["sources"][0]["i"] = plume_kwargs["sources"][1]["i"] = 8
    plume_kwargs["sources"][0]["j"] = plume_kwargs["sources"][1]["j"] = 8
    sim = make_sim(**plume_kwargs)

    sim.run()

    assert max(sim.time_series.max_divergence) < 1e-5


@pytest.mark.parametrize("shape", [(16, 16), (7, 5)])
def test_periodic_box_stays_divergence_free(make_sim, shape):
    nx, ny = shape
    i, j = nx // 2, ny // 2
    sim = make_sim(
        nx=nx, ny=ny, n_steps=10, viscosity=1e-3,
        boundary_left="periodic", boundary_right="periodic",
        boundary_bottom="periodic", boundary_top="periodic",
        sources=[
            {"i": i, "j": j, "field": "velocity", "strength": (1.0, 0.5)},
            {"i": i, "j": j, "field": "density", "strength": 1.0},
        ],
    )
    divergences = []
    sim.add_snapshot_listener(lambda snapshot: divergences.append(snapshot.max_divergence))

    last = sim.run()

    assert sim.relaxation == ("red_black" if nx % 2 == 0 else "jacobi")
    assert len(divergences) == 10
    assert max(divergences) < 1e-5
    assert not any(sim.time_series.n_warnings)
    for name in ("u", "v", "density", "pressure"):
        assert np.all(np.isfinite(getattr(last, name)))


def test_gravity_in_closed_box_is_hydrostatic(make_sim):
    sim = make_sim(
        nx=12, ny=12, n_steps=5, gravity=(0.0, -9.81), pressure_solver="direct",
        boundary_left="free_slip", boundary_right="free_slip",
        boundary_bottom="free_slip", boundary_top="free_slip",
    )

    last = sim.run()

    assert np.abs(last.u).max() < 1e-8
    assert np.abs(last.v).max() < 1e-8
    # pressure balances gravity: it increases downwards
    column = last.pressure[6, 1:13]
    assert np.all(np.diff(column) < 0.0)


def test_non_finite_field_aborts_run(make_sim):
    sim = make_sim(nx=8, ny=8, n_steps=5)
    sim.fields.density[4, 4] = np.nan

    with pytest.raises(NumericalInstabilityError) as excinfo:
        sim.advance()

    err = excinfo.value
    assert (err.step, err.stage, err.field) == (1, "forces", "density")
    assert isinstance(err, FloatingPointError)
    assert sim.finished
    assert sim.advance() is None


def test_convergence_warning_is_attached(make_sim, plume_kwargs):
    plume_kwargs.update(nx=16, ny=16, n_steps=2, pressure_iterations=1, tolerance=1e-12)
    plume_kwargs["sources"] = [{"i": 8, "j": 8, "field": "velocity", "strength": (1.0, 0.0)}]
    sim = make_sim(**plume_kwargs)

    with pytest.warns(ConvergenceWarning) as record:
        snapshot = sim.advance()

    assert len([w for w in record if issubclass(w.category, ConvergenceWarning)]) == 1
    (warning,) = snapshot.warnings
    assert warning.solver == "pressure projection"
    assert warning.iterations == 1
    assert warning.step == 1
    assert sim.time_series.n_warnings == [1]
    # the run continues with the best estimate
    assert sim.advance() is not None


def test_diagnostics_time_series(make_sim, plume_kwargs):
    plume_kwargs.update(n_steps=4, record_every=2)
    sim = make_sim(**plume_kwargs)

    sim.run()

    df = sim.time_series.to_dataframe()
    assert list(df["step"]) == [1, 2, 3, 4]
    assert df["total_density"].is_monotonic_increasing
    assert (df["kinetic_energy"] > 0).all()
    assert [frame.step for frame in sim.frames] == [2, 4]


def test_snapshot_dataframe(make_sim, plume_kwargs):
    plume_kwargs.update(n_steps=1)
    sim = make_sim(**plume_kwargs)

    df = sim.run().to_dataframe()

    assert list(df.columns) == ["x", "y", "u", "v", "density", "pressure"]
    assert len(df) == 32 * 32
    assert df["density"].max() == pytest.approx(
        sim.fields.density[sim.grid.interior].max()
    )
    assert max_divergence(sim.fields.u, sim.fields.v, 1.0, 32, 32) < 1e-5
