"""
Smoke Plume Visualization
=========================

This script renders the saved smoke plume run: density, velocity magnitude,
run diagnostics and one image per recorded frame.
"""

# %%
# Setup and Load Data
# -------------------

from utils import get_project_root, FieldPlotter

project_root = get_project_root()
data_dir = project_root / "data" / "Smoke-Plume"
fig_dir = project_root / "figures" / "Smoke-Plume"
fig_dir.mkdir(parents=True, exist_ok=True)

plotter = FieldPlotter(data_dir / "plume_32x32.h5")
print(f"Loaded solution from: {data_dir / 'plume_32x32.h5'}")

# %%
# Density Field
# -------------

plotter.plot_density(output_path=fig_dir / "plume_density.pdf")
print("  ✓ Density plot saved")

# %%
# Velocity Field
# --------------

plotter.plot_velocity_magnitude(output_path=fig_dir / "plume_velocity.pdf")
print("  ✓ Velocity magnitude plot saved")

# %%
# Diagnostics
# -----------
# Divergence after projection, kinetic energy and injected density over time.

plotter.plot_diagnostics(output_path=fig_dir / "plume_diagnostics.pdf")
print("  ✓ Diagnostics plot saved")

# %%
# Frames
# ------

plotter.save_frames(fig_dir / "frames")
print("  ✓ Frames saved")

print(f"\nAll figures saved to: {fig_dir}")
