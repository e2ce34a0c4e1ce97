"""
plot_galaxy.py
==============
Matplotlib 3-D renderer for the spiral-galaxy point cloud.

Provides
  • MatplotlibSink  – a RenderableSink that shows each attached cloud as a
                      3-D scatter artist and removes it on detach
  • OrbitAnimator   – FuncAnimation frame loop: slow galaxy rotation plus a
                      damped orbiting camera, reading only current_handle()
  • render_figure   – one-shot figure for PNG/SVG export
  • a small CLI that re-plots a run written by run_generate.py

Coordinates
-----------
The generator puts the galactic plane in x–z with y as the thickness axis.
Matplotlib's 3-D axes treat z as "up", so points are plotted as (x, z, y).

Usage
-----
    # Interactive orbiting view of ./output/points.csv
    python plot_galaxy.py

    # Save a still instead of opening a window
    python plot_galaxy.py --save galaxy.png

    # Point at a different output directory
    python plot_galaxy.py --out_dir my_run
"""

from __future__ import annotations

import argparse
import logging
import math
import os
import time
from typing import Optional

import matplotlib.pyplot as plt
import pandas as pd
from matplotlib.animation import FuncAnimation

from galaxy_logging import setup_logging
from galaxy_sink import PointCloudHandle, RenderableSink, RenderHints
from galaxygen import GeneratedGalaxy, render_hints
from galaxyparams import load_params

logger = logging.getLogger(__name__)

BG = "#000000"

# Marker edge length in points per world unit of particle_size.
POINT_SCALE = 60.0

# Camera position of the reference scene, (x, y, z) with y up.
CAMERA_POSITION = (3.0, 2.5, 4.0)


def camera_angles(position=CAMERA_POSITION) -> tuple[float, float]:
    """Return matplotlib ``(elev, azim)`` in degrees for a y-up camera position."""
    x, y, z = position
    elev = math.degrees(math.atan2(y, math.hypot(x, z)))
    azim = math.degrees(math.atan2(z, x))
    return elev, azim


def marker_area(hints: RenderHints) -> float:
    """Scatter ``s`` (points²) for the hinted particle size.

    Matplotlib markers have a fixed screen size, so size attenuation with
    camera distance is not reproduced.
    """
    return max(0.05, (hints.size * POINT_SCALE) ** 2)


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------

class MatplotlibSink(RenderableSink):
    """Shows the attached cloud as a scatter artist on a 3-D axes."""

    def __init__(self, ax) -> None:
        super().__init__()
        self.ax = ax

    def _show(self, handle: PointCloudHandle) -> None:
        xyz = handle.positions.reshape(-1, 3)
        rgb = handle.colors.reshape(-1, 3)
        # Additive blending has no matplotlib equivalent; translucent markers
        # on a black background give a similar glow where points overlap.
        alpha = 0.6 if handle.hints.additive_blending else 1.0
        handle.artist = self.ax.scatter(
            xyz[:, 0], xyz[:, 2], xyz[:, 1],
            c=rgb,
            s=marker_area(handle.hints),
            alpha=alpha,
            linewidths=0,
            depthshade=handle.hints.depth_write,
        )
        self.ax.figure.canvas.draw_idle()

    def _hide(self, handle: PointCloudHandle) -> None:
        if handle.artist is not None:
            handle.artist.remove()
            handle.artist = None
        self.ax.figure.canvas.draw_idle()


# ---------------------------------------------------------------------------
# Figure setup
# ---------------------------------------------------------------------------

def frame_radius(ax, radius: float) -> None:
    ax.set_xlim(-radius, radius)
    ax.set_ylim(-radius, radius)
    ax.set_zlim(-radius, radius)


def setup_axes(ax, radius: float) -> None:
    """Black, axis-free 3-D view framing a disk of *radius*."""
    ax.set_facecolor(BG)
    ax.figure.patch.set_facecolor(BG)
    frame_radius(ax, radius)
    ax.set_box_aspect((1, 1, 1))
    ax.set_axis_off()
    elev, azim = camera_angles()
    ax.view_init(elev=elev, azim=azim)


def make_figure(radius: float, figsize=(8, 8)):
    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(projection="3d")
    fig.subplots_adjust(left=0, right=1, bottom=0, top=1)
    setup_axes(ax, radius)
    return fig, ax


def render_figure(galaxy: GeneratedGalaxy, hints: Optional[RenderHints] = None):
    """Draw *galaxy* once into a new figure and return the figure."""
    hints = hints if hints is not None else render_hints(galaxy.params)
    fig, ax = make_figure(galaxy.params.radius)
    MatplotlibSink(ax).attach(galaxy.positions, galaxy.colors, hints)
    return fig


# ---------------------------------------------------------------------------
# Animation
# ---------------------------------------------------------------------------

class OrbitAnimator:
    """Per-frame camera update driven by ``FuncAnimation``.

    The galaxy turns at *rotation_speed* rad/s (rendered as a camera azimuth
    change so the point buffers are never touched).  Angular velocity eases
    toward that speed by *damping* per frame, so the spin ramps up smoothly
    from rest.  Each step adds to the current azimuth, so after the user
    drags the view with the mouse the rotation carries on from where the
    drag left it.
    """

    def __init__(
        self,
        fig,
        ax,
        sink: RenderableSink,
        rotation_speed: float = 0.04,
        damping: float = 0.05,
        interval: int = 33,
    ) -> None:
        self.fig = fig
        self.ax = ax
        self.sink = sink
        self.rotation_speed = rotation_speed
        self.damping = damping
        self.velocity = 0.0
        self._last = time.perf_counter()
        self.animation = FuncAnimation(
            fig, self._tick, interval=interval,
            blit=False, cache_frame_data=False,
        )

    def step(self, dt: float) -> Optional[PointCloudHandle]:
        """Advance the camera by *dt* seconds; return the handle drawn."""
        handle = self.sink.current_handle()
        if handle is None:
            return None
        self.velocity += (self.rotation_speed - self.velocity) * self.damping
        self.ax.view_init(
            elev=self.ax.elev,
            azim=self.ax.azim + math.degrees(self.velocity * dt),
        )
        return handle

    def _tick(self, _frame):
        now = time.perf_counter()
        dt, self._last = now - self._last, now
        handle = self.step(dt)
        if handle is None or handle.artist is None:
            return []
        return [handle.artist]

    def stop(self) -> None:
        self.animation.event_source.stop()


# ---------------------------------------------------------------------------
# Loading a previous run
# ---------------------------------------------------------------------------

def load_galaxy(out_dir: str) -> GeneratedGalaxy:
    """Rebuild a GeneratedGalaxy from ``points.csv`` + ``params.json``."""
    points_path = os.path.join(out_dir, "points.csv")
    params_path = os.path.join(out_dir, "params.json")
    if not os.path.exists(points_path):
        raise FileNotFoundError(
            f"points.csv not found in '{out_dir}'.  Run run_generate.py first."
        )
    params = load_params(params_path)
    frame = pd.read_csv(points_path)
    return GeneratedGalaxy.from_frame(frame, params)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="plot_galaxy.py",
        description="3-D view of a galaxy point cloud written by run_generate.py.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--out_dir", default="output",
                   help="Directory containing points.csv and params.json.")
    p.add_argument("--save", default=None, metavar="FILE",
                   help="Save a still to FILE (png/pdf/svg) instead of displaying.")
    p.add_argument("--rotation_speed", type=float, default=0.04,
                   help="Galaxy rotation in radians per second.")
    p.add_argument("--log_level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.log_level)

    galaxy = load_galaxy(args.out_dir)
    logger.info("Loaded %s points from %s", f"{galaxy.count:,}", args.out_dir)

    if args.save:
        fig = render_figure(galaxy)
        fig.savefig(args.save, facecolor=fig.get_facecolor())
        logger.info("Saved figure to %s", args.save)
        return

    fig, ax = make_figure(galaxy.params.radius)
    sink = MatplotlibSink(ax)
    sink.attach(galaxy.positions, galaxy.colors, render_hints(galaxy.params))
    animator = OrbitAnimator(fig, ax, sink, rotation_speed=args.rotation_speed)
    plt.show()
    animator.stop()


if __name__ == "__main__":
    main()
