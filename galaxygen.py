"""
galaxygen.py
============
Core procedural generator for the spiral-galaxy point cloud.

Places ``count`` points on ``branches`` spiral arms in 3-D space, jitters
them with a power-law offset that keeps most points near the arm centreline,
and colours each point by blending the inside colour toward the outside
colour with its normalised radius.

Algorithm (per point i)
-----------------------
1. r            ~ U[0, radius)
2. branch_angle = (i mod branches) / branches · 2π      (round robin)
3. spin_angle   = r · spin
4. jitter       = ±1 · u**randomness_power  per axis,    u ~ U[0, 1)
5. x = cos(branch_angle + spin_angle) · r + jx
   y = jy
   z = sin(branch_angle + spin_angle) · r + jz
6. colour       = inside · (1 − t) + outside · t,        t = clip(r / radius)

Every step is vectorised over all points with numpy.

Regeneration
------------
``GalaxyGenerator.regenerate`` replaces the cloud attached to a
``RenderableSink``.  By default the previous cloud is detached and its buffers
released *before* the new buffers are allocated, so two full generations are
never held at once.  With ``release_first=False`` the new cloud is built
first and swapped in, which keeps the old cloud attached if allocation fails.

Usage (importable)
------------------
    from galaxyparams import ParameterSet
    from galaxygen import GalaxyGenerator
    gen = GalaxyGenerator()
    galaxy = gen.regenerate(ParameterSet(count=20_000, seed=7))

Usage (script, uses all ParameterSet defaults)
----------------------------------------------
    python galaxygen.py
"""

from __future__ import annotations

import logging
import math
import time
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from galaxy_logging import setup_logging
from galaxy_sink import MemorySink, PointCloudHandle, RenderableSink, RenderHints
from galaxyparams import ParameterSet

logger = logging.getLogger(__name__)


class ResourceError(MemoryError):
    """Point buffers could not be allocated (very large ``count``)."""


# ---------------------------------------------------------------------------
# Algorithm steps
# ---------------------------------------------------------------------------

def sample_radii(rng: np.random.Generator, count: int, radius: float) -> np.ndarray:
    """Uniform radii in ``[0, radius)``.

    Uniform in r (not in area) on purpose: it crowds points toward the centre,
    which gives the bright core.
    """
    return rng.random(count) * radius


def branch_angles(count: int, branches: int) -> np.ndarray:
    """Base angle of the arm each point belongs to.

    Points are dealt to arms in index order (0, 1, …, branches−1, 0, 1, …),
    so every arm holds either ⌊count/branches⌋ or ⌈count/branches⌉ points.
    """
    return (np.arange(count) % branches) / branches * (2.0 * math.pi)


def shaped_jitter(
    rng: np.random.Generator,
    shape: Tuple[int, ...],
    randomness_power: float,
) -> np.ndarray:
    """Signed power-law offsets ``±u**randomness_power`` with ``u ~ U[0, 1)``.

    Raising a value in [0, 1) to a power ≥ 1 pulls it toward zero; larger
    powers concentrate points more tightly around the arm centreline.
    """
    magnitude = rng.random(shape) ** randomness_power
    sign = np.where(rng.random(shape) < 0.5, 1.0, -1.0)
    return sign * magnitude


def spiral_positions(
    radii: np.ndarray,
    base_angles: np.ndarray,
    spin: float,
    jitter: np.ndarray,
) -> np.ndarray:
    """Return ``(N, 3)`` positions on the spiral arms plus *jitter*.

    The galactic plane is x–z; y is the thickness axis and only carries
    jitter.
    """
    angle = base_angles + radii * spin
    xyz = np.empty((len(radii), 3), dtype=np.float64)
    xyz[:, 0] = np.cos(angle) * radii + jitter[:, 0]
    xyz[:, 1] = jitter[:, 1]
    xyz[:, 2] = np.sin(angle) * radii + jitter[:, 2]
    return xyz


def blend_colors(
    inside_color: Sequence[float],
    outside_color: Sequence[float],
    t: np.ndarray,
) -> np.ndarray:
    """Linear inside→outside blend for each blend factor in *t*.

    Written as ``inside·(1−t) + outside·t`` so t = 0 yields *inside_color*
    and t = 1 yields *outside_color* bit for bit.

    Returns
    -------
    ndarray of shape ``t.shape + (3,)``, values clipped to [0, 1].
    """
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)[..., None]
    inside = np.asarray(inside_color, dtype=np.float64)
    outside = np.asarray(outside_color, dtype=np.float64)
    rgb = inside * (1.0 - t) + outside * t
    return np.clip(rgb, 0.0, 1.0)


def build_point_cloud(
    count: int,
    radius: float,
    branches: int,
    spin: float,
    randomness_power: float,
    inside_color: Sequence[float],
    outside_color: Sequence[float],
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Run the full algorithm without any parameter validation.

    Callers normally go through ``GalaxyGenerator``, which validates a
    ``ParameterSet`` first.

    Returns
    -------
    positions : flat float32 array, length 3·count (x, y, z per point)
    colors    : flat float32 array, length 3·count (r, g, b per point)
    radii     : float32 array, length count (sampled r of each point)
    """
    try:
        radii = sample_radii(rng, count, radius)
        jitter = shaped_jitter(rng, (count, 3), randomness_power)
        xyz = spiral_positions(radii, branch_angles(count, branches), spin, jitter)
        rgb = blend_colors(inside_color, outside_color, radii / radius)

        positions = xyz.astype(np.float32).reshape(-1)
        colors = rgb.astype(np.float32).reshape(-1)
    except MemoryError as exc:
        raise ResourceError(
            f"Could not allocate buffers for {count:,} points"
        ) from exc

    return positions, colors, radii.astype(np.float32)


# ---------------------------------------------------------------------------
# Generated output
# ---------------------------------------------------------------------------

class GeneratedGalaxy:
    """One generation's point buffers.

    Created fresh on every regeneration.  ``release()`` drops the buffers so
    they can be freed; after that any access to them raises.
    """

    def __init__(
        self,
        positions: np.ndarray,
        colors: np.ndarray,
        radii: np.ndarray,
        params: ParameterSet,
    ) -> None:
        self._positions: Optional[np.ndarray] = positions
        self._colors: Optional[np.ndarray] = colors
        self._radii: Optional[np.ndarray] = radii
        self.params = params

    def _buffer(self, buf: Optional[np.ndarray]) -> np.ndarray:
        if buf is None:
            raise RuntimeError("GeneratedGalaxy buffers have been released")
        return buf

    @property
    def positions(self) -> np.ndarray:
        return self._buffer(self._positions)

    @property
    def colors(self) -> np.ndarray:
        return self._buffer(self._colors)

    @property
    def radii(self) -> np.ndarray:
        return self._buffer(self._radii)

    @property
    def xyz(self) -> np.ndarray:
        return self.positions.reshape(-1, 3)

    @property
    def rgb(self) -> np.ndarray:
        return self.colors.reshape(-1, 3)

    @property
    def count(self) -> int:
        return len(self.positions) // 3

    @property
    def released(self) -> bool:
        return self._positions is None

    def release(self) -> None:
        self._positions = None
        self._colors = None
        self._radii = None

    def to_frame(self) -> pd.DataFrame:
        """One row per point: position, colour channels and sampled radius."""
        xyz, rgb = self.xyz, self.rgb
        return pd.DataFrame({
            "x":      xyz[:, 0],
            "y":      xyz[:, 1],
            "z":      xyz[:, 2],
            "red":    rgb[:, 0],
            "green":  rgb[:, 1],
            "blue":   rgb[:, 2],
            "radius": self.radii,
        })

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, params: ParameterSet) -> "GeneratedGalaxy":
        """Inverse of ``to_frame`` (used to re-plot an exported ``points.csv``)."""
        positions = frame[["x", "y", "z"]].to_numpy(dtype=np.float32).reshape(-1)
        colors = frame[["red", "green", "blue"]].to_numpy(dtype=np.float32).reshape(-1)
        radii = frame["radius"].to_numpy(dtype=np.float32)
        return cls(positions, colors, radii, params)

    def __repr__(self) -> str:
        if self.released:
            return "<GeneratedGalaxy (released)>"
        return f"<GeneratedGalaxy {self.count:,} points>"


def render_hints(params: ParameterSet) -> RenderHints:
    """Material settings for the sink: sized, additive, no depth writes."""
    return RenderHints(
        size=params.particle_size,
        size_attenuation=True,
        additive_blending=True,
        depth_write=False,
        vertex_colors=True,
    )


def summarize(galaxy: GeneratedGalaxy) -> dict:
    """Log and return post-generation acceptance checks for *galaxy*."""
    params = galaxy.params
    positions, colors, radii = galaxy.positions, galaxy.colors, galaxy.radii
    arm_counts = np.bincount(np.arange(galaxy.count) % params.branches,
                             minlength=params.branches)

    summary = {
        "count":          galaxy.count,
        "positions_ok":   len(positions) == 3 * params.count,
        "colors_ok":      len(colors) == 3 * params.count,
        "max_radius":     float(radii.max()) if len(radii) else 0.0,
        "radius_ok":      bool(len(radii) == 0 or radii.max() <= np.float32(params.radius)),
        "color_min":      float(colors.min()) if len(colors) else 0.0,
        "color_max":      float(colors.max()) if len(colors) else 0.0,
        "arm_min":        int(arm_counts.min()),
        "arm_max":        int(arm_counts.max()),
    }
    summary["color_range_ok"] = (
        summary["color_min"] >= 0.0 and summary["color_max"] <= 1.0
    )

    def mark(ok: bool) -> str:
        return "ok" if ok else "FAIL"

    logger.info("Point count : %s (target %s) %s", f"{galaxy.count:,}",
                f"{params.count:,}", mark(summary["positions_ok"] and summary["colors_ok"]))
    logger.info("Max r       : %.4f <= %g %s", summary["max_radius"],
                params.radius, mark(summary["radius_ok"]))
    logger.info("Colour range: [%.4f, %.4f] %s", summary["color_min"],
                summary["color_max"], mark(summary["color_range_ok"]))
    logger.info("Arm occupancy: %d..%d points over %d arms",
                summary["arm_min"], summary["arm_max"], params.branches)
    return summary


# ---------------------------------------------------------------------------
# Main generator class
# ---------------------------------------------------------------------------

class GalaxyGenerator:
    """Builds galaxies from ParameterSets and manages the attached cloud.

    Parameters
    ----------
    sink : RenderableSink, optional
        Where regenerated clouds are attached.  Defaults to a ``MemorySink``.
    rng : numpy Generator, optional
        Shared random source.  When omitted, each generation draws from
        ``np.random.default_rng(params.seed)``.
    release_first : bool
        Release the previous cloud before building the next one (default).
        When False, build first and swap, so a failed build leaves the
        previous cloud attached.
    """

    def __init__(
        self,
        sink: Optional[RenderableSink] = None,
        rng: Optional[np.random.Generator] = None,
        release_first: bool = True,
    ) -> None:
        self.sink = sink if sink is not None else MemorySink()
        self.release_first = release_first
        self._rng = rng
        self._current: Optional[GeneratedGalaxy] = None
        self._handle: Optional[PointCloudHandle] = None

    @property
    def current(self) -> Optional[GeneratedGalaxy]:
        return self._current

    @property
    def handle(self) -> Optional[PointCloudHandle]:
        return self._handle

    def _rng_for(self, params: ParameterSet) -> np.random.Generator:
        if self._rng is not None:
            return self._rng
        return np.random.default_rng(params.seed)

    def generate(self, params: ParameterSet) -> GeneratedGalaxy:
        """Compute a new galaxy from *params*.  The sink is not touched."""
        t0 = time.perf_counter()
        positions, colors, radii = build_point_cloud(
            params.count,
            params.radius,
            params.branches,
            params.spin,
            params.randomness_power,
            params.inside_color,
            params.outside_color,
            self._rng_for(params),
        )
        logger.info("%s points generated in %.3fs",
                    f"{params.count:,}", time.perf_counter() - t0)
        return GeneratedGalaxy(positions, colors, radii, params)

    def regenerate(self, params: ParameterSet) -> GeneratedGalaxy:
        """Replace the attached cloud with one generated from *params*.

        Raises
        ------
        ConfigurationError
            *params* holds an out-of-range value.  Raised before anything is
            released or allocated.
        ResourceError
            Buffer allocation failed.  With ``release_first=False`` the
            previous cloud is still attached.
        """
        if not isinstance(params, ParameterSet):
            raise TypeError(f"expected ParameterSet, got {type(params).__name__}")
        # Re-validates every field and decouples from later caller edits.
        snapshot = params.copy()
        hints = render_hints(snapshot)

        if self.release_first:
            self._release_current()
            galaxy = self.generate(snapshot)
            self._handle = self.sink.attach(galaxy.positions, galaxy.colors, hints)
        else:
            galaxy = self.generate(snapshot)
            previous = self._current
            self._handle = self.sink.swap(galaxy.positions, galaxy.colors, hints)
            if previous is not None:
                previous.release()

        self._current = galaxy
        logger.debug("Attached %r as %r", galaxy, self._handle)
        return galaxy

    def _release_current(self) -> None:
        if self._handle is not None and self._handle is self.sink.current_handle():
            self.sink.detach(self._handle)
        if self._current is not None:
            self._current.release()
        self._handle = None
        self._current = None

    def dispose(self) -> None:
        """Detach and release the current cloud (e.g. on shutdown)."""
        self._release_current()


# ---------------------------------------------------------------------------
# Script entry point (uses all ParameterSet defaults)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    setup_logging()
    gen = GalaxyGenerator()
    summarize(gen.regenerate(ParameterSet()))
