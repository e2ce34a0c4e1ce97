"""
galaxy_sink.py
==============
Renderable point-cloud sinks: the boundary between generation and display.

A sink accepts flat position/colour arrays plus render hints and hands back an
opaque ``PointCloudHandle``.  The render loop only ever reads
``current_handle()``; regeneration replaces that handle by reference
(``swap``), never by mutating the attached buffers, so a frame sees either the
old cloud or the new one and nothing in between.

``MemorySink`` is the headless implementation used by the CLI and the test
suite.  ``plot_galaxy.MatplotlibSink`` draws into a 3D axes.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class RenderHints:
    """Pass-through material settings; none of them affect generation."""

    size: float = 0.02
    size_attenuation: bool = True
    additive_blending: bool = True
    depth_write: bool = False
    vertex_colors: bool = True


class PointCloudHandle:
    """Opaque token for one attached point cloud."""

    _ids = itertools.count(1)

    def __init__(self, positions: np.ndarray, colors: np.ndarray,
                 hints: RenderHints) -> None:
        self.id = next(self._ids)
        self.positions = positions
        self.colors = colors
        self.hints = hints
        self.attached = False
        self.artist = None   # renderer-specific object, if any

    @property
    def count(self) -> int:
        return 0 if self.positions is None else len(self.positions) // 3

    def __repr__(self) -> str:
        state = "attached" if self.attached else "detached"
        return f"<PointCloudHandle #{self.id} {self.count:,} points {state}>"


class RenderableSink:
    """Base sink: tracks the single attached handle.

    Subclasses override ``_show`` / ``_hide`` to create and tear down whatever
    display object the renderer needs.  The bookkeeping here guarantees that at
    most one handle is attached at any time.
    """

    def __init__(self) -> None:
        self._current: Optional[PointCloudHandle] = None

    def current_handle(self) -> Optional[PointCloudHandle]:
        return self._current

    def attach(self, positions: np.ndarray, colors: np.ndarray,
               hints: RenderHints) -> PointCloudHandle:
        """Attach a new cloud.  Fails if another cloud is still attached."""
        if self._current is not None:
            raise RuntimeError(
                f"{self._current!r} is still attached; detach it or use swap()"
            )
        handle = PointCloudHandle(positions, colors, hints)
        self._show(handle)
        handle.attached = True
        self._current = handle
        logger.debug("Attached %r", handle)
        return handle

    def detach(self, handle: PointCloudHandle) -> None:
        """Detach *handle* and drop the sink's references to its buffers."""
        if handle is not self._current:
            raise RuntimeError(f"{handle!r} is not the attached cloud")
        self._hide(handle)
        handle.attached = False
        handle.positions = None
        handle.colors = None
        self._current = None
        logger.debug("Detached %r", handle)

    def swap(self, positions: np.ndarray, colors: np.ndarray,
             hints: RenderHints) -> PointCloudHandle:
        """Replace the attached cloud (if any) in a single step."""
        old = self._current
        handle = PointCloudHandle(positions, colors, hints)
        if old is not None:
            self._hide(old)
        try:
            self._show(handle)
        except Exception:
            if old is not None:
                self._show(old)
            raise
        handle.attached = True
        self._current = handle
        if old is not None:
            old.attached = False
            old.positions = None
            old.colors = None
        logger.debug("Swapped %r -> %r", old, handle)
        return handle

    # ------------------------------------------------------------------
    # Renderer hooks
    # ------------------------------------------------------------------

    def _show(self, handle: PointCloudHandle) -> None:
        pass

    def _hide(self, handle: PointCloudHandle) -> None:
        pass


class MemorySink(RenderableSink):
    """Headless sink that records its attach/detach history."""

    def __init__(self) -> None:
        super().__init__()
        self.history: list[tuple[str, int]] = []
        self.attached_count = 0
        self.max_attached = 0

    def _show(self, handle: PointCloudHandle) -> None:
        self.attached_count += 1
        self.max_attached = max(self.max_attached, self.attached_count)
        self.history.append(("attach", handle.id))

    def _hide(self, handle: PointCloudHandle) -> None:
        self.attached_count -= 1
        self.history.append(("detach", handle.id))
