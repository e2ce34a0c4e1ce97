"""
galaxy_controller.py
====================
Edit-then-regenerate controller shared by the GUI and the CLI.

The controller owns the last *committed* ParameterSet.  Each edit is applied
to a copy first; if the copy fails validation the edit is rejected and the
committed parameters stay as they were.  Successful edits are committed and
trigger exactly one regeneration.

Regeneration requests that arrive while a regeneration is already running
(e.g. a slider callback fired from inside a redraw) are not run re-entrantly;
they are coalesced into a single follow-up run using the newest parameters.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from galaxygen import GalaxyGenerator, GeneratedGalaxy
from galaxyparams import ConfigurationError, ParameterSet

logger = logging.getLogger(__name__)


class GalaxyController:
    """Holds the current parameters and drives ``GalaxyGenerator.regenerate``."""

    def __init__(
        self,
        generator: GalaxyGenerator,
        params: Optional[ParameterSet] = None,
    ) -> None:
        self.generator = generator
        self._params = params.copy() if params is not None else ParameterSet()
        self._running = False
        self._pending = False
        self.on_regenerated: List[Callable[[GeneratedGalaxy], None]] = []

    @property
    def params(self) -> ParameterSet:
        """A copy of the committed parameters."""
        return self._params.copy()

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set(self, field: str, value: Any) -> ParameterSet:
        """Commit one field and regenerate.

        Raises ``ConfigurationError`` (after logging it) if *value* is out of
        range; the committed parameters are left unchanged.
        """
        return self.update(**{field: value})

    def update(self, **changes: Any) -> ParameterSet:
        """Commit several fields at once; one regeneration."""
        try:
            candidate = self._params.replace(**changes)
        except ConfigurationError as exc:
            logger.warning("Rejected edit: %s", exc)
            raise
        self._params = candidate
        logger.debug("Committed %s", changes)
        self.regenerate()
        return self.params

    def load(self, params: ParameterSet) -> None:
        """Replace all parameters (e.g. from a JSON file) and regenerate."""
        self._params = params.copy()
        self.regenerate()

    # ------------------------------------------------------------------
    # Regeneration
    # ------------------------------------------------------------------

    def regenerate(self) -> Optional[GeneratedGalaxy]:
        """Regenerate from the committed parameters.

        Returns the new galaxy, or None when the request was folded into a
        regeneration that is already in progress.
        """
        if self._running:
            self._pending = True
            logger.debug("Regeneration in progress; request coalesced")
            return None

        self._running = True
        try:
            while True:
                self._pending = False
                galaxy = self.generator.regenerate(self._params)
                for callback in list(self.on_regenerated):
                    callback(galaxy)
                if not self._pending:
                    return galaxy
        finally:
            self._running = False
