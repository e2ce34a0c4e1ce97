"""
galaxyparams.py
===============
Validated parameter set for the spiral-galaxy point-cloud generator.

Every field of ``ParameterSet`` is range-checked on construction *and* on
every later assignment, so a ParameterSet instance can never hold an
out-of-bounds value.  Violations raise ``ConfigurationError`` naming the
offending field and the violated bound; nothing downstream (generation,
buffer allocation, rendering) ever sees an invalid value.

Bounds
------
    count             int    [1000, 1_000_000]
    particle_size     float  [0.001, 0.1]      (render hint only)
    radius            float  (0, 20]
    branches          int    [2, 20]
    spin              float  [-5, 5]
    randomness        float  [0, 2]
    randomness_power  float  [1, 10]
    inside_color      colour (hex, named, or RGB triple → normalised RGB)
    outside_color     colour
    seed              int ≥ 0, or None for fresh entropy

Usage
-----
    from galaxyparams import ParameterSet
    params = ParameterSet(count=50_000, branches=3)
    params.spin = -2.5          # validated
    params.branches = 1         # raises ConfigurationError
"""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import numbers
from typing import Any, Mapping, Optional, Tuple

from matplotlib.colors import to_hex, to_rgb

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ConfigurationError(ValueError):
    """A parameter value outside its declared range (or of the wrong type).

    Attributes
    ----------
    field : name of the offending ParameterSet field
    value : the rejected value
    bound : human-readable description of the violated constraint
    """

    def __init__(self, field: str, value: Any, bound: str) -> None:
        self.field = field
        self.value = value
        self.bound = bound
        super().__init__(f"{field}={value!r} violates bound {bound}")


# ---------------------------------------------------------------------------
# Bounds table
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Bound:
    """Closed (or left-open) numeric interval for one field."""

    lo: float
    hi: float
    integer: bool = False
    lo_open: bool = False

    def describe(self) -> str:
        left = "(" if self.lo_open else "["
        kind = "int" if self.integer else "float"
        return f"{kind} in {left}{self.lo}, {self.hi}]"

    def contains(self, value: float) -> bool:
        above = value > self.lo if self.lo_open else value >= self.lo
        return above and value <= self.hi


PARAMETER_BOUNDS: dict[str, Bound] = {
    "count":            Bound(1_000, 1_000_000, integer=True),
    "particle_size":    Bound(0.001, 0.1),
    "radius":           Bound(0.0, 20.0, lo_open=True),
    "branches":         Bound(2, 20, integer=True),
    "spin":             Bound(-5.0, 5.0),
    "randomness":       Bound(0.0, 2.0),
    "randomness_power": Bound(1.0, 10.0),
}

COLOR_FIELDS = ("inside_color", "outside_color")

# Original (camelCase) parameter names accepted in JSON parameter files.
CAMEL_CASE_ALIASES = {
    "particleSize":    "particle_size",
    "randomnessPower": "randomness_power",
    "insideColor":     "inside_color",
    "outsideColor":    "outside_color",
}


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------

def validate_number(field: str, value: Any) -> float:
    """Check *value* against ``PARAMETER_BOUNDS[field]``; return it coerced."""
    bound = PARAMETER_BOUNDS[field]
    # bool is an Integral subclass; True/False are never valid counts
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(field, value, bound.describe())
    if bound.integer:
        if isinstance(value, numbers.Integral):
            value = int(value)
        elif float(value).is_integer():
            value = int(value)
        else:
            raise ConfigurationError(field, value, bound.describe())
    else:
        value = float(value)
        if math.isnan(value):
            raise ConfigurationError(field, value, bound.describe())
    if not bound.contains(value):
        raise ConfigurationError(field, value, bound.describe())
    return value


def parse_color(field: str, value: Any) -> RGB:
    """Normalise a hex string, named colour or RGB triple to floats in [0, 1].

    Parsing is delegated to ``matplotlib.colors.to_rgb`` so every colour spec
    matplotlib understands ("#ff6030", "#f63", "orange", (1, 0.5, 0)) works.
    """
    try:
        r, g, b = to_rgb(value)
    except (ValueError, TypeError) as exc:
        raise ConfigurationError(field, value, "a valid colour") from exc
    return (float(r), float(g), float(b))


def validate_seed(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 0:
        raise ConfigurationError("seed", value, "int >= 0 or None")
    return int(value)


# ---------------------------------------------------------------------------
# Parameter set
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class ParameterSet:
    """All tunable inputs of one galaxy generation.

    Defaults reproduce the reference galaxy: 70 000 points on five arms,
    warm orange core fading to deep blue at the rim.

    Validation runs in ``__setattr__``, which the dataclass ``__init__`` also
    goes through, so construction and mutation share one code path.
    """

    count: int = 70_000
    particle_size: float = 0.02
    radius: float = 5.0
    branches: int = 5
    spin: float = 1.0
    randomness: float = 0.02        # stored and persisted; jitter ignores it
    randomness_power: float = 3.615
    inside_color: RGB = "#ff6030"   # normalised to an RGB triple on assignment
    outside_color: RGB = "#1b3984"
    seed: Optional[int] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in PARAMETER_BOUNDS:
            value = validate_number(name, value)
        elif name in COLOR_FIELDS:
            value = parse_color(name, value)
        elif name == "seed":
            value = validate_seed(value)
        else:
            raise AttributeError(f"ParameterSet has no field {name!r}")
        super().__setattr__(name, value)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def copy(self) -> "ParameterSet":
        return dataclasses.replace(self)

    def replace(self, **changes: Any) -> "ParameterSet":
        """Return a validated copy with *changes* applied; *self* is untouched."""
        unknown = set(changes) - {f.name for f in dataclasses.fields(self)}
        if unknown:
            name = sorted(unknown)[0]
            raise ConfigurationError(name, changes[name], "a known parameter name")
        return dataclasses.replace(self, **changes)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Plain-JSON mapping; colours are written as ``#rrggbb`` strings."""
        out = dataclasses.asdict(self)
        for name in COLOR_FIELDS:
            out[name] = to_hex(out[name])
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParameterSet":
        """Build from a mapping using snake_case or original camelCase keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = CAMEL_CASE_ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(key, value, "a known parameter name")
            kwargs[name] = value
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Parameter files
# ---------------------------------------------------------------------------

def load_params(path: str) -> ParameterSet:
    """Read a JSON parameter file (as written by ``save_params``)."""
    logger.info("Loading parameters from %s", path)
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigurationError("<file>", path, "a JSON object of parameters")
    return ParameterSet.from_dict(data)


def save_params(params: ParameterSet, path: str) -> None:
    with open(path, "w") as f:
        json.dump(params.to_dict(), f, indent=2)
    logger.info("Wrote %s", path)
