"""
run_generate.py
===============
CLI entrypoint for the spiral-galaxy point-cloud generator.

All parameters are optional.  Values come from, in increasing precedence:
the ParameterSet defaults, a JSON parameter file given with ``--config``,
and explicit command-line flags.

Quick start
-----------
    python run_generate.py

With custom parameters (matching the default preset)::

    python run_generate.py \\
        --count 70000 \\
        --particle_size 0.02 \\
        --radius 5 \\
        --branches 5 \\
        --spin 1 \\
        --randomness 0.02 \\
        --randomness_power 3.615 \\
        --inside_color "#ff6030" \\
        --outside_color "#1b3984" \\
        --out_dir output

Open the orbiting 3-D view right away, or save a still::

    python run_generate.py --show
    python run_generate.py --save galaxy.png

Re-plot a finished run later::

    python plot_galaxy.py --out_dir output
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional, Sequence

from galaxy_logging import setup_logging
from galaxy_sink import MemorySink
from galaxygen import GalaxyGenerator, ResourceError, summarize
from galaxyparams import ConfigurationError, ParameterSet, load_params, save_params

logger = logging.getLogger(__name__)

PARAM_FLAGS = (
    "count", "particle_size", "radius", "branches", "spin",
    "randomness", "randomness_power", "inside_color", "outside_color", "seed",
)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="run_generate.py",
        description=(
            "Procedural spiral-galaxy point-cloud generator.\n"
            "Produces points.csv and params.json in OUT_DIR."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    p.add_argument(
        "--config", default=None, metavar="FILE",
        help="JSON parameter file (snake_case or camelCase keys).  "
             "Flags below override its values.",
    )

    # ── Galaxy shape ──────────────────────────────────────────────────────
    p.add_argument("--count", type=int, default=None, metavar="N",
                   help="Number of points [1000, 1000000] (default 70000).")
    p.add_argument("--radius", type=float, default=None, metavar="R",
                   help="Galaxy radius (0, 20] (default 5).")
    p.add_argument("--branches", type=int, default=None, metavar="N",
                   help="Number of spiral arms [2, 20] (default 5).")
    p.add_argument("--spin", type=float, default=None, metavar="S",
                   help="Arm twist per unit radius [-5, 5] (default 1).")

    # ── Jitter ────────────────────────────────────────────────────────────
    p.add_argument("--randomness", type=float, default=None, metavar="R",
                   help="Reserved jitter scale [0, 2]; stored but not applied "
                        "(default 0.02).")
    p.add_argument("--randomness_power", type=float, default=None, metavar="P",
                   help="Jitter shaping exponent [1, 10]; larger keeps points "
                        "closer to the arms (default 3.615).")

    # ── Appearance ────────────────────────────────────────────────────────
    p.add_argument("--particle_size", type=float, default=None, metavar="S",
                   help="Point size hint [0.001, 0.1] (default 0.02).")
    p.add_argument("--inside_color", default=None, metavar="COLOR",
                   help="Colour at the centre: hex or named (default #ff6030).")
    p.add_argument("--outside_color", default=None, metavar="COLOR",
                   help="Colour at the rim: hex or named (default #1b3984).")

    # ── Reproducibility ───────────────────────────────────────────────────
    p.add_argument("--seed", type=int, default=None, metavar="S",
                   help="Random seed for reproducible output (default: fresh).")

    # ── Output ────────────────────────────────────────────────────────────
    p.add_argument("--out_dir", type=str, default="output", metavar="DIR",
                   help="Directory to write output files (created if absent).")
    p.add_argument("--no_csv", action="store_true",
                   help="Skip points.csv (large for high counts).")
    p.add_argument("--save", default=None, metavar="FILE",
                   help="Save a rendered still to FILE (png/pdf/svg).")
    p.add_argument("--show", action="store_true",
                   help="Open the interactive orbiting 3-D view.")

    # ── Logging ───────────────────────────────────────────────────────────
    p.add_argument("--log_level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.add_argument("--log_file", default=None, metavar="FILE",
                   help="Also log to FILE (rotated at 1 MB).")

    return p


def build_params(args: argparse.Namespace) -> ParameterSet:
    """Defaults ← --config file ← explicit flags."""
    params = load_params(args.config) if args.config else ParameterSet()
    overrides = {
        name: getattr(args, name)
        for name in PARAM_FLAGS
        if getattr(args, name) is not None
    }
    return params.replace(**overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        params = build_params(args)
    except (ConfigurationError, OSError, json.JSONDecodeError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    # Log config so the user can confirm parameters before waiting
    logger.info("Configuration")
    for name, value in params.to_dict().items():
        logger.info("  %-18s = %s", name, value)

    if args.show:
        from plot_galaxy import MatplotlibSink, make_figure
        fig, ax = make_figure(params.radius)
        sink = MatplotlibSink(ax)
    else:
        sink = MemorySink()

    gen = GalaxyGenerator(sink)
    try:
        galaxy = gen.regenerate(params)
    except ResourceError as exc:
        logger.error("%s", exc)
        return 1
    summarize(galaxy)

    os.makedirs(args.out_dir, exist_ok=True)
    # Persist parameters so plot_galaxy.py can re-plot this run
    save_params(galaxy.params, os.path.join(args.out_dir, "params.json"))
    if not args.no_csv:
        points_path = os.path.join(args.out_dir, "points.csv")
        galaxy.to_frame().to_csv(points_path, index=False)
        logger.info("Wrote %s", points_path)

    if args.save:
        from plot_galaxy import render_figure
        still = render_figure(galaxy)
        still.savefig(args.save, facecolor=still.get_facecolor())
        logger.info("Saved figure to %s", args.save)

    if args.show:
        import matplotlib.pyplot as plt
        from plot_galaxy import OrbitAnimator
        animator = OrbitAnimator(fig, ax, sink)
        plt.show()
        animator.stop()

    gen.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
