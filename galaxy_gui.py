"""
galaxy_gui.py
=============
Tkinter GUI front-end for the spiral-galaxy point-cloud generator.

Layout
------
Left panel   – galaxy parameters in collapsible sections.  Every slider,
               spinbox and colour entry commits on release / Return, which
               validates the value and regenerates the galaxy.
Centre panel – embedded matplotlib 3-D view with an orbiting camera.
Bottom bar   – regenerate, load / save parameters, PNG export, status line.

Rejected values (outside a parameter's range) are reported in the status line
and the control snaps back to the last committed value.

Usage
-----
    python galaxy_gui.py [--config params.json]

Dependencies
------------
Same as the core generator (numpy, pandas, matplotlib) plus tkinter, which is
bundled with the standard Python installer.  On Ubuntu/Debian:
    sudo apt-get install python3-tk
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Callable, Optional

import tkinter as tk
from tkinter import ttk, colorchooser, filedialog, messagebox

import matplotlib
import matplotlib.pyplot as plt
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg

from galaxy_controller import GalaxyController
from galaxy_logging import setup_logging
from galaxygen import GalaxyGenerator, GeneratedGalaxy, ResourceError
from galaxyparams import ConfigurationError, ParameterSet, load_params, save_params
from plot_galaxy import MatplotlibSink, OrbitAnimator, frame_radius, make_figure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reusable compound widgets
# ---------------------------------------------------------------------------

class SliderEntry(ttk.Frame):
    """Linked horizontal scale + spinbox; calls *on_commit* when an edit ends."""

    def __init__(
        self,
        parent,
        label: str,
        var: tk.Variable,
        lo: float,
        hi: float,
        step: float = 1.0,
        on_commit: Optional[Callable[[], None]] = None,
        label_width: int = 22,
        spin_width: int = 8,
        **kw,
    ):
        super().__init__(parent, **kw)
        self._var  = var
        self._step = step
        self._busy = False
        self._on_commit = on_commit

        ttk.Label(self, text=label, width=label_width, anchor="w").grid(
            row=0, column=0, sticky="w", padx=(4, 2), pady=1,
        )
        self._scale = ttk.Scale(
            self, orient="horizontal", length=130,
            from_=lo, to=hi, variable=var,
            command=self._on_scale,
        )
        self._scale.grid(row=0, column=1, padx=4)
        self._scale.bind("<ButtonRelease-1>", self._commit)
        self._spin = ttk.Spinbox(
            self, from_=lo, to=hi, increment=step,
            textvariable=var, width=spin_width,
            command=self._commit,
        )
        self._spin.grid(row=0, column=2, padx=(2, 4))
        self._spin.bind("<Return>",   self._commit)
        self._spin.bind("<FocusOut>", self._commit)

    def _on_scale(self, _val: str) -> None:
        if self._busy:
            return
        try:
            raw = float(_val)
        except ValueError:
            return
        snapped = round(raw / self._step) * self._step
        snapped = round(snapped, 10)
        if isinstance(self._var, tk.IntVar):
            snapped = int(snapped)
        if abs(raw - snapped) > 1e-9:
            self._busy = True
            self._var.set(snapped)
            self._busy = False

    def _commit(self, _evt=None) -> None:
        if self._on_commit is not None:
            self._on_commit()


# ---------------------------------------------------------------------------

class ColorEntry(ttk.Frame):
    """Colour swatch + hex entry + colour-picker button."""

    def __init__(self, parent, label: str, var: tk.StringVar,
                 on_commit: Optional[Callable[[], None]] = None,
                 label_width: int = 22, **kw):
        super().__init__(parent, **kw)
        self._var = var
        self._on_commit = on_commit

        ttk.Label(self, text=label, width=label_width, anchor="w").grid(
            row=0, column=0, sticky="w", padx=(4, 2), pady=1,
        )
        self._swatch = tk.Label(self, width=3, relief="sunken", cursor="hand2")
        self._swatch.grid(row=0, column=1, padx=(2, 2))
        self._swatch.bind("<Button-1>", self._open_picker)

        self._entry = ttk.Entry(self, textvariable=var, width=10)
        self._entry.grid(row=0, column=2, padx=2)
        self._entry.bind("<Return>", self._commit)

        ttk.Button(self, text="Pick…", width=6,
                   command=self._open_picker).grid(row=0, column=3, padx=(2, 4))

        var.trace_add("write", self._refresh_swatch)
        self._refresh_swatch()

    def _refresh_swatch(self, *_) -> None:
        val = self._var.get().strip()
        try:
            self._swatch.configure(bg=val)
        except tk.TclError:
            self._swatch.configure(bg="#888888")

    def _open_picker(self, _evt=None) -> None:
        _rgb, hexval = colorchooser.askcolor(
            color=self._var.get(), title="Choose colour", parent=self)
        if hexval:
            self._var.set(hexval.lower())
            self._commit()

    def _commit(self, _evt=None) -> None:
        if self._on_commit is not None:
            self._on_commit()


# ---------------------------------------------------------------------------

class Section(ttk.Frame):
    """Collapsible parameter section with a toggle-button header."""

    def __init__(self, parent, title: str, start_open: bool = True, **kw):
        super().__init__(parent, **kw)
        self._open  = start_open
        self._title = title

        self._btn = ttk.Button(self, text=f"{'▼' if start_open else '▶'}  {title}",
                               command=self._toggle)
        self._btn.pack(fill="x", padx=2, pady=(4, 0))
        ttk.Separator(self, orient="horizontal").pack(fill="x", padx=2)

        self._inner = ttk.Frame(self, padding=(2, 2, 2, 6))
        if start_open:
            self._inner.pack(fill="x", expand=True)

    @property
    def inner(self) -> ttk.Frame:
        return self._inner

    def _toggle(self) -> None:
        if self._open:
            self._inner.pack_forget()
            self._btn.configure(text=f"▶  {self._title}")
        else:
            self._inner.pack(fill="x", expand=True)
            self._btn.configure(text=f"▼  {self._title}")
        self._open = not self._open


# ---------------------------------------------------------------------------
# Main GUI class
# ---------------------------------------------------------------------------

class GalaxyGUI:
    """Top-level GUI application window."""

    def __init__(self, root: tk.Tk, params: Optional[ParameterSet] = None) -> None:
        self.root = root
        root.title("Galaxy Generator")
        root.minsize(1100, 720)

        params = params if params is not None else ParameterSet()
        self._fig, self._ax = make_figure(params.radius)
        self._sink = MatplotlibSink(self._ax)
        self._controller = GalaxyController(GalaxyGenerator(self._sink), params)
        self._controller.on_regenerated.append(self._on_regenerated)

        self._build_vars()
        self._build_ui()
        self._animator = OrbitAnimator(self._fig, self._ax, self._sink)
        root.protocol("WM_DELETE_WINDOW", self._on_close)

        self._regenerate()

    # ── Variable definitions ──────────────────────────────────────────────

    def _build_vars(self) -> None:
        iv = tk.IntVar
        dv = tk.DoubleVar
        sv = tk.StringVar

        self.vars: dict[str, tk.Variable] = {
            "count":            iv(),
            "particle_size":    dv(),
            "radius":           dv(),
            "branches":         iv(),
            "spin":             dv(),
            "randomness":       dv(),
            "randomness_power": dv(),
            "inside_color":     sv(),
            "outside_color":    sv(),
        }
        self._sync_vars()

    def _sync_vars(self) -> None:
        """Show the committed parameters in every control."""
        for name, value in self._controller.params.to_dict().items():
            if name in self.vars:
                self.vars[name].set(value)

    # ── UI construction ───────────────────────────────────────────────────

    def _build_ui(self) -> None:
        self._build_action_bar()

        paned = ttk.PanedWindow(self.root, orient="horizontal")
        paned.pack(fill="both", expand=True, padx=6, pady=(6, 0))

        left_outer = ttk.Frame(paned, width=400)
        left_outer.pack_propagate(False)
        paned.add(left_outer, weight=0)

        centre_frame = ttk.Frame(paned)
        paned.add(centre_frame, weight=1)

        self._build_param_panel(left_outer)
        self._build_preview_panel(centre_frame)

    def _slider(self, parent, label, name, lo, hi, step) -> None:
        SliderEntry(parent, label, self.vars[name], lo, hi, step,
                    on_commit=lambda: self._commit(name)).pack(fill="x")

    def _build_param_panel(self, parent: ttk.Frame) -> None:
        # Slider ranges and steps match the reference debug panel.
        sec = Section(parent, "Shape")
        sec.pack(fill="x", padx=4, pady=3)
        s = sec.inner
        self._slider(s, "Points (count)",     "count",    1_000, 1_000_000, 100)
        self._slider(s, "Radius",             "radius",   0.01, 20.0, 0.01)
        self._slider(s, "Arms (branches)",    "branches", 2, 20, 1)
        self._slider(s, "Spin",               "spin",     -5.0, 5.0, 0.001)

        sec = Section(parent, "Jitter")
        sec.pack(fill="x", padx=4, pady=3)
        s = sec.inner
        self._slider(s, "Randomness",         "randomness",       0.0, 2.0, 0.001)
        self._slider(s, "Randomness power",   "randomness_power", 1.0, 10.0, 0.001)

        sec = Section(parent, "Appearance")
        sec.pack(fill="x", padx=4, pady=3)
        s = sec.inner
        self._slider(s, "Particle size",      "particle_size", 0.001, 0.1, 0.001)
        ColorEntry(s, "Inside colour",  self.vars["inside_color"],
                   on_commit=lambda: self._commit("inside_color")).pack(fill="x")
        ColorEntry(s, "Outside colour", self.vars["outside_color"],
                   on_commit=lambda: self._commit("outside_color")).pack(fill="x")

    def _build_preview_panel(self, parent: ttk.Frame) -> None:
        canvas = FigureCanvasTkAgg(self._fig, master=parent)
        canvas.draw()
        canvas.get_tk_widget().pack(fill="both", expand=True)
        self._canvas = canvas

    def _build_action_bar(self) -> None:
        bar = ttk.Frame(self.root)
        bar.pack(side="bottom", fill="x", padx=6, pady=(0, 6))

        ttk.Button(bar, text="Regenerate", command=self._regenerate,
                   width=12).pack(side="left", padx=(0, 4))

        ttk.Separator(bar, orient="vertical").pack(side="left", fill="y", padx=8, pady=4)

        ttk.Button(bar, text="Load params…", command=self._on_load,
                   width=13).pack(side="left", padx=4)
        ttk.Button(bar, text="Save params…", command=self._on_save,
                   width=13).pack(side="left", padx=4)
        ttk.Button(bar, text="Export PNG…", command=self._on_export_png,
                   width=13).pack(side="left", padx=4)

        self._status_var = tk.StringVar(value="Ready.")
        ttk.Label(bar, textvariable=self._status_var, anchor="w").pack(
            side="left", padx=12)

    # ── Helpers ───────────────────────────────────────────────────────────

    def _status(self, msg: str) -> None:
        self._status_var.set(msg)

    def _read_var(self, name: str):
        var = self.vars[name]
        try:
            return var.get()
        except tk.TclError:
            # Non-numeric text in a spinbox; let validation name the field.
            return self.root.globalgetvar(str(var))

    # ── Edits ─────────────────────────────────────────────────────────────

    def _commit(self, name: str) -> None:
        value = self._read_var(name)
        committed = self._controller.params.to_dict()[name]
        if value == committed:
            return
        try:
            self._controller.set(name, value)
        except ConfigurationError as exc:
            self._status(f"Rejected: {exc}")
            self._sync_vars()
        except ResourceError as exc:
            self._status(f"Generation failed: {exc}")
            messagebox.showerror("Generation failed", str(exc))

    def _regenerate(self) -> None:
        try:
            self._controller.regenerate()
        except ResourceError as exc:
            self._status(f"Generation failed: {exc}")
            messagebox.showerror("Generation failed", str(exc))

    def _on_regenerated(self, galaxy: GeneratedGalaxy) -> None:
        frame_radius(self._ax, galaxy.params.radius)
        self._canvas.draw_idle()
        self._status(f"{galaxy.count:,} points on {galaxy.params.branches} arms.")

    # ── File actions ──────────────────────────────────────────────────────

    def _on_load(self) -> None:
        path = filedialog.askopenfilename(
            title="Load parameters", filetypes=[("JSON", "*.json")])
        if not path:
            return
        try:
            params = load_params(path)
        except (ConfigurationError, OSError, json.JSONDecodeError) as exc:
            messagebox.showerror("Load failed", str(exc))
            return
        try:
            self._controller.load(params)
        except ResourceError as exc:
            self._status(f"Generation failed: {exc}")
            messagebox.showerror("Generation failed", str(exc))
        self._sync_vars()

    def _on_save(self) -> None:
        path = filedialog.asksaveasfilename(
            title="Save parameters", defaultextension=".json",
            filetypes=[("JSON", "*.json")])
        if path:
            save_params(self._controller.params, path)
            self._status(f"Saved → {path}")

    def _on_export_png(self) -> None:
        path = filedialog.asksaveasfilename(
            title="Export PNG", defaultextension=".png",
            filetypes=[("PNG", "*.png")])
        if path:
            self._fig.savefig(path, facecolor=self._fig.get_facecolor())
            logger.info("Saved figure to %s", path)
            self._status(f"Saved → {path}")

    def _on_close(self) -> None:
        self._animator.stop()
        self._controller.generator.dispose()
        plt.close(self._fig)
        self.root.destroy()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(prog="galaxy_gui.py")
    parser.add_argument("--config", default=None, metavar="FILE",
                        help="JSON parameter file to start from.")
    parser.add_argument("--log_level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()
    setup_logging(args.log_level)
    matplotlib.use("TkAgg")

    params = load_params(args.config) if args.config else None
    root = tk.Tk()
    GalaxyGUI(root, params)
    root.mainloop()


if __name__ == "__main__":
    main()
