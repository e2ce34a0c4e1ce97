import math
import runpy

import numpy as np
import pytest

import galaxy_logging
import galaxygen
from galaxygen import (
    GalaxyGenerator,
    GeneratedGalaxy,
    ResourceError,
    blend_colors,
    branch_angles,
    build_point_cloud,
    render_hints,
    sample_radii,
    shaped_jitter,
    spiral_positions,
    summarize,
)
from galaxyparams import ParameterSet

INSIDE = (1.0, 0.376, 0.188)
OUTSIDE = (0.106, 0.224, 0.518)


# ---------------------------------------------------------------------------
# Algorithm steps
# ---------------------------------------------------------------------------

def test_reference_example():
    positions, colors, radii = build_point_cloud(
        count=100, radius=5.0, branches=5, spin=1.0, randomness_power=3.615,
        inside_color=INSIDE, outside_color=OUTSIDE,
        rng=np.random.default_rng(0),
    )
    assert positions.shape == (300,)
    assert colors.shape == (300,)
    assert colors.min() >= 0.0
    assert colors.max() <= 1.0

    nearest = int(np.argmin(radii))
    rgb = colors.reshape(-1, 3)[nearest]
    assert (np.linalg.norm(rgb - np.array(INSIDE))
            < np.linalg.norm(rgb - np.array(OUTSIDE)))


def test_radii_within_range(rng):
    radii = sample_radii(rng, 10_000, 3.5)
    assert radii.min() >= 0.0
    assert radii.max() < 3.5


def test_branch_angle_repeats_every_branches_points():
    branches = 7
    angles = branch_angles(100, branches)
    for i in range(100 - branches):
        assert angles[i] == angles[i + branches]


def test_branch_angles_are_evenly_spaced():
    angles = branch_angles(10, 4)
    expected = [0.0, math.pi / 2, math.pi, 3 * math.pi / 2]
    assert angles[:4] == pytest.approx(expected)
    assert angles[4] == 0.0


def test_branch_occupancy_is_even():
    arms = (branch_angles(1003, 5) / (2 * math.pi) * 5).round().astype(int)
    counts = np.bincount(arms)
    assert counts.max() - counts.min() <= 1


def test_jitter_is_signed_and_bounded(rng):
    jitter = shaped_jitter(rng, (20_000, 3), 3.0)
    assert np.abs(jitter).max() < 1.0
    assert (jitter > 0).any()
    assert (jitter < 0).any()
    # Sign is a fair coin
    assert abs((jitter > 0).mean() - 0.5) < 0.02


def test_higher_power_concentrates_jitter():
    loose = shaped_jitter(np.random.default_rng(5), (20_000, 3), 1.0)
    tight = shaped_jitter(np.random.default_rng(5), (20_000, 3), 10.0)
    assert np.abs(tight).mean() < np.abs(loose).mean()
    # With power 1 the magnitude is plain U[0, 1)
    assert np.abs(loose).mean() == pytest.approx(0.5, abs=0.02)


def test_spiral_positions_without_jitter():
    radii = np.array([0.0, 1.0, 2.0, 3.0])
    base = np.array([0.0, math.pi / 2, math.pi, 0.0])
    xyz = spiral_positions(radii, base, spin=0.5, jitter=np.zeros((4, 3)))

    assert np.hypot(xyz[:, 0], xyz[:, 2]) == pytest.approx(radii)
    assert (xyz[:, 1] == 0.0).all()
    angle = base[1] + radii[1] * 0.5
    assert xyz[1, 0] == pytest.approx(math.cos(angle))
    assert xyz[1, 2] == pytest.approx(math.sin(angle))


def test_spiral_positions_add_jitter_per_axis():
    jitter = np.array([[0.1, -0.2, 0.3]])
    xyz = spiral_positions(np.array([2.0]), np.array([0.0]), 0.0, jitter)
    assert xyz[0] == pytest.approx([2.1, -0.2, 0.3])


def test_blend_endpoints_are_exact():
    rgb = blend_colors(INSIDE, OUTSIDE, np.array([0.0, 1.0]))
    assert np.array_equal(rgb[0], np.array(INSIDE))
    assert np.array_equal(rgb[1], np.array(OUTSIDE))


def test_blend_midpoint_and_clamping():
    rgb = blend_colors((0.0, 0.0, 0.0), (1.0, 0.5, 0.2), np.array([0.5, -1.0, 2.0]))
    assert rgb[0] == pytest.approx([0.5, 0.25, 0.1])
    assert np.array_equal(rgb[1], [0.0, 0.0, 0.0])
    assert np.array_equal(rgb[2], [1.0, 0.5, 0.2])


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("changes", [
    {},
    {"count": 12_345, "branches": 2},
    {"count": 3_000, "branches": 20, "spin": -5.0, "radius": 20.0},
    {"count": 1_000, "randomness_power": 1.0, "inside_color": "white",
     "outside_color": "black"},
])
def test_regenerate_output_shape_and_color_range(params, changes):
    params = params.replace(**changes)
    galaxy = GalaxyGenerator().regenerate(params)

    assert galaxy.positions.shape == (3 * params.count,)
    assert galaxy.colors.shape == (3 * params.count,)
    assert galaxy.positions.dtype == np.float32
    assert galaxy.colors.min() >= 0.0
    assert galaxy.colors.max() <= 1.0
    assert galaxy.count == params.count


def test_same_seed_same_cloud(params):
    a = GalaxyGenerator().generate(params)
    b = GalaxyGenerator().generate(params)
    assert np.array_equal(a.positions, b.positions)
    assert np.array_equal(a.colors, b.colors)


def test_unseeded_regeneration_resamples():
    params = ParameterSet(count=1_000)
    gen = GalaxyGenerator()
    first = gen.regenerate(params).positions.copy()
    second = gen.regenerate(params).positions
    assert first.shape == second.shape
    assert not np.array_equal(first, second)


def test_shared_rng_advances(params):
    gen = GalaxyGenerator(rng=np.random.default_rng(3))
    first = gen.generate(params).positions
    second = gen.generate(params).positions
    assert not np.array_equal(first, second)


def test_generate_does_not_touch_sink(params, sink):
    gen = GalaxyGenerator(sink)
    gen.generate(params)
    assert sink.current_handle() is None
    assert sink.history == []


def test_colors_follow_radius(params):
    galaxy = GalaxyGenerator().generate(params.replace(inside_color="black",
                                                        outside_color="white"))
    t = galaxy.radii / params.radius
    # Grey ramp: every channel equals the blend factor
    assert galaxy.rgb[:, 0] == pytest.approx(t, abs=1e-6)


def test_at_most_one_cloud_attached(params, sink):
    gen = GalaxyGenerator(sink)
    for count, branches in [(1_000, 2), (2_000, 3), (1_500, 9), (1_000, 20)]:
        gen.regenerate(params.replace(count=count, branches=branches))
        assert sink.attached_count == 1
        assert sink.current_handle() is gen.handle
        assert sink.current_handle().count == count
    assert sink.max_attached == 1
    # Each attach after the first is preceded by the previous detach
    kinds = [kind for kind, _ in sink.history]
    assert kinds == ["attach"] + ["detach", "attach"] * 3


def test_previous_galaxy_is_released(params, sink):
    gen = GalaxyGenerator(sink)
    old = gen.regenerate(params)
    old_handle = gen.handle
    new = gen.regenerate(params)

    assert old.released
    assert not new.released
    assert old_handle.positions is None
    assert not old_handle.attached
    with pytest.raises(RuntimeError):
        old.positions


def test_swap_mode_keeps_single_attachment(params, sink):
    gen = GalaxyGenerator(sink, release_first=False)
    old = gen.regenerate(params)
    new = gen.regenerate(params.replace(count=2_000))
    assert old.released
    assert sink.current_handle().count == 2_000
    assert sink.max_attached == 1
    assert gen.current is new


def out_of_memory(*args, **kwargs):
    raise MemoryError


def test_failed_build_keeps_previous_cloud_in_swap_mode(params, sink, monkeypatch):
    gen = GalaxyGenerator(sink, release_first=False)
    old = gen.regenerate(params)
    handle = gen.handle

    monkeypatch.setattr(galaxygen, "spiral_positions", out_of_memory)
    with pytest.raises(ResourceError):
        gen.regenerate(params.replace(count=2_000))

    assert sink.current_handle() is handle
    assert gen.current is old
    assert not old.released


def test_failed_build_in_release_first_mode_leaves_sink_empty(params, sink, monkeypatch):
    gen = GalaxyGenerator(sink)
    old = gen.regenerate(params)

    monkeypatch.setattr(galaxygen, "spiral_positions", out_of_memory)
    with pytest.raises(ResourceError):
        gen.regenerate(params)

    assert old.released
    assert sink.current_handle() is None
    assert gen.current is None
    assert sink.max_attached == 1


def test_regenerate_rejects_non_parameter_sets(sink):
    gen = GalaxyGenerator(sink)
    with pytest.raises(TypeError):
        gen.regenerate({"count": 1000})
    assert sink.history == []


def test_regenerate_snapshots_params(params):
    gen = GalaxyGenerator()
    galaxy = gen.regenerate(params)
    params.branches = 9
    assert galaxy.params.branches == 5


def test_dispose_detaches(params, sink):
    gen = GalaxyGenerator(sink)
    galaxy = gen.regenerate(params)
    gen.dispose()
    assert sink.current_handle() is None
    assert galaxy.released
    gen.dispose()


def test_render_hints_pass_through(params):
    hints = render_hints(params.replace(particle_size=0.05))
    assert hints.size == 0.05
    assert hints.size_attenuation
    assert hints.additive_blending
    assert not hints.depth_write


def test_summary_checks(params):
    summary = summarize(GalaxyGenerator().generate(params))
    assert summary["count"] == params.count
    assert summary["positions_ok"]
    assert summary["colors_ok"]
    assert summary["radius_ok"]
    assert summary["color_range_ok"]
    assert summary["arm_max"] - summary["arm_min"] <= 1


def test_to_frame_columns(params):
    galaxy = GalaxyGenerator().generate(params)
    frame = galaxy.to_frame()
    assert list(frame.columns) == ["x", "y", "z", "red", "green", "blue", "radius"]
    assert len(frame) == params.count

    again = GeneratedGalaxy.from_frame(frame, params)
    assert np.array_equal(again.positions, galaxy.positions)


def test_randomness_does_not_change_positions():
    # randomness is stored and persisted; jitter amplitude is shaped by
    # randomness_power alone
    calm = GalaxyGenerator().generate(ParameterSet(count=1_000, seed=3, randomness=0.0))
    wild = GalaxyGenerator().generate(ParameterSet(count=1_000, seed=3, randomness=2.0))
    assert np.array_equal(calm.positions, wild.positions)
    assert np.array_equal(calm.colors, wild.colors)
    assert wild.params.randomness == 2.0


def test_script_entry_configures_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(galaxy_logging, "setup_logging",
                        lambda *args, **kwargs: calls.append(args))
    runpy.run_module("galaxygen", run_name="__main__")
    assert calls == [()]
