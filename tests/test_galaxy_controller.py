import pytest

from galaxy_controller import GalaxyController
from galaxygen import GalaxyGenerator
from galaxyparams import ConfigurationError, ParameterSet


@pytest.fixture
def controller(params, sink):
    return GalaxyController(GalaxyGenerator(sink), params)


def test_set_commits_and_regenerates(controller, sink):
    seen = []
    controller.on_regenerated.append(seen.append)

    controller.set("branches", 3)

    assert controller.params.branches == 3
    assert len(seen) == 1
    assert seen[0].params.branches == 3
    assert sink.current_handle() is not None


def test_rejected_edit_keeps_last_valid_params(controller, sink):
    controller.set("count", 2_000)
    history = list(sink.history)

    with pytest.raises(ConfigurationError) as info:
        controller.set("count", 999)

    assert info.value.field == "count"
    assert controller.params.count == 2_000
    # No regeneration, nothing released
    assert sink.history == history
    assert sink.current_handle().count == 2_000


def test_resubmitting_current_value_is_accepted(controller):
    current = controller.params
    controller.set("spin", current.spin)
    controller.update(**{"radius": current.radius, "count": current.count})
    assert controller.params == current


def test_update_is_one_regeneration(controller, sink):
    seen = []
    controller.on_regenerated.append(seen.append)
    controller.update(count=3_000, branches=4, inside_color="orange")
    assert len(seen) == 1
    assert controller.params.branches == 4


def test_update_with_one_bad_field_commits_nothing(controller):
    before = controller.params
    with pytest.raises(ConfigurationError):
        controller.update(branches=4, spin=12)
    assert controller.params == before


def test_params_property_is_a_copy(controller):
    p = controller.params
    p.branches = 7
    assert controller.params.branches != 7


def test_requests_during_regeneration_are_coalesced(controller):
    seen = []

    def callback(galaxy):
        seen.append(galaxy)
        if len(seen) == 1:
            # Re-entrant request: folded into one follow-up run
            assert controller.regenerate() is None
            assert controller.regenerate() is None

    controller.on_regenerated.append(callback)
    latest = controller.regenerate()

    assert len(seen) == 2
    assert latest is seen[-1]
    assert seen[0].released


def test_edit_during_regeneration_uses_newest_params(controller):
    seen = []

    def callback(galaxy):
        seen.append(galaxy.params.branches)
        if len(seen) == 1:
            controller.set("branches", 8)

    controller.on_regenerated.append(callback)
    controller.regenerate()
    assert seen == [5, 8]


def test_load_replaces_everything(controller):
    controller.load(ParameterSet(count=4_000, branches=6, seed=1))
    assert controller.params.count == 4_000
    assert controller.generator.current.count == 4_000
