"""
tests/test_harvest.py: Harvest preconditions and intents.
"""

import pytest

from stakefarm.errors import NoCorrelationError, NotReadyError
from stakefarm.helpers import HarvestAction

from conftest import plant_growing


@pytest.fixture
def harvest_action(calls):
    return HarvestAction(calls)


def test_harvest_before_maturity_is_a_no_op(harvest_action, store):
    plant_growing(store, 0, farm_id=5)
    before = store.get_plot_view(0)

    with pytest.raises(NotReadyError):
        harvest_action.build(before)

    assert store.get_plot_view(0) == before


def test_harvest_on_empty_plot_is_not_ready(harvest_action, store):
    with pytest.raises(NotReadyError):
        harvest_action.build(store.get_plot_view(3))


def test_harvest_needs_a_farm_id(harvest_action, store):
    plant_growing(store, 0)
    store.set_derived(0, 4, True)

    with pytest.raises(NoCorrelationError):
        harvest_action.build(store.get_plot_view(0))


def test_harvest_intent_targets_the_farm(harvest_action, store):
    plant_growing(store, 2, farm_id=11)
    store.set_derived(2, 4, True)
    before = store.get_plot_view(2)

    intent = harvest_action.build(before)

    assert intent.kind == "harvest"
    assert intent.farm_id == 11
    assert intent.plot_index == 2
    assert intent.calls[0].function == "harvest"
    assert intent.calls[0].args == (11,)
    assert intent.calls[0].value == 0
    assert store.get_plot_view(2) == before
