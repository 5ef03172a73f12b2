"""
tests/test_growth.py: Clock-driven growth stages and readiness.
"""

from decimal import Decimal

from stakefarm.helpers import GrowthScheduler

from conftest import plant_growing

T0 = 1_000_000


def test_stage_thresholds():
    assert GrowthScheduler.stage_for_progress(0.0) == 1
    assert GrowthScheduler.stage_for_progress(0.329) == 1
    assert GrowthScheduler.stage_for_progress(0.33) == 2
    assert GrowthScheduler.stage_for_progress(0.659) == 2
    assert GrowthScheduler.stage_for_progress(0.66) == 3
    assert GrowthScheduler.stage_for_progress(0.999) == 3
    assert GrowthScheduler.stage_for_progress(1.0) == 4


def test_progress_is_clamped():
    assert GrowthScheduler.compute_progress(T0 - 5000, T0, T0 + 30000) == 0.0
    assert GrowthScheduler.compute_progress(T0 + 60000, T0, T0 + 30000) == 1.0
    assert GrowthScheduler.compute_progress(T0 + 15000, T0, T0 + 30000) == 0.5


def test_thirty_second_plant_walks_through_stages(store):
    plant_growing(store, 0, now=T0, growth_ms=30000)
    scheduler = GrowthScheduler()

    scheduler.tick(store, T0 + 9000)
    assert store.get_plot_view(0).growth_stage == 1

    # 10000/30000 is just past the 0.33 boundary
    scheduler.tick(store, T0 + 10000)
    assert store.get_plot_view(0).growth_stage == 2

    scheduler.tick(store, T0 + 20000)
    assert store.get_plot_view(0).growth_stage == 3
    assert not store.get_plot_view(0).ready

    newly_ready = scheduler.tick(store, T0 + 30001)
    view = store.get_plot_view(0)
    assert view.growth_stage == 4
    assert view.ready
    assert newly_ready == [0]


def test_ready_reported_only_once(store):
    plant_growing(store, 0, now=T0, growth_ms=1000)
    scheduler = GrowthScheduler()

    assert scheduler.tick(store, T0 + 2000) == [0]
    assert scheduler.tick(store, T0 + 3000) == []


def test_degenerate_timer_is_immediately_ready(store):
    plant_growing(store, 0, now=T0, growth_ms=0)
    GrowthScheduler().tick(store, T0)

    view = store.get_plot_view(0)
    assert view.ready
    assert view.growth_stage == 4


def test_stage_never_decreases_within_a_cycle(store):
    plant_growing(store, 0, now=T0, growth_ms=30000)
    scheduler = GrowthScheduler()

    scheduler.tick(store, T0 + 25000)
    assert store.get_plot_view(0).growth_stage == 3

    # A clock jumping backwards must not regress the plot
    scheduler.tick(store, T0 + 1000)
    assert store.get_plot_view(0).growth_stage == 3


def test_tick_only_touches_derived_fields(store):
    plant_growing(store, 0, amount=Decimal("2.5"), now=T0, growth_ms=30000, farm_id=7)
    before = store.get_plot_view(0)

    GrowthScheduler().tick(store, T0 + 31000)
    after = store.get_plot_view(0)

    assert after.stake_amount == before.stake_amount
    assert after.external_farm_id == 7
    assert after.plant_time == before.plant_time
    assert after.harvest_time == before.harvest_time


def test_frozen_and_empty_plots_are_skipped(store):
    plant_growing(store, 0, now=T0, growth_ms=1000)
    plant_growing(store, 1, now=T0, growth_ms=1000)

    newly_ready = GrowthScheduler().tick(store, T0 + 5000, frozen={0})

    assert newly_ready == [1]
    assert not store.get_plot_view(0).ready
    assert store.get_plot_view(2).growth_stage == 0


def test_ready_implies_full_clock_progress(store):
    scheduler = GrowthScheduler()
    for i, growth_ms in enumerate([1000, 5000, 30000, 90000]):
        plant_growing(store, i, now=T0, growth_ms=growth_ms)

    for now in range(T0, T0 + 100000, 2500):
        scheduler.tick(store, now)
        for view in store.plot_views():
            if view.ready:
                assert view.planted and view.growth_stage == 4
                assert view.progress(now) >= 1.0
