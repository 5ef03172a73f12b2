from typing import Iterable, List

from .farm_state_helper import PlotStateStore

STAGE_THRESHOLDS = ((0.33, 1), (0.66, 2), (1.0, 3))
MATURE_STAGE = 4


class GrowthScheduler:
    """
    Derives growth stage and readiness from wall-clock time. Only ever writes the two derived
    fields of a plot; stake, timers and farm ids are left alone.
    """

    @staticmethod
    def compute_progress(now: int, plant_time: int, harvest_time: int) -> float:
        total = harvest_time - plant_time
        if total <= 0:
            return 1.0
        return min(max((now - plant_time) / total, 0.0), 1.0)

    @staticmethod
    def stage_for_progress(progress: float) -> int:
        for threshold, stage in STAGE_THRESHOLDS:
            if progress < threshold:
                return stage
        return MATURE_STAGE

    def tick(self, store: PlotStateStore, now: int, frozen: Iterable[int] = ()) -> List[int]:
        """
        Recomputes every growing plot not in `frozen`.
        Returns the indices of plots that became ready on this tick.
        """
        frozen = set(frozen)
        newly_ready = []

        for view in store.plot_views():
            if not view.planted or view.harvested or view.index in frozen:
                continue

            progress = self.compute_progress(now, view.plant_time, view.harvest_time)
            # Stage never moves backwards within a growth cycle.
            stage = max(view.growth_stage, self.stage_for_progress(progress))
            ready = stage == MATURE_STAGE

            if stage != view.growth_stage or ready != view.ready:
                store.set_derived(view.index, stage, ready)
                if ready and not view.ready:
                    newly_ready.append(view.index)

        return newly_ready
