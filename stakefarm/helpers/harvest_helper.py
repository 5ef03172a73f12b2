from ..errors import NoCorrelationError, NotReadyError
from ..models import PlotView, TransactionIntent
from .chain_helper import ContractCalls


class HarvestAction:
    """Validates a harvest and prepares its intent. Plot state only changes on confirmation."""

    def __init__(self, calls: ContractCalls):
        self.calls = calls

    def build(self, view: PlotView) -> TransactionIntent:
        if not view.ready:
            raise NotReadyError(f"Plot {view.index + 1}: Not ready for harvest yet.")
        if view.external_farm_id is None:
            raise NoCorrelationError(
                f"Plot {view.index + 1}: Not yet linked to a ledger farm. Wait for the next sync.")

        return TransactionIntent(
            kind="harvest",
            plot_index=view.index,
            calls=(self.calls.harvest(view.external_farm_id),),
            farm_id=view.external_farm_id,
        )
