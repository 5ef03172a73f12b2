class FarmError(Exception):
    """Base class for every recoverable farm error. Carries a user-facing message."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidAmount(FarmError):
    """Stake input is malformed, non-finite, non-positive or below the minimum unit."""


class NotReadyError(FarmError):
    """Harvest attempted before the plot matured."""


class NoCorrelationError(FarmError):
    """Stack or harvest attempted on a plot without a ledger farm id."""


class TransactionError(FarmError):
    """Failure reported by the transaction executor. The message is passed through verbatim."""


class ReconciliationStale(FarmError):
    """The ledger could not be read. Local state is kept as last known good."""


class IntentPendingError(FarmError):
    """Another transaction is already awaiting confirmation."""


class PlotUnavailableError(FarmError):
    """The plot index is invalid, occupied, or the chosen token is still locked."""


class WalletNotConnectedError(FarmError):
    """No wallet address is linked to the session."""
