#Description: Error taxonomy for the ingestion engine. Nothing here escapes a scheduled job.


class SignalEngineError(Exception):
    """Base class for every failure the engine knows how to classify."""


class UpstreamAuthError(SignalEngineError):
    """Token issuance failed. Fatal for the current price-update tick only."""


class UpstreamDataError(SignalEngineError):
    """Quote provider answered with something we cannot read. Skip the symbol."""


class EmptyMarketData(SignalEngineError):
    """The feed has no rows for the session. Expected on holidays, not a failure."""


class PersistenceError(SignalEngineError):
    """A write against the signal store failed."""


class StaleSignalRace(SignalEngineError):
    """Conditional update matched no row: another writer already closed the signal."""

    def __init__(self, signal_id: str):
        super().__init__(f"Signal {signal_id} is no longer open")
        self.signal_id = signal_id
