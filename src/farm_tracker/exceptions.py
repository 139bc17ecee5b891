"""Exception hierarchy for farm-tracker."""


class FarmTrackerError(Exception):
    """Base class for all farm-tracker errors."""


class ConfigurationError(FarmTrackerError):
    """Exception raised when settings are missing or invalid."""


class EncodingError(FarmTrackerError):
    """Exception raised when a contract call cannot be ABI-encoded."""


class TransportError(FarmTrackerError):
    """Exception raised when the RPC endpoint could not be reached or answered with an error."""


class CallReverted(FarmTrackerError):
    """Exception raised when a read call reached the chain but the contract reverted."""


class AggregationError(FarmTrackerError):
    """Exception raised when an aggregator-contract call fails as a whole."""
