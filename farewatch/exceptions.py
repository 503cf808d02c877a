"""
Error taxonomy for the price-monitoring engine.

InvalidQueryFormat fails fast before any browser work. ExtractionError
subclasses are the signals an extractor raises for one page attempt; the
orchestrator decides which of them are retried. InfrastructureFault means the
browser itself could not be started and the host process must restart.
"""


class FareWatchError(Exception):
    """Base class for all FareWatch errors."""


class InvalidQueryFormat(FareWatchError, ValueError):
    """The search URL is not a usable Google Flights search URL."""


class ExtractionError(FareWatchError):
    """A single extraction attempt did not produce quotes."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class TransientExtractionFault(ExtractionError):
    """Timeout, missing DOM content or similar; worth another variant."""


class NoResultsFound(ExtractionError):
    """The page loaded but reports no offers for this search."""


class StaleDateError(ExtractionError):
    """The page reports that the requested date is already in the past."""


class InfrastructureFault(FareWatchError):
    """The browser process failed to launch."""


class MonitoringSetupError(FareWatchError):
    """A new monitor could not be created from the given input."""
