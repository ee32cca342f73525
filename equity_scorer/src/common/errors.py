"""
Exception hierarchy for the scoring pipeline.

Providers translate transport failures into these types at their boundary so
that the selector and the crawler can decide between fallback, backoff and
skip without inspecting error strings.
"""

from typing import Optional


class MarketDataError(Exception):
    """Base class for every failure raised while fetching or scoring a symbol."""

    def __init__(self, message: str, symbol: Optional[str] = None, source: Optional[str] = None):
        super().__init__(message)
        self.symbol = symbol
        self.source = source


class ProviderUnavailableError(MarketDataError):
    """Provider is not configured (missing credentials) or refused the request."""


class RateLimitedError(MarketDataError):
    """Upstream signalled throttling (HTTP 429 / "Too Many Requests")."""


class IncompleteDataError(MarketDataError):
    """Required quote or fundamentals fields are missing for the symbol."""


class TransientIOError(MarketDataError):
    """Network failure, timeout or 5xx response that is worth retrying."""


class PersistenceError(TransientIOError):
    """The score store rejected a read or write."""


class CacheFaultError(Exception):
    """Cache store failure. Always absorbed by the cache-aside layer."""
