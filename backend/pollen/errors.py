"""
Error taxonomy for pollen ingestion and storage.

Adapter errors are raised, never retried; the pipeline logs them and ends
the affected branch. ConfigurationError is the only fatal one.
"""

from typing import Optional


class PollenIngestionError(Exception):
    """Base class for every ingestion failure."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source

    def __str__(self) -> str:
        message = super().__str__()
        if self.source:
            return f"[{self.source}] {message}"
        return message


class ConfigurationError(PollenIngestionError):
    """Required setting missing or invalid. Cancels the whole run."""


class FetchError(PollenIngestionError):
    """Transport failure: DNS, connect, timeout or non-success status."""


class ParseError(PollenIngestionError):
    """Response arrived but its content is not what we expect."""


class NotFoundError(PollenIngestionError):
    """Requested location or pollen key is absent from the response."""


class ScrapeFormatError(ParseError):
    """Scraped HTML/JS no longer has the shape the extractor understands."""


class UnknownPollenTypeError(ParseError):
    """Upstream enum value we have no PollenType for."""


class SanityCheckFailure(PollenIngestionError):
    """Most recent scraped data point is too old to be trusted as today's."""


class StoreError(PollenIngestionError):
    """Persistence failure."""
