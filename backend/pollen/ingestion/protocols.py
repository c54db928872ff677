"""
Protocols and data classes for pollen ingestion.

Adapters return these small transient results; the normalizer turns them
into PollenSamples and they are discarded.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Protocol

from ..models.enums import PollenType


@dataclass
class HistoricalPollenCount:
    """
    One scraped (date, count) point.

    Pollen type and location are not part of the page; the caller attaches
    them from the fetch context.
    """
    date: date
    pollen_count: int


@dataclass
class PollenPrediction:
    """Tomorrow's predicted count for one pollen type."""
    pollen_type: PollenType
    predicted_pollen_count: float


@dataclass
class HistoricalPollenRecord:
    """One row of the bulk historical dataset."""
    date: date
    pollen_count: int
    predicted_pollen_count: float
    row_number: Optional[int] = None


class DataSourceAdapter(Protocol):
    """
    Protocol for upstream source adapters.

    Each adapter owns one HTTP client and raises from the pollen.errors
    taxonomy when the upstream misbehaves.
    """

    def get_source_name(self) -> str:
        """
        Get the unique identifier for this source.

        Returns:
            Source name (e.g., 'pollen_feed', 'pollen_scrape')
        """
        ...

    async def aclose(self) -> None:
        """Release the underlying HTTP client."""
        ...


@dataclass
class IngestionStats:
    """Statistics from an ingestion branch."""
    source_name: str
    records_read: int = 0
    records_written: int = 0
    records_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "source_name": self.source_name,
            "records_read": self.records_read,
            "records_written": self.records_written,
            "records_skipped": self.records_skipped,
            "error_count": len(self.errors),
        }
