"""
Sample normalization for pollen ingestion.

Converts every adapter's transient result into the canonical PollenSample:
date truncated to the UTC day, pollen type and location attached from the
fetch context, and only the fields the source actually carries populated.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from ..models.enums import PollenType
from ..services.pollen_repository import Location, PollenSample, timestamp_to_date
from .protocols import HistoricalPollenCount, HistoricalPollenRecord, PollenPrediction


def utc_today(now: Optional[datetime] = None) -> date:
    """Today's UTC calendar day."""
    return timestamp_to_date(now or datetime.now(timezone.utc))


def utc_tomorrow(now: Optional[datetime] = None) -> date:
    return utc_today(now) + timedelta(days=1)


class SampleNormalizer:
    """
    Maps adapter results to PollenSamples.

    Count-only samples leave predicted_pollen_count as None and vice versa,
    so the merge layer knows which upsert to use.
    """

    def __init__(self, default_location: Location):
        """
        Args:
            default_location: Location attached when a source has none
        """
        self.default_location = default_location

    def from_feed_count(
        self,
        pollen_count: int,
        pollen_type: PollenType,
        day: Union[date, datetime],
        location: Optional[Location] = None,
    ) -> PollenSample:
        """Observed count read from the RSS feed."""
        return PollenSample(
            date=timestamp_to_date(day),
            pollen_type=pollen_type,
            location=location or self.default_location,
            pollen_count=int(pollen_count),
        )

    def from_historical_count(
        self,
        point: HistoricalPollenCount,
        pollen_type: PollenType,
        location: Location,
        day: Optional[Union[date, datetime]] = None,
    ) -> PollenSample:
        """
        Observed count from a scraped series.

        ``day`` overrides the point's own date (the latest point is filed
        under today).
        """
        return PollenSample(
            date=timestamp_to_date(day if day is not None else point.date),
            pollen_type=pollen_type,
            location=location,
            pollen_count=point.pollen_count,
        )

    def from_prediction(
        self,
        prediction: PollenPrediction,
        day: Union[date, datetime],
        location: Optional[Location] = None,
    ) -> PollenSample:
        """Predicted count for ``day`` (normally tomorrow)."""
        return PollenSample(
            date=timestamp_to_date(day),
            pollen_type=prediction.pollen_type,
            location=location or self.default_location,
            predicted_pollen_count=prediction.predicted_pollen_count,
        )

    def from_historical_record(
        self,
        record: HistoricalPollenRecord,
        pollen_type: PollenType = PollenType.GRASS,
        location: Optional[Location] = None,
    ) -> PollenSample:
        """Backfill row carrying both counts."""
        return PollenSample(
            date=timestamp_to_date(record.date),
            pollen_type=pollen_type,
            location=location or self.default_location,
            pollen_count=record.pollen_count,
            predicted_pollen_count=record.predicted_pollen_count,
        )
