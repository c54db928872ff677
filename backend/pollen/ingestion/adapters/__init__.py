"""
Upstream source adapters for pollen ingestion.

Each adapter fetches one upstream and returns small typed results.
"""

from .feed_adapter import PollenFeedAdapter
from .prediction_adapter import PollenPredictionAdapter
from .scrape_adapter import PollenScrapeAdapter

__all__ = ["PollenFeedAdapter", "PollenPredictionAdapter", "PollenScrapeAdapter"]
