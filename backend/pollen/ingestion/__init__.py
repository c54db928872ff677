"""
Pollen data ingestion package.

Provides a pipeline for ingesting pollen counts and predictions from
several upstream sources into the SQLite store with column-preserving
upserts.
"""

from .protocols import (
    DataSourceAdapter,
    HistoricalPollenCount,
    HistoricalPollenRecord,
    IngestionStats,
    PollenPrediction,
)
from .normalizers import SampleNormalizer
from .pipeline import IngestionPipeline, RunReport

__all__ = [
    "DataSourceAdapter",
    "HistoricalPollenCount",
    "HistoricalPollenRecord",
    "IngestionStats",
    "PollenPrediction",
    "SampleNormalizer",
    "IngestionPipeline",
    "RunReport",
]
