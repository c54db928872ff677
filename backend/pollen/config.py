"""
Centralized configuration for the pollen collector and API.

Environment is read through the static accessors on ``Config``. The collector
snapshots them once into an immutable ``CollectorConfig`` which is passed
explicitly to the pipeline and every adapter.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError


class Config:
    """Application configuration constants."""

    # === Upstream sources ===
    DEFAULT_FEED_URL = "http://www.dmi.dk/vejr/services/pollen-rss/"
    DEFAULT_SCRAPE_URL = (
        "https://www.astma-allergi.dk/pollengrafer"
        "?p_p_id=graph_WAR_pollenportlet_INSTANCE_mt98szMFusmP"
        "&p_p_lifecycle=0&p_p_state=normal&p_p_mode=view"
        "&p_p_col_id=column-2&p_p_col_pos=2&p_p_col_count=4"
        "&_graph_WAR_pollenportlet_INSTANCE_mt98szMFusmP_action=graph"
    )
    DEFAULT_FEED_CITY = "københavn"

    # Location every prediction and feed count is attached to
    DEFAULT_LOCATION_ID = 0

    # === Ingestion policy ===
    SANITY_WINDOW_HOURS = 24

    # === Environment ===
    @staticmethod
    def log_level() -> str:
        """Log level (DEBUG, INFO, WARNING, ERROR)."""
        return os.getenv("LOG_LEVEL", "INFO").upper()

    @staticmethod
    def database_path() -> str:
        """Path to SQLite database file.
        Default: backend/pollen/data/pollen.db (relative to the package).
        Override with DATABASE_PATH env var for container deployments.
        """
        default = str(Path(__file__).parent / "data" / "pollen.db")
        return os.getenv("DATABASE_PATH", default)

    @staticmethod
    def prediction_api_endpoint() -> Optional[str]:
        """Endpoint of the pollen prediction service."""
        return os.getenv("PREDICTION_API_ENDPOINT")

    @staticmethod
    def prediction_api_key() -> Optional[str]:
        """Bearer token for the prediction service."""
        return os.getenv("PREDICTION_API_KEY")

    @staticmethod
    def historical_api_endpoint() -> Optional[str]:
        """Endpoint of the historical (backfill) prediction service."""
        return os.getenv("HISTORICAL_API_ENDPOINT")

    @staticmethod
    def historical_api_key() -> Optional[str]:
        """Bearer token for the historical prediction service."""
        return os.getenv("HISTORICAL_API_KEY")

    @staticmethod
    def feed_url() -> str:
        return os.getenv("POLLEN_FEED_URL", Config.DEFAULT_FEED_URL)

    @staticmethod
    def scrape_url() -> str:
        return os.getenv("POLLEN_SCRAPE_URL", Config.DEFAULT_SCRAPE_URL)

    @staticmethod
    def feed_city() -> str:
        """Feed item title for the default location."""
        return os.getenv("FEED_CITY", Config.DEFAULT_FEED_CITY)

    @staticmethod
    def count_source() -> str:
        """Where daily counts come from: scrape or feed. Default: scrape."""
        return os.getenv("COUNT_SOURCE", "scrape").lower()

    @staticmethod
    def catch_up_days() -> int:
        """Number of most recent scraped points written per daily run."""
        try:
            return max(1, int(os.getenv("CATCH_UP_DAYS", "1")))
        except ValueError:
            return 1

    @staticmethod
    def request_timeout() -> float:
        """Timeout in seconds for every upstream HTTP call. Default: 20.0."""
        try:
            return float(os.getenv("REQUEST_TIMEOUT", "20.0"))
        except ValueError:
            return 20.0


@dataclass(frozen=True)
class CollectorConfig:
    """Immutable collector settings, loaded once at startup."""
    database_path: str
    prediction_api_endpoint: Optional[str] = None
    prediction_api_key: Optional[str] = None
    historical_api_endpoint: Optional[str] = None
    historical_api_key: Optional[str] = None
    feed_url: str = Config.DEFAULT_FEED_URL
    scrape_url: str = Config.DEFAULT_SCRAPE_URL
    feed_city: str = Config.DEFAULT_FEED_CITY
    # Feed keys per pollen type name, the feed is published in Danish
    feed_pollen_names: dict[str, str] = field(
        default_factory=lambda: {"grass": "græs", "birch": "birk"}
    )
    count_source: str = "scrape"
    catch_up_days: int = 1
    request_timeout: float = 20.0
    default_location_id: int = Config.DEFAULT_LOCATION_ID

    def __post_init__(self):
        if self.count_source not in ("scrape", "feed"):
            raise ConfigurationError(f"COUNT_SOURCE must be scrape or feed, got {self.count_source!r}")
        if self.catch_up_days < 1:
            raise ConfigurationError(f"CATCH_UP_DAYS must be at least 1, got {self.catch_up_days}")

    @classmethod
    def from_env(cls) -> "CollectorConfig":
        """Snapshot the current environment."""
        return cls(
            database_path=Config.database_path(),
            prediction_api_endpoint=Config.prediction_api_endpoint(),
            prediction_api_key=Config.prediction_api_key(),
            historical_api_endpoint=Config.historical_api_endpoint(),
            historical_api_key=Config.historical_api_key(),
            feed_url=Config.feed_url(),
            scrape_url=Config.scrape_url(),
            feed_city=Config.feed_city(),
            count_source=Config.count_source(),
            catch_up_days=Config.catch_up_days(),
            request_timeout=Config.request_timeout(),
        )
