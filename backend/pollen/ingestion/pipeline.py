"""
Pollen ingestion pipeline.

Orchestrates the flow: adapters → normalizer → repository (merge layer)

Daily mode runs two independent branches concurrently:
- predictions: tomorrow's forecast, prediction-only upserts
- counts: today's observed count per (pollen type, location), count-only
  upserts, from the scraped graphs (default) or the RSS feed

Full-history mode backfills the historical dataset once with full upserts.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from ..config import Config, CollectorConfig
from ..errors import ConfigurationError, PollenIngestionError, SanityCheckFailure
from ..models.enums import CountSource, IngestionMode, PollenType
from ..services.pollen_repository import Location, PollenRepository, PollenSample
from .adapters.feed_adapter import PollenFeedAdapter
from .adapters.prediction_adapter import PollenPredictionAdapter
from .adapters.scrape_adapter import PollenScrapeAdapter
from .normalizers import SampleNormalizer, utc_today, utc_tomorrow
from .protocols import DataSourceAdapter, IngestionStats

logger = logging.getLogger(__name__)

# Portal codes for the scraped graphs. Locations without a station are
# skipped by the count branch.
SCRAPE_TYPE_IDS = {
    PollenType.GRASS: 28,
    PollenType.BIRCH: 7,
}
SCRAPE_STATION_IDS = {
    0: 48,  # Copenhagen
}


@dataclass
class RunReport:
    """Outcome of one collector run."""
    mode: IngestionMode
    branches: list[IngestionStats] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not any(branch.failed for branch in self.branches)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "succeeded": self.succeeded,
            "branches": [branch.to_dict() for branch in self.branches],
        }


def check_freshness(latest: date, today: date, max_age_hours: int = Config.SANITY_WINDOW_HOURS) -> None:
    """
    Reject a "latest" data point that lags today by more than the window,
    or that is dated after today.

    Raises:
        SanityCheckFailure: upstream looks stale or broken
    """
    if latest > today:
        raise SanityCheckFailure(
            f"Latest data point {latest.isoformat()} is dated after {today.isoformat()}"
        )
    age = today - latest
    if age > timedelta(hours=max_age_hours):
        raise SanityCheckFailure(
            f"Latest data point {latest.isoformat()} is {age.days} days older than {today.isoformat()}"
        )


class IngestionPipeline:
    """
    Main ingestion pipeline for pollen data.

    Coordinates:
    1. Fetching from source adapters (concurrently)
    2. Normalizing into PollenSamples
    3. Merging into the repository

    A failure inside a branch is logged and ends that branch only.
    ConfigurationError is fatal: sibling branches are cancelled and it
    propagates to the caller.
    """

    def __init__(
        self,
        config: CollectorConfig,
        repository: Optional[PollenRepository] = None,
        normalizer: Optional[SampleNormalizer] = None,
        feed_adapter: Optional[PollenFeedAdapter] = None,
        scrape_adapter: Optional[PollenScrapeAdapter] = None,
        prediction_adapter: Optional[PollenPredictionAdapter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize pipeline.

        Args:
            config: Collector settings
            repository: Pollen repository (creates default if None)
            normalizer: Sample normalizer (built from the default location if None)
            feed_adapter: RSS feed adapter (creates default if None)
            scrape_adapter: Graph scraper (creates default if None)
            prediction_adapter: Prediction service client (creates default if None)
            clock: Returns "now"; injectable for tests
        """
        self.config = config
        self.repository = repository or PollenRepository(config.database_path)
        self.normalizer = normalizer
        self.feed_adapter = feed_adapter or PollenFeedAdapter(
            config.feed_url, timeout=config.request_timeout,
        )
        self.scrape_adapter = scrape_adapter or PollenScrapeAdapter(
            config.scrape_url, timeout=config.request_timeout,
        )
        self.prediction_adapter = prediction_adapter or PollenPredictionAdapter(
            prediction_endpoint=config.prediction_api_endpoint,
            prediction_api_key=config.prediction_api_key,
            historical_endpoint=config.historical_api_endpoint,
            historical_api_key=config.historical_api_key,
            timeout=config.request_timeout,
        )
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._default_location: Optional[Location] = None

    async def run(self, mode: IngestionMode = IngestionMode.DAILY) -> RunReport:
        """Run one collector pass in the given mode."""
        report = RunReport(mode=mode)
        if mode == IngestionMode.FULL_HISTORY:
            report.branches.append(await self.run_full_history())
        else:
            report.branches.extend(await self.run_daily())

        level = logging.INFO if report.succeeded else logging.WARNING
        logger.log(level, f"Collector run finished: {report.to_dict()}")
        return report

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def run_full_history(self) -> IngestionStats:
        """Fetch the historical dataset once and full-upsert every row."""
        return await self._run_branch("historical", self._collect_history)

    async def run_daily(self) -> list[IngestionStats]:
        """Run the prediction and count branches concurrently and join both."""
        await self._prepare()

        tasks = [
            asyncio.create_task(self.collect_predictions(), name="predictions"),
            asyncio.create_task(self.collect_counts(), name="counts"),
        ]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

        # Only fatal errors escape a branch
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if task.exception() is not None:
                raise task.exception()

        return [task.result() for task in tasks]

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def collect_predictions(self) -> IngestionStats:
        """Tomorrow's predictions as prediction-only upserts."""
        return await self._run_branch("predictions", self._collect_predictions)

    async def collect_counts(self) -> IngestionStats:
        """Today's observed counts as count-only upserts."""
        if self.config.count_source == CountSource.FEED.value:
            return await self._run_branch("feed_counts", self._collect_feed_counts)
        return await self._run_branch("scraped_counts", self._collect_scraped_counts)

    async def _run_branch(self, name: str, collect) -> IngestionStats:
        stats = IngestionStats(source_name=name)
        try:
            await self._prepare()
            await collect(stats)
        except ConfigurationError:
            raise
        except PollenIngestionError as e:
            logger.error(f"{name}: branch aborted: {e}")
            stats.errors.append(str(e))
        except Exception as e:
            logger.exception(f"{name}: branch crashed")
            stats.errors.append(f"{e.__class__.__name__}: {e}")
        logger.info(f"{name}: {stats.to_dict()}")
        return stats

    async def _collect_history(self, stats: IngestionStats) -> None:
        records = await self.prediction_adapter.fetch_history()
        stats.records_read = len(records)
        logger.info(f"Found {len(records)} historical pollen samples")

        samples = [self.normalizer.from_historical_record(record) for record in records]
        stats.records_written = await asyncio.get_event_loop().run_in_executor(
            None, self.repository.bulk_upsert_pollen_samples, samples
        )

    async def _collect_predictions(self, stats: IngestionStats) -> None:
        predictions = await self.prediction_adapter.fetch_predictions()
        stats.records_read = len(predictions)
        tomorrow = utc_tomorrow(self.clock())

        for prediction in predictions:
            sample = self.normalizer.from_prediction(prediction, tomorrow)
            logger.debug(f"Prediction sample: {sample}")
            await self._store(self.repository.upsert_predicted_pollen_count, sample)
            stats.records_written += 1

    async def _collect_feed_counts(self, stats: IngestionStats) -> None:
        names = {
            pollen_type: self.config.feed_pollen_names[pollen_type.name.lower()]
            for pollen_type in PollenType
            if pollen_type.name.lower() in self.config.feed_pollen_names
        }
        counts = await self.feed_adapter.fetch_counts(self.config.feed_city, names.values())
        stats.records_read = len(counts)
        today = utc_today(self.clock())

        for pollen_type, name in names.items():
            sample = self.normalizer.from_feed_count(counts[name], pollen_type, today)
            logger.debug(f"Feed sample: {sample}")
            await self._store(self.repository.upsert_pollen_count, sample)
            stats.records_written += 1

    async def _collect_scraped_counts(self, stats: IngestionStats) -> None:
        locations = await asyncio.get_event_loop().run_in_executor(
            None, self.repository.list_locations
        )
        pairs = []
        for location in locations:
            if location.id not in SCRAPE_STATION_IDS:
                logger.debug(f"No scrape station for location {location.id} ({location.city})")
                continue
            for pollen_type in SCRAPE_TYPE_IDS:
                pairs.append((pollen_type, location))

        today = utc_today(self.clock())
        results = await asyncio.gather(*(
            self._collect_pair(pollen_type, location, today, stats)
            for pollen_type, location in pairs
        ), return_exceptions=True)
        # Every pair has settled by now; surface the first escaped error
        for result in results:
            if isinstance(result, BaseException):
                raise result

        if pairs and stats.records_written == 0:
            logger.warning("No scraped counts were written for any station")

    async def _collect_pair(
        self,
        pollen_type: PollenType,
        location: Location,
        today: date,
        stats: IngestionStats,
    ) -> None:
        """Fetch, sanity-check and merge one (pollen type, location) pair."""
        label = f"{pollen_type.name.lower()}@{location.id}"
        try:
            series = await self.scrape_adapter.fetch_series(
                SCRAPE_STATION_IDS[location.id], SCRAPE_TYPE_IDS[pollen_type],
            )
            stats.records_read += len(series)
            if not series:
                raise SanityCheckFailure("Scraped series is empty")

            window = series[-self.config.catch_up_days:]
            latest = window[-1]
            check_freshness(latest.date, today)

            samples = [
                self.normalizer.from_historical_count(point, pollen_type, location)
                for point in window[:-1]
                if point.date < today
            ]
            samples.append(
                self.normalizer.from_historical_count(latest, pollen_type, location, day=today)
            )
            for sample in samples:
                await self._store(self.repository.upsert_pollen_count, sample)
                stats.records_written += 1
        except ConfigurationError:
            raise
        except PollenIngestionError as e:
            logger.error(f"{label}: skipping pair: {e}")
            stats.errors.append(f"{label}: {e}")
            stats.records_skipped += 1
            return

        logger.info(f"{label}: wrote {len(samples)} counts, latest {latest.pollen_count} from {latest.date}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _prepare(self) -> None:
        """Resolve the default location once and build the normalizer."""
        if self._default_location is not None:
            return

        location = await asyncio.get_event_loop().run_in_executor(
            None, self.repository.get_location, self.config.default_location_id
        )
        if location is None:
            raise ConfigurationError(
                f"Default location {self.config.default_location_id} is not in the store"
            )
        self._default_location = location
        if self.normalizer is None:
            self.normalizer = SampleNormalizer(default_location=location)

    async def _store(self, upsert: Callable[[PollenSample], None], sample: PollenSample) -> None:
        """Run a blocking repository upsert off the event loop."""
        await asyncio.get_event_loop().run_in_executor(None, functools.partial(upsert, sample))

    async def aclose(self) -> None:
        """Close adapter HTTP clients."""
        adapters: list[DataSourceAdapter] = [
            self.feed_adapter, self.scrape_adapter, self.prediction_adapter,
        ]
        await asyncio.gather(*(adapter.aclose() for adapter in adapters))
        logger.debug(f"Closed adapters: {', '.join(a.get_source_name() for a in adapters)}")
