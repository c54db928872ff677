"""
Historical pollen graph scraper.

The pollen portal renders one chart per (station, pollen type) with a
series per year. This contract is reverse-engineered and carries no
compatibility promise, so callers treat every failure as non-fatal.
"""

import logging
from typing import Optional

import httpx

from ...errors import ScrapeFormatError
from ..extraction import decode_series, parse_encoded_date
from ..protocols import HistoricalPollenCount
from .base import BaseAdapter

logger = logging.getLogger(__name__)

# The portal rejects requests that do not look like they came from its page
PORTAL_HEADERS = {
    "Origin": "https://www.astma-allergi.dk",
    "Referer": "https://www.astma-allergi.dk/pollengrafer",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/66.0.3359.181 Safari/537.36"
    ),
}


def parse_pollen_graph(html: str) -> list[HistoricalPollenCount]:
    """
    Turn a pollen graph page into dated counts, oldest first.

    Series whose name is not a year are skipped, as are points with a
    missing count or an unreadable date.
    """
    results: list[HistoricalPollenCount] = []

    for series in decode_series(html):
        try:
            year = int(series.name)
        except ValueError:
            logger.warning(f"Skipping series with non-year name {series.name!r}")
            continue

        for point in series.data:
            if len(point) < 2 or point[1] is None:
                continue
            try:
                day = parse_encoded_date(str(point[0]), year)
                count = int(point[1])
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping data point {point!r} in {year}: {e}")
                continue
            results.append(HistoricalPollenCount(date=day, pollen_count=count))

    results.sort(key=lambda r: r.date)
    return results


class PollenScrapeAdapter(BaseAdapter):
    """Fetches and parses the historical series for one station and type."""

    source_name = "pollen_scrape"

    def __init__(
        self,
        scrape_url: str,
        timeout: float = 20.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self.scrape_url = scrape_url

    async def fetch_series(self, station_id: int, type_id: int) -> list[HistoricalPollenCount]:
        """
        Args:
            station_id: Portal station code
            type_id: Portal pollen type code

        Raises:
            FetchError: transport failure
            ScrapeFormatError: page no longer parseable
        """
        response = await self._request(
            "POST",
            self.scrape_url,
            data={"station_id": str(station_id), "type_id": str(type_id)},
            headers=PORTAL_HEADERS,
        )

        try:
            results = parse_pollen_graph(response.text)
        except ScrapeFormatError as e:
            e.source = self.source_name
            raise

        logger.info(
            f"Scraped {len(results)} points for station={station_id} type={type_id}"
        )
        return results
