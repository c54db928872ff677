"""
Pollen RSS feed adapter.

Each feed item is a city; its description is a tiny key/value language::

    Græs: 12; Birk: -; Bynke: 0

Fields are split on ``;``, key and value on ``:``. A ``-`` value means the
station has not measured anything and is read as 0.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Iterable, Optional

import httpx

from ...errors import NotFoundError, ParseError
from .base import BaseAdapter

logger = logging.getLogger(__name__)

NO_MEASUREMENT = "-"


def parse_feed_items(document: bytes) -> dict[str, str]:
    """Map lower-cased item title -> description; the first item with a title wins."""
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise ParseError(f"Feed is not well-formed XML: {e}", source="pollen_feed") from e

    items = {}
    for item in root.iter("item"):
        title = (item.findtext("title") or "").strip().lower()
        if title and title not in items:
            items[title] = item.findtext("description") or ""
    return items


def parse_description(description: str) -> dict[str, str]:
    """Split a description into its key/value fields (lower-cased, no whitespace)."""
    cleaned = description.lower()
    for char in ("\n", "\r", " ", "\t"):
        cleaned = cleaned.replace(char, "")

    fields = {}
    for pollen_description in cleaned.split(";"):
        if not pollen_description:
            continue
        key, sep, value = pollen_description.partition(":")
        if sep:
            fields[key] = value
    return fields


def parse_count(value: str) -> int:
    """Parse a field value, ``-`` meaning no measurement (0)."""
    if value == NO_MEASUREMENT:
        return 0
    try:
        return int(value)
    except ValueError as e:
        raise ParseError(f"Malformed pollen count: {value!r}", source="pollen_feed") from e


def extract_counts(
    items: dict[str, str],
    city: str,
    pollen_names: Iterable[str],
) -> dict[str, int]:
    """Counts for several pollen names from one city's item."""
    description = items.get(city.lower())
    if description is None:
        raise NotFoundError(f"No feed entry for {city}", source="pollen_feed")

    fields = parse_description(description)
    counts = {}
    for name in pollen_names:
        value = fields.get(name.lower())
        if value is None:
            raise NotFoundError(f"Could not find pollen value for {name} in {city}", source="pollen_feed")
        counts[name] = parse_count(value)
    return counts


class PollenFeedAdapter(BaseAdapter):
    """Reads today's observed counts from the pollen RSS feed."""

    source_name = "pollen_feed"

    def __init__(
        self,
        feed_url: str,
        timeout: float = 20.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self.feed_url = feed_url

    async def fetch_items(self) -> dict[str, str]:
        response = await self._request("GET", self.feed_url)
        items = parse_feed_items(response.content)
        logger.debug(f"Feed returned {len(items)} items")
        return items

    async def fetch_count(self, city: str, pollen_name: str) -> int:
        """Today's count for one city and pollen name."""
        counts = await self.fetch_counts(city, [pollen_name])
        return counts[pollen_name]

    async def fetch_counts(self, city: str, pollen_names: Iterable[str]) -> dict[str, int]:
        """Today's counts for several pollen names, from one feed download."""
        items = await self.fetch_items()
        return extract_counts(items, city, list(pollen_names))
