"""Tests for the pollen RSS feed adapter."""

from pathlib import Path

import httpx
import pytest

from pollen.errors import FetchError, NotFoundError, ParseError
from pollen.ingestion.adapters.feed_adapter import (
    PollenFeedAdapter,
    extract_counts,
    parse_count,
    parse_description,
    parse_feed_items,
)


FIXTURES_DIR = Path(__file__).parent / "fixtures"
FEED_URL = "https://feed.example.test/pollen-rss"


def _feed_bytes() -> bytes:
    return (FIXTURES_DIR / "feed.xml").read_bytes()


def _rss(items: str) -> bytes:
    return f"<rss version='2.0'><channel>{items}</channel></rss>".encode()


def _adapter(body: bytes, status_code: int = 200) -> PollenFeedAdapter:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=body, headers={"Content-Type": "application/rss+xml"})

    return PollenFeedAdapter(FEED_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestParsing:
    def test_items_keyed_by_lower_case_title(self):
        items = parse_feed_items(_feed_bytes())
        assert set(items) == {"københavn", "viborg"}

    def test_first_item_with_a_title_wins(self):
        items = parse_feed_items(_rss(
            "<item><title>Aarhus</title><description>Græs: 4;</description></item>"
            "<item><title>aarhus</title><description>Græs: 9;</description></item>"
        ))
        assert items == {"aarhus": "Græs: 4;"}

    def test_malformed_xml(self):
        with pytest.raises(ParseError):
            parse_feed_items(b"<rss><channel><item>")

    def test_description_is_normalized(self):
        fields = parse_description(" Græs: 12;\n Birk : - ;\tBynke:0; ")
        assert fields == {"græs": "12", "birk": "-", "bynke": "0"}

    def test_fields_without_separator_are_ignored(self):
        assert parse_description("grass:1;garbage;birch:2") == {"grass": "1", "birch": "2"}

    def test_dash_means_zero(self):
        assert parse_count("-") == 0

    def test_plain_count(self):
        assert parse_count("12") == 12

    def test_malformed_count(self):
        with pytest.raises(ParseError):
            parse_count("x")


class TestExtractCounts:
    def test_counts_for_city(self):
        items = {"copenhagen": "grass:12;birch:-"}
        assert extract_counts(items, "copenhagen", ["grass", "birch"]) == {"grass": 12, "birch": 0}

    def test_city_lookup_is_case_insensitive(self):
        items = {"copenhagen": "grass:12"}
        assert extract_counts(items, "Copenhagen", ["grass"]) == {"grass": 12}

    def test_missing_city(self):
        with pytest.raises(NotFoundError):
            extract_counts({"viborg": "grass:1"}, "copenhagen", ["grass"])

    def test_missing_pollen_name(self):
        with pytest.raises(NotFoundError) as exc_info:
            extract_counts({"copenhagen": "grass:12"}, "copenhagen", ["birch"])
        assert "birch" in str(exc_info.value)

    def test_malformed_value(self):
        with pytest.raises(ParseError):
            extract_counts({"copenhagen": "grass:many"}, "copenhagen", ["grass"])


class TestPollenFeedAdapter:
    @pytest.mark.asyncio
    async def test_fetch_count_from_fixture(self):
        async with _adapter(_feed_bytes()) as adapter:
            assert await adapter.fetch_count("københavn", "græs") == 12

    @pytest.mark.asyncio
    async def test_fetch_counts_single_download(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url)
            return httpx.Response(200, content=_feed_bytes())

        adapter = PollenFeedAdapter(FEED_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        async with adapter:
            counts = await adapter.fetch_counts("københavn", ["græs", "birk"])

        assert counts == {"græs": 12, "birk": 0}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_unknown_city(self):
        body = _rss("<item><title>Viborg</title><description>grass:4</description></item>")
        async with _adapter(body) as adapter:
            with pytest.raises(NotFoundError):
                await adapter.fetch_count("copenhagen", "grass")

    @pytest.mark.asyncio
    async def test_http_error(self):
        async with _adapter(b"", status_code=503) as adapter:
            with pytest.raises(FetchError) as exc_info:
                await adapter.fetch_count("copenhagen", "grass")
        assert exc_info.value.source == "pollen_feed"
