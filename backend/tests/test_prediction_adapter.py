"""Tests for the prediction service adapter."""

import json
from datetime import date
from pathlib import Path

import httpx
import pytest

from pollen.errors import ConfigurationError, FetchError, ParseError, UnknownPollenTypeError
from pollen.ingestion.adapters.prediction_adapter import (
    PollenPredictionAdapter,
    parse_historical_row,
    parse_historical_values,
    parse_prediction_row,
    parse_prediction_values,
    to_float32,
)
from pollen.models.enums import PollenType


FIXTURES_DIR = Path(__file__).parent / "fixtures"
PREDICTION_URL = "https://predict.example.test/score"
HISTORY_URL = "https://predict.example.test/history"


def _load_json(name: str):
    with open(FIXTURES_DIR / name) as f:
        return json.load(f)


def _adapter(handler, **kwargs) -> PollenPredictionAdapter:
    settings = {
        "prediction_endpoint": PREDICTION_URL,
        "prediction_api_key": "prediction-key",
        "historical_endpoint": HISTORY_URL,
        "historical_api_key": "history-key",
    }
    settings.update(kwargs)
    return PollenPredictionAdapter(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **settings,
    )


class TestPredictionRows:
    def test_grass_and_birch(self):
        predictions = parse_prediction_values([["grass", "42.7"], ["birch", "3"]])

        assert [p.pollen_type for p in predictions] == [PollenType.GRASS, PollenType.BIRCH]
        assert predictions[0].predicted_pollen_count == to_float32(42.7)
        assert predictions[1].predicted_pollen_count == 3.0

    def test_count_is_single_precision(self):
        prediction = parse_prediction_row(["grass", "0.1"])
        assert prediction.predicted_pollen_count == pytest.approx(0.1, rel=1e-6)
        assert prediction.predicted_pollen_count != 0.1

    def test_numeric_cells_are_accepted(self):
        assert parse_prediction_row(["birch", 7.5]).predicted_pollen_count == 7.5

    def test_unknown_pollen_type(self):
        with pytest.raises(UnknownPollenTypeError):
            parse_prediction_row(["ragweed", "1.0"])

    def test_pollen_type_match_is_exact(self):
        with pytest.raises(UnknownPollenTypeError):
            parse_prediction_row(["Grass", "1.0"])

    def test_malformed_count(self):
        with pytest.raises(ParseError):
            parse_prediction_row(["grass", "lots"])

    def test_short_row(self):
        with pytest.raises(ParseError):
            parse_prediction_row(["grass"])

    def test_one_bad_row_fails_the_table(self):
        with pytest.raises(UnknownPollenTypeError):
            parse_prediction_values([["grass", "1"], ["oak", "2"]])

    def test_row_that_is_not_a_list(self):
        with pytest.raises(ParseError):
            parse_prediction_row(None)


class TestHistoricalRows:
    def test_row(self):
        record = parse_historical_row(["4/21/2018 12:00:00 AM", "12", "10.5"], row_number=3)

        assert record.date == date(2018, 4, 21)
        assert record.pollen_count == 12
        assert record.predicted_pollen_count == 10.5
        assert record.row_number == 3

    def test_bad_rows_are_skipped(self):
        records = parse_historical_values([
            ["4/21/2018 12:00:00 AM", "12", "10.5"],
            ["2018-04-22", "5", "3"],
            ["4/23/2018 12:00:00 AM", "x", "3"],
            ["4/24/2018 12:00:00 AM", "20"],
            ["4/25/2018 12:00:00 AM", "20", "18.25"],
        ])

        assert [r.date for r in records] == [date(2018, 4, 21), date(2018, 4, 25)]
        assert [r.row_number for r in records] == [0, 4]

    def test_null_and_scalar_rows_are_skipped(self):
        records = parse_historical_values([
            ["4/21/2018 12:00:00 AM", "12", "10.5"],
            None,
            "4/22/2018 12:00:00 AM,5,3",
            ["4/23/2018 12:00:00 AM", "20", "18.25"],
        ])

        assert [r.row_number for r in records] == [0, 3]

    def test_row_that_is_not_a_list(self):
        with pytest.raises(TypeError):
            parse_historical_row({"date": "4/21/2018 12:00:00 AM"})


class TestPollenPredictionAdapter:
    @pytest.mark.asyncio
    async def test_fetch_predictions(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_load_json("prediction_response.json"))

        async with _adapter(handler) as adapter:
            predictions = await adapter.fetch_predictions()

        assert seen["url"] == PREDICTION_URL
        assert seen["auth"] == "Bearer prediction-key"
        assert seen["body"] == {"GlobalParameters": {"Output_name": ""}}
        assert {p.pollen_type for p in predictions} == {PollenType.GRASS, PollenType.BIRCH}

    @pytest.mark.asyncio
    async def test_fetch_history(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=_load_json("historical_response.json"))

        async with _adapter(handler) as adapter:
            records = await adapter.fetch_history()

        assert seen["auth"] == "Bearer history-key"
        assert [(r.date, r.pollen_count) for r in records] == [
            (date(2018, 4, 21), 12),
            (date(2018, 4, 23), 20),
        ]

    @pytest.mark.asyncio
    async def test_missing_key_is_configuration_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _adapter(handler, prediction_api_key=None) as adapter:
            with pytest.raises(ConfigurationError):
                await adapter.fetch_predictions()

    @pytest.mark.asyncio
    async def test_missing_historical_endpoint_is_configuration_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _adapter(handler, historical_endpoint="") as adapter:
            with pytest.raises(ConfigurationError):
                await adapter.fetch_history()

    @pytest.mark.asyncio
    async def test_unexpected_envelope(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"Results": {"something_else": {}}})

        async with _adapter(handler) as adapter:
            with pytest.raises(ParseError):
                await adapter.fetch_predictions()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        async with _adapter(handler) as adapter:
            with pytest.raises(ParseError):
                await adapter.fetch_predictions()

    @pytest.mark.asyncio
    async def test_unauthorized_is_fetch_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "unauthorized"})

        async with _adapter(handler) as adapter:
            with pytest.raises(FetchError):
                await adapter.fetch_predictions()

    @pytest.mark.asyncio
    async def test_null_historical_row_does_not_abort_backfill(self):
        payload = _load_json("historical_response.json")
        payload["Results"]["historical_pollen_count"]["value"]["Values"].insert(1, None)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        async with _adapter(handler) as adapter:
            records = await adapter.fetch_history()

        assert [r.date for r in records] == [date(2018, 4, 21), date(2018, 4, 23)]

    @pytest.mark.asyncio
    async def test_null_prediction_row_fails_the_table(self):
        payload = _load_json("prediction_response.json")
        payload["Results"]["predicted_pollen_count"]["value"]["Values"].append(None)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        async with _adapter(handler) as adapter:
            with pytest.raises(ParseError, match="not a list"):
                await adapter.fetch_predictions()
