"""
Pollen prediction service adapter.

The service is a hosted ML endpoint that answers with a columnar table::

    {"Results": {"predicted_pollen_count": {"type": "table", "value": {
        "ColumnNames": ["pollen_type", "predicted_pollen_count"],
        "ColumnTypes": ["String", "Double"],
        "Values": [["grass", "42.5"], ["birch", "3"]]}}}}

The historical variant uses the ``historical_pollen_count`` output with rows
of (date, count, predicted count) and is only used for bulk backfill.
"""

import logging
import struct
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from ...errors import ConfigurationError, ParseError, UnknownPollenTypeError
from ...models.enums import PollenType
from ..protocols import HistoricalPollenRecord, PollenPrediction
from .base import BaseAdapter

logger = logging.getLogger(__name__)

# e.g. "4/21/2018 12:00:00 AM"
HISTORICAL_DATE_FORMAT = "%m/%d/%Y %I:%M:%S %p"


class ResultTable(BaseModel):
    column_names: list[str] = Field(default_factory=list, alias="ColumnNames")
    column_types: list[str] = Field(default_factory=list, alias="ColumnTypes")
    # Rows are validated individually by the parse_*_row helpers
    values: list[Any] = Field(alias="Values")


class ResultOutput(BaseModel):
    type: Optional[str] = None
    value: ResultTable


class PredictionResults(BaseModel):
    predicted_pollen_count: ResultOutput


class HistoricalResults(BaseModel):
    historical_pollen_count: ResultOutput


class PredictionResponse(BaseModel):
    results: PredictionResults = Field(alias="Results")


class HistoricalResponse(BaseModel):
    results: HistoricalResults = Field(alias="Results")


def to_float32(value: float) -> float:
    """Round to single precision, the width the model publishes."""
    return struct.unpack("f", struct.pack("f", value))[0]


def parse_prediction_row(row: Any) -> PollenPrediction:
    """
    Parse one (pollen type, predicted count) row.

    Raises:
        UnknownPollenTypeError: type is not exactly "birch" or "grass"
        ParseError: row not a list, too short, or count not a number
    """
    if not isinstance(row, list):
        raise ParseError(f"Prediction row is not a list: {row!r}", source="pollen_prediction")
    if len(row) < 2:
        raise ParseError(f"Prediction row too short: {row!r}", source="pollen_prediction")

    try:
        pollen_type = PollenType.from_name(str(row[0]))
    except ValueError as e:
        raise UnknownPollenTypeError(str(e), source="pollen_prediction") from e

    try:
        predicted = to_float32(float(str(row[1])))
    except (ValueError, OverflowError) as e:
        raise ParseError(f"Malformed predicted count {row[1]!r}", source="pollen_prediction") from e

    return PollenPrediction(pollen_type=pollen_type, predicted_pollen_count=predicted)


def parse_prediction_values(values: list[Any]) -> list[PollenPrediction]:
    """All rows must parse; the first bad row fails the whole table."""
    return [parse_prediction_row(row) for row in values]


def parse_historical_row(row: Any, row_number: Optional[int] = None) -> HistoricalPollenRecord:
    """
    Parse one (date, count, predicted count) row.

    Raises:
        TypeError: row is not a list
        ValueError: any column malformed
    """
    if not isinstance(row, list):
        raise TypeError(f"expected a list row, got {type(row).__name__}")
    if len(row) < 3:
        raise ValueError(f"expected 3 columns, got {len(row)}")
    timestamp = datetime.strptime(str(row[0]).strip(), HISTORICAL_DATE_FORMAT)
    pollen_count = int(str(row[1]))
    predicted = to_float32(float(str(row[2])))
    return HistoricalPollenRecord(
        date=timestamp.date(),
        pollen_count=pollen_count,
        predicted_pollen_count=predicted,
        row_number=row_number,
    )


def parse_historical_values(values: list[Any]) -> list[HistoricalPollenRecord]:
    """Parse every row, logging and skipping the malformed ones."""
    records = []
    for row_number, row in enumerate(values):
        try:
            records.append(parse_historical_row(row, row_number))
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Skipping historical row {row_number} {row!r}: {e}")
    return records


class PollenPredictionAdapter(BaseAdapter):
    """Client for the prediction service and its historical variant."""

    source_name = "pollen_prediction"

    def __init__(
        self,
        prediction_endpoint: Optional[str],
        prediction_api_key: Optional[str],
        historical_endpoint: Optional[str] = None,
        historical_api_key: Optional[str] = None,
        timeout: float = 20.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self.prediction_endpoint = prediction_endpoint
        self.prediction_api_key = prediction_api_key
        self.historical_endpoint = historical_endpoint
        self.historical_api_key = historical_api_key

    async def fetch_predictions(self) -> list[PollenPrediction]:
        """
        Tomorrow's predicted count per pollen type.

        Raises:
            ConfigurationError: endpoint or key not configured
            FetchError: transport failure
            ParseError: envelope or row malformed
        """
        payload = await self._post_json(
            self.prediction_endpoint,
            self.prediction_api_key,
            {"GlobalParameters": {"Output_name": ""}},
            setting="PREDICTION_API",
        )
        try:
            envelope = PredictionResponse.model_validate(payload)
        except ValidationError as e:
            raise ParseError(f"Unexpected prediction envelope: {e.error_count()} errors", source=self.source_name) from e

        predictions = parse_prediction_values(envelope.results.predicted_pollen_count.value.values)
        logger.info(f"Prediction service returned {len(predictions)} predictions")
        return predictions

    async def fetch_history(self) -> list[HistoricalPollenRecord]:
        """
        Full historical dataset for backfill.

        Row-level problems are skipped; envelope problems raise.
        """
        payload = await self._post_json(
            self.historical_endpoint,
            self.historical_api_key,
            {"GlobalParameters": {}},
            setting="HISTORICAL_API",
        )
        try:
            envelope = HistoricalResponse.model_validate(payload)
        except ValidationError as e:
            raise ParseError(f"Unexpected historical envelope: {e.error_count()} errors", source=self.source_name) from e

        values = envelope.results.historical_pollen_count.value.values
        records = parse_historical_values(values)
        logger.info(f"Historical service returned {len(records)} of {len(values)} rows parsed")
        return records

    async def _post_json(
        self,
        endpoint: Optional[str],
        api_key: Optional[str],
        body: dict,
        setting: str,
    ) -> Any:
        if not endpoint or not api_key:
            raise ConfigurationError(
                f"{setting}_ENDPOINT and {setting}_KEY must be set",
                source=self.source_name,
            )

        response = await self._request(
            "POST",
            endpoint,
            json=body,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
        )
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Response is not JSON: {e}", source=self.source_name) from e
