"""
/api/pollen and /api/pollentype endpoints.

Serves the merged observed/predicted counts written by the collector.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response

from ..config import Config
from ..errors import StoreError
from ..models.enums import PollenType
from ..models.response import PollenSampleResponse, PollenTypeResponse
from ..services.pollen_repository import PollenRepository, PollenSample, get_pollen_repository, timestamp_to_date

logger = logging.getLogger(__name__)
router = APIRouter()

OBSOLETE_POLLENTYPE_HEADER = "X-Obsolete-pollentype"
OBSOLETE_LOCATION_HEADER = "X-Obsolete-location"


def _get_repository() -> PollenRepository:
    """Get the shared pollen repository (patched in tests)."""
    return get_pollen_repository()


def parse_timestamp(value: str) -> date:
    """
    Parse an RFC3339 timestamp (or a bare ISO date) to its UTC day.

    Raises:
        ValueError: value is neither
    """
    value = value.strip()
    if "T" not in value.upper():
        return date.fromisoformat(value)

    parsed = datetime.fromisoformat(value.replace("Z", "+00:00").replace("z", "+00:00"))
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp {value!r} has no UTC offset")
    return timestamp_to_date(parsed)


def parse_query_int(value: Optional[str]) -> Optional[int]:
    """Integer query value, or None when it is missing or not an integer."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_pollen_type(value: int) -> PollenType:
    try:
        return PollenType(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown pollen type {value}")


def to_response(sample: PollenSample) -> PollenSampleResponse:
    return PollenSampleResponse(
        date=sample.date,
        pollentype=int(sample.pollen_type),
        location=sample.location.id,
        pollencount=sample.pollen_count,
        predictedpollencount=sample.predicted_pollen_count,
    )


@router.get("/pollentype", response_model=list[PollenTypeResponse])
async def get_pollen_types() -> list[PollenTypeResponse]:
    """Pollen types handled by the API."""
    return [
        PollenTypeResponse(pollenid=int(pollen_type), name=pollen_type.display_name)
        for pollen_type in _get_repository().get_pollen_types()
    ]


@router.get("/pollen/{day}", response_model=PollenSampleResponse)
async def get_pollen(
    day: str,
    response: Response,
    pollentype: Optional[str] = Query(default=None, description="Pollen type id"),
    location: Optional[str] = Query(default=None, description="Location id"),
) -> PollenSampleResponse:
    """
    Observed and predicted count for one day.

    ``day`` is an RFC3339 timestamp or the literal "tomorrow". Omitting
    pollentype or location (or passing a non-integer) is deprecated: grass
    and the default location are used and an X-Obsolete-* header is set.
    """
    if day == "tomorrow":
        target = timestamp_to_date(datetime.now(timezone.utc)) + timedelta(days=1)
    else:
        try:
            target = parse_timestamp(day)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    pollentype_id = parse_query_int(pollentype)
    location_id = parse_query_int(location)

    if pollentype_id is None:
        response.headers[OBSOLETE_POLLENTYPE_HEADER] = (
            "Calling this endpoint without declaring pollentype in query is obsolete"
        )
        pollentype_id = int(PollenType.GRASS)
    if location_id is None:
        response.headers[OBSOLETE_LOCATION_HEADER] = (
            "Calling this endpoint without declaring location in query is obsolete"
        )
        location_id = Config.DEFAULT_LOCATION_ID

    pollen_type = parse_pollen_type(pollentype_id)

    try:
        sample = _get_repository().get_pollen(target, pollen_type, location_id)
    except StoreError as e:
        logger.error(f"Pollen lookup failed for {target} type={pollentype_id} location={location_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    if sample is None:
        raise HTTPException(status_code=404, detail="Object not found")
    return to_response(sample)


@router.get("/pollen", response_model=list[PollenSampleResponse])
async def get_pollen_range(
    from_: str = Query(..., alias="from", description="RFC3339 start (inclusive)"),
    to: str = Query(..., description="RFC3339 end (inclusive)"),
    pollentype: int = Query(..., description="Pollen type id"),
    location: int = Query(..., description="Location id"),
) -> list[PollenSampleResponse]:
    """Samples between two days, ascending by date."""
    try:
        from_day = parse_timestamp(from_)
        to_day = parse_timestamp(to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    pollen_type = parse_pollen_type(pollentype)

    try:
        samples = _get_repository().get_pollen_range(from_day, to_day, pollen_type, location)
    except StoreError as e:
        logger.error(f"Pollen range lookup failed for {from_day}..{to_day}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return [to_response(sample) for sample in samples]
