"""
/api/location endpoints.

Lookup by id, and search by country and/or city to find the id to pass to
/api/pollen.
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from ..errors import StoreError
from ..models.response import LocationResponse
from ..services.pollen_repository import Location, PollenRepository, get_pollen_repository

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_repository() -> PollenRepository:
    """Get the shared pollen repository (patched in tests)."""
    return get_pollen_repository()


def _to_response(location: Location) -> LocationResponse:
    return LocationResponse(location=location.id, city=location.city, country=location.country)


@router.get("/location/{location_id}", response_model=LocationResponse)
async def get_location(location_id: int) -> LocationResponse:
    try:
        location = _get_repository().get_location(location_id)
    except StoreError as e:
        logger.error(f"Location lookup failed for {location_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    if location is None:
        raise HTTPException(status_code=404, detail="Object not found")
    return _to_response(location)


@router.get("/location", response_model=LocationResponse)
async def search_location(
    country: str = Query(default="", description="Country name (case-insensitive)"),
    city: str = Query(default="", description="City name (case-insensitive)"),
) -> LocationResponse:
    """Find a location by country and/or city. At least one is required."""
    if not country and not city:
        raise HTTPException(status_code=400, detail="country or city is required")

    try:
        location = _get_repository().search_location(country=country, city=city)
    except StoreError as e:
        logger.error(f"Location search failed for country={country!r} city={city!r}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    if location is None:
        raise HTTPException(status_code=404, detail="Object not found")
    return _to_response(location)
