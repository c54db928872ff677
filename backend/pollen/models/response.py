"""
Pydantic models for the pollen read API responses.

Field names are part of the public contract used by the website
(lower-case, no separators).
"""

import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PollenSampleResponse(BaseModel):
    """Observed and predicted count for one day, pollen type and location."""
    date: datetime.date = Field(..., description="UTC calendar day")
    pollentype: int = Field(..., description="Pollen type id")
    location: int = Field(..., description="Location id")
    pollencount: Optional[int] = Field(None, description="Observed count, null until measured")
    predictedpollencount: Optional[float] = Field(None, description="Predicted count, null until predicted")


class PollenTypeResponse(BaseModel):
    """A pollen type handled by the API."""
    pollenid: int
    name: str


class LocationResponse(BaseModel):
    """A location where pollen is measured and predicted."""
    location: int = Field(..., description="Location id, used as the 'location' query parameter")
    city: str
    country: str
