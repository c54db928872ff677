from .enums import (
    CountSource,
    IngestionMode,
    PollenType,
)
from .response import (
    LocationResponse,
    PollenSampleResponse,
    PollenTypeResponse,
)

__all__ = [
    "CountSource",
    "IngestionMode",
    "PollenType",
    "LocationResponse",
    "PollenSampleResponse",
    "PollenTypeResponse",
]
