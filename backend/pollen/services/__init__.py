from .pollen_repository import (
    Location,
    PollenRepository,
    PollenSample,
    get_pollen_repository,
    timestamp_to_date,
)

__all__ = [
    "Location",
    "PollenRepository",
    "PollenSample",
    "get_pollen_repository",
    "timestamp_to_date",
]
