"""
Enums for type-safe constants in the pollen service.
"""

from enum import Enum, IntEnum


class PollenType(IntEnum):
    """Kind of pollen. Values are persisted, never renumber."""
    GRASS = 0
    BIRCH = 1

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_name(cls, name: str) -> "PollenType":
        """Look up by lower-case upstream name ("grass", "birch"). Exact match only."""
        for member in cls:
            if member.name.lower() == name:
                return member
        raise ValueError(f"Unknown pollen type: {name!r}")


class IngestionMode(str, Enum):
    """Collector run mode."""
    DAILY = "daily"
    FULL_HISTORY = "full_history"


class CountSource(str, Enum):
    """Upstream used for daily observed counts."""
    SCRAPE = "scrape"
    FEED = "feed"
