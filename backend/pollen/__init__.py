"""Tomorrow's pollen: pollen count ingestion and read API."""

__version__ = "0.1.0"
