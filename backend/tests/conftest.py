"""
Pytest configuration for the pollen service tests.
"""

import pytest

from pollen.config import CollectorConfig
from pollen.db import ensure_schema
from pollen.services.pollen_repository import PollenRepository


def pytest_configure(config):
    """Register the asyncio marker and mark the API ready."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test"
    )

    # TestClient without a context manager does not run lifespan events
    from main import set_ready
    set_ready(True)


@pytest.fixture
def db_path(tmp_path):
    """Temp database path with schema (and the default location) applied."""
    path = str(tmp_path / "pollen.db")
    ensure_schema(path)
    return path


@pytest.fixture
def repo(db_path):
    repository = PollenRepository(db_path=db_path)
    yield repository
    repository.close()


@pytest.fixture
def collector_config(db_path):
    return CollectorConfig(
        database_path=db_path,
        prediction_api_endpoint="https://predict.example.test/score",
        prediction_api_key="prediction-key",
        historical_api_endpoint="https://predict.example.test/history",
        historical_api_key="history-key",
        feed_url="https://feed.example.test/pollen-rss",
        scrape_url="https://portal.example.test/pollengrafer",
    )
