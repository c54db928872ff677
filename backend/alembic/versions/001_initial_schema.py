"""Initial schema - locations and pollen samples.

Revision ID: 001
Revises: None
Create Date: 2026-10-12

Creates core tables: locations, pollen_samples.

Note: the default location is seeded in migration 002.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Complete schema SQL inlined for immutability.
SCHEMA_SQL = """
-- Reference data, never written by ingestion
CREATE TABLE IF NOT EXISTS locations (
    id INTEGER PRIMARY KEY,
    city TEXT NOT NULL,
    country TEXT NOT NULL
);

-- One row per (date, pollen type, location); counts are NULL until written
CREATE TABLE IF NOT EXISTS pollen_samples (
    date TEXT NOT NULL,
    pollen_type INTEGER NOT NULL,
    location_id INTEGER NOT NULL,
    pollen_count INTEGER,
    predicted_pollen_count REAL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (date, pollen_type, location_id),
    FOREIGN KEY (location_id) REFERENCES locations(id)
);

CREATE INDEX IF NOT EXISTS idx_locations_city_country
    ON locations(LOWER(country), LOWER(city));
CREATE INDEX IF NOT EXISTS idx_pollen_samples_series
    ON pollen_samples(pollen_type, location_id, date);
"""


def upgrade() -> None:
    # Use raw DBAPI connection for multi-statement SQL
    conn = op.get_bind()
    raw_conn = conn.connection.dbapi_connection
    raw_conn.executescript(SCHEMA_SQL)


def downgrade() -> None:
    conn = op.get_bind()
    raw_conn = conn.connection.dbapi_connection

    # Drop tables in reverse dependency order
    for table in ("pollen_samples", "locations"):
        raw_conn.execute(f"DROP TABLE IF EXISTS {table}")
