"""Seed the default location.

Revision ID: 002
Revises: 001
Create Date: 2026-10-12

Location 0 is Copenhagen. Predictions and the scraped station 48 both
report for it.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    raw_conn = conn.connection.dbapi_connection

    raw_conn.executescript("""
        INSERT OR IGNORE INTO locations (id, city, country)
        VALUES (0, 'Copenhagen', 'Denmark');
    """)


def downgrade() -> None:
    conn = op.get_bind()
    raw_conn = conn.connection.dbapi_connection
    raw_conn.execute("DELETE FROM locations WHERE id = 0")
