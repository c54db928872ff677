"""
Pollen sample repository with SQLite backend.

Rows are keyed by (date, pollen type, location). Observed and predicted
counts arrive through independent ingestion paths, so every write path is
an upsert that only touches the column(s) it carries.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Union

from ..db import BaseRepository
from ..errors import StoreError
from ..models.enums import PollenType

logger = logging.getLogger(__name__)


def timestamp_to_date(timestamp: Union[datetime, date]) -> date:
    """Truncate a timestamp to its UTC calendar day.

    Naive datetimes are taken to be UTC already.
    """
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(timezone.utc)
        return timestamp.date()
    return timestamp


@dataclass
class Location:
    """A place where pollen is measured and predicted."""
    id: int
    city: str = ""
    country: str = ""


@dataclass
class PollenSample:
    """
    One (date, pollen type, location) record.

    pollen_count is None until measured, predicted_pollen_count is None
    until predicted.
    """
    date: date
    pollen_type: PollenType
    location: Location
    pollen_count: Optional[int] = None
    predicted_pollen_count: Optional[float] = None

    @property
    def key(self) -> tuple[date, PollenType, int]:
        return (self.date, self.pollen_type, self.location.id)


_SAMPLE_COLUMNS = """
    s.date, s.pollen_type, s.location_id, s.pollen_count,
    s.predicted_pollen_count, l.city, l.country
"""

_UPSERT_COUNT_SQL = """
    INSERT INTO pollen_samples (date, pollen_type, location_id, pollen_count)
    VALUES (?, ?, ?, ?)
    ON CONFLICT (date, pollen_type, location_id) DO UPDATE SET
        pollen_count = excluded.pollen_count,
        updated_at = CURRENT_TIMESTAMP
"""

_UPSERT_PREDICTED_SQL = """
    INSERT INTO pollen_samples (date, pollen_type, location_id, predicted_pollen_count)
    VALUES (?, ?, ?, ?)
    ON CONFLICT (date, pollen_type, location_id) DO UPDATE SET
        predicted_pollen_count = excluded.predicted_pollen_count,
        updated_at = CURRENT_TIMESTAMP
"""

_UPSERT_FULL_SQL = """
    INSERT INTO pollen_samples
        (date, pollen_type, location_id, pollen_count, predicted_pollen_count)
    VALUES (?, ?, ?, ?, ?)
    ON CONFLICT (date, pollen_type, location_id) DO UPDATE SET
        pollen_count = excluded.pollen_count,
        predicted_pollen_count = excluded.predicted_pollen_count,
        updated_at = CURRENT_TIMESTAMP
"""


class PollenRepository(BaseRepository):
    """
    Thread-safe SQLite repository for pollen samples and locations.

    Features:
    - Connection per thread (safe to call from executor threads)
    - Column-preserving upserts (count-only, prediction-only, full)
    - Point and range lookups for the read API
    """

    def __init__(self, db_path: Optional[str] = None):
        super().__init__(db_path, use_wal=True)

    # ------------------------------------------------------------------
    # Merge layer
    # ------------------------------------------------------------------

    def upsert_pollen_count(self, sample: PollenSample) -> None:
        """Write the observed count, keep any existing prediction."""
        if sample.pollen_count is None:
            raise ValueError("upsert_pollen_count needs a pollen_count")
        self._execute_upsert(
            _UPSERT_COUNT_SQL,
            (*self._key_params(sample), int(sample.pollen_count)),
            sample,
        )

    def upsert_predicted_pollen_count(self, sample: PollenSample) -> None:
        """Write the predicted count, keep any existing observed count."""
        if sample.predicted_pollen_count is None:
            raise ValueError("upsert_predicted_pollen_count needs a predicted_pollen_count")
        self._execute_upsert(
            _UPSERT_PREDICTED_SQL,
            (*self._key_params(sample), float(sample.predicted_pollen_count)),
            sample,
        )

    def upsert_pollen_sample(self, sample: PollenSample) -> None:
        """Write both counts unconditionally (history backfill)."""
        self._execute_upsert(_UPSERT_FULL_SQL, self._full_params(sample), sample)

    def bulk_upsert_pollen_samples(
        self,
        samples: Iterable[PollenSample],
        batch_size: int = 1000,
    ) -> int:
        """
        Full upsert of many samples, committed in batches.

        Returns:
            Number of samples written
        """
        written = 0
        batch: list[tuple] = []

        try:
            for sample in samples:
                batch.append(self._full_params(sample))
                if len(batch) >= batch_size:
                    written += self._flush_batch(batch)
                    batch = []
            if batch:
                written += self._flush_batch(batch)
        except sqlite3.Error as e:
            raise StoreError(f"Bulk upsert failed after {written} samples: {e}") from e

        return written

    def _flush_batch(self, batch: list[tuple]) -> int:
        with self._transaction() as cursor:
            cursor.executemany(_UPSERT_FULL_SQL, batch)
        logger.debug(f"Upserted batch of {len(batch)} samples")
        return len(batch)

    def _execute_upsert(self, sql: str, params: tuple, sample: PollenSample) -> None:
        try:
            with self._transaction() as cursor:
                cursor.execute(sql, params)
        except sqlite3.Error as e:
            raise StoreError(f"Upsert failed for {sample.key}: {e}") from e

    @staticmethod
    def _key_params(sample: PollenSample) -> tuple:
        return (
            timestamp_to_date(sample.date).isoformat(),
            int(sample.pollen_type),
            sample.location.id,
        )

    def _full_params(self, sample: PollenSample) -> tuple:
        return (
            *self._key_params(sample),
            sample.pollen_count,
            sample.predicted_pollen_count,
        )

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def get_pollen(
        self,
        day: Union[date, datetime],
        pollen_type: PollenType,
        location_id: int,
    ) -> Optional[PollenSample]:
        """Find the sample for one key, or None."""
        row = self._fetchone(f"""
            SELECT {_SAMPLE_COLUMNS}
            FROM pollen_samples s
            JOIN locations l ON l.id = s.location_id
            WHERE s.date = ? AND s.pollen_type = ? AND s.location_id = ?
        """, (timestamp_to_date(day).isoformat(), int(pollen_type), location_id))
        return self._row_to_sample(row) if row else None

    def get_pollen_range(
        self,
        from_day: Union[date, datetime],
        to_day: Union[date, datetime],
        pollen_type: PollenType,
        location_id: int,
    ) -> list[PollenSample]:
        """Samples between two days (inclusive), ascending by date."""
        rows = self._fetchall(f"""
            SELECT {_SAMPLE_COLUMNS}
            FROM pollen_samples s
            JOIN locations l ON l.id = s.location_id
            WHERE s.date >= ? AND s.date <= ?
              AND s.pollen_type = ? AND s.location_id = ?
            ORDER BY s.date
        """, (
            timestamp_to_date(from_day).isoformat(),
            timestamp_to_date(to_day).isoformat(),
            int(pollen_type),
            location_id,
        ))
        return [self._row_to_sample(row) for row in rows]

    def get_location(self, location_id: int) -> Optional[Location]:
        row = self._fetchone(
            "SELECT id, city, country FROM locations WHERE id = ?",
            (location_id,),
        )
        return self._row_to_location(row) if row else None

    def search_location(self, country: str = "", city: str = "") -> Optional[Location]:
        """
        Find a location by country and/or city (case-insensitive).

        Empty arguments are ignored; at least one must be given.
        """
        clauses = []
        params = []
        if country:
            clauses.append("LOWER(country) = LOWER(?)")
            params.append(country)
        if city:
            clauses.append("LOWER(city) = LOWER(?)")
            params.append(city)
        if not clauses:
            raise ValueError("search_location needs a country or a city")

        row = self._fetchone(f"""
            SELECT id, city, country FROM locations
            WHERE {' AND '.join(clauses)}
            ORDER BY id
            LIMIT 1
        """, tuple(params))
        return self._row_to_location(row) if row else None

    def list_locations(self) -> list[Location]:
        rows = self._fetchall("SELECT id, city, country FROM locations ORDER BY id", ())
        return [self._row_to_location(row) for row in rows]

    def get_pollen_types(self) -> list[PollenType]:
        """Pollen types handled by the service."""
        return list(PollenType)

    def count(self) -> int:
        """Number of stored samples."""
        row = self._fetchone("SELECT COUNT(*) AS n FROM pollen_samples", ())
        return row["n"]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetchone(self, sql: str, params: tuple) -> Optional[sqlite3.Row]:
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(sql, params)
            return cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Query failed: {e}") from e

    def _fetchall(self, sql: str, params: tuple) -> list[sqlite3.Row]:
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(sql, params)
            return cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Query failed: {e}") from e

    @staticmethod
    def _row_to_location(row: sqlite3.Row) -> Location:
        return Location(id=row["id"], city=row["city"], country=row["country"])

    @staticmethod
    def _row_to_sample(row: sqlite3.Row) -> PollenSample:
        return PollenSample(
            date=date.fromisoformat(row["date"]),
            pollen_type=PollenType(row["pollen_type"]),
            location=Location(
                id=row["location_id"],
                city=row["city"],
                country=row["country"],
            ),
            pollen_count=row["pollen_count"],
            predicted_pollen_count=row["predicted_pollen_count"],
        )


# Singleton instance for the API process
_repository_instance: Optional[PollenRepository] = None


def get_pollen_repository() -> PollenRepository:
    """Get or create the pollen repository singleton."""
    global _repository_instance
    if _repository_instance is None:
        _repository_instance = PollenRepository()
    return _repository_instance
