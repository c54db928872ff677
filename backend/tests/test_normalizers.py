"""Tests for adapter result normalization."""

from datetime import date, datetime, timedelta, timezone

from pollen.ingestion.normalizers import SampleNormalizer, utc_today, utc_tomorrow
from pollen.ingestion.protocols import HistoricalPollenCount, HistoricalPollenRecord, PollenPrediction
from pollen.models.enums import PollenType
from pollen.services.pollen_repository import Location


COPENHAGEN = Location(id=0, city="Copenhagen", country="Denmark")
VIBORG = Location(id=1, city="Viborg", country="Denmark")


def test_utc_today_crosses_midnight_in_utc():
    late_evening_west = datetime(2020, 6, 15, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert utc_today(late_evening_west) == date(2020, 6, 16)


def test_utc_tomorrow_rolls_over_month():
    assert utc_tomorrow(datetime(2020, 6, 30, 12, tzinfo=timezone.utc)) == date(2020, 7, 1)


class TestSampleNormalizer:
    def setup_method(self):
        self.normalizer = SampleNormalizer(default_location=COPENHAGEN)

    def test_feed_count_uses_default_location(self):
        sample = self.normalizer.from_feed_count(12, PollenType.GRASS, date(2020, 6, 15))

        assert sample.location == COPENHAGEN
        assert sample.pollen_count == 12
        assert sample.predicted_pollen_count is None

    def test_feed_count_truncates_timestamp(self):
        sample = self.normalizer.from_feed_count(
            1, PollenType.BIRCH, datetime(2020, 6, 15, 23, 30, tzinfo=timezone.utc),
        )
        assert sample.date == date(2020, 6, 15)

    def test_historical_count_keeps_point_date(self):
        point = HistoricalPollenCount(date=date(2020, 6, 14), pollen_count=9)
        sample = self.normalizer.from_historical_count(point, PollenType.BIRCH, VIBORG)

        assert sample.date == date(2020, 6, 14)
        assert sample.location == VIBORG
        assert sample.pollen_type == PollenType.BIRCH
        assert sample.predicted_pollen_count is None

    def test_historical_count_date_override(self):
        point = HistoricalPollenCount(date=date(2020, 6, 14), pollen_count=9)
        sample = self.normalizer.from_historical_count(
            point, PollenType.GRASS, COPENHAGEN, day=date(2020, 6, 15),
        )
        assert sample.date == date(2020, 6, 15)
        assert sample.pollen_count == 9

    def test_prediction(self):
        prediction = PollenPrediction(pollen_type=PollenType.BIRCH, predicted_pollen_count=3.5)
        sample = self.normalizer.from_prediction(prediction, date(2020, 6, 16))

        assert sample.key == (date(2020, 6, 16), PollenType.BIRCH, 0)
        assert sample.pollen_count is None
        assert sample.predicted_pollen_count == 3.5

    def test_historical_record_carries_both_counts(self):
        record = HistoricalPollenRecord(
            date=date(2018, 4, 21), pollen_count=12, predicted_pollen_count=10.5,
        )
        sample = self.normalizer.from_historical_record(record)

        assert sample.key == (date(2018, 4, 21), PollenType.GRASS, 0)
        assert sample.pollen_count == 12
        assert sample.predicted_pollen_count == 10.5
