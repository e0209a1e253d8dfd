import unittest
from datetime import date, datetime, timezone

from freezegun import freeze_time

from app.core.time_provider import APP_ZONEINFO, TimeProvider, ensure_aware
from app.services.calendar_feed_service import resolve_date_range
from app.services.hybrid_booking_service import has_minimum_notice


class TimeProviderTests(unittest.TestCase):
    @freeze_time('2025-01-09 22:00:00')
    def test_now_is_school_local_and_utcnow_is_naive(self):
        provider = TimeProvider()
        now = provider.now()
        self.assertEqual(now.utcoffset(), APP_ZONEINFO.utcoffset(datetime(2025, 1, 10, 9, 0)))
        self.assertEqual(provider.today(), date(2025, 1, 10))
        self.assertEqual(provider.utcnow(), datetime(2025, 1, 9, 22, 0))
        self.assertIsNone(provider.utcnow().tzinfo)

    @freeze_time('2025-01-09 22:00:00')
    def test_default_range_and_notice_follow_the_clock(self):
        start, _ = resolve_date_range(None, None)
        self.assertEqual(start, date(2025, 1, 10))
        self.assertTrue(has_minimum_notice(date(2025, 1, 11), '09:00'))
        self.assertFalse(has_minimum_notice(date(2025, 1, 11), '08:59'))

    def test_naive_datetimes_rejected(self):
        with self.assertRaises(ValueError):
            ensure_aware(datetime(2025, 1, 1, 9, 0))
        self.assertEqual(
            ensure_aware(datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)).tzinfo,
            timezone.utc,
        )


if __name__ == '__main__':
    unittest.main()
