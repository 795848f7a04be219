import unittest
from datetime import datetime, timedelta, timezone

from drivetriage.util.time import age_seconds, now_utc, parse_rfc3339


class TestUtilTime(unittest.TestCase):
    def test_now_utc_is_tz_aware(self) -> None:
        dt = now_utc()
        self.assertEqual(dt.tzinfo, timezone.utc)

    def test_parse_rfc3339_z(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56Z")
        self.assertEqual(dt, datetime(2025, 1, 1, 12, 34, 56, tzinfo=timezone.utc))

    def test_parse_rfc3339_fractional_z(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56.123456Z")
        self.assertEqual(
            dt, datetime(2025, 1, 1, 12, 34, 56, 123456, tzinfo=timezone.utc)
        )

    def test_parse_rfc3339_offset_converts_to_utc(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56+09:00")
        self.assertEqual(dt.tzinfo, timezone.utc)
        self.assertEqual(dt, datetime(2025, 1, 1, 3, 34, 56, tzinfo=timezone.utc))

    def test_parse_rfc3339_rejects_naive_and_empty(self) -> None:
        with self.assertRaises(ValueError):
            parse_rfc3339("2025-01-01T12:34:56")
        with self.assertRaises(ValueError):
            parse_rfc3339("")

    def test_age_seconds(self) -> None:
        t0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.assertEqual(age_seconds(t0, t0 + timedelta(minutes=2)), 120.0)
        with self.assertRaises(ValueError):
            age_seconds(datetime(2025, 1, 1), t0)


if __name__ == "__main__":
    unittest.main()
