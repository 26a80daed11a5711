from datetime import datetime, timedelta, timezone

from pricechart import TimePoint, find_matching_slot, parse_timestamp, within_tolerance

TEN_UTC = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


class TestParseTimestamp:
    def test_iso_with_z(self):
        assert parse_timestamp("2024-01-01T10:00:00Z") == TEN_UTC

    def test_iso_with_offset_is_normalized_to_utc(self):
        assert parse_timestamp("2024-01-01T12:00:00+02:00") == TEN_UTC

    def test_naive_iso_is_utc(self):
        assert parse_timestamp("2024-01-01 10:00:00") == TEN_UTC

    def test_iso_with_milliseconds(self):
        assert parse_timestamp("2024-01-01T10:00:00.000Z") == TEN_UTC

    def test_rfc_2822(self):
        assert parse_timestamp("Mon, 01 Jan 2024 10:00:00 GMT") == TEN_UTC

    def test_epoch_milliseconds_and_seconds(self):
        assert parse_timestamp(1704103200000) == TEN_UTC
        assert parse_timestamp(1704103200) == TEN_UTC
        assert parse_timestamp("1704103200000") == TEN_UTC

    def test_datetime_passthrough(self):
        assert parse_timestamp(datetime(2024, 1, 1, 10, 0)) == TEN_UTC

    def test_unparseable_returns_none(self):
        assert parse_timestamp("not a time") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None


class TestWithinTolerance:
    def test_inside_and_outside_window(self):
        assert within_tolerance(TEN_UTC, TEN_UTC + timedelta(minutes=20))
        assert within_tolerance(TEN_UTC, TEN_UTC - timedelta(minutes=30))
        assert not within_tolerance(TEN_UTC, TEN_UTC + timedelta(minutes=40))

    def test_custom_tolerance(self):
        assert not within_tolerance(TEN_UTC, TEN_UTC + timedelta(minutes=20), timedelta(minutes=10))

    def test_missing_side_never_matches(self):
        assert not within_tolerance(None, TEN_UTC)
        assert not within_tolerance(TEN_UTC, None)


class TestFindMatchingSlot:
    points = [
        TimePoint(time="2024-01-01T10:00:00Z"),
        TimePoint(time="2024-01-01T11:00:00Z"),
        TimePoint(time="garbage"),
    ]

    def test_exact_string_match(self):
        assert find_matching_slot(self.points, "2024-01-01T11:00:00Z") == 1
        assert find_matching_slot(self.points, "garbage") == 2

    def test_approximate_match_within_thirty_minutes(self):
        assert find_matching_slot(self.points, "2024-01-01T11:20:00Z") == 1

    def test_different_format_same_instant(self):
        assert find_matching_slot(self.points, "Mon, 01 Jan 2024 10:00:00 GMT") == 0

    def test_nearest_slot_wins(self):
        assert find_matching_slot(self.points, "2024-01-01T10:35:00Z") == 1
        assert find_matching_slot(self.points, "2024-01-01T10:25:00Z") == 0

    def test_no_match_outside_window(self):
        assert find_matching_slot(self.points, "2024-01-01T11:40:00Z") is None

    def test_unparseable_observation_does_not_match(self):
        assert find_matching_slot(self.points, "tomorrow-ish") is None

    def test_pre_parsed_times_are_used_for_approximate_matching(self):
        parsed = [TEN_UTC, TEN_UTC + timedelta(hours=1), None]
        assert find_matching_slot(self.points, "2024-01-01T10:50:00Z", parsed_times=parsed) == 1

        shifted = [TEN_UTC + timedelta(hours=1), TEN_UTC, None]
        assert find_matching_slot(self.points, "2024-01-01T10:50:00Z", parsed_times=shifted) == 0
