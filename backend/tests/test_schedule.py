from datetime import datetime

from gardenit.services.schedule import LocalTime, local_time, matches_schedule, parse_schedule


def at(hour, minute, weekday="Wed"):
    return LocalTime(year=2024, month=5, day=1, hour=hour, minute=minute, weekday=weekday)


def test_daily_schedule_matches_within_minute_tolerance():
    schedule = "FREQ=DAILY;BYHOUR=7;BYMINUTE=10"

    assert matches_schedule(at(7, 6), schedule)
    assert matches_schedule(at(7, 10), schedule)
    assert matches_schedule(at(7, 14), schedule)
    assert not matches_schedule(at(7, 20), schedule)
    assert not matches_schedule(at(6, 10), schedule)


def test_weekly_schedule_matches_only_listed_day_and_hour():
    schedule = "FREQ=WEEKLY;BYDAY=SU;BYHOUR=16"

    assert matches_schedule(at(16, 0, "Sun"), schedule)
    assert matches_schedule(at(16, 45, "Sun"), schedule)
    assert not matches_schedule(at(16, 0, "Mon"), schedule)
    assert not matches_schedule(at(15, 59, "Sun"), schedule)


def test_weekly_schedule_accepts_day_lists_and_lowercase():
    schedule = "freq=weekly;byday=mo, we ,fr;byhour=9"

    assert matches_schedule(at(9, 30, "Wed"), schedule)
    assert not matches_schedule(at(9, 30, "Thu"), schedule)


def test_missing_or_unsupported_frequency_never_matches():
    assert not matches_schedule(at(7, 10), "BYHOUR=7;BYMINUTE=10")
    assert not matches_schedule(at(7, 10), "FREQ=MONTHLY;BYHOUR=7")


def test_absent_constraints_match_any_value():
    assert matches_schedule(at(3, 47), "FREQ=DAILY")
    assert matches_schedule(at(3, 47, "Sat"), "FREQ=WEEKLY")


def test_unknown_keys_ignored_and_bad_numbers_do_not_match():
    assert matches_schedule(at(7, 0), "FREQ=DAILY;BYHOUR=7;INTERVAL=2")
    assert not matches_schedule(at(7, 0), "FREQ=DAILY;BYHOUR=seven")


def test_parse_schedule_uppercases_keys_and_values():
    assert parse_schedule("freq=daily;byHour=7;junk") == {"FREQ": "DAILY", "BYHOUR": "7"}


def test_local_time_converts_to_zone():
    # 2024-05-05 is a Sunday; 14:30 UTC is 16:30 in Berlin (CEST)
    local = local_time(datetime(2024, 5, 5, 14, 30), "Europe/Berlin")

    assert (local.hour, local.minute, local.weekday) == (16, 30, "Sun")
    assert matches_schedule(local, "FREQ=WEEKLY;BYDAY=SU;BYHOUR=16")


def test_local_time_unknown_zone_falls_back_to_utc():
    local = local_time(datetime(2024, 5, 1, 7, 10), "Not/AZone")

    assert (local.hour, local.minute, local.weekday) == (7, 10, "Wed")


def test_minute_tolerance_spans_the_hour_boundary():
    schedule = "FREQ=WEEKLY;BYDAY=SU;BYHOUR=16;BYMINUTE=0"

    assert matches_schedule(at(15, 53, "Sun"), schedule)
    assert matches_schedule(at(16, 7, "Sun"), schedule)
    assert not matches_schedule(at(15, 52, "Sun"), schedule)
    assert not matches_schedule(at(16, 8, "Sun"), schedule)


def test_minute_only_schedule_wraps_within_the_hour():
    assert matches_schedule(at(9, 57), "FREQ=DAILY;BYMINUTE=2")
    assert not matches_schedule(at(9, 50), "FREQ=DAILY;BYMINUTE=2")


def test_midnight_occurrence_uses_the_day_it_falls_on():
    schedule = "FREQ=WEEKLY;BYDAY=SU;BYHOUR=0;BYMINUTE=0"

    assert matches_schedule(at(23, 55, "Sat"), schedule)
    assert matches_schedule(at(0, 5, "Sun"), schedule)
    assert not matches_schedule(at(23, 55, "Sun"), schedule)


def test_out_of_range_fields_never_match():
    assert not matches_schedule(at(1, 0), "FREQ=DAILY;BYHOUR=25;BYMINUTE=0")
    assert not matches_schedule(at(7, 0), "FREQ=DAILY;BYHOUR=7;BYMINUTE=75")
