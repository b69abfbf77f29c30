from datetime import timedelta

import pytest

from app.services.time_resolver import (
    TimePassedToday,
    UnrecognizedTime,
    normalize_phrase,
    preset_datetime,
    resolve,
    to_24h,
)
from tests.conftest import TZ, local

MORNING = local(2025, 10, 20, 8, 0)
LATE_MORNING = local(2025, 10, 20, 10, 0)


def test_clock_time_later_today_stays_today():
    assert resolve("jam 9 pagi", MORNING, TZ) == local(2025, 10, 20, 9, 0)


def test_clock_time_already_passed_rolls_to_tomorrow():
    assert resolve("jam 9 pagi", LATE_MORNING, TZ) == local(2025, 10, 21, 9, 0)


@pytest.mark.parametrize("phrase", ["hari ini jam 9 pagi", "today at 9 am"])
def test_explicit_today_that_passed_asks_first(phrase):
    result = resolve(phrase, LATE_MORNING, TZ)
    assert isinstance(result, TimePassedToday)
    assert result.code == "time_passed_today"
    assert result.candidate == local(2025, 10, 20, 9, 0)


def test_explicit_today_still_ahead_is_returned():
    assert resolve("hari ini jam 7 malam", LATE_MORNING, TZ) == local(2025, 10, 20, 19, 0)


def test_day_words_shift_the_clock_time():
    assert resolve("besok jam 9 pagi", LATE_MORNING, TZ) == local(2025, 10, 21, 9, 0)
    assert resolve("lusa jam 7 malam", LATE_MORNING, TZ) == local(2025, 10, 22, 19, 0)


def test_minutes_with_dot_or_colon():
    assert resolve("jam 9.30 malam", MORNING, TZ) == local(2025, 10, 20, 21, 30)
    assert resolve("pukul 14:15", MORNING, TZ) == local(2025, 10, 20, 14, 15)


def test_impossible_clock_value_is_unrecognized():
    with pytest.raises(UnrecognizedTime) as exc:
        resolve("jam 25", MORNING, TZ)
    assert exc.value.code == "unrecognized_time"


def test_gibberish_is_unrecognized():
    with pytest.raises(UnrecognizedTime):
        resolve("asdfgh", MORNING, TZ)


def test_besok_alone_is_the_next_date():
    result = resolve("besok", LATE_MORNING, TZ)
    assert result.astimezone(TZ).date() == LATE_MORNING.date() + timedelta(days=1)


@pytest.mark.parametrize(
    "hour, meridiem, expected",
    [
        (9, None, 9),
        (7, "malam", 19),
        (3, "sore", 15),
        (12, "siang", 12),
        (12, "pagi", 0),
        (8, "pm", 20),
        (12, "am", 0),
        (10, "night", 22),
    ],
)
def test_to_24h(hour, meridiem, expected):
    assert to_24h(hour, meridiem) == expected


def test_normalize_phrase():
    assert normalize_phrase("Besok  jam 9 pagi") == "tomorrow at 9 morning"
    assert normalize_phrase("lusa pukul 7.30 malam") == "day after tomorrow at 7:30 evening"


def test_custom_stamp_strict_format():
    assert resolve("2025-10-21 08:00", LATE_MORNING, TZ, mode="custom") == local(2025, 10, 21, 8, 0)


def test_custom_stamp_in_the_past_is_kept():
    # report stamps are records, not schedules
    assert resolve("2025-10-01 17:45", LATE_MORNING, TZ, mode="custom") == local(2025, 10, 1, 17, 45)


def test_presets_use_the_moment_of_the_press():
    late = local(2025, 10, 20, 23, 30)
    assert preset_datetime("now", late, TZ) == late
    assert preset_datetime("today_08", late, TZ) == local(2025, 10, 20, 8, 0)
    assert preset_datetime("today_13", late, TZ) == local(2025, 10, 20, 13, 0)
    assert preset_datetime("tomorrow_08", late, TZ) == local(2025, 10, 21, 8, 0)
    assert preset_datetime("custom", late, TZ) is None
    assert preset_datetime("noon", late, TZ) is None


def test_part_of_day_gets_its_default_hour():
    assert resolve("besok sore", LATE_MORNING, TZ) == local(2025, 10, 21, 15, 0)
    assert resolve("lusa siang", LATE_MORNING, TZ) == local(2025, 10, 22, 12, 0)
    assert resolve("besok malam", LATE_MORNING, TZ) == local(2025, 10, 21, 18, 0)


@pytest.mark.parametrize("phrase", ["nanti malam", "tonight"])
def test_tonight_is_ten_in_the_evening(phrase):
    assert resolve(phrase, LATE_MORNING, TZ) == local(2025, 10, 20, 22, 0)


def test_next_week_keeps_the_part_of_day():
    assert resolve("minggu depan pagi", LATE_MORNING, TZ) == local(2025, 10, 27, 6, 0)
    assert resolve("minggu depan jam 9", LATE_MORNING, TZ) == local(2025, 10, 27, 9, 0)


def test_passed_part_of_day_rolls_to_tomorrow():
    assert resolve("pagi", LATE_MORNING, TZ) == local(2025, 10, 21, 6, 0)
    assert resolve("tonight", local(2025, 10, 20, 23, 0), TZ) == local(2025, 10, 21, 22, 0)


def test_passed_part_of_day_today_asks_first():
    result = resolve("hari ini pagi", LATE_MORNING, TZ)
    assert isinstance(result, TimePassedToday)
    assert result.candidate == local(2025, 10, 20, 6, 0)


def test_keyword_without_a_number_is_unrecognized():
    with pytest.raises(UnrecognizedTime):
        resolve("ingatkan saya jam", LATE_MORNING, TZ)


@pytest.mark.parametrize("stamp", ["2025-02-30 10:00", "2025-10-20 25:00", "2025-13-01 08:00"])
def test_impossible_strict_stamp_is_unrecognized(stamp):
    with pytest.raises(UnrecognizedTime):
        resolve(stamp, LATE_MORNING, TZ, mode="custom")


def test_custom_clock_phrase_reads_the_hour():
    assert resolve("besok jam 8", LATE_MORNING, TZ, mode="custom") == local(2025, 10, 21, 8, 0)
    # no forward bias for report stamps
    assert resolve("jam 7 pagi", LATE_MORNING, TZ, mode="custom") == local(2025, 10, 20, 7, 0)


def test_custom_keyword_alone_is_unrecognized():
    with pytest.raises(UnrecognizedTime):
        resolve("jam", LATE_MORNING, TZ, mode="custom")
