"""Italian date/time helpers resolved against a fixed Wednesday morning."""

from __future__ import annotations

from datetime import date, datetime, time

from core.parser_utils.datetime import (
    find_date,
    find_duration,
    find_recurrence,
    find_time,
    is_ambiguous_hour,
    month_bounds,
    normalize_year,
    resolve_weekday,
    strip_temporal,
    week_bounds,
)

REFERENCE = datetime(2025, 3, 12, 9, 0)  # Wednesday


def test_relative_days() -> None:
    assert find_date("domani", REFERENCE).value == date(2025, 3, 13)
    assert find_date("dopodomani", REFERENCE).value == date(2025, 3, 14)
    assert find_date("ieri", REFERENCE).value == date(2025, 3, 11)
    assert find_date("stasera", REFERENCE).value == date(2025, 3, 12)


def test_bare_weekday_never_returns_today() -> None:
    assert resolve_weekday(2, REFERENCE.date()) == date(2025, 3, 19)
    assert find_date("mercoledì", REFERENCE).value == date(2025, 3, 19)
    assert find_date("venerdì prossimo", REFERENCE).value == date(2025, 3, 14)
    assert find_date("lunedì scorso", REFERENCE).value == date(2025, 3, 10)


def test_explicit_dates_and_two_digit_years() -> None:
    assert find_date("il 15/03/25", REFERENCE).value == date(2025, 3, 15)
    assert find_date("1/1/75", REFERENCE).value == date(1975, 1, 1)
    assert find_date("il 5 aprile", REFERENCE).value == date(2025, 4, 5)
    assert normalize_year(49) == 2049
    assert normalize_year(50) == 1950


def test_invalid_date_falls_back_to_today() -> None:
    hit = find_date("il 31/02", REFERENCE)
    assert hit.value == REFERENCE.date()
    assert hit.valid is False


def test_relative_offsets() -> None:
    assert find_date("tra 3 giorni", REFERENCE).value == date(2025, 3, 15)
    assert find_date("fra due settimane", REFERENCE).value == date(2025, 3, 26)
    assert find_date("tra un mese", REFERENCE).value == date(2025, 4, 12)


def test_time_of_day_normalisation() -> None:
    assert find_time("alle 10").start == time(10, 0)
    assert find_time("alle 3 del pomeriggio").start == time(15, 0)
    assert find_time("alle 9 di sera").start == time(21, 0)
    assert find_time("ore 8:30 pm").start == time(20, 30)
    assert find_time("stasera alle 8").start == time(20, 0)
    assert find_time("a mezzogiorno").start == time(12, 0)
    assert find_time("a mezzanotte").start == time(0, 0)


def test_time_range_and_invalid_hour() -> None:
    hit = find_time("dalle 9 alle 11")
    assert (hit.start, hit.end) == (time(9, 0), time(11, 0))

    invalid = find_time("alle 25")
    assert invalid.start == time(12, 0)
    assert invalid.valid is False


def test_unqualified_early_hour_is_ambiguous() -> None:
    assert is_ambiguous_hour(find_time("alle 5"))
    assert not is_ambiguous_hour(find_time("alle 5 del mattino"))
    assert not is_ambiguous_hour(find_time("alle 10"))


def test_durations() -> None:
    assert find_duration("per 45 minuti") == 45
    assert find_duration("per 2 ore") == 120
    assert find_duration("per 2 ore e mezza") == 150
    assert find_duration("per mezz'ora") == 30
    assert find_duration("per due giorni") == 2 * 24 * 60
    assert find_duration("domani alle 10") is None


def test_recurrence_tags() -> None:
    assert find_recurrence("ogni lunedì") == "weekly;BYDAY=MO"
    assert find_recurrence("tutti i giorni") == "daily"
    assert find_recurrence("ogni settimana") == "weekly"
    assert find_recurrence("ogni mese") == "monthly"
    assert find_recurrence("domani") is None


def test_week_and_month_windows() -> None:
    assert week_bounds(REFERENCE.date()) == (datetime(2025, 3, 12), datetime(2025, 3, 16, 23, 59, 59))
    assert week_bounds(REFERENCE.date(), next_week=True) == (
        datetime(2025, 3, 17),
        datetime(2025, 3, 23, 23, 59, 59),
    )
    assert month_bounds(REFERENCE.date(), next_month=True) == (
        datetime(2025, 4, 1),
        datetime(2025, 4, 30, 23, 59, 59),
    )


def test_strip_temporal_keeps_the_rest() -> None:
    assert strip_temporal("Crea riunione domani alle 10") == "Crea riunione"
    assert strip_temporal("Crea corso di yoga ogni lunedì alle 19") == "Crea corso di yoga"
    assert strip_temporal("Aggiungi palestra per 2 ore venerdì") == "Aggiungi palestra"
