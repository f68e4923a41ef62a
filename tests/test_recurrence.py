import json
import logging
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from eventcal.errors import InvalidWindow, MalformedRecurrenceRule
from eventcal.recurrence import (
    RecurrenceRule,
    expand_event,
    expand_events,
    parse_recurrence,
    parse_window,
    recurrence_summary,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def make_event(start, end, rule=None, event_id="ev1"):
    raw = json.dumps(rule) if isinstance(rule, dict) else rule
    return SimpleNamespace(id=event_id, start=start, end=end, recurrence_rule=raw)


# Monday 2024-01-01 09:00-10:00, Mondays and Wednesdays, four times
E1 = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), {"weekdays": [1, 3], "interval": 1, "count": 4}, "e1")


class TestSingleEvents:
    ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))

    @pytest.mark.parametrize("window", [
        (utc(2024, 1, 1, 10), utc(2024, 1, 1, 12)),         # touches end
        (utc(2024, 1, 1, 8), utc(2024, 1, 1, 9)),           # touches start
        (utc(2024, 1, 1, 9, 15), utc(2024, 1, 1, 9, 45)),   # event covers window
        (utc(2024, 1, 1), utc(2024, 1, 2)),
    ])
    def test_inclusive_intersection(self, window):
        occ = expand_event(self.ev, *window)
        assert len(occ) == 1
        assert occ[0].start == self.ev.start
        assert occ[0].end == self.ev.end
        assert occ[0].is_recurring is False
        assert occ[0].id == "ev1"

    @pytest.mark.parametrize("window", [
        (utc(2024, 1, 1, 10, 1), utc(2024, 1, 1, 11)),
        (utc(2023, 12, 31), utc(2024, 1, 1, 8, 59)),
    ])
    def test_outside_window(self, window):
        assert expand_event(self.ev, *window) == []

    def test_short_single_event_is_not_clamped(self):
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 9, 10))
        (occ,) = expand_event(ev, utc(2024, 1, 1), utc(2024, 1, 2))
        assert occ.end == utc(2024, 1, 1, 9, 10)

    def test_naive_datetimes_are_read_as_utc(self):
        ev = make_event(datetime(2024, 1, 1, 9), datetime(2024, 1, 1, 10))
        (occ,) = expand_event(ev, utc(2024, 1, 1), utc(2024, 1, 2))
        assert occ.start == utc(2024, 1, 1, 9)


class TestWeeklyRules:
    def test_monday_wednesday_scenario(self):
        occ = expand_event(E1, utc(2024, 1, 1), utc(2024, 1, 10, 23, 59, 59))
        assert [o.start for o in occ] == [
            utc(2024, 1, 1, 9), utc(2024, 1, 3, 9), utc(2024, 1, 8, 9), utc(2024, 1, 10, 9),
        ]
        assert all(o.end - o.start == timedelta(hours=1) for o in occ)
        assert all(o.is_recurring and o.source_event_id == "e1" for o in occ)

    def test_count_caps_total_and_keeps_interval(self):
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), {"weekdays": [1], "interval": 2, "count": 5})
        occ = expand_event(ev, utc(2020, 1, 1), utc(2030, 1, 1))
        assert len(occ) == 5
        assert occ[0].start == utc(2024, 1, 1, 9)
        assert all(b.start - a.start == timedelta(weeks=2) for a, b in zip(occ, occ[1:]))

    def test_until_is_inclusive_upper_bound(self):
        until = utc(2024, 1, 18, 9)
        ev = make_event(utc(2024, 1, 2, 9), utc(2024, 1, 2, 10), {"weekdays": [2, 4], "until": "2024-01-18T09:00:00Z"})
        occ = expand_event(ev, utc(2024, 1, 1), utc(2024, 12, 31))
        assert len(occ) == 6
        assert occ[-1].start == until
        assert all(o.start <= until for o in occ)

    def test_count_and_until_first_bound_wins(self):
        by_count = make_event(
            utc(2024, 1, 1, 9), utc(2024, 1, 1, 10),
            {"weekdays": [1], "count": 2, "until": "2024-12-31T00:00:00Z"},
        )
        by_until = make_event(
            utc(2024, 1, 1, 9), utc(2024, 1, 1, 10),
            {"weekdays": [1], "count": 50, "until": "2024-01-16T00:00:00Z"},
        )
        window = (utc(2024, 1, 1), utc(2025, 1, 1))
        assert len(expand_event(by_count, *window)) == 2
        assert len(expand_event(by_until, *window)) == 3

    def test_anchor_weekday_need_not_be_selected(self):
        # starts on a Monday but only repeats on Wednesdays
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), {"weekdays": [3], "count": 2})
        occ = expand_event(ev, utc(2023, 12, 1), utc(2024, 2, 1))
        assert [o.start for o in occ] == [utc(2024, 1, 3, 9), utc(2024, 1, 10, 9)]

    def test_nothing_before_start(self):
        ev = make_event(utc(2024, 1, 10, 9), utc(2024, 1, 10, 10), {"weekdays": [0, 1, 2, 3, 4, 5, 6]})
        occ = expand_event(ev, utc(2024, 1, 1), utc(2024, 1, 12, 23))
        assert [o.start.day for o in occ] == [10, 11, 12]

    def test_sub_second_start_is_kept(self):
        start = utc(2024, 1, 1, 9, 0, 0, 500000)
        ev = make_event(start, start + timedelta(hours=1), {"weekdays": [1], "count": 2})
        occ = expand_event(ev, utc(2024, 1, 1), utc(2024, 1, 31))
        assert [o.start for o in occ] == [start, start + timedelta(weeks=1)]
        assert all(o.start >= start for o in occ)
        assert occ[0].end == start + timedelta(hours=1)

    def test_unbounded_rule_far_window(self):
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), {"weekdays": [1]})
        occ = expand_event(ev, utc(2030, 1, 1), utc(2030, 1, 31, 23))
        assert [o.start.day for o in occ] == [7, 14, 21, 28]

    def test_recurring_duration_floor(self):
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 9, 10), {"weekdays": [1], "count": 1})
        (occ,) = expand_event(ev, utc(2024, 1, 1), utc(2024, 1, 2))
        assert occ.end == utc(2024, 1, 1, 9, 30)

    def test_single_occurrence_in_window_still_recurring(self):
        occ = expand_event(E1, utc(2024, 1, 3), utc(2024, 1, 3, 23))
        assert len(occ) == 1
        assert occ[0].is_recurring
        assert occ[0].id == "e1:2024-01-03T09:00:00Z"

    def test_window_before_until_yields_nothing(self):
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), {"weekdays": [1], "until": "2024-01-20T00:00:00Z"})
        assert expand_event(ev, utc(2024, 3, 1), utc(2024, 4, 1)) == []

    def test_windowing_commutes_with_expansion(self):
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), {"weekdays": [1, 3, 5], "interval": 2})
        wide = expand_event(ev, utc(2024, 1, 1), utc(2024, 6, 1))
        lo, hi = utc(2024, 2, 5, 9), utc(2024, 3, 20, 12)
        narrowed = [o for o in wide if lo <= o.start <= hi]
        assert narrowed == expand_event(ev, lo, hi)
        assert narrowed


class TestMalformedRules:
    @pytest.mark.parametrize("raw", [
        "{not json",
        '{"weekdays": []}',
        '{"weekdays": [9]}',
        '{"weekdays": [1], "count": 0}',
        '{"weekdays": [1], "interval": "two"}',
        '{"weekdays": [1], "until": "someday"}',
        "[1, 2]",
        "",
        None,
    ])
    def test_degrades_to_single_occurrence(self, raw):
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), raw)
        plain = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))
        window = (utc(2024, 1, 1), utc(2024, 3, 1))
        assert expand_event(ev, *window) == expand_event(plain, *window)

    def test_corrupt_rule_is_logged(self, caplog):
        ev = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), "{not json", "broken")
        with caplog.at_level(logging.WARNING, logger="eventcal.recurrence"):
            expand_event(ev, utc(2024, 1, 1), utc(2024, 1, 2))
        assert "broken" in caplog.text

    def test_parser_raises_for_bad_payload(self):
        with pytest.raises(MalformedRecurrenceRule):
            parse_recurrence('{"weekdays": [1, true]}')

    def test_parser_normalizes(self):
        rule = parse_recurrence({"weekdays": [3, 1, 3], "until": "2024-02-01"})
        assert rule == RecurrenceRule(weekdays=(1, 3), interval=1, count=None, until=utc(2024, 2, 1))
        assert parse_recurrence({"weekdays": []}) is None
        assert parse_recurrence("null") is None


class TestWindows:
    def test_reversed_window_rejected(self):
        with pytest.raises(InvalidWindow):
            expand_event(E1, utc(2024, 2, 1), utc(2024, 1, 1))

    @pytest.mark.parametrize("start,end", [
        ("garbage", "2024-01-02T00:00:00Z"),
        ("2024-01-01T00:00:00Z", "2024-13-45"),
    ])
    def test_unparseable_window_rejected(self, start, end):
        with pytest.raises(InvalidWindow):
            parse_window(start, end)

    def test_empty_window_allowed(self):
        assert parse_window("2024-01-01T09:00:00Z", "2024-01-01T09:00:00Z") == (utc(2024, 1, 1, 9), utc(2024, 1, 1, 9))


def test_expand_events_sorted_by_start():
    weekly = make_event(utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), {"weekdays": [1], "count": 2}, "weekly")
    single = make_event(utc(2024, 1, 3, 12), utc(2024, 1, 3, 13), None, "single")
    occ = expand_events([weekly, single], utc(2024, 1, 1), utc(2024, 1, 31))
    assert [(o.source_event_id, o.start.day) for o in occ] == [("weekly", 1), ("single", 3), ("weekly", 8)]


@pytest.mark.parametrize("rule,expected", [
    (RecurrenceRule(weekdays=(1, 3), count=4), "Every week on Mon, Wed · 4 times"),
    (RecurrenceRule(weekdays=(2,), interval=2, until=utc(2024, 3, 5)), "Every 2 weeks on Tue · until Mar 5"),
    (RecurrenceRule(weekdays=(5,)), "Every week on Fri"),
    (RecurrenceRule(weekdays=(0, 6), count=1), "Every week on Sun, Sat · 1 time"),
])
def test_recurrence_summary(rule, expected):
    assert recurrence_summary(rule) == expected
    assert rule.summary == expected


def test_rule_round_trips_through_storage_json():
    rule = RecurrenceRule(weekdays=(1, 3), interval=2, count=3, until=utc(2024, 5, 1))
    assert rule.to_dict() == {"weekdays": [1, 3], "interval": 2, "count": 3, "until": "2024-05-01T00:00:00Z"}
    assert parse_recurrence(rule.to_json()) == rule
