from datetime import datetime, timedelta, timezone

from sloop.eventcount import (
    adjust_for_max_lookback,
    compute_events_diff,
    distribute_value,
    spread_out_events,
)
from sloop.kubeextractor import ZERO_TIME, EventInfo, extract_event_info

UTC = timezone.utc

TS1 = datetime(2019, 8, 29, 21, 24, 55, tzinfo=UTC)
TS2 = TS1 + timedelta(minutes=1)
TS3 = TS1 + timedelta(minutes=2)
TS4 = TS1 + timedelta(minutes=3)

EVENT_PAYLOAD = """{
  "metadata": {
    "name": "someEventName",
    "namespace": "someNamespace",
    "uid": "someEventUid"
  },
  "involvedObject": {
    "kind": "Pod",
    "namespace": "someNamespace",
    "name": "somePodName",
    "uid": "somePodUid"
  },
  "reason":"failed",
  "firstTimestamp": "2019-08-29T21:24:55Z",
  "lastTimestamp": "2019-08-29T21:27:55Z",
  "count": 10,
  "type": "Warning"
}"""


def test_distribute_value():
    assert distribute_value(8, 0) == []
    assert distribute_value(8, 1) == [8]
    assert distribute_value(6, 3) == [2, 2, 2]
    assert distribute_value(7, 3) == [3, 2, 2]
    assert distribute_value(8, 3) == [3, 3, 2]
    assert distribute_value(9, 3) == [3, 3, 3]


def test_compute_events_diff_no_old_event():
    new = EventInfo(first_timestamp=TS1, last_timestamp=TS1, count=123)
    assert compute_events_diff(None, new) == (TS1, TS1, 123)


def test_compute_events_diff_dupe_event():
    new = EventInfo(first_timestamp=TS1, last_timestamp=TS1, count=123)
    assert compute_events_diff(new, new) == (ZERO_TIME, ZERO_TIME, 0)


def test_compute_events_diff_dupe_event_with_diff_count():
    prev = EventInfo(first_timestamp=TS1, last_timestamp=TS1, count=122)
    new = EventInfo(first_timestamp=TS1, last_timestamp=TS1, count=123)
    assert compute_events_diff(prev, new) == (ZERO_TIME, ZERO_TIME, 0)


def test_compute_events_diff_got_an_old_event():
    prev = EventInfo(first_timestamp=TS1, last_timestamp=TS3, count=10)
    new = EventInfo(first_timestamp=TS1, last_timestamp=TS2, count=13)
    assert compute_events_diff(prev, new) == (ZERO_TIME, ZERO_TIME, 0)


def test_compute_events_diff_new_events_with_more_count():
    prev = EventInfo(first_timestamp=TS1, last_timestamp=TS2, count=10)
    new = EventInfo(first_timestamp=TS1, last_timestamp=TS3, count=13)
    assert compute_events_diff(prev, new) == (TS2, TS3, 3)


def test_compute_events_diff_partially_overlapping():
    prev = EventInfo(first_timestamp=TS1, last_timestamp=TS3, count=10)
    new = EventInfo(first_timestamp=TS2, last_timestamp=TS4, count=6)
    assert compute_events_diff(prev, new) == (TS3, TS4, 1)


def test_compute_events_diff_non_overlapping_returns_new():
    prev = EventInfo(first_timestamp=TS1, last_timestamp=TS2, count=2)
    new = EventInfo(first_timestamp=TS3, last_timestamp=TS4, count=1)
    assert compute_events_diff(prev, new) == (TS3, TS4, 1)


def test_compute_events_diff_lower_count_same_start():
    prev = EventInfo(first_timestamp=TS1, last_timestamp=TS2, count=10)
    new = EventInfo(first_timestamp=TS1, last_timestamp=TS3, count=5)
    assert compute_events_diff(prev, new) == (ZERO_TIME, ZERO_TIME, 0)


def test_adjust_for_max_lookback_short_event_no_change():
    assert adjust_for_max_lookback(TS3, TS4, 100, TS1) == (TS3, TS4, 100)


def test_adjust_for_max_lookback_long_event_gets_truncated():
    assert adjust_for_max_lookback(TS1, TS4, 1000, TS3) == (TS3, TS4, 333)


def test_spread_out_events_same_minute():
    assert spread_out_events(TS1, TS1, 5) == {1567113900: 5}


def test_spread_out_events_rounds_half_up():
    half = datetime(2019, 8, 29, 21, 24, 30, tzinfo=UTC)
    just_before = datetime(2019, 8, 29, 21, 24, 29, 999999, tzinfo=UTC)
    assert spread_out_events(half, half, 2) == {1567113900: 2}
    assert spread_out_events(just_before, just_before, 2) == {1567113840: 2}


def test_spread_out_events_over_minutes():
    result = spread_out_events(TS1, TS4, 10)
    assert result == {1567113900: 4, 1567113960: 3, 1567114020: 3}
    assert sum(result.values()) == 10


def test_spread_out_events_drops_empty_minutes():
    result = spread_out_events(TS1, TS4, 2)
    assert result == {1567113900: 1, 1567113960: 1}


def test_new_event_spread_matches_stored_counts():
    watch_ts = datetime(2019, 8, 29, 21, 24, 55, tzinfo=UTC)
    info = extract_event_info(EVENT_PAYLOAD)
    first, last, count = compute_events_diff(None, info)
    first, last, count = adjust_for_max_lookback(
        first, last, count, watch_ts - timedelta(days=14)
    )
    minutes = spread_out_events(first, last, count)
    assert len(minutes) == 3
    assert minutes[1567113900] == 4
    assert f"{info.reason}:{info.type}" == "failed:Warning"


def test_dupe_event_adds_nothing():
    info = extract_event_info(EVENT_PAYLOAD)
    assert compute_events_diff(info, info)[2] == 0