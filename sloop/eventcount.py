"""Arithmetic for turning repeated Kubernetes event reports into per-minute counts."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone

from sloop.kubeextractor import ZERO_TIME, EventInfo

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MINUTE = timedelta(minutes=1)
_SECOND = timedelta(seconds=1)


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def _round_to_minute(moment: datetime) -> datetime:
    moment = _aware(moment)
    remainder = (moment - _EPOCH) % _MINUTE
    if remainder + remainder < _MINUTE:
        return moment - remainder
    return moment + (_MINUTE - remainder)


def _unix(moment: datetime) -> int:
    return (_aware(moment) - _EPOCH) // _SECOND


def distribute_value(value: int, buckets: int) -> list[int]:
    """Split value into buckets nearly equal parts, larger parts first."""
    if buckets <= 0:
        return []
    quotient = abs(value) // buckets
    if value < 0:
        quotient = -quotient
    remainder = value - quotient * buckets
    return [quotient + (1 if remainder > pos else 0) for pos in range(buckets)]


def spread_out_events(first_ts: datetime, last_ts: datetime, count: int) -> dict[int, int]:
    """Spread count over the minutes between two times, keyed by unix minute."""
    first_round = _round_to_minute(first_ts)
    last_round = _round_to_minute(last_ts)
    if first_round == last_round:
        return {_unix(first_round): count}

    num_minutes = max(1, math.ceil((last_round - first_round) / _MINUTE))
    return {
        _unix(first_round + idx * _MINUTE): bucket
        for idx, bucket in enumerate(distribute_value(count, num_minutes))
        if bucket > 0
    }


def compute_events_diff(
    prev_event_info: EventInfo | None, new_event_info: EventInfo
) -> tuple[datetime, datetime, int]:
    """Return the time range and count of events not covered by the previous report."""
    nothing = (ZERO_TIME, ZERO_TIME, 0)
    if prev_event_info is None:
        return new_event_info.first_timestamp, new_event_info.last_timestamp, new_event_info.count

    if prev_event_info.last_timestamp < new_event_info.first_timestamp:
        return new_event_info.first_timestamp, new_event_info.last_timestamp, new_event_info.count

    if prev_event_info.last_timestamp >= new_event_info.last_timestamp:
        return nothing

    if prev_event_info.first_timestamp == new_event_info.first_timestamp:
        if new_event_info.count < prev_event_info.count:
            logger.error(
                "New event has a lower count than previous event with same start time! Old %s New %s",
                prev_event_info,
                new_event_info,
            )
            return nothing
        return (
            prev_event_info.last_timestamp,
            new_event_info.last_timestamp,
            new_event_info.count - prev_event_info.count,
        )

    logger.error("Encountered partially overlapping events.  Attempting to guess new count")
    old_seconds = (prev_event_info.last_timestamp - prev_event_info.first_timestamp).total_seconds()
    overlap_seconds = (
        prev_event_info.last_timestamp - new_event_info.first_timestamp
    ).total_seconds()
    if old_seconds <= 0:
        return nothing
    pct_overlap = overlap_seconds / old_seconds
    new_count = max(0, new_event_info.count - int(prev_event_info.count * pct_overlap))
    return prev_event_info.last_timestamp, new_event_info.last_timestamp, new_count


def adjust_for_max_lookback(
    first_ts: datetime, last_ts: datetime, count: int, truncate_ts: datetime
) -> tuple[datetime, datetime, int]:
    """Clip a range that starts before truncate_ts, keeping a proportional share of count."""
    if first_ts > truncate_ts:
        return first_ts, last_ts, count
    total_seconds = (last_ts - first_ts).total_seconds()
    if total_seconds <= 0:
        return truncate_ts, last_ts, 0
    before_seconds = (truncate_ts - first_ts).total_seconds()
    pct_to_keep = (total_seconds - before_seconds) / total_seconds
    return truncate_ts, last_ts, int(count * pct_to_keep)