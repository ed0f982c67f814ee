"""Timeline rows and overlays for the event heat map, plus the helpers that shape them."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SECOND = timedelta(seconds=1)
_EVENT_BUCKET_SECONDS = 60
_ADJUST_LIMIT = 60 * 1000


def _unix(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // _SECOND


@dataclass
class Overlay:
    text: str = ""
    start_date: int = 0
    duration: int = 0
    end_date: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "start_date": self.start_date,
            "duration": self.duration,
            "end_date": self.end_date,
        }


@dataclass
class TimelineRow:
    text: str = ""
    duration: int = 0
    kind: str = ""
    namespace: str = ""
    overlays: list[Overlay] = field(default_factory=list)
    changed_at: list[int] | None = None
    no_change_at: list[int] | None = None
    start_date: int = 0
    end_date: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "duration": self.duration,
            "kind": self.kind,
            "namespace": self.namespace,
            "overlays": None if self.overlays is None else [o.to_dict() for o in self.overlays],
            "changedat": None if self.changed_at is None else list(self.changed_at),
            "nochangeat": None if self.no_change_at is None else list(self.no_change_at),
            "start_date": self.start_date,
            "end_date": self.end_date,
        }


@dataclass
class ViewOptions:
    sort: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"sort": self.sort}


@dataclass
class TimelineRoot:
    view_opt: ViewOptions = field(default_factory=ViewOptions)
    rows: list[TimelineRow] | None = None

    def to_json(self) -> str:
        """Serialise as indented JSON in the layout the web page expects."""
        data = {
            "view_options": self.view_opt.to_dict(),
            "rows": None if self.rows is None else [row.to_dict() for row in self.rows],
        }
        text = json.dumps(data, indent=1, ensure_ascii=False)
        return (
            text.replace("<", "\\u003c")
            .replace(">", "\\u003e")
            .replace("&", "\\u0026")
            .replace("\u2028", "\\u2028")
            .replace("\u2029", "\\u2029")
        )


def take_newest(left: TimelineRow | None, right: TimelineRow | None) -> TimelineRow | None:
    """Return whichever row ends later; right wins ties."""
    if left is None:
        return right
    if right is None:
        return left
    return left if left.end_date > right.end_date else right


def reason_counts_to_overlays(
    minute_to_reason_counts: Mapping[int, Mapping[str, int]],
) -> list[Overlay]:
    """Build one overlay per minute bucket, labelled with its sorted reason counts."""
    overlays = []
    for minute, reason_counts in minute_to_reason_counts.items():
        if not reason_counts:
            continue
        text = " ".join(f"{reason}:{reason_counts[reason]}" for reason in sorted(reason_counts))
        overlays.append(
            Overlay(
                text=text,
                start_date=minute,
                duration=_EVENT_BUCKET_SECONDS,
                end_date=minute + _EVENT_BUCKET_SECONDS,
            )
        )
    overlays.sort(key=lambda overlay: overlay.start_date)
    return overlays


def adjust_overlays(rows: Iterable[TimelineRow]) -> None:
    """Move overlay edges in place so each overlay sits inside its row's time range."""
    rows = list(rows)
    for row in rows:
        for overlay in row.overlays or ():
            too_early = row.start_date - overlay.start_date
            if 0 < too_early < _ADJUST_LIMIT:
                overlay.start_date += too_early
                overlay.duration -= too_early
                if overlay.duration <= 0:
                    overlay.duration = 0
                    overlay.start_date = overlay.end_date
    for row in rows:
        for overlay in row.overlays or ():
            over = overlay.end_date - row.end_date
            if 0 < over < _ADJUST_LIMIT:
                overlay.end_date -= over
                overlay.duration -= over
                if overlay.duration <= 0:
                    overlay.duration = 0
                    overlay.end_date = overlay.start_date


def validate_rows(rows: Iterable[TimelineRow], request_id: str) -> list[str]:
    """Log and return every inconsistency found in the rows and their overlays."""
    problems: list[str] = []

    def report(message: str) -> None:
        text = f"reqId: {request_id} {message}"
        logger.error(text)
        problems.append(text)

    for row in rows:
        if row.start_date > row.end_date:
            report(f"d3 row has start {row.start_date} > end {row.end_date}")
        if row.start_date + row.duration != row.end_date:
            report(
                f"d3 row times are inconsistent. start {row.start_date} + duration "
                f"{row.duration} != end {row.end_date}.  Off by "
                f"{row.start_date + row.duration - row.end_date}"
            )
        if row.duration < 0:
            report(f"d3row has negative duration {row.duration}")

        for ol in row.overlays or ():
            if ol.start_date > ol.end_date:
                report(f"overlay has start {ol.start_date} > end {ol.end_date}")
            if ol.start_date + ol.duration != ol.end_date:
                report(
                    f"overlay times are inconsistent. start {ol.start_date} + duration "
                    f"{ol.duration} != end {ol.end_date}.  Off by "
                    f"{ol.start_date + ol.duration - ol.end_date}"
                )
            if ol.duration < 0:
                report(f"overlay has negative duration [{ol.text}] {ol.duration}")
            if ol.start_date < row.start_date:
                report(
                    f"overlay is outside the bounds of d3 row.  OL Start {ol.start_date} < "
                    f"D3 Start {row.start_date}.  Too early by {row.start_date - ol.start_date} ms"
                )
            if ol.end_date > row.end_date:
                ol_end = ol.start_date + ol.duration
                row_end = row.start_date + row.duration
                report(
                    f"overlay is outside the bounds of d3 row.  OL End {ol_end} > "
                    f"D3 End {row_end}.  Runs over by {ol_end - row_end} ms"
                )
    return problems


def filter_occurrences(occurrences: Iterable[int], start: datetime, end: datetime) -> list[int]:
    """Keep the unix times that fall within start..end inclusive."""
    low, high = _unix(start), _unix(end)
    return [when for when in occurrences if low <= when <= high]