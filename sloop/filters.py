"""Query parameter names and the row and value predicates used when reading the store."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from sloop.kubeextractor import (
    NAMESPACE_KIND,
    NODE_KIND,
    extract_event_info,
    extract_involved_object,
)

LOOKBACK_PARAM = "lookback"
NAMESPACE_PARAM = "namespace"
KIND_PARAM = "kind"
NAME_PARAM = "name"
NAME_MATCH_PARAM = "namematch"
UUID_PARAM = "uuid"
START_DATE_PARAM = "start_date"
END_DATE_PARAM = "end_date"
CLICK_TIME_PARAM = "click_time"
QUERY_PARAM = "query"
SORT_PARAM = "sort"

ALL_KINDS = "_all"
ALL_NAMESPACES = "_all"
DEFAULT_NAMESPACE = "default"

PayloadPredicate = Callable[[str], bool]


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def keep_row(
    name: str,
    kind: str,
    namespace: str,
    selected_kind: str,
    selected_namespace: str,
    name_substring: str,
    name_exact: str,
    selected_uuid: str,
    uuid: str,
) -> bool:
    """Decide whether a row with the given identity passes the user's filters."""
    if selected_kind != ALL_KINDS:
        if selected_kind != kind:
            return False
    elif selected_namespace != ALL_NAMESPACES and kind == NODE_KIND:
        # Nodes have no namespace, so hide them when a namespace is chosen.
        return False

    if selected_namespace != ALL_NAMESPACES and selected_kind != NODE_KIND:
        if kind == NAMESPACE_KIND:
            # A namespace is matched on its own name.
            if selected_namespace != name:
                return False
        elif selected_namespace != namespace:
            return False

    if name_substring and name_substring not in name:
        return False

    if name_exact and name.casefold() != name_exact.casefold():
        return False

    if selected_uuid and selected_uuid != uuid:
        return False

    return True


def combine_predicates(*args: PayloadPredicate) -> PayloadPredicate:
    """Return a predicate that holds only when every given predicate holds."""

    def combined(payload: str) -> bool:
        return all(predicate(payload) for predicate in args)

    return combined


def event_in_time_range(start: datetime, end: datetime) -> PayloadPredicate:
    """Predicate on an event payload: true when its time range overlaps start..end."""
    start, end = _aware(start), _aware(end)

    def in_range(payload: str) -> bool:
        try:
            info = extract_event_info(payload)
        except ValueError:
            return False
        return not (
            _aware(info.first_timestamp) > end or _aware(info.last_timestamp) < start
        )

    return in_range


def involved_object_kind_matches(selected_kind: str) -> PayloadPredicate:
    """Predicate on an event payload: true when its involved object has the given kind."""

    def matches(payload: str) -> bool:
        try:
            involved = extract_involved_object(payload)
        except ValueError:
            return False
        return involved.kind == selected_kind

    return matches