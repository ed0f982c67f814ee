"""Helpers that pull structured data out of Kubernetes watch payloads."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

logger = logging.getLogger(__name__)

NODE_KIND = "Node"
NAMESPACE_KIND = "Namespace"
POD_KIND = "Pod"
EVENT_KIND = "Event"

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
"""The timestamp used where a payload has no usable time."""

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(\.\d+)?(Z|[+-]\d{2}:\d{2})$"
)


@dataclass
class KubeMetadataOwnerReference:
    kind: str = ""
    name: str = ""
    uid: str = ""


@dataclass
class KubeMetadata:
    name: str = ""
    namespace: str = ""
    uid: str = ""
    self_link: str = ""
    resource_version: str = ""
    creation_timestamp: str = ""
    owner_references: list[KubeMetadataOwnerReference] = field(default_factory=list)


@dataclass
class KubeInvolvedObject:
    kind: str = ""
    name: str = ""
    namespace: str = ""
    uid: str = ""


@dataclass
class EventInfo:
    reason: str = ""
    type: str = ""
    first_timestamp: datetime = ZERO_TIME
    last_timestamp: datetime = ZERO_TIME
    count: int = 0


def _load_object(payload: str) -> dict[str, Any]:
    data = json.loads(payload)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _field(obj: dict[str, Any], name: str) -> Any:
    """Look a key up case-insensitively; the last matching key wins."""
    wanted = name.lower()
    value = None
    for key, item in obj.items():
        if key.lower() == wanted:
            value = item
    return value


def _string(obj: dict[str, Any], name: str) -> str:
    value = _field(obj, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {name!r} must be a string, got {value!r}")
    return value


def _object(obj: dict[str, Any], name: str) -> dict[str, Any]:
    value = _field(obj, name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"field {name!r} must be an object, got {value!r}")
    return value


def _integer(obj: dict[str, Any], name: str) -> int:
    value = _field(obj, name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {name!r} must be an integer, got {value!r}")
    return value


def _owner_reference(obj: Any) -> KubeMetadataOwnerReference:
    if obj is None:
        return KubeMetadataOwnerReference()
    if not isinstance(obj, dict):
        raise ValueError(f"owner reference must be an object, got {obj!r}")
    return KubeMetadataOwnerReference(
        kind=_string(obj, "kind"), name=_string(obj, "name"), uid=_string(obj, "uid")
    )


def extract_metadata(payload: str) -> KubeMetadata:
    """Return the metadata block of a watch payload."""
    meta = _object(_load_object(payload), "metadata")
    refs = _field(meta, "ownerReferences")
    if refs is None:
        refs = []
    elif not isinstance(refs, list):
        raise ValueError(f"field 'ownerReferences' must be a list, got {refs!r}")
    return KubeMetadata(
        name=_string(meta, "name"),
        namespace=_string(meta, "namespace"),
        uid=_string(meta, "uid"),
        self_link=_string(meta, "selfLink"),
        resource_version=_string(meta, "resourceVersion"),
        creation_timestamp=_string(meta, "creationTimestamp"),
        owner_references=[_owner_reference(ref) for ref in refs],
    )


def extract_involved_object(payload: str) -> KubeInvolvedObject:
    """Return the involved object of an event payload."""
    obj = _object(_load_object(payload), "involvedObject")
    return KubeInvolvedObject(
        kind=_string(obj, "kind"),
        name=_string(obj, "name"),
        namespace=_string(obj, "namespace"),
        uid=_string(obj, "uid"),
    )


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339.match(text)
    if match is None:
        raise ValueError(f"not an RFC 3339 timestamp: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction[1:] + "000000")[:6]) if fraction else 0
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * offset)
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


def extract_event_info(payload: str) -> EventInfo:
    """Return reason, type, time range and count of an event payload."""
    obj = _load_object(payload)
    reason = _string(obj, "reason")
    first_text = _string(obj, "firstTimestamp")
    last_text = _string(obj, "lastTimestamp")
    count = _integer(obj, "count")
    severity = _string(obj, "type")

    try:
        first = _parse_rfc3339(first_text)
    except ValueError:
        logger.error("Could not parse first timestamp %s", first_text)
        first = ZERO_TIME

    try:
        last = _parse_rfc3339(last_text)
    except ValueError:
        logger.error("Could not parse last timestamp %s", last_text)
        last = ZERO_TIME
        first = ZERO_TIME

    return EventInfo(
        reason=reason, type=severity, first_timestamp=first, last_timestamp=last, count=count
    )


def get_involved_object_name_from_event_name(event_name: str) -> str:
    """Strip the unique suffix that Kubernetes appends to event names."""
    dot = event_name.rfind(".")
    if dot < 0:
        raise ValueError(f"unexpected format for a k8s event name: {event_name}")
    return event_name[:dot]


def is_cluster_scoped_resource(kind: str) -> bool:
    return kind in (NODE_KIND, NAMESPACE_KIND)


def _set_path(root: Any, value: Any, path: list[str]) -> None:
    target = root
    for depth, segment in enumerate(path):
        last = depth == len(path) - 1
        if isinstance(target, dict):
            if last:
                target[segment] = value
                return
            child = target.get(segment)
            if child is None:
                child = {}
                target[segment] = child
            target = child
        elif isinstance(target, list):
            try:
                index = int(segment)
            except ValueError:
                raise ValueError(f"index {segment!r} is not a valid integer") from None
            if index < 0 or index >= len(target):
                raise ValueError(f"index {index} exceeds array size {len(target)}")
            if last:
                target[index] = value
                return
            child = target[index]
            if child is None:
                raise ValueError(f"field {'.'.join(path[: depth + 1])} was not found")
            target = child
        else:
            raise ValueError(f"path {'.'.join(path)} collides with a non-container value")


def _dump_json(data: Any) -> str:
    text = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def remove_res_ver_and_timestamp(node_json: str) -> str:
    """Blank out the fields of a node that change on every heartbeat."""
    try:
        root = json.loads(node_json)
    except ValueError as exc:
        raise ValueError(f"Failed to parse json for node resource: {exc}") from exc

    try:
        _set_path(root, "removed", ["metadata", "resourceVersion"])
    except ValueError as exc:
        raise ValueError(
            f"Could not replace metadata.resourceVersion in node resource: {exc}"
        ) from exc

    status = root.get("status") if isinstance(root, dict) else None
    conditions = status.get("conditions") if isinstance(status, dict) else None
    num_conditions = len(conditions) if isinstance(conditions, (list, dict)) else 0

    for idx in range(num_conditions):
        try:
            _set_path(root, "removed", ["status", "conditions", str(idx), "lastHeartbeatTime"])
        except ValueError as exc:
            raise ValueError(f"Could not set node condition: {exc}") from exc

    return _dump_json(root)


def node_has_major_update(node1: str, node2: str) -> bool:
    """True when two node payloads differ beyond resource version and heartbeats."""
    return remove_res_ver_and_timestamp(node1) != remove_res_ver_and_timestamp(node2)