# sloop

Building blocks for recording and viewing the history of a Kubernetes
cluster. The package works on the JSON payloads that Kubernetes watches
deliver and turns them into data that a timeline view can show.

## Modules

- `sloop.kubeextractor` reads the parts of a watch payload that matter.
  `extract_metadata`, `extract_involved_object` and `extract_event_info`
  return `KubeMetadata`, `KubeInvolvedObject` and `EventInfo` values and raise
  `ValueError` on malformed JSON. Timestamps that cannot be parsed become
  `ZERO_TIME`. `get_involved_object_name_from_event_name` strips the suffix
  after the last dot of an event name (and raises `ValueError` when there is
  none), `is_cluster_scoped_resource` is true for `Node` and `Namespace`, and
  `node_has_major_update` compares two node payloads after
  `remove_res_ver_and_timestamp` has blanked their resource version and
  condition heartbeat times.
- `sloop.eventcount` turns the cumulative counts that Kubernetes events carry
  into new events per minute: `compute_events_diff` subtracts a previous
  report from a new one, `adjust_for_max_lookback` clips a range to a cut-off
  time keeping a proportional share of the count, `spread_out_events` spreads
  a count over the minutes of a range (keyed by unix minute) and
  `distribute_value` splits a number into nearly equal parts.
- `sloop.timeline` holds the rows of the timeline view (`TimelineRoot`,
  `TimelineRow`, `Overlay`, `ViewOptions`) and the steps that build and tidy
  them: `reason_counts_to_overlays` makes one overlay per minute bucket,
  `take_newest` picks the row that ends later, `adjust_overlays` moves overlay
  edges inside their row, `validate_rows` logs and returns inconsistencies and
  `filter_occurrences` keeps unix times inside a range.
  `TimelineRoot.to_json()` renders indented JSON.
- `sloop.filters` holds the query parameter names (`KIND_PARAM`,
  `NAMESPACE_PARAM`, `ALL_KINDS`, `ALL_NAMESPACES` and others) and the
  predicates that select rows: `keep_row`, `combine_predicates`,
  `event_in_time_range` and `involved_object_kind_matches`.
- `sloop.config` holds `SloopConfig`. `load_from_file` reads a YAML or JSON
  file; `load_config` combines a file with command-line flags;
  `SloopConfig.validate()` raises `ValueError` when `max_lookback` is not
  positive; `SloopConfig.to_yaml()` renders the settings (durations as
  nanoseconds). `parse_duration` reads durations such as `30m`, `1h30m` or
  `336h`.

## Example

```python
from sloop.kubeextractor import extract_event_info, extract_involved_object
from sloop.eventcount import compute_events_diff, spread_out_events

payload = """{
  "involvedObject": {"kind": "Pod", "namespace": "ns", "name": "web-1", "uid": "uid-1"},
  "reason": "Unhealthy",
  "firstTimestamp": "2019-08-29T21:24:55Z",
  "lastTimestamp": "2019-08-29T21:27:55Z",
  "count": 10,
  "type": "Warning"
}"""

involved = extract_involved_object(payload)
info = extract_event_info(payload)
first, last, count = compute_events_diff(None, info)
per_minute = spread_out_events(first, last, count)
print(involved.name, info.reason, per_minute)
```

## Configuration

```python
from sloop.config import load_config

config = load_config(["--port", "9090", "--max-look-back", "72h"], {})
config.validate()
print(config.to_yaml())
```

The config file is named with `--config`, or else with the `SLOOP_CONFIG`
entry of the environment mapping passed to `load_config`. Settings that have
a command-line flag take the flag's value, or its default when the flag is
not given; the file supplies only the settings that have no flag
(`left_bar_links`, `resource_links`, `default_namespace`, `default_kind`,
`default_lookback`). `load_from_file` on its own reads every setting from the
file.

## What it does not do

The package has no command to run and does not connect to a cluster. It does
not watch resources, keep a store of past payloads, run garbage collection or
serve a web page; it provides the extraction, counting, filtering, timeline
and configuration pieces that such a program would use.