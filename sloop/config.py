"""Runtime configuration, read from a YAML or JSON file and the command line."""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from datetime import timedelta
from fractions import Fraction
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

SLOOP_CONFIG_ENV_VAR = "SLOOP_CONFIG"

_UNITS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")
_OCTAL = re.compile(r"^[+-]?0[0-7]+$")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "1h30m", "90s" or "-1.5h"."""
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise invalid

    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole, frac, unit = match.groups()
        if not whole and not frac:
            raise invalid
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNITS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        value = Fraction(int(whole or "0"))
        if frac:
            value += Fraction(int(frac), 10 ** len(frac))
        total += value * _UNITS[unit]
        pos = match.end()

    result = timedelta(microseconds=int(total) // 1000)
    return -result if negative else result


def _nanoseconds(duration: timedelta) -> int:
    return (duration // timedelta(microseconds=1)) * 1000


@dataclass
class SloopConfig:
    config_file: str = ""
    left_bar_links: list[Any] | None = None
    resource_links: list[Any] | None = None
    disable_kube_watcher: bool = False
    kube_watch_resync_interval: timedelta = timedelta(minutes=30)
    web_files_path: str = "./pkg/sloop/webfiles"
    port: int = 8080
    store_root: str = "./data"
    max_lookback: timedelta = timedelta(hours=14 * 24)
    max_disk_mb: int = 32 * 1024
    debug_playback_file: str = ""
    debug_record_file: str = ""
    use_mock_badger: bool = False
    disable_store_manager: bool = False
    cleanup_frequency: timedelta = timedelta(minutes=1)
    keep_minor_node_updates: bool = False
    default_namespace: str = ""
    default_kind: str = ""
    default_lookback: str = ""
    use_kube_context: str = ""
    display_context: str = ""
    api_server_host: str = ""
    watch_crds: bool = False

    def to_yaml(self) -> str:
        """Render the configuration as YAML, keyed by the file field names."""
        data = {}
        for attr, key, kind in _FILE_FIELDS:
            value = getattr(self, attr)
            if kind == "duration":
                value = _nanoseconds(value)
            elif kind == "list" and value is not None:
                value = list(value)
            data[key] = value
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=True)

    def validate(self) -> None:
        """Raise ValueError when a setting is out of range."""
        if self.max_lookback <= timedelta(0):
            raise ValueError("SloopConfig value MaxLookback can not be <= 0")


_FILE_FIELDS: list[tuple[str, str, str]] = [
    ("config_file", "ConfigFile", "str"),
    ("left_bar_links", "leftBarLinks", "list"),
    ("resource_links", "resourceLinks", "list"),
    ("disable_kube_watcher", "disableKubeWatch", "bool"),
    ("kube_watch_resync_interval", "kubeWatchResyncInterval", "duration"),
    ("web_files_path", "webfilesPath", "str"),
    ("port", "port", "int"),
    ("store_root", "storeRoot", "str"),
    ("max_lookback", "maxLookBack", "duration"),
    ("max_disk_mb", "maxDiskMb", "int"),
    ("debug_playback_file", "debugPlaybackFile", "str"),
    ("debug_record_file", "debugRecordFile", "str"),
    ("use_mock_badger", "mockBadger", "bool"),
    ("disable_store_manager", "disableStoreManager", "bool"),
    ("cleanup_frequency", "cleanupFrequency", "duration"),
    ("keep_minor_node_updates", "keepMinorNodeUpdates", "bool"),
    ("default_namespace", "defaultNamespace", "str"),
    ("default_kind", "defaultKind", "str"),
    ("default_lookback", "defaultLookback", "str"),
    ("use_kube_context", "context", "str"),
    ("display_context", "displayContext", "str"),
    ("api_server_host", "apiServerHost", "str"),
    ("watch_crds", "watchCrds", "bool"),
]


@dataclass(frozen=True)
class _Flag:
    attr: str | None
    kind: str


_FLAGS: dict[str, _Flag] = {
    "config": _Flag("config_file", "str"),
    "disable-kube-watch": _Flag("disable_kube_watcher", "bool"),
    "kube-watch-resync-interval": _Flag("kube_watch_resync_interval", "duration"),
    "web-files-path": _Flag("web_files_path", "str"),
    "port": _Flag("port", "int"),
    "store-root": _Flag("store_root", "str"),
    "max-look-back": _Flag("max_lookback", "duration"),
    "max-disk-mb": _Flag("max_disk_mb", "int"),
    "playback-file": _Flag("debug_playback_file", "str"),
    "record-file": _Flag("debug_record_file", "str"),
    "use-mock-badger": _Flag("use_mock_badger", "bool"),
    "disable-store-manager": _Flag("disable_store_manager", "bool"),
    "cleanup-frequency": _Flag("cleanup_frequency", "duration"),
    "keep-minor-node-updates": _Flag("keep_minor_node_updates", "bool"),
    "context": _Flag("use_kube_context", "str"),
    "display-context": _Flag("display_context", "str"),
    "apiserver-host": _Flag("api_server_host", "str"),
    "watch-crds": _Flag("watch_crds", "bool"),
    # Logging flags are accepted and ignored.
    "logtostderr": _Flag(None, "bool"),
    "alsologtostderr": _Flag(None, "bool"),
    "v": _Flag(None, "int"),
    "stderrthreshold": _Flag(None, "int"),
    "vmodule": _Flag(None, "str"),
    "log_backtrace_at": _Flag(None, "str"),
}

_FLAG_ATTRS = {flag.attr for flag in _FLAGS.values() if flag.attr is not None}


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(text)


def _parse_int(text: str) -> int:
    if _OCTAL.match(text):
        return int(text, 8)
    return int(text, 0)


def _convert_flag(name: str, flag: _Flag, text: str) -> Any:
    try:
        if flag.kind == "bool":
            return _parse_bool(text)
        if flag.kind == "int":
            return _parse_int(text)
        if flag.kind == "duration":
            return parse_duration(text)
        return text
    except ValueError:
        raise ValueError(f'invalid value "{text}" for flag -{name}: parse error') from None


def _parse_flags(args: Sequence[str], config: SloopConfig) -> list[str]:
    """Apply command-line flags to config, returning the arguments after the flags."""
    args = list(args)
    pos = 0
    while pos < len(args):
        arg = args[pos]
        if len(arg) < 2 or arg[0] != "-":
            break
        dashes = 1
        if arg[1] == "-":
            dashes = 2
            if len(arg) == 2:
                pos += 1
                break
        body = arg[dashes:]
        if not body or body[0] in "-=":
            raise ValueError(f"bad flag syntax: {arg}")
        pos += 1
        name, has_value, value = body.partition("=")
        flag = _FLAGS.get(name)
        if flag is None:
            if name in ("help", "h"):
                raise ValueError("flag: help requested")
            raise ValueError(f"flag provided but not defined: -{name}")
        if flag.kind == "bool":
            text = value if has_value else "true"
        else:
            if not has_value:
                if pos >= len(args):
                    raise ValueError(f"flag needs an argument: -{name}")
                value = args[pos]
                pos += 1
            text = value
        parsed = _convert_flag(name, flag, text)
        if flag.attr is not None:
            setattr(config, flag.attr, parsed)
    return args[pos:]


def _coerce(key: str, kind: str, value: Any) -> Any:
    if kind == "str":
        if isinstance(value, str):
            return value
    elif kind == "bool":
        if isinstance(value, bool):
            return value
    elif kind == "int":
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif kind == "duration":
        if isinstance(value, str):
            return parse_duration(value)
        if isinstance(value, int) and not isinstance(value, bool):
            return timedelta(microseconds=value // 1000)
    elif kind == "list":
        if isinstance(value, list):
            return value
    raise ValueError(f"field {key!r} has an invalid value {value!r}")


def load_from_file(filename: str | os.PathLike[str]) -> SloopConfig:
    """Read a YAML or JSON config file; missing fields keep their defaults."""
    text = Path(filename).read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"failed to unmarshal {filename}. {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ValueError(f"failed to unmarshal {filename}. expected a mapping")

    by_key = {key.lower(): (attr, key, kind) for attr, key, kind in _FILE_FIELDS}
    config = SloopConfig()
    for raw_key, value in data.items():
        spec = by_key.get(str(raw_key).lower())
        if spec is None or value is None:
            continue
        attr, key, kind = spec
        try:
            setattr(config, attr, _coerce(key, kind, value))
        except ValueError as exc:
            raise ValueError(f"failed to unmarshal {filename}. {exc}") from exc
    return config


def _pre_parse_config_flag(argv: Sequence[str]) -> str:
    scratch = SloopConfig()
    try:
        _parse_flags(argv, scratch)
    except ValueError as exc:
        logger.warning("Failed to pre-parse flags looking for config file: %s", exc)
    return scratch.config_file


def load_config(
    argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None
) -> SloopConfig:
    """Build the configuration from a config file and command-line flags.

    The config file is named by -config or else by SLOOP_CONFIG. Settings that
    have a command-line flag take the flag's value or its default; the file
    supplies the settings that have no flag.
    """
    if argv is None:
        argv = sys.argv[1:]
    if environ is None:
        environ = os.environ

    filename = _pre_parse_config_flag(argv)
    logger.info("Config flag: %s", filename)
    if not filename:
        filename = environ.get(SLOOP_CONFIG_ENV_VAR, "")
        logger.info("Config env: %s", filename)

    config = SloopConfig()
    if filename:
        from_file = load_from_file(filename)
        for item in fields(SloopConfig):
            if item.name not in _FLAG_ATTRS:
                setattr(config, item.name, getattr(from_file, item.name))

    _parse_flags(argv, config)
    config.config_file = filename
    return config