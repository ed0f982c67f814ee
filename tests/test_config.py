from datetime import timedelta

import pytest
import yaml

from sloop.config import (
    SloopConfig,
    load_config,
    load_from_file,
    parse_duration,
)


def test_parse_duration_simple_units():
    assert parse_duration("30m") == timedelta(minutes=30)
    assert parse_duration("0") == timedelta(0)
    assert parse_duration("48h") == timedelta(hours=48)


def test_parse_duration_invariants():
    assert parse_duration("1.5h") == parse_duration("90m")
    assert parse_duration("1h30m") == parse_duration("90m")
    assert parse_duration("-2s") == -parse_duration("2s")
    assert parse_duration("+2s") == parse_duration("2s")
    assert parse_duration("1000ms") == parse_duration("1s")


@pytest.mark.parametrize("text", ["", "1", "1x", ".s", "abc", "-", "1.5.3h"])
def test_parse_duration_errors(text):
    with pytest.raises(ValueError):
        parse_duration(text)


@pytest.mark.parametrize("lookback", [timedelta(0), timedelta(hours=-1)])
def test_validate_rejects_non_positive_lookback(lookback):
    with pytest.raises(ValueError, match="MaxLookback"):
        SloopConfig(max_lookback=lookback).validate()


def test_to_yaml_uses_file_field_names():
    data = yaml.safe_load(SloopConfig().to_yaml())
    assert data["port"] == 8080
    assert data["storeRoot"] == "./data"
    assert data["leftBarLinks"] is None
    assert "ConfigFile" in data


def test_yaml_round_trip(tmp_path):
    original = SloopConfig(
        port=9090,
        default_namespace="myns",
        max_lookback=parse_duration("36h"),
        left_bar_links=[{"text": "home"}],
        watch_crds=True,
    )
    path = tmp_path / "sloop.yaml"
    path.write_text(original.to_yaml())
    assert load_from_file(path) == original


def test_load_from_file_accepts_duration_strings_and_any_key_case(tmp_path):
    path = tmp_path / "sloop.yaml"
    path.write_text("maxLookBack: 48h\nPORT: 1234\nunknownKey: 1\n")
    config = load_from_file(path)
    assert config.max_lookback == parse_duration("48h")
    assert config.port == 1234
    assert config.store_root == SloopConfig().store_root


def test_load_from_file_bad_type(tmp_path):
    path = tmp_path / "sloop.yaml"
    path.write_text("port: notanumber\n")
    with pytest.raises(ValueError):
        load_from_file(path)


def test_load_from_file_missing():
    with pytest.raises(OSError):
        load_from_file("/nonexistent/dir/sloop.yaml")


def test_load_config_flags():
    config = load_config(["-port", "9090", "--store-root=/tmp/x", "-watch-crds"], {})
    assert config.port == 9090
    assert config.store_root == "/tmp/x"
    assert config.watch_crds is True
    assert config.config_file == ""


def test_load_config_bool_and_duration_flags():
    config = load_config(["-watch-crds=false", "-max-look-back=48h"], {})
    assert config.watch_crds is False
    assert config.max_lookback == timedelta(hours=48)


def test_load_config_defaults_without_arguments():
    assert load_config([], {}) == SloopConfig()


def test_load_config_logging_flags_are_ignored():
    config = load_config(["-v=2", "-alsologtostderr", "-port=7070"], {})
    assert config.port == 7070


def test_load_config_stops_at_first_positional():
    config = load_config(["extra", "-port", "1"], {})
    assert config.port == 8080


@pytest.mark.parametrize(
    "argv",
    [["-nosuchflag"], ["-port"], ["-port=abc"], ["-h"], ["---port=1"], ["-watch-crds=maybe"]],
)
def test_load_config_flag_errors(argv):
    with pytest.raises(ValueError):
        load_config(argv, {})


def test_load_config_file_from_environment(tmp_path):
    path = tmp_path / "sloop.yaml"
    path.write_text("defaultNamespace: fromfile\nport: 1234\n")
    config = load_config([], {"SLOOP_CONFIG": str(path)})
    assert config.default_namespace == "fromfile"
    # Settings with a flag come from the command line or its default.
    assert config.port == 8080
    assert config.config_file == str(path)


def test_load_config_file_flag_wins_over_environment(tmp_path):
    flag_file = tmp_path / "flag.yaml"
    flag_file.write_text("defaultKind: Pod\n")
    env_file = tmp_path / "env.yaml"
    env_file.write_text("defaultKind: Node\n")
    config = load_config(
        ["-config", str(flag_file), "-port", "9090"], {"SLOOP_CONFIG": str(env_file)}
    )
    assert config.default_kind == "Pod"
    assert config.port == 9090
    assert config.config_file == str(flag_file)