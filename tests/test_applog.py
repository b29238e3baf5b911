import json

import pytest

from gameuser import applog


def _last_entry(capsys):
    lines = [line for line in capsys.readouterr().err.splitlines() if line]
    return json.loads(lines[-1])


def test_info_writes_json_with_fields(capsys):
    applog.info("hello", user_id=7)
    entry = _last_entry(capsys)
    assert entry["msg"] == "hello"
    assert entry["level"] == "INFO"
    assert entry["user_id"] == 7
    assert "timestamp" in entry


def test_error_serialises_exceptions(capsys):
    exc = ValueError("boom")
    applog.error("failed to unmarshal user from cache", error=exc)
    entry = _last_entry(capsys)
    assert entry["msg"] == "failed to unmarshal user from cache"
    assert entry["error"] == str(exc)


def test_warn_level_name(capsys):
    applog.warn("careful")
    assert _last_entry(capsys)["level"] == "WARN"


def test_debug_is_below_threshold(capsys):
    applog.debug("hidden detail")
    assert capsys.readouterr().err == ""


def test_with_field_binds_value(capsys):
    bound = applog.with_field("request_id", "abc")
    bound.info("first")
    bound.info("second", extra_key=3)
    lines = [json.loads(line) for line in capsys.readouterr().err.splitlines()]
    assert [line["request_id"] for line in lines] == ["abc", "abc"]
    assert lines[1]["extra_key"] == 3
    assert "extra_key" not in lines[0]


def test_with_fields_does_not_change_shared_logger(capsys):
    applog.with_fields(a=1, b=2).info("bound")
    applog.info("plain")
    bound_entry, plain_entry = [
        json.loads(line) for line in capsys.readouterr().err.splitlines()
    ]
    assert (bound_entry["a"], bound_entry["b"]) == (1, 2)
    assert "a" not in plain_entry


def test_get_logger_writes_shared_output(capsys):
    applog.get_logger().info("shared")
    entry = _last_entry(capsys)
    assert entry["msg"] == "shared"
    assert entry["level"] == "INFO"


def test_fatal_logs_and_exits(capsys):
    with pytest.raises(SystemExit) as excinfo:
        applog.fatal("cannot continue", reason="config")
    assert excinfo.value.code == 1
    entry = _last_entry(capsys)
    assert entry["msg"] == "cannot continue"
    assert entry["reason"] == "config"


def test_sync_keeps_output(capsys):
    applog.info("flushed")
    applog.sync()
    assert _last_entry(capsys)["msg"] == "flushed"