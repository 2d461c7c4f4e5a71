from datetime import timedelta

import pytest

from meshadapter.envconfig import (
    EnvConfigError,
    get_env_bool,
    get_env_duration,
    get_env_float,
    get_env_int,
    get_env_string,
    parse_duration,
)

KEY = "MESHADAPTER_TEST_VAR"


@pytest.fixture(autouse=True)
def _clear_var(monkeypatch):
    monkeypatch.delenv(KEY, raising=False)


def test_string_default_when_unset():
    assert get_env_string(KEY, "fallback") == "fallback"


def test_string_empty_value_is_kept(monkeypatch):
    monkeypatch.setenv(KEY, "")
    assert get_env_string(KEY, "fallback") == ""


def test_string_value(monkeypatch):
    monkeypatch.setenv(KEY, "v2")
    assert get_env_string(KEY, "v1") == "v2"


def test_int_default_and_value(monkeypatch):
    assert get_env_int(KEY, 8085) == 8085
    monkeypatch.setenv(KEY, "8001")
    assert get_env_int(KEY, 8085) == 8001
    monkeypatch.setenv(KEY, "-1")
    assert get_env_int(KEY, 8085) == -1


@pytest.mark.parametrize("raw", ["", "abc", " 1", "1_000", "1.5", "99999999999999999999"])
def test_int_invalid(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    with pytest.raises(EnvConfigError) as info:
        get_env_int(KEY, 0)
    assert info.value.key == KEY
    assert info.value.value == raw


def test_float_value(monkeypatch):
    assert get_env_float(KEY, 1.25) == 1.25
    monkeypatch.setenv(KEY, "1.35")
    assert get_env_float(KEY, 1.25) == 1.35
    monkeypatch.setenv(KEY, "2e3")
    assert get_env_float(KEY, 1.25) == 2e3


@pytest.mark.parametrize("raw", ["", "x", "1.2.3", " 1"])
def test_float_invalid(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    with pytest.raises(EnvConfigError):
        get_env_float(KEY, 1.0)


@pytest.mark.parametrize("raw", ["1", "t", "T", "TRUE", "true", "True"])
def test_bool_true(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    assert get_env_bool(KEY, False) is True


@pytest.mark.parametrize("raw", ["0", "f", "F", "FALSE", "false", "False"])
def test_bool_false(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    assert get_env_bool(KEY, True) is False


@pytest.mark.parametrize("raw", ["", "yes", "tRUE", "2"])
def test_bool_invalid(monkeypatch, raw):
    monkeypatch.setenv(KEY, raw)
    with pytest.raises(EnvConfigError):
        get_env_bool(KEY, False)


def test_bool_default():
    assert get_env_bool(KEY, True) is True


def test_duration_default_and_value(monkeypatch):
    default = timedelta(seconds=30)
    assert get_env_duration(KEY, default) == default
    monkeypatch.setenv(KEY, "100ms")
    assert get_env_duration(KEY, default) == timedelta(milliseconds=100)


def test_duration_invalid(monkeypatch):
    monkeypatch.setenv(KEY, "soon")
    with pytest.raises(EnvConfigError):
        get_env_duration(KEY, timedelta(0))


@pytest.mark.parametrize(
    "text, expected",
    [
        ("0", timedelta(0)),
        ("3s", timedelta(seconds=3)),
        ("100ms", timedelta(milliseconds=100)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("-1.5h", -timedelta(hours=1.5)),
        ("+2m", timedelta(minutes=2)),
        (".5s", timedelta(seconds=0.5)),
        ("250us", timedelta(microseconds=250)),
        ("250\u00b5s", timedelta(microseconds=250)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "1", "abc", "1x", ".", "1s.", "-", "3 s"])
def test_parse_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)