"""Tests for settings stores and string codecs."""

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from onboarding.store import (
    InMemorySettingsStore,
    JsonFileSettingsStore,
    SettingsStore,
    format_bool,
    format_date,
    format_int,
    parse_bool,
    parse_date,
    parse_int,
)


class TestDateCodec:
    """'yyyy-MM-dd HH:mm:ss zzz' in UTC."""

    def test_format_date(self):
        assert format_date(date(2000, 1, 31)) == "2000-01-31 00:00:00 GMT"

    def test_format_aware_datetime_converts_to_utc(self):
        value = datetime(2000, 1, 31, 2, 30, tzinfo=timezone(timedelta(hours=5)))
        assert format_date(value) == "2000-01-30 21:30:00 GMT"

    def test_parse_gmt_and_utc(self):
        expected = datetime(2000, 1, 31, tzinfo=timezone.utc)
        assert parse_date("2000-01-31 00:00:00 GMT") == expected
        assert parse_date("2000-01-31 00:00:00 UTC") == expected

    @pytest.mark.parametrize("raw", ["2000-01-31", "31/01/2000 00:00:00 GMT", "2000-01-31 00:00:00 PST", ""])
    def test_parse_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_date(raw)


class TestScalarCodecs:
    def test_int(self):
        assert format_int(45) == "45"
        assert parse_int(" 45 ") == 45
        with pytest.raises(ValueError):
            parse_int("forty")

    def test_bool(self):
        assert format_bool(True) == "true"
        assert format_bool(False) == "false"
        assert parse_bool("TRUE") is True
        assert parse_bool("yes") is True
        assert parse_bool("0") is False
        assert parse_bool("") is False
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestInMemorySettingsStore:
    def test_get_set_remove(self):
        store = InMemorySettingsStore({"a": "1"})
        assert store.get("a") == "1"
        store.set("b", "2")
        store.remove("a")
        store.remove("missing")
        assert store.snapshot() == {"b": "2"}

    def test_satisfies_protocol(self):
        assert isinstance(InMemorySettingsStore(), SettingsStore)


class TestJsonFileSettingsStore:
    """Flat JSON file written on every change."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "settings.json"
        JsonFileSettingsStore(path).set("goalsStats", "30")

        reopened = JsonFileSettingsStore(path)
        assert reopened.get("goalsStats") == "30"
        assert json.loads(path.read_text()) == {"goalsStats": "30"}

    def test_remove(self, tmp_path):
        path = tmp_path / "settings.json"
        store = JsonFileSettingsStore(path)
        store.set("a", "1")
        store.remove("a")
        assert JsonFileSettingsStore(path).snapshot() == {}

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        assert JsonFileSettingsStore(path).snapshot() == {}

    def test_non_object_starts_empty(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")
        assert JsonFileSettingsStore(path).snapshot() == {}

    def test_no_temp_files_left(self, tmp_path):
        store = JsonFileSettingsStore(tmp_path / "settings.json")
        store.set("a", "1")
        store.set("b", "2")
        assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(JsonFileSettingsStore(tmp_path / "s.json"), SettingsStore)
