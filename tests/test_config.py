"""Tests for environment parsing helpers."""

import pytest

from tugboat import config


class TestCommandScope:
    @pytest.mark.parametrize("raw, expected", [
        ("guild", "guild"),
        ("global", "global"),
        (" GLOBAL ", "global"),
    ])
    def test_valid(self, raw, expected):
        assert config.parse_command_scope(raw) == expected

    @pytest.mark.parametrize("raw", ["server", "", None])
    def test_invalid(self, raw):
        with pytest.raises(ValueError, match="can only be one of either 'guild' or 'global'"):
            config.parse_command_scope(raw)


class TestGuildIds:
    def test_parses_list(self):
        assert config.parse_guild_ids("123, 456,,789 ") == [123, 456, 789]

    def test_empty(self):
        assert config.parse_guild_ids("") == []

    def test_invalid_id(self):
        with pytest.raises(ValueError, match="abc"):
            config.parse_guild_ids("123,abc")


class TestIntEnv:
    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("TUGBOAT_TEST_INT", raising=False)
        assert config._int_env("TUGBOAT_TEST_INT", 60) == 60

    def test_reads_value(self, monkeypatch):
        monkeypatch.setenv("TUGBOAT_TEST_INT", "5")
        assert config._int_env("TUGBOAT_TEST_INT", 60) == 5

    @pytest.mark.parametrize("raw", ["ten", "0", "-3"])
    def test_rejects_bad_values(self, monkeypatch, raw):
        monkeypatch.setenv("TUGBOAT_TEST_INT", raw)
        with pytest.raises(ValueError):
            config._int_env("TUGBOAT_TEST_INT", 60)


def test_defaults_match_documented_behaviour():
    assert config.MAX_TTS_LENGTH == 350
    assert set(config.GENDER_LABELS) == {"FEMALE", "MALE", "NEUTRAL"}
    assert all(name.endswith("Neural") for name, _, _ in config.FALLBACK_VOICES)
