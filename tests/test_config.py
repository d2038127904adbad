"""Tests for environment and settings configuration."""

import pytest

from rxstream import Environment, StreamConfigError, StreamSettings, load_settings_from_env


class TestEnvironment:
    def test_env_var_names(self):
        assert Environment.PROD.env_var == "RXSTREAM_PROD_URL"
        assert Environment.LOCAL.env_var == "RXSTREAM_LOCAL_URL"

    def test_local_has_default(self, monkeypatch):
        monkeypatch.delenv("RXSTREAM_LOCAL_URL", raising=False)
        assert Environment.LOCAL.base_url == "ws://localhost:8888"

    def test_remote_without_config_is_empty(self, monkeypatch):
        monkeypatch.delenv("RXSTREAM_RC_URL", raising=False)
        assert Environment.RC.base_url == ""

    def test_base_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("RXSTREAM_RC_URL", " wss://rc.test ")
        assert Environment.RC.base_url == "wss://rc.test"

    @pytest.mark.parametrize("name", ["prod", "PROD", " Dev ", "local"])
    def test_parse(self, name):
        assert Environment.parse(name).value == name.strip().lower()

    def test_parse_unknown(self):
        with pytest.raises(StreamConfigError, match="staging"):
            Environment.parse("staging")


class TestLoadSettings:
    def test_base_url_wins(self):
        settings = load_settings_from_env(
            {
                "RXSTREAM_BASE_URL": "wss://direct.test",
                "RXSTREAM_ENV": "local",
                "RXSTREAM_USER_ID": "u1",
                "RXSTREAM_USER_TOKEN": "t1",
            }
        )
        assert settings.base_url == "wss://direct.test"
        assert settings.user_id == "u1"
        assert settings.user_token == "t1"

    def test_env_selects_environment(self):
        settings = load_settings_from_env(
            {"RXSTREAM_ENV": "dev", "RXSTREAM_DEV_URL": "wss://dev.test"}
        )
        assert settings.base_url == "wss://dev.test"

    def test_local_default(self):
        assert load_settings_from_env({"RXSTREAM_ENV": "local"}).base_url == "ws://localhost:8888"

    def test_defaults(self):
        settings = load_settings_from_env({})
        assert settings.base_url == ""
        assert settings.user_id == ""
        assert settings.debug is False
        assert settings.path == "/engine.io"
        assert settings.force_websockets is False
        assert settings.registration_timeout == 5.0
        assert settings.reconnect_delay == 5.0

    def test_parsed_values(self):
        settings = load_settings_from_env(
            {
                "RXSTREAM_BASE_URL": "ws://h.test",
                "RXSTREAM_DEBUG": "yes",
                "RXSTREAM_PATH": "/ws",
                "RXSTREAM_FORCE_WEBSOCKETS": "1",
                "RXSTREAM_REGISTRATION_TIMEOUT": "2.5",
                "RXSTREAM_RECONNECT_DELAY": "10",
            }
        )
        assert settings.debug is True
        assert settings.path == "/ws"
        assert settings.force_websockets is True
        assert settings.registration_timeout == 2.5
        assert settings.reconnect_delay == 10.0

    @pytest.mark.parametrize(
        "environ",
        [
            {"RXSTREAM_ENV": "staging"},
            {"RXSTREAM_DEBUG": "maybe"},
            {"RXSTREAM_REGISTRATION_TIMEOUT": "soon"},
            {"RXSTREAM_RECONNECT_DELAY": "0"},
            {"RXSTREAM_RECONNECT_DELAY": "-1"},
        ],
    )
    def test_invalid_values(self, environ):
        with pytest.raises(StreamConfigError):
            load_settings_from_env(environ)

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("RXSTREAM_BASE_URL", "ws://env.test")
        monkeypatch.setenv("RXSTREAM_USER_ID", "u9")
        settings = load_settings_from_env()
        assert settings.base_url == "ws://env.test"
        assert settings.user_id == "u9"


def test_settings_repr_masks_token():
    settings = StreamSettings("wss://x.test", "u1", "secret-token")
    text = repr(settings)
    assert "secret-token" not in text
    assert "se**********" in text
    assert "u1" in text
