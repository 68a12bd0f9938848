"""Tests for settings loading and secret lookup."""

import pytest

from config import get_storage_api_key, get_wallet_private_key, STORAGE_API_KEY_ENV
from config.lib.load_settings_conf import DEFAULTS, SettingsError, load_settings_conf

def test_defaults_without_settings_file(tmp_path):
    settings = load_settings_conf(str(tmp_path), environ={})

    assert settings['min_confirmations'] == 1
    assert settings['refresh_interval'] == 30.0
    assert settings['notification_dismiss_seconds'] == 5
    assert settings['price_policy'] == 'mb'
    assert settings['db_url'] == DEFAULTS['db_url']

def test_file_values_override_defaults(tmp_path):
    (tmp_path / 'settings.conf').write_text(
        "[DEFAULT]\n"
        "min_confirmations = 3\n"
        "price_policy = KB\n"
        "storage_gateway_url = https://gateway.example\n"
    )

    settings = load_settings_conf(str(tmp_path), environ={})

    assert settings['min_confirmations'] == 3
    assert settings['price_policy'] == 'kb'
    assert settings['storage_gateway_url'] == 'https://gateway.example'

def test_environment_overrides_file(tmp_path):
    (tmp_path / 'settings.conf').write_text("[DEFAULT]\nrefresh_interval = 10\n")

    settings = load_settings_conf(str(tmp_path), environ={'REFRESH_INTERVAL': '15'})

    assert settings['refresh_interval'] == 15.0

def test_invalid_values_are_reported_together(tmp_path):
    (tmp_path / 'settings.conf').write_text(
        "[DEFAULT]\n"
        "min_confirmations = many\n"
        "refresh_interval = 0\n"
        "price_policy = per-byte\n"
    )

    with pytest.raises(SettingsError) as exc:
        load_settings_conf(str(tmp_path), environ={})

    message = str(exc.value)
    assert "min_confirmations" in message
    assert "refresh_interval must be positive" in message
    assert "price_policy" in message

def test_storage_key_is_read_at_call_time(monkeypatch):
    monkeypatch.delenv(STORAGE_API_KEY_ENV, raising=False)
    assert get_storage_api_key() is None

    monkeypatch.setenv(STORAGE_API_KEY_ENV, "lh-key")
    assert get_storage_api_key() == "lh-key"

def test_empty_wallet_key_counts_as_unset(monkeypatch):
    monkeypatch.setenv("WALLET_PRIVATE_KEY", "")
    assert get_wallet_private_key() is None
