"""Tests for settings loading."""

import os

import pytest

from config import DEFAULTS, SettingsError, load_settings_conf

def test_missing_file_uses_defaults(tmp_path):
    settings = load_settings_conf(str(tmp_path))

    assert settings['db_url'] == DEFAULTS['db_url']
    assert settings['remote_timeout'] == 30
    assert settings['api_port'] == 8000
    assert os.path.isabs(settings['storage_root'])

def test_values_are_typed_and_normalized(tmp_path):
    (tmp_path / 'settings.conf').write_text(
        "[DEFAULT]\n"
        "db_url = postgresql://app@db:5432/shop\n"
        "remote_timeout = 5\n"
        "storage_public_url = https://cdn.example.com/storage/\n"
    )

    settings = load_settings_conf(str(tmp_path))

    assert settings['db_url'] == 'postgresql://app@db:5432/shop'
    assert settings['remote_timeout'] == 5
    assert settings['storage_public_url'] == 'https://cdn.example.com/storage'
    # Unspecified keys keep their defaults
    assert settings['storage_bucket'] == 'images'

def test_non_integer_value_is_rejected(tmp_path):
    (tmp_path / 'settings.conf').write_text("[DEFAULT]\nremote_timeout = soon\n")

    with pytest.raises(SettingsError, match="remote_timeout"):
        load_settings_conf(str(tmp_path))

def test_zero_timeout_is_rejected(tmp_path):
    (tmp_path / 'settings.conf').write_text("[DEFAULT]\nremote_timeout = 0\n")

    with pytest.raises(SettingsError, match="at least 1"):
        load_settings_conf(str(tmp_path))

def test_file_without_section_header_is_rejected(tmp_path):
    (tmp_path / 'settings.conf').write_text("db_url = postgresql://x/y\n")

    with pytest.raises(SettingsError):
        load_settings_conf(str(tmp_path))
