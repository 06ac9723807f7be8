"""Shared fixtures: isolated settings file and log sink for every test."""

import json

import pytest

from utils import log_utils, settings_store


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the settings loader at a temp file and keep logs out of /var/log."""
    settings_file = tmp_path / "settings.json"
    log_file = tmp_path / "logs" / "helpers.log"
    settings_file.write_text(json.dumps({"log_file": str(log_file)}))
    monkeypatch.setenv("VBHT_SETTINGS", str(settings_file))
    monkeypatch.chdir(tmp_path)
    settings_store.refresh_settings()
    yield settings_file
    log_utils.configure(None)
    settings_store.refresh_settings()
