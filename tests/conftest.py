"""Shared pytest fixtures and configuration for the test suite."""

import pytest

from aptvox.io import config


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    """Redirect the user configuration into a temporary directory."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr(config, "_CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "_CONFIG_PATH", config_dir / "config.toml")
    monkeypatch.setattr(config, "_config_cache", None)
    return config_dir
