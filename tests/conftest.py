"""Pytest configuration and shared fixtures for the watchdog tests."""

from pathlib import Path

import pytest

from tests.fakes import SAMPLE_CONFIG, write_config


WATCHDOG_ENV_VARS = (
    "WATCHDOG_CONFIG_PATH",
    "WATCHDOG_PORT",
    "WATCHDOG_IS_EXTERNAL",
    "WATCHDOG_SCRAPE_INTERVAL",
    "WATCHDOG_USERNAME",
    "WATCHDOG_PASSWORD",
    "WATCHDOG_JWT_SECRET",
    "WATCHDOG_TOKEN_EXPIRY",
)


@pytest.fixture(autouse=True)
def clean_watchdog_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep WATCHDOG_* variables from the shell or a .env file out of tests."""
    for key in WATCHDOG_ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config.yaml filled with the sample fleet configuration."""
    return write_config(tmp_path / "config.yaml", SAMPLE_CONFIG)
