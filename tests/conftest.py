"""Pytest configuration and fixtures for cpap-edf tests."""

from pathlib import Path

import pytest

from cpap_edf import logging_config


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that do not require external dependencies"
    )
    config.addinivalue_line("markers", "parser: Tests for EDF decoding")
    config.addinivalue_line(
        "markers", "business_logic: Tests for core business logic and algorithms"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests combining multiple components"
    )


def pytest_collection_modifyitems(items):
    """Mark tests by the directory they live in."""
    for item in items:
        path = str(item.fspath)
        if "/unit/" in path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in path:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Point config and logs at a temp directory and leave logging unconfigured."""
    monkeypatch.setenv("CPAP_EDF_CONFIG", str(tmp_path / "config" / "config.toml"))
    monkeypatch.setenv("CPAP_EDF_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(logging_config, "_logging_configured", True)


@pytest.fixture
def config_path(tmp_path) -> Path:
    """Return the config file path used by the isolated environment."""
    return tmp_path / "config" / "config.toml"


@pytest.fixture
def sd_card(tmp_path) -> Path:
    """Create a synthetic ResMed SD card."""
    from tests.helpers.sd_card import build_sd_card

    return build_sd_card(tmp_path / "SDCARD")
