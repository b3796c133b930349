"""Unit tests for settings and logging setup."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from arcsek.core.config import VaultSettings, parse_log_level
from arcsek.core.logging_config import configure_logging


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger("arcsek")
    saved = logger.level
    yield
    logger.setLevel(saved)


def test_defaults():
    s = VaultSettings()
    assert s.staging_dir is None
    assert s.staging_prefix == "arcsek-"
    assert s.staging_suffix == ".tar.gz"
    assert s.log_level == logging.INFO


def test_from_env_reads_all_values(tmp_path):
    env = {
        "ARCSEK_STAGING_DIR": str(tmp_path),
        "ARCSEK_STAGING_PREFIX": "v-",
        "ARCSEK_STAGING_SUFFIX": ".tmp",
        "ARCSEK_LOG_LEVEL": "debug",
    }
    s = VaultSettings.from_env(env)
    assert s.staging_dir == Path(tmp_path)
    assert s.staging_prefix == "v-"
    assert s.staging_suffix == ".tmp"
    assert s.log_level == logging.DEBUG


def test_from_env_uses_process_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("ARCSEK_STAGING_DIR", str(tmp_path))
    monkeypatch.delenv("ARCSEK_LOG_LEVEL", raising=False)
    s = VaultSettings.from_env()
    assert s.staging_dir == Path(tmp_path)
    assert s.log_level == logging.INFO


def test_from_env_empty_dir_means_default():
    assert VaultSettings.from_env({"ARCSEK_STAGING_DIR": ""}).staging_dir is None


@pytest.mark.parametrize(
    "value, expected",
    [("DEBUG", 10), ("warning", 30), (" 20 ", 20), (40, 40)],
)
def test_parse_log_level(value, expected):
    assert parse_log_level(value) == expected


def test_parse_log_level_rejects_unknown():
    with pytest.raises(ValueError, match="Unknown log level"):
        parse_log_level("loud")


def test_configure_logging_with_level_number():
    with patch("arcsek.core.logging_config.logging.basicConfig") as mock_config:
        applied = configure_logging(logging.DEBUG)
    assert applied == logging.DEBUG
    assert mock_config.call_args.kwargs["level"] == logging.DEBUG


def test_configure_logging_with_level_name():
    with patch("arcsek.core.logging_config.logging.basicConfig") as mock_config:
        applied = configure_logging("warning")
    assert applied == logging.WARNING
    assert mock_config.call_args.kwargs["level"] == logging.WARNING


def test_configure_logging_from_settings():
    settings = VaultSettings(log_level=logging.ERROR)
    with patch("arcsek.core.logging_config.logging.basicConfig") as mock_config:
        applied = configure_logging(settings)
    assert applied == logging.ERROR
    assert mock_config.call_args.kwargs["level"] == logging.ERROR
    assert logging.getLogger("arcsek").level == logging.ERROR


def test_configure_logging_reads_environment(monkeypatch):
    monkeypatch.setenv("ARCSEK_LOG_LEVEL", "debug")
    with patch("arcsek.core.logging_config.logging.basicConfig") as mock_config:
        applied = configure_logging()
    assert applied == logging.DEBUG
    assert mock_config.call_args.kwargs["level"] == logging.DEBUG


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError, match="Unknown log level"):
        configure_logging("loud")
