"""Tests for GPCLUSTER_* environment settings."""

import pytest

from gpcluster.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "GPCLUSTER_MAX_CONCURRENCY",
        "GPCLUSTER_CONTINUE_ON_ERROR",
        "GPCLUSTER_ERROR_CODE",
        "GPCLUSTER_COMMAND_TIMEOUT",
        "GPCLUSTER_SSH_USER",
        "GPCLUSTER_IDLE_TIMEOUT",
        "GPCLUSTER_MAX_POOL_SIZE",
        "GPCLUSTER_LOG_LEVEL",
        "GPCLUSTER_LOG_COLORS",
        "GPCLUSTER_LOG_DIR",
        "GPCLUSTER_LOG_FILE_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults(monkeypatch) -> None:
    monkeypatch.setenv("USER", "alice")
    settings = Settings.from_env()

    assert settings.max_concurrency == 16
    assert settings.continue_on_error is False
    assert settings.error_code == 1
    assert settings.command_timeout == 60
    assert settings.ssh_user == "alice"
    assert settings.max_pool_size == 100
    assert settings.log_level == "INFO"
    assert settings.log_colors is True
    assert settings.log_dir == "~/gpAdminLogs"
    assert settings.log_file_level == "DEBUG"


def test_ssh_user_falls_back_to_gpadmin(monkeypatch) -> None:
    monkeypatch.delenv("USER", raising=False)
    assert Settings.from_env().ssh_user == "gpadmin"


def test_values_from_env(monkeypatch) -> None:
    monkeypatch.setenv("GPCLUSTER_MAX_CONCURRENCY", "4")
    monkeypatch.setenv("GPCLUSTER_CONTINUE_ON_ERROR", "yes")
    monkeypatch.setenv("GPCLUSTER_ERROR_CODE", "3")
    monkeypatch.setenv("GPCLUSTER_COMMAND_TIMEOUT", "120")
    monkeypatch.setenv("GPCLUSTER_SSH_USER", "gpadmin2")
    monkeypatch.setenv("GPCLUSTER_LOG_LEVEL", "debug")
    monkeypatch.setenv("GPCLUSTER_LOG_COLORS", "0")

    settings = Settings.from_env()

    assert settings.max_concurrency == 4
    assert settings.continue_on_error is True
    assert settings.error_code == 3
    assert settings.command_timeout == 120
    assert settings.ssh_user == "gpadmin2"
    assert settings.log_level == "DEBUG"
    assert settings.log_colors is False


@pytest.mark.parametrize("value", ["abc", "0", "-3", ""])
def test_invalid_concurrency_uses_default(monkeypatch, value: str) -> None:
    monkeypatch.setenv("GPCLUSTER_MAX_CONCURRENCY", value)
    assert Settings.from_env().max_concurrency == 16


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1", True), ("TRUE", True), ("on", True), ("no", False), ("false", False)],
)
def test_bool_parsing(monkeypatch, value: str, expected: bool) -> None:
    monkeypatch.setenv("GPCLUSTER_CONTINUE_ON_ERROR", value)
    assert Settings.from_env().continue_on_error is expected


def test_log_file_settings(monkeypatch) -> None:
    monkeypatch.setenv("GPCLUSTER_LOG_DIR", "/var/log/gpcluster")
    monkeypatch.setenv("GPCLUSTER_LOG_FILE_LEVEL", "info")

    settings = Settings.from_env()

    assert settings.log_dir == "/var/log/gpcluster"
    assert settings.log_file_level == "INFO"


@pytest.mark.parametrize("value", ["none", "NONE", "off"])
def test_log_file_disabled(monkeypatch, value: str) -> None:
    monkeypatch.setenv("GPCLUSTER_LOG_DIR", value)
    assert Settings.from_env().log_dir is None


def test_blank_log_dir_uses_default(monkeypatch) -> None:
    monkeypatch.setenv("GPCLUSTER_LOG_DIR", "  ")
    assert Settings.from_env().log_dir == "~/gpAdminLogs"
