"""Tests for database configuration parsing."""

import pytest

from recordkit import DatabaseConfig, SQLiteConnection


def test_from_ini(tmp_path):
    """Test loading an ini file."""
    path = tmp_path / "recordkit.ini"
    path.write_text(
        "[database]\n"
        "url = sqlite::memory:\n"
        "timeout = 2.5\n"
        "log_queries = yes\n"
        "pool_name = main\n"
    )
    config = DatabaseConfig.from_ini(path)
    assert config.url == "sqlite::memory:"
    assert config.timeout == 2.5
    assert config.log_queries is True
    assert config.extra == {"pool_name": "main"}


def test_from_ini_missing_file(tmp_path):
    """Test a missing config file."""
    with pytest.raises(FileNotFoundError):
        DatabaseConfig.from_ini(tmp_path / "nope.ini")


def test_from_ini_missing_section(tmp_path):
    """Test a config file without the section."""
    path = tmp_path / "recordkit.ini"
    path.write_text("[other]\nurl = sqlite::memory:\n")
    with pytest.raises(ValueError, match=r"No \[database\] section"):
        DatabaseConfig.from_ini(path)


def test_from_ini_missing_url(tmp_path):
    """Test a section without a URL."""
    path = tmp_path / "recordkit.ini"
    path.write_text("[database]\ntimeout = 1\n")
    with pytest.raises(ValueError, match="url is required"):
        DatabaseConfig.from_ini(path)


def test_from_env():
    """Test loading from environment variables."""
    config = DatabaseConfig.from_env(
        environ={
            "RECORDKIT_DATABASE_URL": "sqlite:///app.db",
            "RECORDKIT_DB_TIMEOUT": "10",
            "RECORDKIT_LOG_QUERIES": "true",
        }
    )
    assert config == DatabaseConfig(url="sqlite:///app.db", timeout=10.0, log_queries=True)


def test_from_env_requires_url(monkeypatch):
    """Test that the URL variable is required."""
    monkeypatch.delenv("RECORDKIT_DATABASE_URL", raising=False)
    with pytest.raises(ValueError, match="RECORDKIT_DATABASE_URL"):
        DatabaseConfig.from_env()


def test_connect():
    """Test opening a connection from config."""
    connection = DatabaseConfig(url="sqlite::memory:", log_queries=True).connect()
    assert isinstance(connection, SQLiteConnection)
    assert connection.log_queries is True
    connection.close()
