"""Tests for AppConfig helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from sqlcmdhelper import config as config_module
from sqlcmdhelper.config import AppConfig, ConfigError, ProfileConfig, load_config, save_config
from sqlcmdhelper.models import SqlcmdArgumentError


def test_load_config_returns_defaults_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")

    result = load_config()

    assert result == AppConfig()
    assert result.executable == "sqlcmd"


def test_load_config_reads_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
executable = "/opt/mssql-tools/bin/sqlcmd"
active_profile = "reporting"

[[profiles]]
name = "local"
server = "localhost"
database = "master"

[[profiles]]
name = "reporting"
server = "db01,1433"
user_id = "report"
password_env = "REPORTING_PASSWORD"

[[profiles]]
name = "broken"
"""
    )
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result.executable == "/opt/mssql-tools/bin/sqlcmd"
    assert result.active_profile == "reporting"
    assert [profile.name for profile in result.profiles] == ["local", "reporting"]
    assert result.profiles[0].database == "master"
    assert result.profiles[1].password_env == "REPORTING_PASSWORD"


def test_load_config_handles_toml_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("executable = [unterminated")
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    assert load_config() == AppConfig()


def test_save_config_round_trips(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "nested" / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)
    original = AppConfig(
        profiles=[
            ProfileConfig(name="local", server="localhost", database="master"),
            ProfileConfig(name="reporting", server="db01", user_id="report", password_env="REPORTING_PASSWORD"),
        ],
        active_profile="local",
    )

    save_config(original)

    content = config_path.read_text()
    assert "[[profiles]]" in content
    assert 'password_env = "REPORTING_PASSWORD"' in content
    assert "password =" not in content
    assert load_config() == original


def test_profile_lookup_defaults_to_active_then_first() -> None:
    profiles = [ProfileConfig(name="a", server="S1"), ProfileConfig(name="b", server="S2")]

    assert AppConfig(profiles=profiles).profile().name == "a"
    assert AppConfig(profiles=profiles, active_profile="b").profile().name == "b"
    assert AppConfig(profiles=profiles).profile("b").server == "S2"


def test_profile_lookup_errors() -> None:
    with pytest.raises(ConfigError):
        AppConfig().profile()
    with pytest.raises(ConfigError):
        AppConfig(profiles=[ProfileConfig(name="a", server="S1")]).profile("missing")


def test_with_profile_replaces_same_name() -> None:
    config = AppConfig(profiles=[ProfileConfig(name="a", server="S1")])

    updated = config.with_profile(ProfileConfig(name="a", server="S9"))

    assert len(updated.profiles) == 1
    assert updated.profiles[0].server == "S9"
    assert config.profiles[0].server == "S1"


def test_with_active_profile_updates_field() -> None:
    assert AppConfig().with_active_profile("a").active_profile == "a"


def test_to_connection_profile_reads_password_from_environment() -> None:
    entry = ProfileConfig(name="r", server="db01", user_id="report", password_env="PW", database="Sales")

    profile = entry.to_connection_profile("sqlcmd", {"PW": "secret"})

    assert profile.executable_path == "sqlcmd"
    assert profile.user_id == "report"
    assert profile.password == "secret"
    assert profile.database == "Sales"


def test_to_connection_profile_prefers_profile_executable() -> None:
    entry = ProfileConfig(name="l", server="S1", executable="/usr/bin/sqlcmd")

    profile = entry.to_connection_profile("sqlcmd", {})

    assert profile.executable_path == "/usr/bin/sqlcmd"
    assert profile.integrated_auth is True


def test_to_connection_profile_requires_password_variable() -> None:
    entry = ProfileConfig(name="r", server="db01", user_id="report", password_env="PW")

    with pytest.raises(ConfigError):
        entry.to_connection_profile("sqlcmd", {})


def test_to_connection_profile_rejects_user_without_password() -> None:
    entry = ProfileConfig(name="r", server="db01", user_id="report")

    with pytest.raises(SqlcmdArgumentError):
        entry.to_connection_profile("sqlcmd", {})


def test_save_config_escapes_backslashes_and_quotes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)
    original = AppConfig(
        executable="C:\\Program Files\\Microsoft SQL Server\\sqlcmd.exe",
        profiles=[
            ProfileConfig(name="local", server=".\\SQLEXPRESS", database='odd"name'),
            ProfileConfig(name="named", server="HOST\\INST", executable="D:\\tools\\sqlcmd.exe"),
        ],
        active_profile="local",
    )

    save_config(original)

    assert 'server = ".\\\\SQLEXPRESS"' in config_path.read_text()
    assert load_config() == original


def test_toml_string_escapes_control_characters() -> None:
    assert config_module._toml_string("a\tb\x01\x7f") == '"a\\tb\\u0001\\u007F"'
