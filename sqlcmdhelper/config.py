"""App configuration loading helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

import tomllib

from pydantic import BaseModel, Field

from .models import ConnectionProfile

CONFIG_FILE = Path.home() / ".config" / "sqlcmdhelper" / "config.toml"

DEFAULT_EXECUTABLE = "sqlcmd"


class ConfigError(RuntimeError):
    """Raised when a configured profile cannot be resolved."""


class ProfileConfig(BaseModel):
    """Connection profile stored in config.toml (passwords live in the environment)."""

    name: str
    server: str
    user_id: str | None = None
    password_env: str | None = None
    database: str | None = None
    executable: str | None = None

    def to_connection_profile(
        self,
        executable: str = DEFAULT_EXECUTABLE,
        environ: Mapping[str, str] | None = None,
    ) -> ConnectionProfile:
        """Resolve the stored profile into a runtime profile."""

        env = os.environ if environ is None else environ
        password: str | None = None
        if self.password_env:
            password = env.get(self.password_env)
            if password is None:
                raise ConfigError(
                    f"Environment variable '{self.password_env}' for profile '{self.name}' is not set."
                )
        return ConnectionProfile(
            executable_path=self.executable or executable,
            server=self.server,
            user_id=self.user_id,
            password=password,
            database=self.database,
        )


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    executable: str = DEFAULT_EXECUTABLE
    profiles: list[ProfileConfig] = Field(default_factory=list)
    active_profile: str | None = None

    def profile(self, name: str | None = None) -> ProfileConfig:
        """Return the named profile, or the active one when no name is given."""

        target = name or self.active_profile
        if target is None and self.profiles:
            target = self.profiles[0].name
        if target is None:
            raise ConfigError("No profiles configured.")
        for entry in self.profiles:
            if entry.name == target:
                return entry
        raise ConfigError(f"Profile '{target}' not found.")

    def with_profile(self, profile: ProfileConfig) -> AppConfig:
        """Return a copy with the profile added, replacing any of the same name."""

        profiles = [entry for entry in self.profiles if entry.name != profile.name]
        profiles.append(profile)
        return self.model_copy(update={"profiles": profiles})

    def with_active_profile(self, name: str) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": name})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    profiles = [ProfileConfig(**profile) for profile in data.get("profiles", [])]  # type: ignore[union-attr]
    return AppConfig(
        executable=data.get("executable", AppConfig.model_fields["executable"].default),
        profiles=profiles,
        active_profile=data.get("active_profile"),
    )


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [f"executable = {_toml_string(config.executable)}"]
    if config.active_profile:
        lines.append(f"active_profile = {_toml_string(config.active_profile)}")
    for profile in config.profiles:
        lines.append("")
        lines.append("[[profiles]]")
        lines.append(f"name = {_toml_string(profile.name)}")
        lines.append(f"server = {_toml_string(profile.server)}")
        for key in ("user_id", "password_env", "database", "executable"):
            value = getattr(profile, key)
            if value:
                lines.append(f"{key} = {_toml_string(value)}")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


_TOML_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def _toml_string(value: str) -> str:
    """Render ``value`` as a TOML basic string."""

    escaped: list[str] = []
    for char in value:
        if char in _TOML_ESCAPES:
            escaped.append(_TOML_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            escaped.append(f"\\u{ord(char):04X}")
        else:
            escaped.append(char)
    return '"' + "".join(escaped) + '"'


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    executable = raw.get("executable")
    if isinstance(executable, str) and executable:
        data["executable"] = executable
    active_profile = raw.get("active_profile")
    if isinstance(active_profile, str):
        data["active_profile"] = active_profile
    profiles = raw.get("profiles")
    if isinstance(profiles, list):
        parsed_profiles: list[dict[str, str]] = []
        for profile in profiles:
            if not isinstance(profile, dict):
                continue
            parsed: dict[str, str] = {}
            for key in ("name", "server", "user_id", "password_env", "database", "executable"):
                value = profile.get(key)
                if isinstance(value, str):
                    parsed[key] = value
            if parsed.get("name") and parsed.get("server"):
                parsed_profiles.append(parsed)
        data["profiles"] = parsed_profiles
    return data


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "ConfigError",
    "DEFAULT_EXECUTABLE",
    "ProfileConfig",
    "load_config",
    "save_config",
]
