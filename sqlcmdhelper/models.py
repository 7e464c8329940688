"""Shared dataclasses used by the invoker and config modules."""

from __future__ import annotations

from dataclasses import dataclass


class SqlcmdArgumentError(ValueError):
    """Raised when a required argument is missing before any process starts."""


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Runtime representation of how to reach a SQL Server instance."""

    executable_path: str
    server: str
    user_id: str | None = None
    password: str | None = None
    database: str | None = None

    def __post_init__(self) -> None:
        if not self.executable_path:
            raise SqlcmdArgumentError("executable_path is required.")
        if not self.server:
            raise SqlcmdArgumentError("server is required.")
        if (self.user_id is None) != (self.password is None):
            raise SqlcmdArgumentError("user_id and password must be supplied together.")

    @property
    def integrated_auth(self) -> bool:
        """True when the OS identity is used instead of explicit credentials."""

        return self.user_id is None and self.password is None


__all__ = ["ConnectionProfile", "SqlcmdArgumentError"]
