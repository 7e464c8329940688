"""Build sqlcmd arguments, launch the client and hand back its exit code."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Callable, Protocol, Sequence, runtime_checkable

from .models import ConnectionProfile, SqlcmdArgumentError

LOG = logging.getLogger(__name__)

ArgumentBuilder = Callable[[ConnectionProfile, str | None], Sequence[str]]


@runtime_checkable
class ProcessRunner(Protocol):
    """Launches an executable with a prepared argument string."""

    def run(self, executable: str, arguments: str) -> int:
        """Start the process, wait for it to exit and return its exit code."""


class SubprocessRunner:
    """Process runner backed by :mod:`subprocess`.

    On Windows the argument string is handed to ``CreateProcess`` untouched so
    sqlcmd sees the doubled-quote escaping exactly as built. Elsewhere it is
    split with :func:`split_command_line`, which applies the same rules.
    """

    def run(self, executable: str, arguments: str) -> int:
        if os.name == "nt":
            command: str | list[str] = f"{subprocess.list2cmdline([executable])} {arguments}"
        else:
            command = [executable, *split_command_line(arguments)]
        return subprocess.call(command)


def split_command_line(command_line: str) -> list[str]:
    """Split a command line the way the Windows C runtime does.

    Backslashes are literal unless they precede a double quote, and ``""``
    inside a quoted run is a literal quote. Single quotes carry no meaning.
    """

    arguments: list[str] = []
    current: list[str] = []
    in_token = False
    quoted = False
    backslashes = 0
    index = 0
    length = len(command_line)
    while index < length:
        char = command_line[index]
        if char == "\\":
            backslashes += 1
            in_token = True
        elif char == '"':
            current.append("\\" * (backslashes // 2))
            in_token = True
            if backslashes % 2:
                current.append('"')
            elif quoted and index + 1 < length and command_line[index + 1] == '"':
                current.append('"')
                index += 1
            else:
                quoted = not quoted
            backslashes = 0
        elif char in " \t" and not quoted:
            current.append("\\" * backslashes)
            backslashes = 0
            if in_token:
                arguments.append("".join(current))
                current = []
                in_token = False
        else:
            current.append("\\" * backslashes)
            current.append(char)
            backslashes = 0
            in_token = True
        index += 1
    current.append("\\" * backslashes)
    if in_token:
        arguments.append("".join(current))
    return arguments


def escape_query(source: str) -> str:
    """Double every double quote so the text survives inside ``-Q "..."``."""

    return source.replace('"', '""')


def build_arguments(profile: ConnectionProfile, database: str | None) -> list[str]:
    """Return the connection arguments for ``profile`` in sqlcmd order."""

    arguments = [f"-S {profile.server}"]
    if profile.integrated_auth:
        arguments.append("-E")
    else:
        arguments.append(f"-U {profile.user_id} -P {profile.password}")
    if database is not None:
        arguments.append(f"-d {database}")
    return arguments


def mask_password(arguments: str, password: str | None) -> str:
    """Hide the password in a rendered argument string (for logs)."""

    if not password:
        return arguments
    return arguments.replace(f"-P {password}", "-P ******")


class SqlcmdInvoker:
    """Runs queries and script files through the sqlcmd client.

    Each call spawns one sqlcmd process, blocks until it exits and returns the
    exit code as-is. Nothing is cached between calls.
    """

    def __init__(
        self,
        path: str,
        server: str,
        user_id: str | None = None,
        password: str | None = None,
        database: str | None = None,
        *,
        runner: ProcessRunner | None = None,
        argument_builder: ArgumentBuilder | None = None,
    ) -> None:
        self._profile = ConnectionProfile(
            executable_path=path,
            server=server,
            user_id=user_id,
            password=password,
            database=database,
        )
        self._runner = runner or SubprocessRunner()
        self._build_arguments = argument_builder or build_arguments

    @classmethod
    def from_profile(
        cls,
        profile: ConnectionProfile,
        *,
        runner: ProcessRunner | None = None,
        argument_builder: ArgumentBuilder | None = None,
    ) -> SqlcmdInvoker:
        """Create an invoker from an existing connection profile."""

        return cls(
            profile.executable_path,
            profile.server,
            profile.user_id,
            profile.password,
            profile.database,
            runner=runner,
            argument_builder=argument_builder,
        )

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    @property
    def executable_path(self) -> str:
        return self._profile.executable_path

    @property
    def server(self) -> str:
        return self._profile.server

    @property
    def user_id(self) -> str | None:
        return self._profile.user_id

    @property
    def password(self) -> str | None:
        return self._profile.password

    @property
    def database(self) -> str | None:
        """Default database used when a call does not name one."""

        return self._profile.database

    def run_query(self, text: str, database: str | None = None) -> int:
        """Execute literal query text and return sqlcmd's exit code.

        ``database`` overrides the profile default; an empty string is
        rejected since sqlcmd would receive a bare ``-d``.
        """

        if text is None:
            raise SqlcmdArgumentError("Provide query text to execute.")
        target = self._resolve_database(database)
        return self._execute([*self._build_arguments(self._profile, target), f'-Q "{escape_query(text)}"'])

    def run_file(self, path: str, database: str | None = None) -> int:
        """Execute a .sql file and return sqlcmd's exit code.

        The path is quoted but not escaped; sqlcmd opens the file itself.
        ``database`` follows the same rules as in :meth:`run_query`.
        """

        if path is None:
            raise SqlcmdArgumentError("Provide a query file to execute.")
        target = self._resolve_database(database)
        return self._execute([*self._build_arguments(self._profile, target), f'-i "{path}"'])

    def _resolve_database(self, database: str | None) -> str | None:
        if database is None:
            return self._profile.database
        if not database:
            raise SqlcmdArgumentError("database must not be empty when supplied.")
        return database

    def _execute(self, arguments: Sequence[str]) -> int:
        rendered = " ".join(arguments)
        LOG.debug(
            "Launching sqlcmd",
            extra={
                "executable": self._profile.executable_path,
                "arguments": mask_password(rendered, self._profile.password),
            },
        )
        try:
            exit_code = self._runner.run(self._profile.executable_path, rendered)
        except OSError:
            LOG.exception("Failed to launch sqlcmd", extra={"executable": self._profile.executable_path})
            raise
        LOG.debug("sqlcmd exited", extra={"exit_code": exit_code})
        return exit_code


__all__ = [
    "ArgumentBuilder",
    "ProcessRunner",
    "SqlcmdInvoker",
    "SubprocessRunner",
    "build_arguments",
    "escape_query",
    "mask_password",
    "split_command_line",
]
