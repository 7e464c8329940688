"""Helpers for driving the sqlcmd command-line client."""

from __future__ import annotations

__version__ = "0.1.0"

from .invoker import ProcessRunner, SqlcmdInvoker, SubprocessRunner, build_arguments, escape_query
from .models import ConnectionProfile, SqlcmdArgumentError

__all__ = [
    "ConnectionProfile",
    "ProcessRunner",
    "SqlcmdArgumentError",
    "SqlcmdInvoker",
    "SubprocessRunner",
    "__version__",
    "build_arguments",
    "escape_query",
]
