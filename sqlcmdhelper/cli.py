"""Command line front end: `python -m sqlcmdhelper query "SELECT 1" --server .`."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .config import CONFIG_FILE, AppConfig, ConfigError, ProfileConfig, load_config, save_config
from .invoker import ProcessRunner, SqlcmdInvoker
from .models import ConnectionProfile, SqlcmdArgumentError

EXIT_USAGE = 2
EXIT_NOT_FOUND = 127


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sqlcmdhelper", description="Run sqlcmd against a configured server.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log the sqlcmd command line")
    commands = parser.add_subparsers(dest="command", required=True)

    for name, target, help_text in (
        ("query", "text", "Query text to execute"),
        ("file", "path", "Path of a .sql file to execute"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument(target, help=help_text)
        command.add_argument("--profile", help="Configured profile to use")
        command.add_argument("--server", help="SQL Server instance (overrides the profile)")
        command.add_argument("--user-id", help="SQL login; omit for integrated authentication")
        command.add_argument("--password", help="Password for --user-id")
        command.add_argument("--database", help="Database to run against")
        command.add_argument("--sqlcmd", help="Path of the sqlcmd executable")

    commands.add_parser("profiles", help=f"List profiles stored in {CONFIG_FILE}")

    add = commands.add_parser("add-profile", help="Store a connection profile")
    add.add_argument("name")
    add.add_argument("--server", required=True)
    add.add_argument("--user-id")
    add.add_argument("--password-env", help="Environment variable holding the password")
    add.add_argument("--database")
    add.add_argument("--sqlcmd", help="Executable override for this profile")
    add.add_argument("--activate", action="store_true", help="Make this the active profile")
    return parser.parse_args(argv)


def resolve_profile(args: argparse.Namespace, config: AppConfig) -> ConnectionProfile:
    """Combine config and command line flags into a connection profile."""

    if args.profile or (args.server is None and config.profiles):
        base = config.profile(args.profile).to_connection_profile(config.executable)
    else:
        base = None
    server = args.server or (base.server if base else None)
    if not server:
        raise SqlcmdArgumentError("Provide --server or --profile.")
    if args.user_id is not None or args.password is not None:
        user_id, password = args.user_id, args.password
    elif base is not None:
        user_id, password = base.user_id, base.password
    else:
        user_id, password = None, None
    return ConnectionProfile(
        executable_path=args.sqlcmd or (base.executable_path if base else config.executable),
        server=server,
        user_id=user_id,
        password=password,
        database=base.database if base else None,
    )


def run(args: argparse.Namespace, *, runner: ProcessRunner | None = None) -> int:
    config = load_config()
    if args.command == "profiles":
        for profile in config.profiles:
            marker = "*" if profile.name == config.active_profile else " "
            print(f"{marker} {profile.name}\t{profile.server}\t{profile.database or ''}")
        return 0
    if args.command == "add-profile":
        if (args.user_id is None) != (args.password_env is None):
            raise SqlcmdArgumentError("--user-id and --password-env must be supplied together.")
        entry = ProfileConfig(
            name=args.name,
            server=args.server,
            user_id=args.user_id,
            password_env=args.password_env,
            database=args.database,
            executable=args.sqlcmd,
        )
        config = config.with_profile(entry)
        if args.activate or config.active_profile is None:
            config = config.with_active_profile(entry.name)
        save_config(config)
        print(f"Saved profile '{entry.name}'.")
        return 0

    invoker = SqlcmdInvoker.from_profile(resolve_profile(args, config), runner=runner)
    if args.command == "query":
        return invoker.run_query(args.text, args.database)
    return invoker.run_file(args.path, args.database)


def main(argv: Sequence[str] | None = None, *, runner: ProcessRunner | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        return run(args, runner=runner)
    except (SqlcmdArgumentError, ConfigError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except FileNotFoundError as exc:
        print(f"error: sqlcmd executable not found ({exc.filename or exc})", file=sys.stderr)
        return EXIT_NOT_FOUND


__all__ = ["main", "parse_args", "resolve_profile", "run"]
