"""Click CLI entry point for pb."""
from __future__ import annotations

import functools
import json
import logging
import re
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import click
from click.core import ParameterSource

from pb import __commit__, __version__
from pb.client import ParseableClient
from pb.context import AppContext
from pb.errors import PbError
from pb.lifecycle import Invocation
from pb.models import Profile
from pb.output.terminal import (
    render_names, render_profiles, render_saved_queries, render_stats,
)

logger = logging.getLogger(__name__)

# Argument values never copied into telemetry.
SENSITIVE_PARAMS = frozenset({"password"})

REDACTED = "<redacted>"


# ── Lifecycle glue ────────────────────────────────────────────────────


def _snapshot_args(ctx: click.Context) -> tuple[str, ...]:
    values: list[str] = []
    for param in ctx.command.params:
        if not isinstance(param, click.Argument):
            continue
        value = ctx.params.get(param.name)
        if value is None:
            continue
        items = value if isinstance(value, (list, tuple)) else (value,)
        for item in items:
            values.append(REDACTED if param.name in SENSITIVE_PARAMS else str(item))
    return tuple(values)


def _snapshot_flags(ctx: click.Context) -> tuple[str, ...]:
    flags: list[str] = []
    node: click.Context | None = ctx
    while node is not None:
        for param in node.command.params:
            if not isinstance(param, click.Option) or param.name is None:
                continue
            if node.get_parameter_source(param.name) == ParameterSource.COMMANDLINE:
                flags.append(param.name)
        node = node.parent
    return tuple(sorted(flags))


def _run_managed(
    ctx: click.Context,
    category: str,
    requires_profile: bool,
    body: Callable[[Invocation], Any],
) -> Any:
    app: AppContext = ctx.obj
    invocation = Invocation(
        command=ctx.command_path,
        category=category,
        args=_snapshot_args(ctx),
        flags=_snapshot_flags(ctx),
        requested_profile=ctx.find_root().params.get("profile_name"),
        requires_profile=requires_profile,
    )
    try:
        return app.lifecycle.run(app, invocation, body)
    except PbError as e:
        raise click.ClickException(str(e)) from e


def managed(category: str, requires_profile: bool = True):
    """Run the decorated command body inside the AppContext's lifecycle.

    The body receives the Invocation (with ``profile`` resolved when
    ``requires_profile`` is set) followed by the command's own parameters.
    """
    def decorator(f):
        @click.pass_context
        def wrapper(ctx: click.Context, **kwargs: Any) -> Any:
            return _run_managed(ctx, category, requires_profile, lambda inv: f(inv, **kwargs))
        return functools.update_wrapper(wrapper, f)
    return decorator


def _client(invocation: Invocation) -> ParseableClient:
    return ParseableClient(invocation.profile)


# ── Root ──────────────────────────────────────────────────────────────


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(format="%(name)s: %(message)s")
    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.WARNING)


def _print_version() -> None:
    click.echo(f"pb version {__version__}")
    click.echo(f"commit {__commit__}")


@click.group(invoke_without_command=True)
@click.option("-p", "--profile", "profile_name", default=None, metavar="NAME",
              help="Profile to run against instead of the default profile")
@click.option("--verbose", is_flag=True, help="Debug logging on stderr")
@click.option("-v", "--version", "show_version", is_flag=True, help="Print version")
@click.pass_context
def cli(ctx: click.Context, profile_name: str | None, verbose: bool, show_version: bool) -> None:
    """pb is the command line interface for Parseable."""
    configure_logging(verbose)
    if ctx.invoked_subcommand is not None:
        return

    def body(_: Invocation) -> None:
        if not show_version:
            raise click.ClickException("no command or flag supplied")
        _print_version()

    _run_managed(ctx, "cli", False, body)


@cli.command()
@managed("cli", requires_profile=False)
def version(invocation: Invocation) -> None:
    """Print version and commit."""
    _print_version()


# ── Profiles ──────────────────────────────────────────────────────────


@cli.group()
def profile() -> None:
    """Manage different Parseable targets."""


@profile.command("add")
@click.argument("name")
@click.argument("url")
@click.argument("username", required=False, default="")
@click.argument("password", required=False, default=None)
@click.option("--replace", is_flag=True, help="Overwrite an existing profile with the same name")
@managed("profile", requires_profile=False)
def profile_add(invocation: Invocation, name: str, url: str, username: str,
                password: str | None, replace: bool) -> None:
    """Add a profile. Prompts for the password if USERNAME is given without one."""
    app: AppContext = click.get_current_context().obj
    if password is None:
        password = click.prompt("Password", hide_input=True, default="",
                                show_default=False) if username else ""
    config = app.store.add_profile(
        Profile(name=name, url=url, username=username, password=password),
        replace=replace,
    )
    click.echo(f"Added profile {name}")
    if config.default_profile == name:
        click.echo(f"{name} is now the default profile")


@profile.command("remove")
@click.argument("name")
@managed("profile", requires_profile=False)
def profile_remove(invocation: Invocation, name: str) -> None:
    """Remove a profile."""
    app: AppContext = click.get_current_context().obj
    config = app.store.remove_profile(name)
    click.echo(f"Removed profile {name}")
    if not config.default_profile:
        click.echo("No default profile is set now; pick one with 'pb profile default <name>'")


@profile.command("list")
@managed("profile", requires_profile=False)
def profile_list(invocation: Invocation) -> None:
    """List all profiles."""
    app: AppContext = click.get_current_context().obj
    config, _ = app.store.load(validate=False)
    render_profiles(config)


@profile.command("default")
@click.argument("name")
@managed("profile", requires_profile=False)
def profile_default(invocation: Invocation, name: str) -> None:
    """Set the default profile."""
    app: AppContext = click.get_current_context().obj
    app.store.set_default(name)
    click.echo(f"{name} is now set as default profile")


# ── Streams, users, roles ─────────────────────────────────────────────


@cli.group()
def stream() -> None:
    """Manage streams."""


@stream.command("list")
@managed("stream")
def stream_list(invocation: Invocation) -> None:
    """List streams on the target server."""
    render_names("Streams", _client(invocation).list_streams())


@stream.command("add")
@click.argument("name")
@managed("stream")
def stream_add(invocation: Invocation, name: str) -> None:
    """Create a stream."""
    _client(invocation).create_stream(name)
    click.echo(f"Created stream {name}")


@stream.command("remove")
@click.argument("name")
@managed("stream")
def stream_remove(invocation: Invocation, name: str) -> None:
    """Delete a stream."""
    _client(invocation).delete_stream(name)
    click.echo(f"Removed stream {name}")


@stream.command("stats")
@click.argument("name")
@managed("stream")
def stream_stats(invocation: Invocation, name: str) -> None:
    """Show ingestion and storage stats for a stream."""
    render_stats(name, _client(invocation).stream_stats(name))


@cli.group()
def user() -> None:
    """Manage users."""


@user.command("add")
@click.argument("name")
@click.option("--role", "roles", multiple=True, help="Role to grant; repeat for more than one")
@managed("user")
def user_add(invocation: Invocation, name: str, roles: tuple[str, ...]) -> None:
    """Create a user and print the generated password."""
    password = _client(invocation).create_user(name, list(roles))
    click.echo(f"Added user {name}")
    click.echo(f"Password: {password}")


@user.command("remove")
@click.argument("name")
@managed("user")
def user_remove(invocation: Invocation, name: str) -> None:
    """Delete a user."""
    _client(invocation).delete_user(name)
    click.echo(f"Removed user {name}")


@user.command("list")
@managed("user")
def user_list(invocation: Invocation) -> None:
    """List users."""
    render_names("Users", _client(invocation).list_users())


@user.command("set-role")
@click.argument("name")
@click.argument("roles", nargs=-1, required=True)
@managed("user")
def user_set_role(invocation: Invocation, name: str, roles: tuple[str, ...]) -> None:
    """Replace the roles of a user."""
    _client(invocation).set_user_roles(name, list(roles))
    click.echo(f"Set roles of {name} to {', '.join(roles)}")


@cli.group()
def role() -> None:
    """Manage roles."""


PRIVILEGES = ("admin", "editor", "writer", "reader", "ingestor")
# Privileges that apply to a single stream.
STREAM_PRIVILEGES = frozenset({"writer", "reader", "ingestor"})


@role.command("add")
@click.argument("name")
@click.option("--privilege", type=click.Choice(PRIVILEGES), default=None,
              help="Privilege granted by the role; omit for a role with no privileges")
@click.option("--stream", "stream_name", default=None,
              help="Stream the privilege applies to (writer, reader and ingestor)")
@managed("role")
def role_add(invocation: Invocation, name: str, privilege: str | None,
             stream_name: str | None) -> None:
    """Create a role."""
    privileges: list[dict[str, Any]] = []
    if privilege is not None:
        entry: dict[str, Any] = {"privilege": privilege}
        if privilege in STREAM_PRIVILEGES:
            if not stream_name:
                raise click.UsageError(f"--stream is required for the {privilege} privilege")
            entry["resource"] = {"stream": stream_name}
        elif stream_name:
            raise click.UsageError(f"--stream does not apply to the {privilege} privilege")
        privileges.append(entry)
    elif stream_name:
        raise click.UsageError("--stream needs --privilege")
    _client(invocation).create_role(name, privileges)
    click.echo(f"Added role {name}")


@role.command("remove")
@click.argument("name")
@managed("role")
def role_remove(invocation: Invocation, name: str) -> None:
    """Delete a role."""
    _client(invocation).delete_role(name)
    click.echo(f"Removed role {name}")


@role.command("list")
@managed("role")
def role_list(invocation: Invocation) -> None:
    """List roles."""
    render_names("Roles", _client(invocation).list_roles())


# ── Query ─────────────────────────────────────────────────────────────

_DURATION = re.compile(r"^(\d+)([smhd])$")
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def to_timestamp(value: str, now: datetime | None = None) -> str:
    """Turn ``now``, a relative duration like ``10m`` or an RFC3339 time into RFC3339."""
    now = now or datetime.now(timezone.utc)
    if value == "now":
        return now.isoformat()
    match = _DURATION.match(value)
    if match:
        delta = timedelta(**{_UNITS[match.group(2)]: int(match.group(1))})
        return (now - delta).isoformat()
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).isoformat()
    except ValueError:
        raise click.BadParameter(
            f"{value!r} is not 'now', a duration like 10m, or an RFC3339 time"
        ) from None


@cli.group()
def query() -> None:
    """Run SQL queries on a log stream."""


@query.command("run")
@click.argument("sql")
@click.option("--from", "start", default="1m", show_default=True,
              help="Start of the time range (duration ago, 'now' or RFC3339)")
@click.option("--to", "end", default="now", show_default=True,
              help="End of the time range")
@managed("query")
def query_run(invocation: Invocation, sql: str, start: str, end: str) -> None:
    """Run a SQL query and print the JSON result."""
    result = _client(invocation).query(sql, to_timestamp(start), to_timestamp(end))
    click.echo(json.dumps(result, indent=2) if not isinstance(result, str) else result)


@query.command("list")
@managed("query")
def query_list(invocation: Invocation) -> None:
    """List saved SQL queries."""
    render_saved_queries(_client(invocation).list_saved_queries())


# ── Process entry ─────────────────────────────────────────────────────


def run(argv: list[str] | None = None, app: AppContext | None = None) -> int:
    """Bootstrap, dispatch one command, join telemetry and return the exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    # Bootstrap runs before click parses anything, so --verbose is honoured here.
    configure_logging("--verbose" in args)
    app = app if app is not None else AppContext.from_env()
    try:
        try:
            app.store.ensure_bootstrapped()
        except PbError as e:
            click.echo(f"Error: {e}", err=True)
            return 1

        try:
            rv = cli.main(args=args, prog_name="pb", obj=app, standalone_mode=False)
        except click.ClickException as e:
            e.show()
            return e.exit_code
        except click.Abort:
            click.echo("Aborted!", err=True)
            return 1
        except Exception as e:
            logger.debug("Command failed with an unexpected error", exc_info=True)
            click.echo(f"Error: {e}", err=True)
            return 1
        return rv if isinstance(rv, int) else 0
    finally:
        app.telemetry.await_all()


def main() -> None:
    """Entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
