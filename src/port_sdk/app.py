"""Typer application and CLI entry point for port-sdk.

The ``port-sdk`` command is a thin operator tool over the library:

* ``port-sdk config`` -- show the configuration a client would resolve from
  the current environment, secrets masked.
* ``port-sdk check [--live]`` -- validate the environment and optionally
  prove the credentials against the API.
* ``port-sdk request METHOD PATH`` -- send one request through the full
  executor (token injection, retry, timeout) and print the JSON response.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. Any :class:`~port_sdk.exceptions.PortError` ends the
process with that error's ``exit_code``.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Coroutine
from typing import Any, Optional, TypeVar

import typer

from port_sdk import __version__
from port_sdk.exit_codes import EXIT_CANCELLED, EXIT_INVALID_USAGE
from port_sdk.exceptions import PortError

T = TypeVar("T")

app = typer.Typer(
    name="port-sdk",
    help="Inspect configuration and call the Port API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"port-sdk {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging on stderr."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="ERROR, WARN, INFO, DEBUG or TRACE."
    ),
) -> None:
    """Root callback: configure logging before any sub-command runs."""
    from port_sdk.log import configure_logging
    from port_sdk.output import error

    if verbose or log_level:
        try:
            configure_logging(log_level, verbose)
        except PortError as exc:
            error(exc.message)
            raise typer.Exit(code=EXIT_INVALID_USAGE)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["log_level"] = log_level


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro*, turning a :class:`PortError` into a clean CLI exit."""
    from port_sdk.output import error

    try:
        return asyncio.run(coro)
    except PortError as exc:
        where = exc.describe_context()
        error(f"{exc.message} ({where})" if where else exc.message)
        raise typer.Exit(code=exc.exit_code)


def _mask(value: Optional[str]) -> str:
    if not value:
        return "-"
    return value[:4] + "****" if len(value) > 8 else "****"


@app.command("config")
def config_command() -> None:
    """Show the configuration resolved from the environment.

    Example::

        PORT_REGION=us port-sdk config
    """
    from port_sdk.config import get_current_config, resolve_config
    from port_sdk.exceptions import AuthError
    from port_sdk.models import OAuthCredentials
    from port_sdk.output import print_table, warning

    summary = get_current_config()
    rows: dict[str, Any] = {
        "credential_type": summary["credential_type"],
        "base_url": summary["base_url"],
        "region": summary["region"],
        "proxy": summary["proxy"],
    }
    try:
        resolved = resolve_config()
    except AuthError:
        warning("No credentials configured")
    except PortError as exc:
        warning(exc.message)
    else:
        credentials = resolved.credentials
        if isinstance(credentials, OAuthCredentials):
            rows["client_id"] = _mask(credentials.client_id)
        else:
            rows["access_token"] = _mask(credentials.access_token)
        rows["timeout_ms"] = resolved.timeout_ms
        rows["max_retries"] = resolved.max_retries
        rows["retry_delay_ms"] = resolved.retry_delay_ms
    print_table("port-sdk configuration", rows)


@app.command("check")
def check_command(
    live: bool = typer.Option(
        False, "--live", help="Also authenticate against the API."
    ),
) -> None:
    """Validate the environment, optionally with a live token exchange."""
    from port_sdk.config import validate_environment
    from port_sdk.output import error, success

    valid, errors = validate_environment()
    if not valid:
        for message in errors:
            error(message)
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    success("Environment OK")

    if live:
        blueprints = _run(_live_check())
        success(f"Authenticated -- {len(blueprints)} blueprint(s) visible")


async def _live_check() -> list[dict[str, Any]]:
    from port_sdk.client import PortClient

    async with PortClient() as port:
        return await port.blueprints.list()


def _parse_query(pairs: list[str]) -> dict[str, str]:
    query: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--query")
        query[key] = value
    return query


@app.command("request")
def request_command(
    method: str = typer.Argument(help="HTTP method (GET, POST, PUT, PATCH, DELETE)."),
    path: str = typer.Argument(help="API path, e.g. /v1/blueprints/service."),
    query: Optional[list[str]] = typer.Option(
        None, "--query", "-q", help="Query parameter as key=value (repeatable)."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="JSON request body."
    ),
    timeout: Optional[int] = typer.Option(
        None, "--timeout", help="Per-attempt timeout in milliseconds."
    ),
) -> None:
    """Send one request and print the JSON response.

    Example::

        port-sdk request GET /v1/blueprints/service/entities -q limit=10
        port-sdk request POST /v1/entities/search -d '{"rules": []}'
    """
    from port_sdk.output import error, print_json

    body: Any = None
    if data is not None:
        try:
            body = json.loads(data)
        except json.JSONDecodeError as exc:
            error(f"--data is not valid JSON: {exc}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)

    result = _run(_send(method, path, _parse_query(query or []), body, timeout))
    if result is not None:
        print_json(result)


async def _send(
    method: str,
    path: str,
    query: dict[str, str],
    body: Any,
    timeout_ms: Optional[int],
) -> Any:
    from port_sdk.client import PortClient

    async with PortClient() as port:
        return await port.request(
            method, path, query=query or None, body=body, timeout_ms=timeout_ms,
        )


def main() -> None:
    """CLI entry point invoked by the ``port-sdk`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except PortError as exc:
        from port_sdk.output import error

        error(exc.message)
        sys.exit(exc.exit_code)
