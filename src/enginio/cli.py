"""Typer-based command line access to a backend."""

from __future__ import annotations

import functools
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from PySide6.QtCore import QCoreApplication, QEventLoop, QTimer
from rich import print
from rich.console import Console
from rich.table import Table

from . import config
from .client import EnginioClient
from .errors import BackendError, EnginioError, LocalValidationError, TransportError
from .identity import PasswordIdentity
from .models.objects import EnginioObject
from .network.reply import EnginioReply
from .network.request_builder import Area

LOGGER_HANDLER_NAME = "enginio-cli"

app = typer.Typer(help="Query and modify the objects stored in an Enginio backend")

_qt_app: Optional[QCoreApplication] = None


@dataclass
class CliSettings:
    backend_id: str
    backend_secret: str
    api_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 30.0


def _ensure_application() -> QCoreApplication:
    global _qt_app
    existing = QCoreApplication.instance()
    if existing is not None:
        return existing
    _qt_app = QCoreApplication([])
    return _qt_app


def create_client(settings: CliSettings) -> EnginioClient:
    return EnginioClient(settings.backend_id, settings.backend_secret, api_url=settings.api_url)


def _ensure_console_logger(level: int) -> None:
    logger = logging.getLogger("enginio")
    for handler in logger.handlers:
        if getattr(handler, "name", None) == LOGGER_HANDLER_NAME:
            handler.setLevel(level)
            logger.setLevel(level)
            return
    # stdout is reserved for command output.
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.name = LOGGER_HANDLER_NAME
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BackendError as exc:
            typer.echo(f"Backend error {exc.status}: {exc.message}", err=True)
            raise typer.Exit(1) from exc
        except (LocalValidationError, TransportError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except EnginioError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


def _parse_json(value: Optional[str], option: str) -> Dict[str, Any]:
    if not value:
        return {}
    try:
        parsed = json.loads(value)
    except ValueError as exc:
        raise typer.BadParameter(f"not valid JSON: {exc}", param_hint=option) from exc
    if not isinstance(parsed, dict):
        raise typer.BadParameter("expected a JSON object", param_hint=option)
    return parsed


def _wait_for(reply: Optional[EnginioReply], timeout: float) -> EnginioReply:
    """Run the Qt event loop until *reply* finishes and raise its error if any."""
    if reply is None:
        raise LocalValidationError("request rejected before sending; check objectType and id")
    _ensure_application()

    loop = QEventLoop()
    timer = QTimer()
    timer.setSingleShot(True)
    timer.timeout.connect(loop.quit)
    reply.finished.connect(lambda _reply: loop.quit())
    if not reply.is_finished():
        timer.start(int(timeout * 1000))
        loop.exec()
        timer.stop()

    if not reply.is_finished():
        reply.abandon()
        raise TransportError(f"no response within {timeout:g} seconds")
    if reply.error is not None:
        raise reply.error
    return reply


def _connect(ctx: typer.Context) -> EnginioClient:
    settings: CliSettings = ctx.obj
    _ensure_application()
    client = create_client(settings)
    if settings.username:
        identity = PasswordIdentity(settings.username, settings.password or "", client)
        client.set_identity(identity)
        _wait_for(identity.prepare_session_token(client), settings.timeout)
        if not client.session_token():
            raise LocalValidationError(f"no session token issued for {settings.username}")
    return client


def _print_objects(objects: List[EnginioObject]) -> None:
    columns: List[str] = [config.OBJECT_ID_KEY, config.OBJECT_TYPE_KEY]
    for obj in objects:
        for key in obj.keys():
            if key not in columns:
                columns.append(key)

    table = Table(show_lines=False)
    for column in columns:
        table.add_column(column)
    for obj in objects:
        cells = []
        for column in columns:
            value = obj.value(column)
            if value is None:
                cells.append("")
            elif isinstance(value, (dict, list)):
                cells.append(json.dumps(value, ensure_ascii=False))
            else:
                cells.append(str(value))
        table.add_row(*cells)
    Console().print(table)


def _print_reply(reply: EnginioReply) -> None:
    if reply.data is None:
        print("[green]Done")
        return
    Console().print_json(data=reply.data)


@app.callback()
def main(
    ctx: typer.Context,
    backend_id: str = typer.Option(..., envvar="ENGINIO_BACKEND_ID", help="Backend id"),
    backend_secret: str = typer.Option(
        ..., envvar="ENGINIO_BACKEND_SECRET", help="Backend secret"
    ),
    api_url: Optional[str] = typer.Option(
        None, help=f"Backend URL (default: ${config.API_URL_ENV_VAR} or {config.DEFAULT_API_URL})"
    ),
    username: Optional[str] = typer.Option(None, envvar="ENGINIO_USERNAME", help="Log in as this user"),
    password: Optional[str] = typer.Option(None, envvar="ENGINIO_PASSWORD", help="Password for --username"),
    timeout: float = typer.Option(30.0, min=0.1, help="Seconds to wait for each response"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests to stderr"),
) -> None:
    _ensure_console_logger(logging.DEBUG if verbose else logging.WARNING)
    ctx.obj = CliSettings(backend_id, backend_secret, api_url, username, password, timeout)


@app.command()
@_handle_errors
def query(
    ctx: typer.Context,
    object_type: Optional[str] = typer.Argument(None, help="Object type, e.g. objects.todos"),
    area: Area = typer.Option(Area.OBJECTS, case_sensitive=False, help="Collection to query"),
    where: Optional[str] = typer.Option(None, "--where", help="JSON filter"),
    sort: Optional[str] = typer.Option(None, help="JSON sort order"),
    limit: Optional[int] = typer.Option(None, min=1),
    offset: Optional[int] = typer.Option(None, min=0),
    count: bool = typer.Option(False, "--count", help="Ask for the total match count"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response"),
) -> None:
    """List objects matching a query."""

    payload: Dict[str, Any] = {}
    if object_type:
        payload[config.OBJECT_TYPE_KEY] = object_type
    if where:
        payload["query"] = _parse_json(where, "--where")
    if sort:
        try:
            payload["sort"] = json.loads(sort)
        except ValueError as exc:
            raise typer.BadParameter(f"not valid JSON: {exc}", param_hint="--sort") from exc
    if limit is not None:
        payload["limit"] = limit
    if offset is not None:
        payload["offset"] = offset
    if count:
        payload["count"] = True

    settings: CliSettings = ctx.obj
    client = _connect(ctx)
    reply = _wait_for(client.query(payload, area), settings.timeout)
    if as_json:
        _print_reply(reply)
        return
    _print_objects(reply.objects)
    data = reply.data if isinstance(reply.data, dict) else {}
    if isinstance(data.get(config.COUNT_KEY), int):
        print(f"[green]{data[config.COUNT_KEY]} matching objects")


@app.command()
@_handle_errors
def create(
    ctx: typer.Context,
    object_type: str = typer.Argument(..., help="Object type, e.g. objects.todos"),
    data: str = typer.Argument(..., help="JSON object with the new object's fields"),
    area: Area = typer.Option(Area.OBJECTS, case_sensitive=False),
) -> None:
    """Create an object."""

    payload = _parse_json(data, "DATA")
    payload[config.OBJECT_TYPE_KEY] = object_type
    settings: CliSettings = ctx.obj
    client = _connect(ctx)
    reply = _wait_for(client.create(payload, area), settings.timeout)
    _print_reply(reply)


@app.command()
@_handle_errors
def update(
    ctx: typer.Context,
    object_type: str = typer.Argument(...),
    object_id: str = typer.Argument(...),
    data: str = typer.Argument(..., help="JSON object with the fields to change"),
    area: Area = typer.Option(Area.OBJECTS, case_sensitive=False),
) -> None:
    """Change fields of an existing object."""

    payload = _parse_json(data, "DATA")
    payload[config.OBJECT_TYPE_KEY] = object_type
    payload[config.OBJECT_ID_KEY] = object_id
    settings: CliSettings = ctx.obj
    client = _connect(ctx)
    reply = _wait_for(client.update(payload, area), settings.timeout)
    _print_reply(reply)


@app.command()
@_handle_errors
def remove(
    ctx: typer.Context,
    object_type: str = typer.Argument(...),
    object_id: str = typer.Argument(...),
    area: Area = typer.Option(Area.OBJECTS, case_sensitive=False),
) -> None:
    """Delete an object."""

    payload = {config.OBJECT_TYPE_KEY: object_type, config.OBJECT_ID_KEY: object_id}
    settings: CliSettings = ctx.obj
    client = _connect(ctx)
    _wait_for(client.remove(payload, area), settings.timeout)
    print(f"[green]Removed {object_id}")


@app.command()
@_handle_errors
def upload(
    ctx: typer.Context,
    object_type: str = typer.Argument(..., help="Type of the owning object"),
    object_id: str = typer.Argument(..., help="Id of the owning object"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    """Upload a file and attach it to an existing object."""

    associated = {"object": {config.OBJECT_TYPE_KEY: object_type, config.OBJECT_ID_KEY: object_id}}
    settings: CliSettings = ctx.obj
    client = _connect(ctx)
    reply = _wait_for(client.upload_file(associated, file), settings.timeout)
    _print_reply(reply)


if __name__ == "__main__":  # pragma: no cover
    app()
