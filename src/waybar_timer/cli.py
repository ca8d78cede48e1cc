"""Command line interface: the server commands plus one-shot timer commands."""

import logging
import sys
import time
from collections.abc import Callable
from typing import Annotated

import typer
from pydantic import ValidationError

from waybar_timer.client import TimerClient, subscribe
from waybar_timer.config import Settings
from waybar_timer.errors import TimerError, TransportError
from waybar_timer.models import MAX_MINUTES, MAX_SECONDS, StatusRecord

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Countdown timer for waybar (see https://github.com/jbirnick/waybar-timer/).",
    no_args_is_help=True,
    add_completion=False,
)


def configure_logging(level: str) -> None:
    # stdout carries status records, so logs go to stderr
    logging.basicConfig(
        level=level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _settings(ctx: typer.Context, **overrides) -> Settings:
    settings: Settings = ctx.obj
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if not overrides:
        return settings
    try:
        return Settings(**{**settings.model_dump(), **overrides})
    except ValidationError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(2) from None


def _call(ctx: typer.Context, action: Callable[[TimerClient], StatusRecord]) -> StatusRecord:
    client = TimerClient(_settings(ctx).command_socket)
    try:
        return action(client)
    except ValidationError as e:
        # Arguments the server would reject anyway, caught before connecting
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(2) from None
    except (TimerError, TransportError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1) from None


@app.callback()
def main(
    ctx: typer.Context,
    command_socket: Annotated[
        str | None, typer.Option(help="Command channel socket path.")
    ] = None,
    update_socket: Annotated[
        str | None, typer.Option(help="Update channel socket path.")
    ] = None,
) -> None:
    try:
        ctx.obj = Settings.from_env(command_socket=command_socket, update_socket=update_socket)
    except ValidationError as e:
        typer.echo(f"error: invalid WAYBAR_TIMER_* setting: {e}", err=True)
        raise typer.Exit(2) from None


# ============================================================
# SERVER COMMANDS
# ============================================================


ExecOption = Annotated[
    bool | None,
    typer.Option("--exec/--no-exec", help="Run the timer label as a shell command on expiry."),
]
TickOption = Annotated[float | None, typer.Option(help="Seconds between ticks.")]
LogLevelOption = Annotated[str | None, typer.Option(help="Log level for stderr.")]


def _run_server(
    ctx: typer.Context,
    echo_stdout: bool,
    exec_on_expiry: bool | None,
    tick_interval: float | None,
    log_level: str | None,
) -> None:
    # Imported here so client commands do not pay for uvicorn and fastapi
    from waybar_timer.server import serve as run_server

    settings = _settings(
        ctx,
        exec_on_expiry=exec_on_expiry,
        tick_interval=tick_interval,
        log_level=log_level,
    )
    configure_logging(settings.log_level)
    run_server(settings, echo_stdout=echo_stdout)


@app.command()
def serve(
    ctx: typer.Context,
    exec_on_expiry: ExecOption = None,
    tick_interval: TickOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Start the server; status records go to update channel subscribers."""
    _run_server(ctx, False, exec_on_expiry, tick_interval, log_level)


@app.command()
def tail(
    ctx: typer.Context,
    exec_on_expiry: ExecOption = None,
    tick_interval: TickOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Start the server and also print every status record to stdout (for waybar)."""
    _run_server(ctx, True, exec_on_expiry, tick_interval, log_level)


@app.command()
def hook(
    ctx: typer.Context,
    retry_interval: Annotated[
        float,
        typer.Option(min=0, help="Reconnect after this many seconds; 0 exits instead."),
    ] = 0.0,
) -> None:
    """Stream status records from a running server to stdout (for waybar)."""
    update_socket = _settings(ctx).update_socket
    while True:
        try:
            for line in subscribe(update_socket):
                typer.echo(line)
        except BrokenPipeError:
            # The status bar went away
            return
        except OSError as e:
            if not retry_interval:
                typer.echo(f"error: cannot read updates from {update_socket}: {e}", err=True)
                raise typer.Exit(1) from None
            logger.debug("Update channel unavailable: %s", e)
        else:
            if not retry_interval:
                return
        time.sleep(retry_interval)


# ============================================================
# CLIENT COMMANDS
# ============================================================


@app.command()
def new(
    ctx: typer.Context,
    minutes: Annotated[int, typer.Argument(min=0, max=MAX_MINUTES, help="Timer duration.")],
    label: Annotated[
        str | None,
        typer.Argument(help="Timer name, or the command to run on expiry with --exec."),
    ] = None,
) -> None:
    """Start a new timer."""
    _call(ctx, lambda client: client.start(minutes, label))


@app.command()
def increase(
    ctx: typer.Context,
    seconds: Annotated[int, typer.Argument(min=0, max=MAX_SECONDS, help="Seconds to add.")],
) -> None:
    """Increase the current timer."""
    _call(ctx, lambda client: client.increase(seconds))


@app.command()
def decrease(
    ctx: typer.Context,
    seconds: Annotated[int, typer.Argument(min=0, max=MAX_SECONDS, help="Seconds to subtract.")],
) -> None:
    """Decrease the current timer."""
    _call(ctx, lambda client: client.decrease(seconds))


@app.command()
def togglepause(ctx: typer.Context) -> None:
    """Pause or resume the current timer."""
    _call(ctx, lambda client: client.togglepause())


@app.command()
def cancel(ctx: typer.Context) -> None:
    """Cancel the current timer."""
    _call(ctx, lambda client: client.cancel())


@app.command()
def status(ctx: typer.Context) -> None:
    """Print the current status record."""
    record = _call(ctx, lambda client: client.status())
    typer.echo(record.to_line())
