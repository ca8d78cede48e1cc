"""
Waybar Timer Server

Owns the single authoritative timer. CLI invocations mutate it through the
command channel (HTTP over a Unix socket); status bar hooks watch it through
the update channel (one JSON record per line over a second Unix socket).
"""

import asyncio
import contextlib
import logging
import os
import socket
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException

from waybar_timer.broadcaster import Broadcaster
from waybar_timer.config import Settings
from waybar_timer.effects import DesktopEffects
from waybar_timer.errors import TimerError
from waybar_timer.models import StatusRecord, TimerCommand
from waybar_timer.protocol import (
    CONFLICT_STATUS,
    CONTROL_PATH,
    HEALTH_PATH,
    STATUS_PATH,
    dispatch,
    error_detail,
)
from waybar_timer.timer import TimerStateMachine

logger = logging.getLogger(__name__)

# Only the owning user may connect
SOCKET_MODE = 0o600


def unlink_socket(path: str) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.unlink(path)


def bind_unix_socket(path: str, mode: int = SOCKET_MODE) -> socket.socket:
    """Bind a listening-ready Unix socket at ``path``, replacing a stale one.

    The old path is unlinked unconditionally. If another server is still
    listening there it keeps running but becomes unreachable; the last
    server to bind wins.
    """
    unlink_socket(path)
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(path)
        os.chmod(path, mode)
    except OSError:
        sock.close()
        raise
    return sock


# ============================================================
# TIMER SERVER
# ============================================================


class TimerServer:
    """The timer, its subscribers, and the lock that guards both.

    Every command, tick and subscriber attach runs entirely under ``lock``,
    including the broadcast of the resulting snapshot, so all subscribers
    see snapshots in the order the transitions happened.
    """

    def __init__(
        self,
        machine: TimerStateMachine | None = None,
        broadcaster: Broadcaster | None = None,
        tick_interval: float = 1.0,
        echo_stdout: bool = False,
    ):
        self.machine = machine or TimerStateMachine()
        self.broadcaster = broadcaster or Broadcaster()
        self.tick_interval = tick_interval
        self.echo_stdout = echo_stdout
        self.lock = asyncio.Lock()
        self.update_socket: str | None = None

        self._ticker: asyncio.Task | None = None
        self._update_server: asyncio.AbstractServer | None = None

    async def call(self, command: TimerCommand) -> StatusRecord:
        """Run one command, then tick and publish. Raises TimerError."""
        async with self.lock:
            # A timer that ran out since the last tick expires before the
            # command sees it
            self.machine.resolve_expiry()
            try:
                dispatch(self.machine, command)
            finally:
                snapshot = await self._refresh()
        return snapshot

    async def tick(self) -> StatusRecord:
        async with self.lock:
            return await self._refresh()

    async def attach(self, writer: asyncio.StreamWriter) -> None:
        async with self.lock:
            snapshot = await self._refresh()
            await self.broadcaster.attach(writer, snapshot)

    async def _refresh(self) -> StatusRecord:
        snapshot = self.machine.tick()
        if self.echo_stdout:
            self._echo(snapshot)
        await self.broadcaster.publish(snapshot)
        return snapshot

    def _echo(self, snapshot: StatusRecord) -> None:
        try:
            print(snapshot.to_line(), flush=True)
        except (OSError, ValueError) as e:
            # stdout is gone (status bar exited); subscribers still get updates
            logger.warning("Could not write status to stdout, echo disabled: %s", e)
            self.echo_stdout = False

    # ------------------------------------------------------------
    # Background activities
    # ------------------------------------------------------------

    async def run_ticker(self) -> None:
        """Tick once per interval until cancelled. A failed tick is logged and skipped."""
        while True:
            await asyncio.sleep(self.tick_interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Tick failed")

    async def handle_subscriber(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Accept callback for the update channel."""
        # Subscribers only ever read
        sock = writer.get_extra_info("socket")
        try:
            sock.shutdown(socket.SHUT_RD)
        except OSError as e:
            logger.debug("Could not shut down subscriber read half: %s", e)
        await self.attach(writer)

    async def start(self, update_socket: str | None = None) -> None:
        await self.tick()
        if update_socket:
            self.update_socket = update_socket
            self._update_server = await asyncio.start_unix_server(
                self.handle_subscriber, sock=bind_unix_socket(update_socket)
            )
            logger.info("Update channel listening on %s", update_socket)
        self._ticker = asyncio.create_task(self.run_ticker())

    async def stop(self) -> None:
        if self._ticker and not self._ticker.done():
            self._ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._ticker
        self._ticker = None

        if self._update_server:
            self._update_server.close()
            async with self.lock:
                self.broadcaster.close_all()
            await self._update_server.wait_closed()
            self._update_server = None


# ============================================================
# FASTAPI APP
# ============================================================


def create_app(timer_server: TimerServer, update_socket: str | None = None) -> FastAPI:
    """Build the command-channel application around ``timer_server``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await timer_server.start(update_socket)
        logger.info("Waybar timer server started")
        yield
        await timer_server.stop()
        logger.info("Waybar timer server stopped")

    app = FastAPI(
        title="Waybar Timer",
        description="Single countdown timer for a status bar",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.timer_server = timer_server

    @app.get(HEALTH_PATH)
    async def health():
        """Health check endpoint."""
        status = await timer_server.tick()
        return {
            "status": "healthy",
            "subscribers": len(timer_server.broadcaster),
            "state": status.alt,
        }

    @app.get(STATUS_PATH, response_model=StatusRecord)
    async def get_status():
        """Current status record."""
        return await timer_server.tick()

    @app.post(CONTROL_PATH, response_model=StatusRecord)
    async def control_timer(command: TimerCommand):
        """Call one timer method (cancel, start, increase, togglepause)."""
        try:
            return await timer_server.call(command)
        except TimerError as e:
            raise HTTPException(
                status_code=CONFLICT_STATUS,
                detail=error_detail(e).model_dump(mode="json"),
            ) from None

    return app


# ============================================================
# MAIN
# ============================================================


def serve(settings: Settings, echo_stdout: bool = False) -> None:
    """Run the server until interrupted. Binding failures propagate."""
    machine = TimerStateMachine(
        effects=DesktopEffects(), exec_on_expiry=settings.exec_on_expiry
    )
    timer_server = TimerServer(
        machine=machine,
        broadcaster=Broadcaster(write_timeout=settings.write_timeout),
        tick_interval=settings.tick_interval,
        echo_stdout=echo_stdout,
    )
    app = create_app(timer_server, update_socket=settings.update_socket)

    command_sock = bind_unix_socket(settings.command_socket)
    logger.info("Command channel listening on %s", settings.command_socket)
    uvicorn.run(
        app,
        fd=command_sock.fileno(),
        log_config=None,
        log_level=settings.log_level.lower(),
        access_log=False,
    )
