"""Shared fixtures for the waybar timer tests."""

import shutil
import tempfile
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from waybar_timer.broadcaster import Broadcaster
from waybar_timer.effects import TimerEffects
from waybar_timer.server import TimerServer, create_app
from waybar_timer.timer import TimerStateMachine

START = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingEffects(TimerEffects):
    def __init__(self):
        self.notifications: list[tuple[str, bool]] = []
        self.commands: list[str] = []

    def notify(self, summary: str, critical: bool = False) -> None:
        self.notifications.append((summary, critical))

    def run_command(self, command: str) -> None:
        self.commands.append(command)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def effects():
    return RecordingEffects()


@pytest.fixture
def machine(clock, effects):
    return TimerStateMachine(effects=effects, clock=clock)


@pytest.fixture
def timer_server(machine):
    return TimerServer(machine=machine, broadcaster=Broadcaster(write_timeout=0.5))


@pytest.fixture
async def client(timer_server):
    transport = ASGITransport(app=create_app(timer_server))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def sock_dir():
    """Short temporary directory; Unix socket paths are limited to ~100 bytes."""
    path = tempfile.mkdtemp(prefix="wbt", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)
