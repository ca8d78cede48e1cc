"""
Timer state machine.

Holds the single countdown timer (standby, running or paused) and its
transition rules. Callers are responsible for serializing access; the
server does this with one lock around every call and the broadcast that
follows it.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from waybar_timer.effects import TimerEffects
from waybar_timer.errors import NoTimerExistingError, TimerAlreadyExistingError
from waybar_timer.models import MAX_MINUTES, StatusRecord, TimerState

logger = logging.getLogger(__name__)

# Subtracted from the expiry of a new timer so that "minutes left, rounded up"
# shows the requested minute count instead of one more.
START_ADJUSTMENT = timedelta(milliseconds=1)
ONE_MINUTE = timedelta(minutes=1)
# Repeated increases stop here so that expiry stays inside datetime's range
MAX_TIME_LEFT = timedelta(minutes=MAX_MINUTES)


def local_now() -> datetime:
    """Current wall-clock time in the local timezone."""
    return datetime.now().astimezone()


class TimerStateMachine:
    """The one countdown timer owned by the server."""

    def __init__(
        self,
        effects: TimerEffects | None = None,
        clock: Callable[[], datetime] = local_now,
        exec_on_expiry: bool = False,
    ):
        self.effects = effects or TimerEffects()
        self.clock = clock
        self.exec_on_expiry = exec_on_expiry

        self.state = TimerState.STANDBY
        # Set only while running
        self.expiry: datetime | None = None
        # Set only while paused
        self.remaining: timedelta | None = None
        self.label: str | None = None

    @property
    def is_active(self) -> bool:
        return self.state != TimerState.STANDBY

    def time_left(self, now: datetime | None = None) -> timedelta:
        """Time until expiry; zero while idle."""
        if self.state == TimerState.RUNNING:
            return self.expiry - (now or self.clock())
        if self.state == TimerState.PAUSED:
            return self.remaining
        return timedelta(0)

    # ------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------

    def start(self, minutes: int, label: str | None = None) -> None:
        if self.is_active:
            raise TimerAlreadyExistingError()

        self.expiry = self.clock() + timedelta(minutes=minutes) - START_ADJUSTMENT
        self.label = label
        self.state = TimerState.RUNNING
        logger.info("Timer started for %d minutes (label=%r)", minutes, label)
        self.effects.notify(self._expiry_text())

    def cancel(self) -> None:
        if not self.is_active:
            return

        label = self.label
        self._reset()
        logger.info("Timer canceled")
        self.effects.notify(_labelled("Timer {}canceled", label))

    def increase(self, seconds: int) -> None:
        delta = timedelta(seconds=seconds)
        if self.state == TimerState.RUNNING:
            now = self.clock()
            self.expiry = now + _bounded(self.expiry - now + delta)
            self.effects.notify(self._expiry_text())
        elif self.state == TimerState.PAUSED:
            self.remaining = _bounded(self.remaining + delta)
        else:
            raise NoTimerExistingError()
        logger.info("Timer changed by %+d seconds", seconds)

    def togglepause(self) -> None:
        if self.state == TimerState.RUNNING:
            self.remaining = self.expiry - self.clock()
            self.expiry = None
            self.state = TimerState.PAUSED
            logger.info("Timer paused with %s left", self.remaining)
            self.effects.notify(self._paused_text())
        elif self.state == TimerState.PAUSED:
            self.expiry = self.clock() + self.remaining
            self.remaining = None
            self.state = TimerState.RUNNING
            logger.info("Timer resumed")
            self.effects.notify(self._expiry_text())
        else:
            raise NoTimerExistingError()

    # ------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------

    def resolve_expiry(self, now: datetime | None = None) -> bool:
        """Expire the timer if its time is up. Returns True if it expired."""
        if self.is_active and self.time_left(now) <= timedelta(0):
            self._expire()
            return True
        return False

    def tick(self) -> StatusRecord:
        """Resolve expiry if due and return the current status record."""
        now = self.clock()
        self.resolve_expiry(now)

        if self.state == TimerState.RUNNING:
            tooltip = self._expiry_text()
        elif self.state == TimerState.PAUSED:
            tooltip = self._paused_text()
        else:
            tooltip = "No timer set"

        return StatusRecord(
            text=str(self.minutes_left(now)),
            alt=self.state,
            tooltip=tooltip,
        )

    def minutes_left(self, now: datetime | None = None) -> int:
        """Whole minutes left plus one; a partial minute counts as a full one."""
        if not self.is_active:
            return 0
        return self.time_left(now) // ONE_MINUTE + 1

    def _expire(self) -> None:
        label = self.label
        self._reset()
        logger.info("Timer expired (label=%r)", label)
        self.effects.notify(_labelled("Timer {}expired", label), critical=True)
        if self.exec_on_expiry and label:
            self.effects.run_command(label)

    def _reset(self) -> None:
        self.state = TimerState.STANDBY
        self.expiry = None
        self.remaining = None
        self.label = None

    def _expiry_text(self) -> str:
        return _labelled("Timer {}expires at " + self.expiry.strftime("%H:%M"), self.label)

    def _paused_text(self) -> str:
        return _labelled("Timer {}paused", self.label)


def _bounded(left: timedelta) -> timedelta:
    """Clamp time left to 0..MAX_TIME_LEFT; zero still expires on the next tick."""
    return max(timedelta(0), min(left, MAX_TIME_LEFT))


def _labelled(template: str, label: str | None) -> str:
    return template.format(f"'{label}' " if label else "")
