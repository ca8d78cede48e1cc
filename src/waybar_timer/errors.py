"""Error types shared by the server and its clients."""

from enum import StrEnum


class ErrorKind(StrEnum):
    NO_TIMER_EXISTING = "NoTimerExisting"
    TIMER_ALREADY_EXISTING = "TimerAlreadyExisting"


class TimerError(Exception):
    """A command was rejected by the timer state machine."""

    kind: ErrorKind
    default_message = "timer error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class NoTimerExistingError(TimerError):
    kind = ErrorKind.NO_TIMER_EXISTING
    default_message = "no timer exists right now"


class TimerAlreadyExistingError(TimerError):
    kind = ErrorKind.TIMER_ALREADY_EXISTING
    default_message = "there already exists a timer"


ERRORS_BY_KIND: dict[ErrorKind, type[TimerError]] = {
    ErrorKind.NO_TIMER_EXISTING: NoTimerExistingError,
    ErrorKind.TIMER_ALREADY_EXISTING: TimerAlreadyExistingError,
}


class TransportError(Exception):
    """The command could not be delivered or its response could not be read."""
