"""
Command protocol: one request, one response, one connection.

Requests are ``TimerCommand`` JSON bodies posted to ``CONTROL_PATH``. A
successful call answers 200 with the resulting status record; a rejected
one answers 409 with an ``ErrorDetail``. Anything else is a transport
failure and is never turned into a ``TimerError``.
"""

from typing import Any

from pydantic import ValidationError

from waybar_timer.errors import ERRORS_BY_KIND, TimerError, TransportError
from waybar_timer.models import ErrorDetail, TimerCommand, TimerMethod
from waybar_timer.timer import TimerStateMachine

CONTROL_PATH = "/timer/control"
STATUS_PATH = "/timer"
HEALTH_PATH = "/health"
CONFLICT_STATUS = 409


def encode_command(command: TimerCommand) -> dict[str, Any]:
    return command.model_dump(mode="json", exclude_none=True)


def dispatch(machine: TimerStateMachine, command: TimerCommand) -> None:
    """Apply a decoded command to the state machine. Raises TimerError."""
    if command.method == TimerMethod.CANCEL:
        machine.cancel()
    elif command.method == TimerMethod.START:
        machine.start(command.minutes, command.label)
    elif command.method == TimerMethod.INCREASE:
        machine.increase(command.seconds)
    elif command.method == TimerMethod.TOGGLEPAUSE:
        machine.togglepause()


def error_detail(error: TimerError) -> ErrorDetail:
    return ErrorDetail(error=error.kind, message=str(error))


def error_from_detail(payload: Any) -> TimerError:
    """Rebuild the TimerError carried in a 409 response body."""
    try:
        detail = ErrorDetail.model_validate(payload)
    except ValidationError as e:
        raise TransportError(f"Malformed error response: {payload!r}") from e
    return ERRORS_BY_KIND[detail.error](detail.message)
