"""
One-shot client for CLI invocations.

Every call opens a fresh connection to the command socket, sends exactly
one request, reads exactly one response and closes the connection.
"""

import socket
from collections.abc import Iterator

import httpx
from pydantic import ValidationError

from waybar_timer.errors import TransportError
from waybar_timer.models import StatusRecord, TimerCommand, TimerMethod
from waybar_timer.protocol import (
    CONFLICT_STATUS,
    CONTROL_PATH,
    STATUS_PATH,
    encode_command,
    error_from_detail,
)

# Host is ignored on a Unix socket but httpx needs an absolute URL
BASE_URL = "http://waybar-timer"
DEFAULT_TIMEOUT = 5.0


class TimerClient:
    """Calls timer methods on a running server."""

    def __init__(
        self,
        command_socket: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.command_socket = command_socket
        self.timeout = timeout
        self._transport = transport

    def cancel(self) -> StatusRecord:
        return self.call(TimerCommand(method=TimerMethod.CANCEL))

    def start(self, minutes: int, label: str | None = None) -> StatusRecord:
        return self.call(TimerCommand(method=TimerMethod.START, minutes=minutes, label=label))

    def increase(self, seconds: int) -> StatusRecord:
        return self.call(TimerCommand(method=TimerMethod.INCREASE, seconds=seconds))

    def decrease(self, seconds: int) -> StatusRecord:
        return self.increase(-seconds)

    def togglepause(self) -> StatusRecord:
        return self.call(TimerCommand(method=TimerMethod.TOGGLEPAUSE))

    def status(self) -> StatusRecord:
        return self._request("GET", STATUS_PATH)

    def call(self, command: TimerCommand) -> StatusRecord:
        """Send one command. Raises TimerError or TransportError."""
        return self._request("POST", CONTROL_PATH, json=encode_command(command))

    def _request(self, method: str, path: str, **kwargs) -> StatusRecord:
        transport = self._transport or httpx.HTTPTransport(uds=self.command_socket)
        try:
            with httpx.Client(
                transport=transport,
                base_url=BASE_URL,
                timeout=self.timeout,
                headers={"Connection": "close"},
            ) as client:
                response = client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"Cannot reach timer server at {self.command_socket}: {e}") from e

        if response.status_code == CONFLICT_STATUS:
            raise error_from_detail(_json(response).get("detail"))
        if response.is_error:
            raise TransportError(
                f"Timer server answered {response.status_code}: {response.text}"
            )
        try:
            return StatusRecord.model_validate(_json(response))
        except ValidationError as e:
            raise TransportError(f"Malformed status record: {response.text}") from e


def _json(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError as e:
        raise TransportError(f"Undecodable response: {response.text!r}") from e
    if not isinstance(payload, dict):
        raise TransportError(f"Unexpected response: {payload!r}")
    return payload


def subscribe(update_socket: str) -> Iterator[str]:
    """Yield each status line pushed on the update channel until it closes.

    Raises OSError when the update channel cannot be reached.
    """
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(update_socket)
        sock.shutdown(socket.SHUT_WR)
        with sock.makefile("r", encoding="utf-8", newline="\n") as stream:
            for line in stream:
                yield line.rstrip("\n")
