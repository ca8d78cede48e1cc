"""Runtime settings, read from the environment."""

import os
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_COMMAND_SOCKET = "/tmp/waybar_timer_commands.sock"
DEFAULT_UPDATE_SOCKET = "/tmp/waybar_timer_updates.sock"

ENV_VARS = {
    "command_socket": "WAYBAR_TIMER_COMMAND_SOCKET",
    "update_socket": "WAYBAR_TIMER_UPDATE_SOCKET",
    "tick_interval": "WAYBAR_TIMER_TICK_INTERVAL",
    "write_timeout": "WAYBAR_TIMER_WRITE_TIMEOUT",
    "exec_on_expiry": "WAYBAR_TIMER_EXEC",
    "log_level": "WAYBAR_TIMER_LOG_LEVEL",
}

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


class Settings(BaseModel):
    command_socket: str = DEFAULT_COMMAND_SOCKET
    update_socket: str = DEFAULT_UPDATE_SOCKET
    tick_interval: float = Field(1.0, gt=0, description="Seconds between ticks")
    write_timeout: float = Field(
        2.0, gt=0, description="Seconds a subscriber may block a publish before eviction"
    )
    exec_on_expiry: bool = Field(False, description="Run the timer label as a shell command")
    log_level: LogLevel = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "Settings":
        """Build settings from WAYBAR_TIMER_* variables; explicit overrides win."""
        environ = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name, var in ENV_VARS.items():
            raw = environ.get(var)
            if raw is None:
                continue
            if name == "exec_on_expiry":
                values[name] = raw.strip().lower() in _TRUE_VALUES
            else:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
