"""
Wire models for the command channel and the status record.

The status record is the one-line JSON object consumed by waybar's custom
module; its field names and one-record-per-line framing must not change.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from waybar_timer.errors import ErrorKind

# ============================================================
# CONSTANTS
# ============================================================

STATUS_CLASS = "timer"
MAX_MINUTES = 10_000_000
MAX_SECONDS = 1_000_000_000
MAX_LABEL_LENGTH = 1000


# ============================================================
# STATUS RECORD
# ============================================================


class TimerState(StrEnum):
    STANDBY = "standby"
    RUNNING = "running"
    PAUSED = "paused"


class StatusRecord(BaseModel):
    """Snapshot of the timer as shown in the status bar."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text: str = Field(..., description="Whole minutes left, rounded up")
    alt: TimerState
    tooltip: str
    class_: str = Field(STATUS_CLASS, alias="class")

    @property
    def minutes(self) -> int:
        return int(self.text)

    def to_line(self) -> str:
        """Serialize as a single JSON line without the trailing newline."""
        return self.model_dump_json(by_alias=True)


# ============================================================
# COMMANDS
# ============================================================


class TimerMethod(StrEnum):
    CANCEL = "cancel"
    START = "start"
    INCREASE = "increase"
    TOGGLEPAUSE = "togglepause"


# Arguments each method accepts; every other argument must be absent
METHOD_ARGUMENTS = {
    TimerMethod.CANCEL: (),
    TimerMethod.START: ("minutes", "label"),
    TimerMethod.INCREASE: ("seconds",),
    TimerMethod.TOGGLEPAUSE: (),
}


class TimerCommand(BaseModel):
    """One remote call: the method name plus the arguments it takes."""

    model_config = ConfigDict(extra="forbid")

    method: TimerMethod = Field(..., description="Timer method to call")
    minutes: int | None = Field(
        None, ge=0, le=MAX_MINUTES, description="Timer duration (for start)"
    )
    label: str | None = Field(
        None,
        max_length=MAX_LABEL_LENGTH,
        description="Timer name, or the shell command to run on expiry (for start)",
    )
    seconds: int | None = Field(
        None,
        ge=-MAX_SECONDS,
        le=MAX_SECONDS,
        description="Seconds to add, negative to subtract (for increase)",
    )

    @model_validator(mode="after")
    def check_arguments(self) -> "TimerCommand":
        if self.method == TimerMethod.START and self.minutes is None:
            raise ValueError("minutes required for start")
        if self.method == TimerMethod.INCREASE and self.seconds is None:
            raise ValueError("seconds required for increase")
        allowed = METHOD_ARGUMENTS[self.method]
        stray = sorted(
            name
            for name in ("minutes", "label", "seconds")
            if name not in allowed and getattr(self, name) is not None
        )
        if stray:
            raise ValueError(f"{self.method} takes no {', '.join(stray)}")
        return self


class ErrorDetail(BaseModel):
    error: ErrorKind
    message: str
