"""
Side effects triggered by timer transitions.

Notifications go through ``notify-send``; expiry commands run through the
shell. Both are fire-and-forget: a failure to spawn is logged and otherwise
ignored so the timer itself keeps working without a notification daemon.
"""

import logging
import subprocess

logger = logging.getLogger(__name__)

APP_NAME = "Waybar Timer"
NOTIFICATION_ID = 12345


class TimerEffects:
    """Interface the state machine calls into. The base class does nothing."""

    def notify(self, summary: str, critical: bool = False) -> None:
        pass

    def run_command(self, command: str) -> None:
        pass


class DesktopEffects(TimerEffects):
    """Desktop notifications plus shell commands on expiry."""

    def __init__(self, notify_binary: str = "notify-send", shell: str = "/bin/sh"):
        self.notify_binary = notify_binary
        self.shell = shell

    def notify(self, summary: str, critical: bool = False) -> None:
        args = [
            self.notify_binary,
            "--app-name",
            APP_NAME,
            "--urgency",
            "critical" if critical else "low",
            "--replace-id",
            str(NOTIFICATION_ID),
            summary,
        ]
        self._spawn(args)

    def run_command(self, command: str) -> None:
        logger.info("Running expiry command: %s", command)
        self._spawn([self.shell, "-c", command], new_session=True)

    def _spawn(self, args: list[str], new_session: bool = False) -> None:
        try:
            subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=new_session,
            )
        except OSError as e:
            logger.warning("Could not run %s: %s", args[0], e)

