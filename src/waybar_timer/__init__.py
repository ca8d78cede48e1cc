"""Countdown timer service for waybar."""

__version__ = "0.1.0"
