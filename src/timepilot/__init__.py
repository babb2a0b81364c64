"""timepilot — time tracking state with an AI patch channel."""

__version__ = "0.3.0"
