"""Pacer exception hierarchy.

The rate limiter core never raises; these cover the layers around it
(configuration, replay scripts, the CLI). Keep this module dependency-free.
"""


class PacerError(Exception):
    """Base exception for all Pacer errors."""


class PacerConfigError(PacerError):
    """Raised for invalid user configuration."""


class PacerScriptError(PacerError):
    """Raised when a replay script cannot be parsed."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line
