"""Minimal structured logger interface used by the tree."""

from __future__ import annotations

import logging
from typing import Any


class Logger:
    """Logs a message with trailing key/value pairs through :mod:`logging`."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger if logger is not None else logging.getLogger("avlstore")

    @staticmethod
    def _render(msg: str, key_vals: tuple) -> str:
        pairs = [
            f"{key_vals[i]}={key_vals[i + 1]!r}" if i + 1 < len(key_vals) else f"{key_vals[i]}=<missing>"
            for i in range(0, len(key_vals), 2)
        ]
        return " ".join([msg, *pairs])

    def _log(self, level: int, msg: str, key_vals: tuple) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._render(msg, key_vals))

    def info(self, msg: str, *args: Any) -> None:
        """Log at INFO level."""
        self._log(logging.INFO, msg, args)

    def warn(self, msg: str, *args: Any) -> None:
        """Log at WARNING level."""
        self._log(logging.WARNING, msg, args)

    def error(self, msg: str, *args: Any) -> None:
        """Log at ERROR level."""
        self._log(logging.ERROR, msg, args)

    def debug(self, msg: str, *args: Any) -> None:
        """Log at DEBUG level."""
        self._log(logging.DEBUG, msg, args)


class NopLogger(Logger):
    """A logger that discards everything."""

    def info(self, msg: str, *args: Any) -> None:
        pass

    def warn(self, msg: str, *args: Any) -> None:
        pass

    def error(self, msg: str, *args: Any) -> None:
        pass

    def debug(self, msg: str, *args: Any) -> None:
        pass


def new_nop_logger() -> NopLogger:
    """Return a logger that does nothing."""
    return NopLogger()