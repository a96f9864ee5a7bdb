"""Logging helpers for finclose.

Loggers live under the ``finclose.`` namespace so that one call to
``configure_logging`` controls all of them.
"""

import logging
import sys
from typing import Any

ROOT_LOGGER_NAME = "finclose"

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}


class ExtraFormatter(logging.Formatter):
    """Formatter that appends ``extra`` fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras: dict[str, Any] = {
            key: value
            for key, value in vars(record).items()
            if key not in _STDLIB_KEYS and not key.startswith("_")
        }
        if not extras:
            return base
        fields = " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        return f"{base} {fields}"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under ``finclose``.

    Args:
        name: Dotted component name (e.g. "domain.migration")

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(level: int = logging.WARNING) -> None:
    """Attach a stderr handler to the ``finclose`` root logger.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if getattr(handler, "_finclose_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ExtraFormatter("%(levelname)s %(name)s: %(message)s"))
    handler._finclose_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
