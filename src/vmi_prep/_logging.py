"""Logging for vmi-prep.

The package logger carries only a NullHandler; handlers belong to the
application.  ``VMI_PREP_LOG_LEVEL`` sets the level at import time and
configure_logging() attaches the CLI handler.

CLI output goes to stderr, one line per record, with the structured
``extra=`` fields the modules log appended as ``key=value``:

    WARNING [2026-02-25 10:02:54] vmi_prep.selinux - Failed to relabel file path=/dev/sdb context=...

Records are written synchronously: the tool is a single short-lived process
and a failing stage should be on stderr before the exit code is.
"""

import logging
import os

import click

LIBRARY_LOGGER_NAME: str = "vmi_prep"

logging.getLogger(LIBRARY_LOGGER_NAME).addHandler(logging.NullHandler())

_env_level = os.environ.get("VMI_PREP_LOG_LEVEL", "").strip().upper()
_env_level_value = logging.getLevelNamesMapping().get(_env_level)
if _env_level_value:  # excludes NOTSET (0) and unknown names
    logging.getLogger(LIBRARY_LOGGER_NAME).setLevel(_env_level_value)

_FMT = "%(levelname)s [%(asctime)s] %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord has; anything else came in through extra=.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_LEVEL_COLORS = {
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class _ContextFormatter(logging.Formatter):
    """Appends ``extra=`` fields to the formatted message, in insertion order."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(f"{k}={v}" for k, v in vars(record).items() if k not in _RECORD_ATTRS)
        return f"{line} {context}" if context else line


class _ClickHandler(logging.Handler):
    """Writes records to stderr through click.echo.

    Warnings and errors are colored, everything else is dim.  click strips
    the styling when stderr is not a TTY.
    """

    def __init__(self) -> None:
        super().__init__()
        self.setFormatter(_ContextFormatter(fmt=_FMT, datefmt=_DATEFMT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            color = _LEVEL_COLORS.get(record.levelno)
            styled = click.style(msg, fg=color) if color else click.style(msg, dim=True)
            click.echo(styled, err=True)
        except Exception:  # noqa: BLE001
            self.handleError(record)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name."""
    return logging.getLogger(name)


def configure_logging(
    *,
    level: int | str | None = None,
    quiet: bool = False,
) -> None:
    """Configure package logging for the CLI entry point.

    Adds the stderr handler once (repeat calls only change the level).

    Args:
        level: Log level (e.g. logging.DEBUG, "WARNING"). Overrides env var.
        quiet: If True, set level to ERROR. Takes precedence over level.
    """
    lib_logger = logging.getLogger(LIBRARY_LOGGER_NAME)

    if not any(isinstance(h, _ClickHandler) for h in lib_logger.handlers):
        lib_logger.addHandler(_ClickHandler())

    if quiet:
        lib_logger.setLevel(logging.ERROR)
    elif level is not None:
        lib_logger.setLevel(level)
