"""Shared logging setup for screendiff commands."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

__all__ = ["configure_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_HANDLER_MARKER = "_screendiff_handler"


def _resolve_log_directory() -> Path:
    """Pick the log directory: ``SCREENDIFF_LOG_DIR`` or ``<project>/logs``."""

    override = os.environ.get("SCREENDIFF_LOG_DIR")
    if override:
        return Path(override).expanduser()

    here = Path(__file__).resolve()
    for parent in here.parents:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent / "logs"

    return Path.cwd() / "logs"


def _detach_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()


def configure_logging(
    log_name: str,
    *,
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    include_console: bool = True,
) -> Path:
    """Route root logging to ``<log_dir>/<log_name>.log`` (and the console).

    Calling this again swaps out the handlers installed by the previous call,
    so a long-lived process can re-target its log file.
    """

    directory = Path(log_dir).expanduser() if log_dir else _resolve_log_directory()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / f"{log_name}.log"

    root = logging.getLogger()
    root.setLevel(level)
    _detach_handlers(root)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if include_console:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARKER, True)
        root.addHandler(handler)

    logging.captureWarnings(True)
    return log_path
