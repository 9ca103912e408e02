"""Logging helpers.

``setup_logging`` configures the root logger once per process: a
``rich.logging.RichHandler`` on stderr plus an optional plain file handler.
Repeated calls are no-ops and return the active log file (if any).
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["setup_logging"]

_configured = False
_log_path: Path | None = None


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> Path | None:
    global _configured, _log_path

    if _configured:
        return _log_path

    level_value = getattr(logging, level.upper().strip(), logging.INFO)

    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
    ]
    if log_file is not None:
        log_file = log_file.expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        handlers.append(file_handler)
        _log_path = log_file

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in handlers:
        handler.setLevel(level_value)
        root.addHandler(handler)
    root.setLevel(level_value)

    # httpx loguea cada request en INFO.
    logging.getLogger("httpx").setLevel(max(level_value, logging.WARNING))

    _configured = True
    return _log_path
