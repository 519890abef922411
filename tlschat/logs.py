"""Timestamped append-only logging to a text file."""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Union

LOG_FILE = "./data/Log.log"


def _append(path: Union[str, Path], level: str, text: str, failure: str) -> None:
    stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    try:
        with open(path, "a", encoding="utf-8", newline="\n") as log_file:
            log_file.write(f"[{stamp}] {level}: {text}\n")
    except OSError:
        print(f"{failure} {path}", file=sys.stderr)


def write_log(log_message: str, path: Union[str, Path] = LOG_FILE) -> None:
    """Append an INFO line; a log file that cannot be opened is reported on stderr."""
    _append(path, "INFO", log_message, "Failed to write log to")


def write_error_log(error_message: str, path: Union[str, Path] = LOG_FILE) -> None:
    """Append an ERROR line; a log file that cannot be opened is reported on stderr."""
    _append(path, "ERROR", error_message, "Failed to write error log to")