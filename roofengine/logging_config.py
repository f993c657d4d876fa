"""Log sinks for the roofengine command line.

The library only emits through loguru's ``logger``; sinks are installed by
the entry point.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Union

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "<cyan>{name}:{line}</cyan> {message}"
)

Format = Union[str, Callable[[Any], str]]


def json_line(record: Any) -> str:
    """One JSON object per record; bound ``extra`` values become top-level keys."""
    payload = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "source": f"{record['name']}:{record['line']}",
        "message": record["message"],
    }
    payload.update({key: str(value) for key, value in record["extra"].items()})
    # loguru formats the returned template once more
    return json.dumps(payload, ensure_ascii=False).replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging(*, level: str = "INFO", json_format: bool = False, log_file: Path | None = None) -> None:
    """Replace loguru's default sink with stderr and, if given, a log file."""
    fmt: Format = json_line if json_format else CONSOLE_FORMAT
    logger.remove()
    logger.add(sys.stderr, format=fmt, level=level, colorize=not json_format)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, format=fmt, level=level, colorize=False, encoding="utf-8")
