"""
Logging and console output for assetbuild.

Log records from every assetbuild.* logger go through the handlers installed
by setup_logging(). Status lines for the CLI go straight to the shared rich
console.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler


console = Console()

# Record attributes set through `extra=` that structured output carries over
EXTRA_FIELDS = ("pipeline", "event", "metadata")

PLAIN_FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "pretty",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Install handlers on the "assetbuild" logger for one build session.

    Calling it again replaces the previous handlers.

    Args:
        log_level: Level name; unknown names fall back to INFO
        log_format: "pretty" for rich console output, "structured" for JSON
            lines
        log_file: Also write records here (parent directories are created)

    Returns:
        The "assetbuild" logger
    """
    logger = logging.getLogger("assetbuild")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.handlers = []

    structured = log_format == "structured"
    if structured:
        stream: logging.Handler = logging.StreamHandler()
        stream.setFormatter(StructuredFormatter())
    else:
        stream = RichHandler(console=console, rich_tracebacks=True, show_time=False, show_path=False)
        stream.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(stream)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            StructuredFormatter() if structured else logging.Formatter(PLAIN_FILE_FORMAT)
        )
        logger.addHandler(file_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with the pipeline/event/metadata extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def format_duration(seconds: float) -> str:
    """Short wall-time label for the build summary: 340ms, 1.2s, 2m 30s."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}m {rest}s"


def print_banner(title: str) -> None:
    console.rule(f"[bold blue]{title}[/bold blue]")


def _status(icon: str, style: str, message: str) -> None:
    console.print(f"[{style}]{icon}[/{style}] {message}")


def print_success(message: str) -> None:
    _status("✓", "bold green", message)


def print_error(message: str) -> None:
    _status("✗", "bold red", message)


def print_warning(message: str) -> None:
    _status("⚠", "bold yellow", message)


def print_info(message: str) -> None:
    _status("ℹ", "bold cyan", message)
