import logging
import os
import re
from pathlib import Path
from typing import Any, Optional
from logging.handlers import TimedRotatingFileHandler
from rich.logging import RichHandler
from longscribe.core.console import console as console_manager

_TIMESTAMP_RE = re.compile(r"^\d+(?::\d{1,2}){0,2}(?:[.,]\d+)?$")


def setup_logging(log_dir: Optional[str] = None, debug: bool = False, output_mode: str = "standard") -> logging.Logger:
    """Configures logging to console and rotating file.

    Args:
        log_dir: Directory for log files. If None, uses ~/.local/state/longscribe/logs
        debug: If True, set logging level to DEBUG, otherwise INFO
        output_mode: 'standard', 'verbose', 'silent'. 'silent' suppresses console output.
    """
    if log_dir is None:
        xdg_state = os.environ.get("XDG_STATE_HOME")
        if xdg_state:
            log_dir = str(Path(xdg_state) / "longscribe" / "logs")
        else:
            log_dir = str(Path.home() / ".local" / "state" / "longscribe" / "logs")

    log_file = os.path.join(log_dir, "app.log")

    # Silence noisy 3rd party loggers
    noisy_loggers = [
        "urllib3", "requests", "httpx", "httpcore", "grpc",
        "google", "asyncio", "charset_normalizer"
    ]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger("Longscribe")

    if output_mode == "silent":
        console_level = logging.CRITICAL
        file_level = logging.DEBUG
    elif debug:
        console_level = logging.DEBUG
        file_level = logging.DEBUG
    else:
        console_level = logging.INFO
        file_level = logging.INFO

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    if not logger.handlers:
        if output_mode != "silent":
            console_handler = RichHandler(
                console=console_manager.console,
                rich_tracebacks=True,
                markup=False,
                show_time=True,
                show_path=False
            )
            console_handler.setLevel(console_level)
            logger.addHandler(console_handler)

        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = TimedRotatingFileHandler(log_file, when="midnight", interval=1, backupCount=30)
            file_handler.setLevel(file_level)
            file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
            logger.addHandler(file_handler)
        except OSError as e:
            # Handlers are not set up yet, so this cannot go through the logger
            if output_mode != "silent":
                console_manager.warning(f"Could not create log file at {log_file}: {e}. Logging to console only.")
    else:
        for handler in logger.handlers:
            if isinstance(handler, TimedRotatingFileHandler):
                handler.setLevel(file_level)
            elif isinstance(handler, logging.StreamHandler):
                handler.setLevel(logging.CRITICAL if output_mode == "silent" else console_level)

    return logger


def parse_timestamp(value: Any) -> float:
    """
    Convert a model-provided timestamp to seconds.

    Accepts numbers (already seconds) and "SS", "MM:SS", "HH:MM:SS" strings,
    optionally with a fractional part ("01:02.5" or "00:01:02,500").

    Raises:
        ValueError: If the value is not a recognizable timestamp.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Negative timestamp: {value}")
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if not _TIMESTAMP_RE.match(text):
        raise ValueError(f"Invalid timestamp: {value!r}")

    parts = text.replace(",", ".").split(":")
    seconds = 0.0
    for part in parts:
        seconds = seconds * 60 + float(part)
    return seconds


def format_timestamp(seconds: float) -> str:
    """Format seconds as HH:MM:SS."""
    total = int(max(seconds, 0))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def format_short_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS, growing to HH:MM:SS past the hour."""
    total = int(max(seconds, 0))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h:02d}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"
