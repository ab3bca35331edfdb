import logging
import traceback
from contextlib import contextmanager
from datetime import datetime
from typing import ContextManager, Optional

from rich.console import Console
from rich.panel import Panel
from rich.theme import Theme
from rich.traceback import install as install_rich_traceback

OUTPUT_MODES = ("standard", "verbose", "silent")

longscribe_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "muted": "dim",
    "phase": "bold cyan",
})


class ConsoleManager:
    """
    Process-wide terminal output.

    One shared `rich` console, so log records from the RichHandler and the
    pipeline's own progress lines interleave cleanly. The output mode decides
    how much is shown: 'standard' (spinners and one line per chunk),
    'verbose' (plain start/finish lines and full error reports) or 'silent'.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConsoleManager, cls).__new__(cls)
            cls._instance.initialized = False
        return cls._instance

    def __init__(self):
        if self.initialized:
            return
        self.console = Console(theme=longscribe_theme)
        self.output_mode = "standard"
        self.initialized = True
        install_rich_traceback(console=self.console, show_locals=False)

    @property
    def silent(self) -> bool:
        return self.output_mode == "silent"

    @property
    def verbose(self) -> bool:
        return self.output_mode == "verbose"

    def configure(self, output_mode: str = "standard", debug: bool = False):
        mode = "verbose" if debug else output_mode.lower()
        if mode not in OUTPUT_MODES:
            mode = "standard"
        self.output_mode = mode

        logger = logging.getLogger("Longscribe")
        if self.silent:
            logger.setLevel(logging.CRITICAL)
        elif self.verbose:
            logger.setLevel(logging.DEBUG)

    def print(self, *args, **kwargs):
        if not self.silent:
            self.console.print(*args, **kwargs)

    def log(self, message: str, style: str = "info"):
        if not self.silent:
            self.console.print(message, style=style)

    def heading(self, message: str):
        if not self.silent:
            self.console.print()
            self.console.rule(f"[phase]{message}", align="left", style="muted")

    def success(self, message: str):
        self.log(f"✅ {message}", style="success")

    def warning(self, message: str):
        self.log(f"⚠️ {message}", style="warning")

    def error_panel(self, message: str, title: str = "Error"):
        if not self.silent:
            self.console.print(Panel(message, title=title, border_style="red", expand=False))

    def verbose_error(self, stage: str, error: Exception, context: Optional[dict] = None):
        """Dump the exception with its traceback and context. Verbose mode only."""
        if not self.verbose:
            return

        lines = [
            "=== LONGSCRIBE ERROR REPORT ===",
            f"Timestamp: {datetime.now().isoformat()}",
            f"Command: {stage}",
            f"Error: {type(error).__name__}: {error}",
        ]
        for key, value in (context or {}).items():
            lines.append(f"  {key}: {value}")
        lines.append("")
        lines.append(traceback.format_exc().rstrip())
        lines.append("=== END ERROR REPORT ===")
        self.console.print("\n".join(lines), style="muted", markup=False, highlight=False)

    @contextmanager
    def status(self, message: str) -> ContextManager:
        """Spinner in standard mode, start/finish lines in verbose mode, nothing when silent."""
        if self.silent:
            yield
        elif self.verbose:
            self.console.log(f"Started: {message}")
            try:
                yield
            finally:
                self.console.log(f"Finished: {message}")
        else:
            with self.console.status(f"[phase]{message}", spinner="dots"):
                yield


console = ConsoleManager()
