"""
Run-scoped logging context for redditreel.

One RunLog is opened by the CLI at the start of a run and handed to every
component that reports progress. It prints colour-coded lines to the
terminal with rich, filtered by a console level, and mirrors every line
(plus JSON run events) into a daily plain-text file under the log
directory. Old daily files are pruned on open.

    with RunLog(log_dir=Path("logs"), console_level="summary") as log:
        log.info("Selecting posts...")
        log.event("post_done", {"id": "abc123", "status": "processed"})
"""

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import IO

from rich.console import Console
from rich.markup import escape

CONSOLE_LEVELS = ("detailed", "summary", "errors_only", "quiet")

LOG_FILE_PREFIX = "app_run_"

# Minimum console level rank at which each message kind is printed.
_KIND_RANK = {"detail": 0, "info": 1, "success": 1, "warn": 2, "error": 2}
_LEVEL_RANK = {"detailed": 0, "summary": 1, "errors_only": 2, "quiet": 3}


class RunLog:
    """Terminal + daily file logger with an explicit open/close lifecycle."""

    def __init__(
        self,
        log_dir: Path | None = None,
        console_level: str = "detailed",
        retention_days: int = 7,
        console: Console | None = None,
    ):
        if console_level not in CONSOLE_LEVELS:
            raise ValueError(
                f"Unknown console level '{console_level}'. "
                f"Expected one of: {', '.join(CONSOLE_LEVELS)}"
            )
        self.log_dir = Path(log_dir) if log_dir else None
        self.console_level = console_level
        self.retention_days = retention_days
        self.console = console or Console()
        self.log_path: Path | None = None
        self._fh: IO[str] | None = None
        self._file_console: Console | None = None

    # -- lifecycle ---------------------------------------------------------

    def open(self) -> "RunLog":
        if self.log_dir is None or self._fh is not None:
            return self
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.prune_old_logs()
            self.log_path = self.log_dir / f"{LOG_FILE_PREFIX}{datetime.now():%Y-%m-%d}.log"
            self._fh = open(self.log_path, "a", encoding="utf-8")
            self._file_console = Console(
                file=self._fh, no_color=True, highlight=False, width=200, soft_wrap=True,
            )
        except OSError as e:
            self._fh = None
            self._file_console = None
            self.warn(f"File logging disabled, could not open log in {self.log_dir}: {e}")
        return self

    def close(self):
        if self._fh is not None:
            self._fh.flush()
            self._fh.close()
        self._fh = None
        self._file_console = None

    def __enter__(self) -> "RunLog":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        if exc is not None:
            self.error(f"Run aborted: {exc}")
        self.close()

    def prune_old_logs(self) -> list[Path]:
        """Delete daily log files older than the retention window."""
        if self.log_dir is None or self.retention_days <= 0 or not self.log_dir.exists():
            return []
        cutoff = datetime.now() - timedelta(days=self.retention_days)
        removed = []
        for path in self.log_dir.glob(f"{LOG_FILE_PREFIX}*.log"):
            try:
                stamp = datetime.strptime(path.stem[len(LOG_FILE_PREFIX):], "%Y-%m-%d")
            except ValueError:
                continue
            if stamp < cutoff:
                try:
                    path.unlink()
                    removed.append(path)
                except OSError as e:
                    self.console.print(f"[yellow]Could not delete old log {path.name}: {e}[/yellow]")
        return removed

    # -- output ------------------------------------------------------------

    def _emit(self, kind: str, message: str, style: str | None):
        if self._file_console is not None:
            stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
            self._file_console.print(f"[{stamp}] {kind.upper():<7} {message}")
        if _KIND_RANK[kind] >= _LEVEL_RANK[self.console_level]:
            self.console.print(f"[{style}]{message}[/{style}]" if style else message)

    def detail(self, message: str):
        self._emit("detail", message, "dim")

    def info(self, message: str):
        self._emit("info", message, None)

    def success(self, message: str):
        self._emit("success", message, "green")

    def warn(self, message: str):
        self._emit("warn", message, "yellow")

    def error(self, message: str):
        self._emit("error", message, "bold red")

    def event(self, action: str, data: dict):
        """Append a structured JSON event line to the file log."""
        if self._fh is None:
            return
        entry = {
            "timestamp": datetime.now().isoformat(),
            "action": action,
            "results": data,
        }
        self._fh.write(json.dumps(entry, default=str) + "\n")
        self._fh.flush()

    def print(self, renderable):
        """Print a rich renderable (Panel, Table) unless the console is quiet."""
        if self.console_level != "quiet":
            self.console.print(renderable)
        if self._file_console is not None:
            self._file_console.print(renderable)


def quote(text: str, limit: int | None = None) -> str:
    """Escape untrusted text for rich markup, optionally truncated."""
    if limit is not None and len(text) > limit:
        text = text[:limit] + "..."
    return escape(text)
