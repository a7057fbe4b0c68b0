"""Audit logging for collection runs.

The AuditLog is the authoritative record of a run:
- Timestamps in ISO format
- Log levels
- Context fields (task, status, reason)
- One line per entry in ``collection.log`` inside the workspace

It is passed explicitly to every component that records actions. An
AuditLog without a file is a pure in-memory sink, which is what tests use.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, TextIO

from rich.console import Console

AUDIT_LOG_NAME = "collection.log"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LEVEL_ORDER = [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARNING, LogLevel.ERROR]

_CONSOLE_STYLES = {
    LogLevel.DEBUG: "dim",
    LogLevel.INFO: None,
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
}


@dataclass
class LogEntry:
    """Structured log entry."""

    timestamp: str
    level: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def to_line(self) -> str:
        """Render as a single audit log line."""
        line = f"{self.timestamp} [{self.level.upper()}] {self.message}"
        if self.context:
            pairs = " ".join(f"{k}={v}" for k, v in self.context.items())
            line = f"{line} | {pairs}"
        return line


class AuditLog:
    """Append-only audit record, mirrored to the console unless quiet.

    Usage:
        audit = AuditLog(quiet=False)
        audit.info("Starting collection")      # buffered, workspace not ready
        audit.attach(workspace.path / "collection.log")   # flushes buffer
        audit.record("cbs-logs: collected")
        audit.close()

    Recording never raises. If the file cannot be opened or written, the
    log falls back to console-only output for the rest of the run. If the
    console fails, mirroring stops and the file keeps the record.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        quiet: bool = False,
        console: Optional[Console] = None,
        console_level: LogLevel = LogLevel.INFO,
    ):
        """Initialize audit log.

        Args:
            path: Log file to append to (None keeps entries in memory only)
            quiet: If True, do not mirror entries to the console
            console: Console to mirror to (defaults to a stdout console)
            console_level: Lowest level mirrored to the console
        """
        self.quiet = quiet
        self.console = console or Console()
        self.console_level = LogLevel(console_level)
        self.path: Optional[Path] = None
        self._entries: List[LogEntry] = []
        # Index into _entries of entries awaiting the first attach; None once
        # a file has been attached or has failed
        self._pending_from: Optional[int] = 0
        self._fh: Optional[TextIO] = None
        self._file_failed = False
        self._console_failed = False
        self._python_logger = logging.getLogger("diag_bundle.audit")

        if path is not None:
            self.attach(path)

    def __enter__(self) -> "AuditLog":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def file_available(self) -> bool:
        """True while entries are being written to a file."""
        return self._fh is not None

    def attach(self, path: Path) -> None:
        """Start writing to ``path``, flushing entries recorded so far."""
        self.close()
        self.path = Path(path)
        self._file_failed = False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.path, "a", encoding="utf-8", errors="replace")
        except OSError as e:
            self._fall_back(f"Cannot open audit log {self.path}: {e}")
            return

        pending = self._entries[self._pending_from:] if self._pending_from is not None else []
        self._pending_from = None
        for entry in pending:
            if not self._write(entry):
                break

    def close(self) -> None:
        """Stop writing to the file; later entries go to console/memory only."""
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError as e:
                self._python_logger.debug(f"Failed to close audit log: {e}")
            self._fh = None

    def record(
        self,
        entry: str,
        level: LogLevel = LogLevel.INFO,
        **context,
    ) -> LogEntry:
        """Append a timestamped entry."""
        log_entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            level=LogLevel(level).value,
            message=entry,
            context=context,
        )
        self._entries.append(log_entry)

        if self._fh is not None:
            self._write(log_entry)

        getattr(self._python_logger, log_entry.level)(log_entry.to_line())

        # Once the file is gone the console is the only record left
        if (not self.quiet or self._file_failed) and _LEVEL_ORDER.index(
            LogLevel(log_entry.level)
        ) >= _LEVEL_ORDER.index(self.console_level):
            self._echo(log_entry)

        return log_entry

    def debug(self, message: str, **kwargs) -> LogEntry:
        """Log debug message."""
        return self.record(message, LogLevel.DEBUG, **kwargs)

    def info(self, message: str, **kwargs) -> LogEntry:
        """Log info message."""
        return self.record(message, LogLevel.INFO, **kwargs)

    def warning(self, message: str, **kwargs) -> LogEntry:
        """Log warning message."""
        return self.record(message, LogLevel.WARNING, **kwargs)

    def error(self, message: str, **kwargs) -> LogEntry:
        """Log error message."""
        return self.record(message, LogLevel.ERROR, **kwargs)

    def get_entries(self) -> List[LogEntry]:
        """Get all log entries."""
        return self._entries.copy()

    def get_entries_json(self) -> str:
        """Get all entries as JSON array."""
        return json.dumps([e.to_dict() for e in self._entries], indent=2, default=str)

    def _write(self, entry: LogEntry) -> bool:
        try:
            self._fh.write(entry.to_line() + "\n")
            self._fh.flush()
            return True
        except OSError as e:
            self.close()
            self._fall_back(f"Cannot write audit log {self.path}: {e}")
            return False

    def _fall_back(self, message: str) -> None:
        self._file_failed = True
        self._pending_from = None
        self._python_logger.warning(message)
        self._print(f"[audit] {message}; continuing with console output only", "yellow")

    def _echo(self, entry: LogEntry) -> None:
        self._print(entry.to_line(), _CONSOLE_STYLES.get(LogLevel(entry.level)))

    def _print(self, text: str, style: Optional[str]) -> None:
        if self._console_failed:
            return
        try:
            self.console.print(text, style=style, markup=False, highlight=False)
        except (OSError, ValueError, SystemExit) as e:
            # SystemExit comes from rich when stdout is a broken pipe
            self._console_failed = True
            self._python_logger.warning(f"Console output failed, continuing without it: {e!r}")


def setup_logging(level: str = "WARNING") -> None:
    """Configure stdlib logging for the application.

    Audit entries are narrated on the console by AuditLog itself, so the
    root logger stays at WARNING unless debugging is requested.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
