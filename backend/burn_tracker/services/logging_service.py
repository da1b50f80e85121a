"""Logging setup and the per-run sync log."""

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Base logs directory
LOGS_BASE_DIR = Path(__file__).parent.parent.parent / "logs"

SYNC_RUNS_HEADER = [
    'timestamp', 'success', 'new_transactions', 'total_burned',
    'current_price', 'error'
]


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """Apply the `logging` config section to the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt or '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


@dataclass
class SyncLogEntry:
    """Represents one sync run in the run log."""
    timestamp: str
    success: bool
    new_transactions: int
    total_burned: float
    current_price: Optional[float]
    error: Optional[str] = None


class SyncLoggingService:
    """Append-only CSV log of sync runs plus a free-form activity log.

    Write failures are logged and swallowed: losing a log line must never
    fail a sync.
    """

    def __init__(self, log_dir: Optional[Path] = None):
        self.log_dir = Path(log_dir) if log_dir else LOGS_BASE_DIR
        self._ensure_log_directory()

    def _ensure_log_directory(self) -> None:
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            logger.error(f"Failed to create log directory {self.log_dir}: {e}")

    @property
    def runs_file(self) -> Path:
        return self.log_dir / "sync_runs.csv"

    def log_run(self, entry: SyncLogEntry) -> None:
        """Append a sync run to sync_runs.csv."""
        write_header = not self.runs_file.exists()

        try:
            with open(self.runs_file, 'a', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                if write_header:
                    writer.writerow(SYNC_RUNS_HEADER)
                writer.writerow([
                    entry.timestamp,
                    entry.success,
                    entry.new_transactions,
                    f"{entry.total_burned:.8f}",
                    f"{entry.current_price:.6f}" if entry.current_price is not None else "",
                    entry.error or "",
                ])
        except Exception as e:
            logger.error(f"Failed to log sync run: {e}")

    def log_activity(self, message: str, level: str = "INFO") -> None:
        """Append a line to activity.log."""
        activity_file = self.log_dir / "activity.log"

        try:
            with open(activity_file, 'a', encoding='utf-8') as f:
                timestamp = datetime.now(timezone.utc).isoformat()
                f.write(f"{timestamp} [{level}] {message}\n")
        except Exception as e:
            logger.error(f"Failed to log activity: {e}")
