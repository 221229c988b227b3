"""
Utility functions for the resource group cost collector.

Logging Level Standards:
------------------------
- ERROR: Failures that stop a whole resource group or the run
         "Failed to query costs for resource group rg-web: {e}"
- WARNING: Partial failures, skipped rows, empty results
           "Skipping malformed row in rg-web: {e}"
- INFO: Progress messages, counts
        "Found 42 resource group(s)"
- DEBUG: Per-row detail
         "Row in rg-web has no resource ID, ignoring"
"""
import csv
import json
import logging
import os
import re
import sys
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from azure.core.exceptions import ClientAuthenticationError, HttpResponseError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================

class SessionError(Exception):
    """No usable Azure session or subscription; collection cannot start."""


class RowParseError(ValueError):
    """A cost query row could not be converted into typed fields."""


# HTTP statuses Cost Management returns for missing credentials or RBAC
AZURE_AUTH_STATUS_CODES = {401, 403}

_AUTH_ERROR_WORDS = ('authentication', 'authorization')


def is_auth_error(exc: Exception) -> bool:
    """
    True when ``exc`` means the caller lacks credentials or permission.

    azure-identity raises ClientAuthenticationError when no token can be
    obtained; management clients raise HttpResponseError carrying 401/403
    (or an AuthorizationFailed message when the status is missing).
    """
    if isinstance(exc, ClientAuthenticationError):
        return True
    if not isinstance(exc, HttpResponseError):
        return False
    if getattr(exc, "status_code", None) in AZURE_AUTH_STATUS_CODES:
        return True
    message = str(exc).lower()
    return any(word in message for word in _AUTH_ERROR_WORDS)


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """
    Per-resource-group progress for a collection run.

    Shows a rich progress bar on a terminal and plain lines otherwise
    (piped output, CI logs). A summary is printed on exit either way.

    Usage:
        with ProgressTracker("Azure Cost", total_groups=len(groups)) as tracker:
            for group in groups:
                tracker.start_group(group['name'])
                ...
                tracker.complete_group(rows=len(rows))
    """

    def __init__(self, title: str, total_groups: int = 0, show_progress: bool = True):
        self.title = title
        self.total_groups = total_groups
        self.use_rich = show_progress and sys.stdout.isatty()

        self.completed_groups = 0
        self.failed_groups = 0
        self.total_rows = 0
        self.current_group = ""

        self._console: Optional[Console] = None
        self._progress: Optional[Progress] = None
        self._task_id = None

    def __enter__(self):
        if self.use_rich:
            self._console = Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
            )
            self._task_id = self._progress.add_task(self.title, total=self.total_groups or None)
            self._progress.start()
        else:
            self._print_banner(f"{self.title} Collection Starting")
            if self.total_groups:
                print(f"Resource groups: {self.total_groups}\n")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._progress is not None:
            self._progress.stop()
            self._console.print(Panel(self._summary_table()))
        else:
            self._print_banner(f"{self.title} Collection Complete")
            for label, value in self.summary_rows():
                print(f"  {label + ':':<17}{value}")
            print()
        return False

    def start_group(self, resource_group: str):
        self.current_group = resource_group
        if self._progress is not None:
            self._progress.update(self._task_id, description=f"{self.title} [{resource_group}]")
        else:
            print(f"  [{resource_group}] Querying costs...")

    def complete_group(self, rows: int = 0, failed: bool = False):
        self.completed_groups += 1
        self.total_rows += rows
        self.failed_groups += int(failed)

        if self._progress is not None:
            self._progress.advance(self._task_id)
        else:
            outcome = "FAILED" if failed else f"{rows} row(s)"
            print(f"  [{self.current_group}] Complete - {outcome}")

    def summary_rows(self) -> List[Tuple[str, str]]:
        return [
            ("Resource Groups", str(self.completed_groups)),
            ("Failed", str(self.failed_groups)),
            ("Cost Rows", f"{self.total_rows:,}"),
        ]

    def _summary_table(self) -> Table:
        table = Table(title=f"{self.title} Collection Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        for label, value in self.summary_rows():
            table.add_row(label, value)
        return table

    @staticmethod
    def _print_banner(text: str):
        print(f"\n{'=' * 60}\n{text}\n{'=' * 60}")


# =============================================================================
# Run Metadata
# =============================================================================

def generate_run_id() -> str:
    """Unique run ID: UTC ``YYYYMMDD-HHMMSS`` plus 8 random hex characters."""
    return f"{datetime.now(timezone.utc):%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:8]}"


def get_timestamp() -> str:
    """Current UTC time as ISO 8601 with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def format_cost(amount: Decimal, currency: str = "USD") -> str:
    """Format a cost for display, e.g. ``1,234.50 USD``."""
    return f"{amount:,.2f} {currency}"


# =============================================================================
# Logging
# =============================================================================

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_GUID_PATTERN = re.compile(
    r'[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'
)


def redact_log_message(message: str) -> str:
    """Mask subscription and tenant GUIDs, keeping the first 4 characters."""
    return _GUID_PATTERN.sub(lambda m: f"{m.group(0)[:4]}****-****", message)


class RedactingFilter(logging.Filter):
    """Masks GUIDs in records written to the run log file."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_log_message(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_log_message(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def _add_handler(root: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root.addHandler(handler)


def setup_logging(level: str = "INFO", output_dir: Optional[str] = None) -> Optional[str]:
    """
    Configure the root logger for a run.

    Logs go to stderr; with ``output_dir`` they are also written, GUIDs
    masked, to ``rgcost_log_<UTC timestamp>.log`` in that directory.
    Calling this again replaces the previous handlers.

    Returns:
        Path of the log file, or None when logging to stderr only
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    _add_handler(root, logging.StreamHandler(sys.stderr), numeric_level)

    if not output_dir:
        return None

    os.makedirs(output_dir, exist_ok=True)
    log_file = os.path.join(output_dir, f"rgcost_log_{datetime.now(timezone.utc):%Y%m%d_%H%M%S}.log")
    file_handler = logging.FileHandler(log_file, mode='w')
    file_handler.addFilter(RedactingFilter())
    _add_handler(root, file_handler, numeric_level)

    logger.info(f"Logging to: {log_file}")
    return log_file


# =============================================================================
# File Output
# =============================================================================

def write_json(data: Any, filepath: str) -> None:
    """Write ``data`` as indented JSON, readable by the owner only (0600)."""
    fd = os.open(filepath, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w') as f:
        # Decimal costs serialize as strings to keep their exact value
        json.dump(data, f, indent=2, default=str)
    print(f"Wrote {filepath}")


def write_csv(records: List[Dict], filepath: str, fieldnames: Optional[List[str]] = None) -> None:
    """
    Write records to a CSV file with a header row.

    The header is ``fieldnames`` or, without it, the keys of the first
    record. Nothing is written for an empty list unless ``fieldnames`` is
    given, in which case the file holds just the header.
    """
    header = fieldnames or (list(records[0]) if records else None)
    if header is None:
        return

    with open(filepath, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=header)
        writer.writeheader()
        writer.writerows(records)
    print(f"Wrote {filepath}")
