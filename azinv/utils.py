"""
Utility functions for the Azure capacity inventory collectors.

Logging Level Standards:
------------------------
- ERROR: Failures that stop a whole subscription or the run
         "Failed to collect from subscription {id}: {e}"
- WARNING: Per-kind degradation, missing optional dependencies
           "Failed to list elastic pools for server {name}: {e}"
           "azure-mgmt-sqlvirtualmachine not installed. Skipping SQL VMs..."
- INFO: Progress messages, row counts
        "Found 12 SQL rows"
        "Collecting resources from subscription..."
- DEBUG: Per-item failures that don't affect overall collection
         "Metric storage unavailable for {id}: {e}"
"""
import csv
import io
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .constants import BYTES_PER_GIB, BYTES_PER_MB, GIB_DECIMALS

logger = logging.getLogger(__name__)


# =============================================================================
# Unit Conversion
# =============================================================================

def bytes_to_gib(value: Optional[float]) -> Optional[float]:
    """Convert bytes to binary gigabytes, rounded to 2 decimals.

    Absent input stays absent; it is never reported as zero.
    """
    if value is None:
        return None
    return round(float(value) / BYTES_PER_GIB, GIB_DECIMALS)


def mb_to_gib(value: Optional[float]) -> Optional[float]:
    """Convert a megabyte-valued metric to GiB."""
    if value is None:
        return None
    return bytes_to_gib(float(value) * BYTES_PER_MB)


def unconsumed(provisioned: Optional[float], used: Optional[float]) -> Optional[float]:
    """
    Provisioned capacity not yet consumed, floored at zero.

    Only defined when both operands are present and provisioned is positive.
    """
    if provisioned is None or used is None or provisioned <= 0:
        return None
    return max(0.0, provisioned - used)


def enum_value(value: Any) -> Optional[str]:
    """Plain string of an Azure SDK enum (or string) field."""
    if value is None:
        return None
    return str(getattr(value, 'value', value))


def to_int(value: Optional[float]) -> Optional[int]:
    """Convert a metric count to int, keeping absence."""
    if value is None:
        return None
    return int(round(value))


# =============================================================================
# Errors
# =============================================================================

class AuthError(Exception):
    """Authentication/authorization failure.

    Raised when the run cannot obtain an authenticated session at all; the
    per-kind and per-metric code paths only use it to classify failures.
    """
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


# Azure error status codes that indicate auth/permission issues
AZURE_AUTH_STATUS_CODES = {401, 403}


def is_auth_error(exc: Exception) -> bool:
    """
    Check if an exception represents an authentication/authorization error.

    Covers azure-core's ClientAuthenticationError and HttpResponseError
    carrying a 401/403 status or an AuthorizationFailed error code.
    """
    exc_type_name = type(exc).__name__

    if exc_type_name == 'ClientAuthenticationError':
        return True

    if exc_type_name == 'HttpResponseError':
        status_code = getattr(exc, 'status_code', None)
        if status_code in AZURE_AUTH_STATUS_CODES:
            return True
        error_msg = str(exc)
        return 'AuthorizationFailed' in error_msg or 'AuthenticationFailed' in error_msg

    return False


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """
    Progress tracker for collection runs with rich display.

    Falls back to simple print statements if stdout is not a TTY
    (e.g., when piping output).

    Usage:
        with ProgressTracker("SQL inventory", total_subscriptions=3) as tracker:
            for sub in subscriptions:
                tracker.start_subscription(sub.id, sub.name)
                tracker.update_task("Listing SQL servers...")
                tracker.add_rows(len(rows))
                tracker.complete_subscription()
    """

    def __init__(self, title: str, total_subscriptions: int = 0, show_progress: bool = True):
        self.title = title
        self.total_subscriptions = total_subscriptions
        self.show_progress = show_progress and sys.stdout.isatty()

        self.completed_subscriptions = 0
        self.failed_subscriptions = 0
        self.total_rows = 0
        self.current_subscription = ""

        self._console: Optional[Console] = None
        self._progress: Optional[Progress] = None
        self._main_task: Optional[TaskID] = None

    def __enter__(self):
        if self.show_progress:
            self._console = Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=False,
            )
            self._main_task = self._progress.add_task(self.title, total=self.total_subscriptions or 1)
            self._progress.start()
        else:
            print(f"\n{'='*60}")
            print(f"{self.title} Starting")
            print(f"{'='*60}")
            print(f"Subscriptions: {self.total_subscriptions}")
            print()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.show_progress:
            assert self._progress is not None
            assert self._console is not None
            self._progress.stop()
            self._console.print()
            self._print_summary_rich()
        else:
            self._print_summary_plain()
        return False

    def start_subscription(self, subscription_id: str, subscription_name: str = ""):
        """Mark the start of processing a subscription."""
        self.current_subscription = subscription_name or subscription_id
        display = f"{subscription_name} ({subscription_id})" if subscription_name else subscription_id
        if self.show_progress:
            assert self._progress is not None and self._main_task is not None
            self._progress.update(self._main_task, description=f"{self.title}: {display}")
        else:
            print(f"\nSubscription: {display}")

    def update_task(self, task_description: str):
        """Update the current task being performed."""
        if self.show_progress:
            assert self._progress is not None and self._main_task is not None
            self._progress.update(
                self._main_task,
                description=f"{self.title} [{self.current_subscription}] {task_description}"
            )

    def add_rows(self, count: int):
        """Add assembled rows to the running total."""
        self.total_rows += count

    def complete_subscription(self):
        """Mark a subscription as complete."""
        self.completed_subscriptions += 1
        self._advance()
        if not self.show_progress:
            print(f"  [{self.current_subscription}] Complete - Running total: {self.total_rows:,} rows")

    def fail_subscription(self):
        """Mark a subscription as failed; it still counts towards progress."""
        self.failed_subscriptions += 1
        self._advance()

    def _advance(self):
        if self.show_progress:
            assert self._progress is not None and self._main_task is not None
            self._progress.update(self._main_task, advance=1)

    def _print_summary_rich(self):
        table = Table(title=f"{self.title} Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Subscriptions", str(self.completed_subscriptions))
        if self.failed_subscriptions:
            table.add_row("Failed Subscriptions", str(self.failed_subscriptions))
        table.add_row("Rows", f"{self.total_rows:,}")

        assert self._console is not None
        self._console.print(Panel(table))

    def _print_summary_plain(self):
        print(f"\n{'='*60}")
        print(f"{self.title} Complete")
        print(f"{'='*60}")
        print(f"  Subscriptions:   {self.completed_subscriptions}")
        if self.failed_subscriptions:
            print(f"  Failed:          {self.failed_subscriptions}")
        print(f"  Rows:            {self.total_rows:,}")
        print()


# =============================================================================
# Logging
# =============================================================================

def setup_logging(level: str = "INFO", output_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        output_dir: If provided, also write logs to a file in this directory

    Returns:
        Logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(output_dir, f"azinv_log_{timestamp}.log")

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to: {log_file}")

    # The Azure SDK logs every HTTP request at INFO
    logging.getLogger('azure').setLevel(max(numeric_level, logging.WARNING))

    return logging.getLogger(__name__)


# =============================================================================
# Output
# =============================================================================

def is_blob_url(path: str) -> bool:
    """True for an Azure Blob Storage https URL."""
    return path.startswith("https://") and ".blob.core.windows.net" in path


def join_output_path(output: str, filename: str) -> str:
    """Join an output directory or blob container URL with a file name."""
    if is_blob_url(output):
        return f"{output.rstrip('/')}/{filename}"
    return os.path.join(output, filename)


def write_csv(data: List[Dict[str, Any]], filepath: str, fieldnames: Sequence[str]) -> None:
    """Write rows to a CSV file, header row included even when there are no rows."""
    if is_blob_url(filepath):
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=list(fieldnames))
        writer.writeheader()
        writer.writerows(data)
        write_to_blob(output.getvalue(), filepath)
        return

    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(filepath, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=list(fieldnames))
        writer.writeheader()
        writer.writerows(data)
    print(f"Wrote {filepath}")


def write_to_blob(data: str, blob_url: str) -> None:
    """Write text to Azure Blob Storage, overwriting any existing blob."""
    from azure.identity import DefaultAzureCredential
    from azure.storage.blob import BlobClient

    try:
        credential = DefaultAzureCredential()
        blob_client = BlobClient.from_blob_url(blob_url, credential=credential)
        blob_client.upload_blob(data, overwrite=True)
        print(f"Wrote {blob_url}")
    except Exception as e:
        print(f"ERROR: Failed to write to Azure Blob ({blob_url}): {e}")
        raise
