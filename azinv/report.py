"""
Report sorting, totals, CSV export and console tables.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table

from .models import InventoryRow
from .utils import write_csv

logger = logging.getLogger(__name__)

# Sort keys per report (CSV column names)
SQL_SORT_KEYS = ('SubscriptionName', 'SqlType', 'ServerName', 'ResourceName')
STORAGE_SORT_KEYS = ('SubscriptionName', 'StorageAccount')
VM_SUMMARY_SORT_KEYS = ('SubscriptionName', 'ResourceGroup', 'VMName')
VM_DISK_SORT_KEYS = VM_SUMMARY_SORT_KEYS + ('DiskRole', 'Lun')


def _sort_value(value: Any) -> Tuple[int, Any]:
    # Absent values sort after present ones
    if value is None:
        return (1, '')
    if isinstance(value, str):
        return (0, value.casefold())
    return (0, value)


def sort_rows(rows: Sequence[InventoryRow], keys: Sequence[str]) -> List[InventoryRow]:
    """Sort rows ascending by the given columns (strings case-insensitively)."""
    def row_key(row: InventoryRow):
        values = row.to_row()
        return tuple(_sort_value(values.get(k)) for k in keys)

    return sorted(rows, key=row_key)


def compute_totals(rows: Sequence[InventoryRow], columns: Sequence[str]) -> Dict[str, float]:
    """Sum each column across rows; absent values count as 0."""
    totals = {c: 0.0 for c in columns}
    for row in rows:
        values = row.to_row()
        for c in columns:
            value = values.get(c)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                totals[c] += value
    return {c: round(v, 2) for c, v in totals.items()}


def write_report(rows: Sequence[InventoryRow], filepath: str, row_type: type) -> None:
    """Write rows to CSV with the row type's fixed column set."""
    write_csv([r.to_row() for r in rows], filepath, fieldnames=row_type.columns())
    logger.info(f"Wrote {len(rows)} rows to {filepath}")


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)


def print_report_table(
    title: str,
    rows: Sequence[InventoryRow],
    columns: Sequence[str],
    totals: Optional[Dict[str, float]] = None,
    console: Optional[Console] = None
) -> None:
    """Print selected columns of a report plus a TOTAL row."""
    console = console or Console()
    if not rows:
        console.print(f"{title}: no rows.")
        return

    table = Table(title=title)
    for c in columns:
        table.add_column(c)

    for row in rows:
        values = row.to_row()
        table.add_row(*(_format_cell(values.get(c)) for c in columns))

    if totals:
        table.add_section()
        cells = [_format_cell(totals[c]) if c in totals else "" for c in columns]
        cells[0] = "TOTAL"
        table.add_row(*cells, style="bold")

    console.print(table)
