#!/usr/bin/env python3
"""
Azure capacity inventory - Unified Collector

Runs one or more reports in a single process, sharing one sign-in and one
subscription listing.

Usage:
    # All reports (default)
    python collect.py

    # Selected reports
    python collect.py --report sql --report vm

    # Write a sample config file
    python collect.py --generate-config > azinv-config.yaml
"""
import logging
from typing import Any, Callable, Dict, List

import sql_inventory
import storage_inventory
import vm_inventory
from azinv.cli import build_parser, start_run
from azinv.constants import ALL_REPORTS, REPORT_SQL, REPORT_STORAGE, REPORT_VM

logger = logging.getLogger(__name__)

REPORT_RUNNERS: Dict[str, Callable[..., Any]] = {
    REPORT_SQL: sql_inventory.run,
    REPORT_STORAGE: storage_inventory.run,
    REPORT_VM: vm_inventory.run,
}


def run_reports(credential, subscriptions: List[Dict], config: Dict[str, Any],
                show_table: bool = True) -> List[str]:
    """
    Run the configured reports in order.

    A report that fails outright is logged and the next one still runs.

    Returns:
        Names of reports that failed.
    """
    failed = []
    for name in config['reports']:
        logger.info(f"Running {name} report")
        try:
            REPORT_RUNNERS[name](credential, subscriptions, config, show_table=show_table)
        except Exception as e:
            logger.error(f"The {name} report failed: {e}")
            failed.append(name)
    return failed


def main():
    parser = build_parser('Azure capacity inventory - run SQL, storage and VM reports')
    parser.add_argument(
        '--report',
        action='append',
        default=[],
        choices=list(ALL_REPORTS) + ['all'],
        help='Report to run (repeatable, default: all)'
    )
    args = parser.parse_args()
    config, credential, subscriptions = start_run(args)

    failed = run_reports(credential, subscriptions, config, show_table=not args.no_table)
    if failed:
        raise SystemExit(1)


if __name__ == '__main__':
    main()
