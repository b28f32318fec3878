"""
Shared command-line plumbing for the report scripts.

Each report script builds its parser with ``build_parser``, then calls
``start_run`` to load config, set up logging and open the Azure session,
and ``collect_all`` to walk subscriptions with per-subscription failure
containment.
"""
import argparse
import logging
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import ConfigError, generate_sample_config, load_config
from .enumerate import get_credential, get_subscriptions, select_subscriptions
from .utils import AuthError, ProgressTracker, is_blob_url, setup_logging

logger = logging.getLogger(__name__)

CollectFn = Callable[[Dict[str, Any], Optional[ProgressTracker]], List[Any]]


def build_parser(description: str) -> argparse.ArgumentParser:
    """Argument parser with the options every report accepts."""
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        '--subscription',
        action='append',
        default=[],
        help='Subscription id or name to scan (repeatable, default: all Enabled subscriptions)'
    )
    parser.add_argument('--output', help='Output directory or blob container URL (default: .)')
    parser.add_argument(
        '--lookback-hours',
        type=int,
        help='Hours to search back for the latest metric data point (default: 48)'
    )
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument('--config', help='Path to YAML config file')
    parser.add_argument('--no-table', action='store_true', help='Skip the console report table')
    parser.add_argument(
        '--generate-config',
        action='store_true',
        help='Print a sample config file and exit'
    )
    return parser


def open_session(wanted: Optional[List[str]] = None) -> Tuple[Any, List[Dict]]:
    """
    Authenticate and list the subscriptions to scan.

    Raises:
        AuthError: when no usable session exists or nothing can be scanned.
    """
    try:
        credential = get_credential()
        all_subscriptions = get_subscriptions(credential)
    except Exception as e:
        raise AuthError(f"Failed to authenticate or list subscriptions: {e}", original_error=e) from e

    if not all_subscriptions:
        raise AuthError("No Azure subscriptions found. Check permissions.")

    subscriptions = select_subscriptions(all_subscriptions, wanted)
    if not subscriptions:
        raise AuthError(f"None of the requested subscriptions were found: {', '.join(wanted or [])}")

    logger.info(f"Found {len(subscriptions)} subscription(s) to scan")
    return credential, subscriptions


def start_run(args) -> Tuple[Dict[str, Any], Any, List[Dict]]:
    """
    Load config, set up logging and open the session.

    Exits the process on config errors and on authentication failure; those
    are the only fatal conditions of a run.
    """
    if getattr(args, 'generate_config', False):
        print(generate_sample_config())
        sys.exit(0)

    try:
        config = load_config(args)
    except (ConfigError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)

    log_dir = None if is_blob_url(config['output']) else config['output']
    setup_logging(config['log_level'], output_dir=log_dir)

    try:
        credential, subscriptions = open_session(config['subscriptions'])
    except AuthError as e:
        logger.error(str(e))
        logger.error("Sign in with 'az login' or configure a managed identity, then retry.")
        sys.exit(1)

    return config, credential, subscriptions


def collect_all(
    title: str,
    subscriptions: List[Dict],
    collect_fn: CollectFn
) -> Tuple[List[Any], List[Dict]]:
    """
    Run collect_fn for each subscription, one at a time.

    A subscription that fails is logged and recorded; the run continues.

    Returns:
        (rows, failed_subscriptions)
    """
    rows: List[Any] = []
    failed: List[Dict] = []

    with ProgressTracker(title, total_subscriptions=len(subscriptions)) as tracker:
        for sub in subscriptions:
            tracker.start_subscription(sub['id'], sub['name'])
            try:
                sub_rows = collect_fn(sub, tracker)
            except Exception as e:
                logger.error(f"Failed to collect from subscription {sub['id']} ({sub['name']}): {e}")
                failed.append({'id': sub['id'], 'name': sub['name'], 'error': str(e)})
                tracker.fail_subscription()
                continue
            rows.extend(sub_rows)
            tracker.add_rows(len(sub_rows))
            tracker.complete_subscription()

    if failed:
        logger.warning(f"Collection failed for {len(failed)} subscription(s)")

    return rows, failed
