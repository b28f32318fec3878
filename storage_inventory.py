#!/usr/bin/env python3
"""
Azure capacity inventory - Storage Account Report

Reports used capacity, per-service (blob/file/queue/table) capacity,
provisioned and unconsumed space, and object counts for every storage
account, from Azure Monitor platform metrics. Only Reader is required.

Usage:
    python3 storage_inventory.py
    python3 storage_inventory.py --lookback-hours 72 --output ./reports
"""
import logging
from typing import Any, Dict, List, Optional

from azure.mgmt.resource import ResourceManagementClient

from azinv.cli import build_parser, collect_all, start_run
from azinv.constants import (
    BLOB_SERVICE_SUFFIX,
    FILE_SERVICE_SUFFIX,
    METRIC_BLOB_CAPACITY,
    METRIC_BLOB_COUNT,
    METRIC_BLOB_PROVISIONED,
    METRIC_CONTAINER_COUNT,
    METRIC_FILE_CAPACITY,
    METRIC_FILE_COUNT,
    METRIC_FILE_SHARE_COUNT,
    METRIC_FILE_SHARE_QUOTA,
    METRIC_QUEUE_CAPACITY,
    METRIC_QUEUE_COUNT,
    METRIC_QUEUE_MESSAGE_COUNT,
    METRIC_TABLE_CAPACITY,
    METRIC_TABLE_COUNT,
    METRIC_TABLE_ENTITY_COUNT,
    METRIC_USED_CAPACITY,
    QUEUE_SERVICE_SUFFIX,
    STORAGE_ACCOUNT_RESOURCE_TYPE,
    STORAGE_REPORT_FILE,
    TABLE_SERVICE_SUFFIX,
)
from azinv.enumerate import list_storage_accounts
from azinv.metrics import MetricClient, get_monitor_client
from azinv.models import ResourceRef, StorageCapacityRow
from azinv.report import STORAGE_SORT_KEYS, compute_totals, print_report_table, sort_rows, write_report
from azinv.utils import ProgressTracker, bytes_to_gib, join_output_path, to_int, unconsumed

logger = logging.getLogger(__name__)

TABLE_COLUMNS = [
    'SubscriptionName', 'StorageAccount', 'UsedCapacityGiB', 'BlobCapacityGiB',
    'FileCapacityGiB', 'FileProvisionedGiB', 'FileUnconsumedGiB',
]
TOTAL_COLUMNS = [
    'UsedCapacityGiB', 'BlobCapacityGiB', 'BlobProvisionedGiB', 'BlobUnconsumedGiB',
    'FileCapacityGiB', 'FileProvisionedGiB', 'FileUnconsumedGiB',
    'QueueCapacityGiB', 'TableCapacityGiB',
]

# Metrics requested per service namespace, keyed by resource id suffix
SERVICE_METRICS = {
    '': [METRIC_USED_CAPACITY],
    BLOB_SERVICE_SUFFIX: [METRIC_BLOB_CAPACITY, METRIC_BLOB_PROVISIONED, METRIC_BLOB_COUNT, METRIC_CONTAINER_COUNT],
    FILE_SERVICE_SUFFIX: [METRIC_FILE_CAPACITY, METRIC_FILE_SHARE_QUOTA, METRIC_FILE_COUNT, METRIC_FILE_SHARE_COUNT],
    QUEUE_SERVICE_SUFFIX: [METRIC_QUEUE_CAPACITY, METRIC_QUEUE_COUNT, METRIC_QUEUE_MESSAGE_COUNT],
    TABLE_SERVICE_SUFFIX: [METRIC_TABLE_CAPACITY, METRIC_TABLE_COUNT, METRIC_TABLE_ENTITY_COUNT],
}


def fetch_account_metrics(metric_client: MetricClient, account_id: str) -> Dict[str, Optional[float]]:
    """Latest value of every account and per-service metric, by metric name."""
    values: Dict[str, Optional[float]] = {}
    for suffix, names in SERVICE_METRICS.items():
        values.update(metric_client.latest_many(f"{account_id}{suffix}", names))
    return values


def build_storage_row(account, subscription_name: str, metric_client: MetricClient) -> StorageCapacityRow:
    """Row for one storage account."""
    ref = ResourceRef.from_resource(account, subscription_name, STORAGE_ACCOUNT_RESOURCE_TYPE)
    m = fetch_account_metrics(metric_client, ref.resource_id)

    blob_capacity = m[METRIC_BLOB_CAPACITY]
    blob_provisioned = m[METRIC_BLOB_PROVISIONED]
    file_capacity = m[METRIC_FILE_CAPACITY]
    file_provisioned = m[METRIC_FILE_SHARE_QUOTA]

    return StorageCapacityRow(
        subscription_name=ref.subscription_name,
        storage_account=account.name,
        resource_group=ref.resource_group,
        location=ref.location,
        used_capacity_gib=bytes_to_gib(m[METRIC_USED_CAPACITY]),
        blob_capacity_gib=bytes_to_gib(blob_capacity),
        blob_provisioned_gib=bytes_to_gib(blob_provisioned),
        blob_unconsumed_gib=bytes_to_gib(unconsumed(blob_provisioned, blob_capacity)),
        file_capacity_gib=bytes_to_gib(file_capacity),
        file_provisioned_gib=bytes_to_gib(file_provisioned),
        file_unconsumed_gib=bytes_to_gib(unconsumed(file_provisioned, file_capacity)),
        queue_capacity_gib=bytes_to_gib(m[METRIC_QUEUE_CAPACITY]),
        table_capacity_gib=bytes_to_gib(m[METRIC_TABLE_CAPACITY]),
        blob_count=to_int(m[METRIC_BLOB_COUNT]),
        container_count=to_int(m[METRIC_CONTAINER_COUNT]),
        file_count=to_int(m[METRIC_FILE_COUNT]),
        file_share_count=to_int(m[METRIC_FILE_SHARE_COUNT]),
        queue_count=to_int(m[METRIC_QUEUE_COUNT]),
        queue_message_count=to_int(m[METRIC_QUEUE_MESSAGE_COUNT]),
        table_count=to_int(m[METRIC_TABLE_COUNT]),
        table_entity_count=to_int(m[METRIC_TABLE_ENTITY_COUNT]),
    )


def collect_subscription(
    credential,
    subscription: Dict[str, Any],
    lookback_hours: int,
    tracker: Optional[ProgressTracker] = None
) -> List[StorageCapacityRow]:
    """Storage account rows for one subscription."""
    subscription_id = subscription['id']
    subscription_name = subscription['name']
    logger.info(f"Collecting storage accounts from subscription: {subscription_name} ({subscription_id})")

    resource_client = ResourceManagementClient(credential, subscription_id)
    metric_client = MetricClient(get_monitor_client(credential, subscription_id), lookback_hours)

    if tracker:
        tracker.update_task("Storage accounts...")
    rows = [
        build_storage_row(account, subscription_name, metric_client)
        for account in list_storage_accounts(resource_client)
    ]
    logger.info(f"Found {len(rows)} storage accounts")
    return rows


def run(credential, subscriptions: List[Dict], config: Dict[str, Any],
        show_table: bool = True) -> List[StorageCapacityRow]:
    """Collect, sort and write the storage capacity report."""
    rows, _failed = collect_all(
        "Storage capacity",
        subscriptions,
        lambda sub, tracker: collect_subscription(credential, sub, config['lookback_hours'], tracker)
    )
    rows = sort_rows(rows, STORAGE_SORT_KEYS)

    write_report(rows, join_output_path(config['output'], STORAGE_REPORT_FILE), StorageCapacityRow)

    if show_table:
        print_report_table("Storage capacity", rows, TABLE_COLUMNS, compute_totals(rows, TOTAL_COLUMNS))
    return rows


def main():
    parser = build_parser('Azure capacity inventory - storage account report')
    args = parser.parse_args()
    config, credential, subscriptions = start_run(args)
    run(credential, subscriptions, config, show_table=not args.no_table)


if __name__ == '__main__':
    main()
