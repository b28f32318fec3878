#!/usr/bin/env python3
"""
Azure capacity inventory - SQL Report

Inventories Azure SQL (elastic pools, databases, managed instances and their
databases) and SQL Server on Azure VMs across all readable subscriptions,
with the latest storage metrics from Azure Monitor.

Usage:
    python3 sql_inventory.py
    python3 sql_inventory.py --subscription "Production" --output ./reports
"""
import logging
from typing import Any, Dict, List, Optional

from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.sql import SqlManagementClient

# Optional SDK - the SQL IaaS extension client is not always installed
try:
    from azure.mgmt.sqlvirtualmachine import SqlVirtualMachineManagementClient
    HAS_SQLVM = True
except ImportError:
    SqlVirtualMachineManagementClient = None  # type: ignore[misc,assignment]
    HAS_SQLVM = False

from azinv.cli import build_parser, collect_all, start_run
from azinv.constants import (
    METRIC_DB_ALLOCATED,
    METRIC_DB_STORAGE,
    METRIC_MI_RESERVED_MB,
    METRIC_MI_STORAGE_USED_MB,
    METRIC_POOL_ALLOCATED,
    METRIC_POOL_STORAGE_USED,
    SQL_REPORT_FILE,
    SQL_TYPE_DATABASE,
    SQL_TYPE_ELASTIC_POOL,
    SQL_TYPE_MANAGED_INSTANCE,
    SQL_TYPE_MANAGED_INSTANCE_DATABASE,
    SQL_TYPE_SQL_VM,
)
from azinv.enumerate import (
    list_databases,
    list_elastic_pools,
    list_managed_instance_databases,
    list_managed_instances,
    list_sql_servers,
    list_sql_virtual_machines,
)
from azinv.metrics import MetricClient, get_monitor_client
from azinv.models import SqlInventoryRow
from azinv.report import SQL_SORT_KEYS, compute_totals, print_report_table, sort_rows, write_report
from azinv.resource_id import ResourceIdError, name_of, parse_resource_id, resource_group_of
from azinv.utils import ProgressTracker, bytes_to_gib, enum_value, join_output_path, mb_to_gib

logger = logging.getLogger(__name__)

TABLE_COLUMNS = [
    'SubscriptionName', 'SqlType', 'ServerName', 'ResourceName', 'Edition',
    'MaxSizeGB', 'StorageUsedGB', 'StorageAllocatedGB',
]
TOTAL_COLUMNS = ['MaxSizeGB', 'StorageUsedGB', 'StorageAllocatedGB']


def _sku_fields(sku) -> Dict[str, Any]:
    if not sku:
        return {'edition': None, 'service_tier': None, 'capacity': None, 'family': None}
    return {
        'edition': sku.tier,
        'service_tier': sku.name,
        'capacity': sku.capacity,
        'family': sku.family,
    }


def _to_float(value: Optional[float]) -> Optional[float]:
    return float(value) if value is not None else None


# =============================================================================
# Row Builders
# =============================================================================

def build_pool_row(pool, server, resource_group: str, subscription_name: str,
                   metric_client: MetricClient) -> SqlInventoryRow:
    """Row for an elastic pool, with storage_used / allocated_data_storage metrics."""
    metrics = metric_client.latest_many(pool.id, [METRIC_POOL_STORAGE_USED, METRIC_POOL_ALLOCATED])
    return SqlInventoryRow(
        subscription_name=subscription_name,
        resource_group=resource_group,
        sql_type=SQL_TYPE_ELASTIC_POOL,
        server_name=server.name,
        resource_name=pool.name,
        location=pool.location,
        max_size_gb=bytes_to_gib(pool.max_size_bytes),
        storage_used_gb=bytes_to_gib(metrics[METRIC_POOL_STORAGE_USED]),
        storage_allocated_gb=bytes_to_gib(metrics[METRIC_POOL_ALLOCATED]),
        license_type=enum_value(pool.license_type),
        zone_redundant=pool.zone_redundant,
        status=enum_value(pool.state),
        **_sku_fields(pool.sku),
    )


def build_database_row(db, server, resource_group: str, subscription_name: str,
                       metric_client: MetricClient) -> SqlInventoryRow:
    """Row for a database on a logical server."""
    metrics = metric_client.latest_many(db.id, [METRIC_DB_STORAGE, METRIC_DB_ALLOCATED])
    fields = _sku_fields(db.sku)
    if db.current_service_objective_name:
        fields['service_tier'] = db.current_service_objective_name
    return SqlInventoryRow(
        subscription_name=subscription_name,
        resource_group=resource_group,
        sql_type=SQL_TYPE_DATABASE,
        server_name=server.name,
        resource_name=db.name,
        location=db.location,
        max_size_gb=bytes_to_gib(db.max_size_bytes),
        storage_used_gb=bytes_to_gib(metrics[METRIC_DB_STORAGE]),
        storage_allocated_gb=bytes_to_gib(metrics[METRIC_DB_ALLOCATED]),
        license_type=enum_value(db.license_type),
        zone_redundant=db.zone_redundant,
        status=enum_value(db.status),
        elastic_pool_name=name_of(db.elastic_pool_id),
        **fields,
    )


def build_managed_instance_row(mi, resource_group: str, subscription_name: str,
                               metric_client: MetricClient) -> SqlInventoryRow:
    """Row for a managed instance; its storage metrics are reported in MB."""
    metrics = metric_client.latest_many(mi.id, [METRIC_MI_STORAGE_USED_MB, METRIC_MI_RESERVED_MB])
    fields = _sku_fields(mi.sku)
    fields['capacity'] = mi.v_cores
    return SqlInventoryRow(
        subscription_name=subscription_name,
        resource_group=resource_group,
        sql_type=SQL_TYPE_MANAGED_INSTANCE,
        server_name=mi.name,
        resource_name=mi.name,
        location=mi.location,
        max_size_gb=_to_float(mi.storage_size_in_gb),
        storage_used_gb=mb_to_gib(metrics[METRIC_MI_STORAGE_USED_MB]),
        storage_allocated_gb=mb_to_gib(metrics[METRIC_MI_RESERVED_MB]),
        license_type=enum_value(mi.license_type),
        zone_redundant=mi.zone_redundant,
        status=enum_value(mi.state),
        **fields,
    )


def build_managed_instance_database_row(db, mi, resource_group: str,
                                        subscription_name: str) -> SqlInventoryRow:
    """Row for a managed instance database; MI databases expose no storage metric."""
    return SqlInventoryRow(
        subscription_name=subscription_name,
        resource_group=resource_group,
        sql_type=SQL_TYPE_MANAGED_INSTANCE_DATABASE,
        server_name=mi.name,
        resource_name=db.name,
        location=db.location or mi.location,
        status=enum_value(db.status),
    )


def declared_disk_total_gb(compute_client, vm_resource_id: Optional[str]) -> Optional[float]:
    """Sum of the declared OS + data disk sizes of a VM, or None if unknown."""
    try:
        parsed = parse_resource_id(vm_resource_id)
        vm = compute_client.virtual_machines.get(parsed.resource_group, parsed.name)
    except ResourceIdError as e:
        logger.debug(f"Cannot resolve SQL VM host: {e}")
        return None
    except Exception as e:
        logger.debug(f"Failed to get VM {vm_resource_id}: {e}")
        return None

    profile = vm.storage_profile
    if not profile:
        return None
    disks = ([profile.os_disk] if profile.os_disk else []) + list(profile.data_disks or [])
    sizes = [d.disk_size_gb for d in disks if d.disk_size_gb is not None]
    if not sizes:
        return None
    return float(sum(sizes))


def build_sql_vm_row(sqlvm, subscription_name: str, compute_client) -> SqlInventoryRow:
    """
    Row for a SQL Server IaaS registration.

    There is no data-plane metric for SQL on VMs, so storage used stays
    absent; allocated storage is the sum of the host VM's disk sizes.
    """
    vm_id = sqlvm.virtual_machine_resource_id
    return SqlInventoryRow(
        subscription_name=subscription_name,
        resource_group=resource_group_of(sqlvm.id) or '',
        sql_type=SQL_TYPE_SQL_VM,
        server_name=name_of(vm_id) or sqlvm.name,
        resource_name=sqlvm.name,
        location=sqlvm.location,
        edition=enum_value(sqlvm.sql_image_sku),
        service_tier=sqlvm.sql_image_offer,
        storage_allocated_gb=declared_disk_total_gb(compute_client, vm_id),
        license_type=enum_value(sqlvm.sql_server_license_type),
        status=sqlvm.provisioning_state,
        vm_resource_id=vm_id,
    )


# =============================================================================
# Collectors
# =============================================================================

def collect_sql_server_rows(sql_client, metric_client: MetricClient,
                            subscription_name: str) -> List[SqlInventoryRow]:
    """Elastic pool and database rows for every logical server."""
    rows = []
    for server in list_sql_servers(sql_client):
        resource_group = resource_group_of(server.id)
        if not resource_group:
            logger.debug(f"Skipping SQL server with unparseable id: {server.id}")
            continue

        for pool in list_elastic_pools(sql_client, resource_group, server.name):
            rows.append(build_pool_row(pool, server, resource_group, subscription_name, metric_client))

        for db in list_databases(sql_client, resource_group, server.name):
            rows.append(build_database_row(db, server, resource_group, subscription_name, metric_client))

    logger.info(f"Found {len(rows)} elastic pool/database rows")
    return rows


def collect_managed_instance_rows(sql_client, metric_client: MetricClient,
                                  subscription_name: str) -> List[SqlInventoryRow]:
    """Managed instance rows followed by their user database rows."""
    rows = []
    for mi in list_managed_instances(sql_client):
        resource_group = resource_group_of(mi.id)
        if not resource_group:
            logger.debug(f"Skipping managed instance with unparseable id: {mi.id}")
            continue

        rows.append(build_managed_instance_row(mi, resource_group, subscription_name, metric_client))
        for db in list_managed_instance_databases(sql_client, resource_group, mi.name):
            rows.append(build_managed_instance_database_row(db, mi, resource_group, subscription_name))

    logger.info(f"Found {len(rows)} managed instance rows")
    return rows


def collect_sql_vm_rows(credential, subscription_id: str, subscription_name: str,
                        compute_client) -> List[SqlInventoryRow]:
    """SQL Server on Azure VM rows; none when the SQL IaaS SDK is missing."""
    if not HAS_SQLVM:
        logger.warning("azure-mgmt-sqlvirtualmachine not installed. Skipping SQL Server on Azure VMs...")
        return []

    sqlvm_client = SqlVirtualMachineManagementClient(credential, subscription_id)
    rows = [
        build_sql_vm_row(sqlvm, subscription_name, compute_client)
        for sqlvm in list_sql_virtual_machines(sqlvm_client)
    ]
    logger.info(f"Found {len(rows)} SQL VM rows")
    return rows


def collect_subscription(
    credential,
    subscription: Dict[str, Any],
    lookback_hours: int,
    tracker: Optional[ProgressTracker] = None
) -> List[SqlInventoryRow]:
    """All SQL rows for one subscription."""
    subscription_id = subscription['id']
    subscription_name = subscription['name']
    logger.info(f"Collecting SQL resources from subscription: {subscription_name} ({subscription_id})")

    sql_client = SqlManagementClient(credential, subscription_id)
    compute_client = ComputeManagementClient(credential, subscription_id)
    metric_client = MetricClient(get_monitor_client(credential, subscription_id), lookback_hours)

    rows: List[SqlInventoryRow] = []
    if tracker:
        tracker.update_task("SQL servers...")
    rows.extend(collect_sql_server_rows(sql_client, metric_client, subscription_name))
    if tracker:
        tracker.update_task("SQL managed instances...")
    rows.extend(collect_managed_instance_rows(sql_client, metric_client, subscription_name))
    if tracker:
        tracker.update_task("SQL virtual machines...")
    rows.extend(collect_sql_vm_rows(credential, subscription_id, subscription_name, compute_client))
    return rows


def run(credential, subscriptions: List[Dict], config: Dict[str, Any],
        show_table: bool = True) -> List[SqlInventoryRow]:
    """Collect, sort and write the SQL inventory report."""
    rows, _failed = collect_all(
        "SQL inventory",
        subscriptions,
        lambda sub, tracker: collect_subscription(credential, sub, config['lookback_hours'], tracker)
    )
    rows = sort_rows(rows, SQL_SORT_KEYS)

    write_report(rows, join_output_path(config['output'], SQL_REPORT_FILE), SqlInventoryRow)

    if show_table:
        print_report_table("Azure SQL inventory", rows, TABLE_COLUMNS, compute_totals(rows, TOTAL_COLUMNS))
    return rows


def main():
    parser = build_parser('Azure capacity inventory - SQL report')
    args = parser.parse_args()
    config, credential, subscriptions = start_run(args)
    run(credential, subscriptions, config, show_table=not args.no_table)


if __name__ == '__main__':
    main()
