#!/usr/bin/env python3
"""
Azure capacity inventory - Virtual Machine Report

Writes two files: a one-row-per-VM summary (size, cores, memory, power
state) and a one-row-per-disk listing of OS and data disks with their
provisioned size, SKU, tier and encryption type.

Consumed space inside a disk is guest-OS telemetry and is not available
from Azure Monitor platform metrics; that column is always empty.

Usage:
    python3 vm_inventory.py
    python3 vm_inventory.py --subscription <subscription-id>
"""
import dataclasses
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from azure.mgmt.compute import ComputeManagementClient

from azinv.cache import RunCache
from azinv.cli import build_parser, collect_all, start_run
from azinv.constants import (
    DISK_ROLE_DATA,
    DISK_ROLE_OS,
    MB_PER_GB,
    VIRTUAL_MACHINE_RESOURCE_TYPE,
    VM_DISKS_FILE,
    VM_SUMMARY_FILE,
)
from azinv.enumerate import get_power_state, get_vm_size, list_virtual_machines, resolve_disk
from azinv.models import InventoryRow, ResourceRef, VmDiskRow, VmSummaryRow
from azinv.report import (
    VM_DISK_SORT_KEYS,
    VM_SUMMARY_SORT_KEYS,
    compute_totals,
    print_report_table,
    sort_rows,
    write_report,
)
from azinv.utils import ProgressTracker, enum_value, join_output_path

logger = logging.getLogger(__name__)

TABLE_COLUMNS = [
    'SubscriptionName', 'ResourceGroup', 'VMName', 'VmSizeSku', 'vCPUs', 'RAMGiB',
    'PowerState', 'DataDiskCount',
]
TOTAL_COLUMNS = ['vCPUs', 'RAMGiB', 'DataDiskCount']
DISK_TOTAL_COLUMNS = ['ProvisionedGiB']


class RunCaches:
    """Lookup caches shared by every subscription of one run."""

    def __init__(self):
        self.vm_sizes = RunCache("vm sizes by location")
        self.disks = RunCache("managed disks by id")
        self.disk_failures: Counter = Counter()


def build_summary_row(vm, subscription: Dict[str, Any], compute_client,
                      caches: RunCaches) -> VmSummaryRow:
    """Summary row for one VM."""
    ref = ResourceRef.from_resource(vm, subscription['name'], VIRTUAL_MACHINE_RESOURCE_TYPE)
    resource_group = ref.resource_group
    profile = vm.storage_profile
    os_disk = profile.os_disk if profile else None
    data_disks = list(profile.data_disks or []) if profile else []
    vm_size = enum_value(vm.hardware_profile.vm_size) if vm.hardware_profile else None

    size = get_vm_size(compute_client, vm.location, vm_size, caches.vm_sizes)
    ram_gib = None
    if size and size.memory_mb is not None:
        ram_gib = round(size.memory_mb / MB_PER_GB, 2)

    return VmSummaryRow(
        subscription_name=subscription['name'],
        subscription_id=subscription['id'],
        resource_group=resource_group,
        vm_name=vm.name,
        location=vm.location,
        vm_size_sku=vm_size,
        vcpus=size.cores if size else None,
        ram_gib=ram_gib,
        power_state=get_power_state(compute_client, resource_group, vm.name),
        os_type=enum_value(os_disk.os_type) if os_disk else None,
        os_disk_name=os_disk.name if os_disk else None,
        data_disk_count=len(data_disks),
    )


def build_disk_row(summary: VmSummaryRow, disk_ref, role: str, compute_client,
                   caches: RunCaches) -> VmDiskRow:
    """
    Row for one disk attached to a VM.

    If the managed disk cannot be resolved, the provisioned size comes from
    the VM's own disk reference and SKU/tier/encryption stay empty.
    """
    lookup = resolve_disk(compute_client, disk_ref, caches.disks)
    if lookup.reason:
        caches.disk_failures[lookup.reason] += 1
    disk = lookup.disk
    managed_disk = disk_ref.managed_disk

    provisioned = disk.disk_size_gb if disk is not None else None
    if provisioned is None:
        provisioned = disk_ref.disk_size_gb

    return VmDiskRow(
        **dataclasses.asdict(summary),
        disk_role=role,
        lun=getattr(disk_ref, 'lun', None) if role == DISK_ROLE_DATA else None,
        caching=enum_value(disk_ref.caching),
        write_accelerator=disk_ref.write_accelerator_enabled,
        disk_name=disk_ref.name,
        disk_id=managed_disk.id if managed_disk else None,
        disk_sku=enum_value(disk.sku.name) if disk is not None and disk.sku else None,
        disk_tier=disk.tier if disk is not None else None,
        encryption_type=enum_value(disk.encryption.type) if disk is not None and disk.encryption else None,
        provisioned_gib=float(provisioned) if provisioned is not None else None,
    )


def collect_vm_rows(vm, subscription: Dict[str, Any], compute_client,
                    caches: RunCaches) -> List[InventoryRow]:
    """Summary row followed by one row per OS/data disk."""
    summary = build_summary_row(vm, subscription, compute_client, caches)
    rows: List[InventoryRow] = [summary]

    profile = vm.storage_profile
    if not profile:
        return rows
    if profile.os_disk:
        rows.append(build_disk_row(summary, profile.os_disk, DISK_ROLE_OS, compute_client, caches))
    for data_disk in profile.data_disks or []:
        rows.append(build_disk_row(summary, data_disk, DISK_ROLE_DATA, compute_client, caches))
    return rows


def collect_subscription(
    credential,
    subscription: Dict[str, Any],
    caches: RunCaches,
    tracker: Optional[ProgressTracker] = None
) -> List[InventoryRow]:
    """Summary and disk rows for every VM in one subscription."""
    subscription_id = subscription['id']
    logger.info(f"Collecting VMs from subscription: {subscription['name']} ({subscription_id})")

    compute_client = ComputeManagementClient(credential, subscription_id)

    if tracker:
        tracker.update_task("Virtual machines...")
    rows: List[InventoryRow] = []
    vms = list_virtual_machines(compute_client)
    for vm in vms:
        rows.extend(collect_vm_rows(vm, subscription, compute_client, caches))

    logger.info(f"Found {len(vms)} VMs")
    return rows


def split_rows(rows: List[InventoryRow]):
    """Separate the mixed row list into (summaries, disks)."""
    disks = [r for r in rows if isinstance(r, VmDiskRow)]
    summaries = [r for r in rows if not isinstance(r, VmDiskRow)]
    return summaries, disks


def run(credential, subscriptions: List[Dict], config: Dict[str, Any], show_table: bool = True):
    """Collect, sort and write the VM summary and VM disk reports."""
    caches = RunCaches()
    rows, _failed = collect_all(
        "VM inventory",
        subscriptions,
        lambda sub, tracker: collect_subscription(credential, sub, caches, tracker)
    )
    summaries, disks = split_rows(rows)
    summaries = sort_rows(summaries, VM_SUMMARY_SORT_KEYS)
    disks = sort_rows(disks, VM_DISK_SORT_KEYS)

    write_report(summaries, join_output_path(config['output'], VM_SUMMARY_FILE), VmSummaryRow)
    write_report(disks, join_output_path(config['output'], VM_DISKS_FILE), VmDiskRow)
    logger.debug(
        f"Cache use: {len(caches.vm_sizes)} locations, {len(caches.disks)} disks "
        f"({caches.disks.hits} repeat lookups)"
    )
    if caches.disk_failures:
        summary = ", ".join(f"{reason}={count}" for reason, count in sorted(caches.disk_failures.items()))
        logger.info(f"Disk rows without managed disk details: {summary}")

    if show_table:
        print_report_table("Virtual machines", summaries, TABLE_COLUMNS, compute_totals(summaries, TOTAL_COLUMNS))
        disk_totals = compute_totals(disks, DISK_TOTAL_COLUMNS)
        print(f"Disks: {len(disks)}  Provisioned: {disk_totals['ProvisionedGiB']:,.2f} GiB")
    return summaries, disks


def main():
    parser = build_parser('Azure capacity inventory - virtual machine report')
    args = parser.parse_args()
    config, credential, subscriptions = start_run(args)
    run(credential, subscriptions, config, show_table=not args.no_table)


if __name__ == '__main__':
    main()
