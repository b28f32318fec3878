"""
Subscription and resource enumeration.

Every lister returns a plain list. Per-kind failures (provider not
registered, missing RBAC, API unavailable) are contained by
``list_or_empty`` so one kind never aborts a subscription or the run.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.mgmt.subscription import SubscriptionClient

from .cache import RunCache
from .constants import (
    MANAGED_INSTANCE_SYSTEM_DATABASES,
    MB_PER_GB,
    SQL_SERVER_SYSTEM_DATABASES,
    STORAGE_ACCOUNT_RESOURCE_TYPE,
    VIRTUAL_MACHINE_SKU_RESOURCE_TYPE,
)
from .models import VmSize
from .resource_id import ResourceIdError, parse_resource_id
from .utils import enum_value

logger = logging.getLogger(__name__)

# DiskLookup.reason values
DISK_NOT_FOUND = 'not_found'
DISK_LOOKUP_FAILED = 'lookup_failed'
DISK_UNMANAGED = 'unmanaged'
DISK_INVALID_ID = 'invalid_id'


# =============================================================================
# Authentication & Subscriptions
# =============================================================================

def get_credential():
    """Get Azure credential (CLI login, managed identity or environment)."""
    return DefaultAzureCredential()


def get_subscriptions(credential) -> List[Dict]:
    """Get all accessible subscriptions."""
    subscription_client = SubscriptionClient(credential)
    subscriptions = []

    for sub in subscription_client.subscriptions.list():
        subscriptions.append({
            'id': sub.subscription_id,
            'name': sub.display_name,
            'state': enum_value(sub.state)
        })

    return subscriptions


def select_subscriptions(all_subscriptions: List[Dict], wanted: Optional[List[str]] = None) -> List[Dict]:
    """
    Pick the subscriptions to scan.

    With an explicit list, match by id or display name (case-insensitive)
    regardless of state; otherwise every Enabled subscription.
    """
    if wanted:
        keys = {w.lower() for w in wanted}
        return [
            s for s in all_subscriptions
            if (s['id'] or '').lower() in keys or (s['name'] or '').lower() in keys
        ]
    return [s for s in all_subscriptions if (s['state'] or '').lower() == 'enabled']


# =============================================================================
# Failure Containment
# =============================================================================

def list_or_empty(kind: str, list_fn: Callable[..., Any], *args, **kwargs) -> List[Any]:
    """
    Materialize a listing call, yielding [] for this kind on any failure.

    Azure SDK pagers are lazy, so the list() happens inside the guard.
    """
    try:
        return list(list_fn(*args, **kwargs))
    except Exception as e:
        logger.warning(f"Failed to list {kind}: {e}")
        return []


# =============================================================================
# SQL
# =============================================================================

def list_sql_servers(sql_client) -> List[Any]:
    """SQL logical servers in the subscription."""
    return list_or_empty("SQL servers", sql_client.servers.list)


def list_elastic_pools(sql_client, resource_group: str, server_name: str) -> List[Any]:
    """Elastic pools on a SQL logical server."""
    return list_or_empty(
        f"elastic pools for server {server_name}",
        sql_client.elastic_pools.list_by_server, resource_group, server_name
    )


def list_databases(sql_client, resource_group: str, server_name: str) -> List[Any]:
    """User databases on a SQL logical server (master excluded)."""
    databases = list_or_empty(
        f"databases for server {server_name}",
        sql_client.databases.list_by_server, resource_group, server_name
    )
    return [db for db in databases if (db.name or '').lower() not in SQL_SERVER_SYSTEM_DATABASES]


def list_managed_instances(sql_client) -> List[Any]:
    """SQL managed instances in the subscription."""
    return list_or_empty("SQL managed instances", sql_client.managed_instances.list)


def list_managed_instance_databases(sql_client, resource_group: str, instance_name: str) -> List[Any]:
    """User databases on a managed instance (system databases excluded)."""
    databases = list_or_empty(
        f"databases for managed instance {instance_name}",
        sql_client.managed_databases.list_by_instance, resource_group, instance_name
    )
    return [db for db in databases if (db.name or '').lower() not in MANAGED_INSTANCE_SYSTEM_DATABASES]


def list_sql_virtual_machines(sqlvm_client) -> List[Any]:
    """SQL Server IaaS registrations (Microsoft.SqlVirtualMachine)."""
    return list_or_empty("SQL virtual machines", sqlvm_client.sql_virtual_machines.list)


# =============================================================================
# Storage
# =============================================================================

def list_storage_accounts(resource_client) -> List[Any]:
    """
    Storage accounts via the generic resource listing.

    Uses Microsoft.Resources rather than Microsoft.Storage so Reader is
    enough (the storage API's list call can require listKeys on some
    tenants).
    """
    return list_or_empty(
        "storage accounts",
        resource_client.resources.list,
        filter=f"resourceType eq '{STORAGE_ACCOUNT_RESOURCE_TYPE}'"
    )


# =============================================================================
# Virtual Machines
# =============================================================================

def list_virtual_machines(compute_client) -> List[Any]:
    """All virtual machines in the subscription."""
    return list_or_empty("virtual machines", compute_client.virtual_machines.list_all)


def get_power_state(compute_client, resource_group: str, vm_name: str) -> Optional[str]:
    """Power state from the VM instance view, e.g. 'VM running'."""
    try:
        view = compute_client.virtual_machines.instance_view(resource_group, vm_name)
    except Exception as e:
        logger.debug(f"Failed to get instance view for VM {vm_name}: {e}")
        return None

    for status in getattr(view, 'statuses', None) or []:
        code = getattr(status, 'code', None) or ''
        if code.startswith('PowerState/'):
            return getattr(status, 'display_status', None) or code.split('/', 1)[1]
    return None


def _sizes_from_size_list(compute_client, location: str) -> Dict[str, VmSize]:
    return {
        size.name.lower(): VmSize(cores=size.number_of_cores, memory_mb=size.memory_in_mb)
        for size in compute_client.virtual_machine_sizes.list(location)
        if size.name
    }


def _sizes_from_resource_skus(compute_client, location: str) -> Dict[str, VmSize]:
    sizes = {}
    for sku in compute_client.resource_skus.list(filter=f"location eq '{location}'"):
        if sku.resource_type != VIRTUAL_MACHINE_SKU_RESOURCE_TYPE or not sku.name:
            continue
        capabilities = {cap.name: cap.value for cap in (sku.capabilities or []) if cap.name}

        cores = None
        if capabilities.get('vCPUs'):
            cores = int(capabilities['vCPUs'])
        memory_mb = None
        if capabilities.get('MemoryGB'):
            memory_mb = int(round(float(capabilities['MemoryGB']) * MB_PER_GB))

        sizes[sku.name.lower()] = VmSize(cores=cores, memory_mb=memory_mb)
    return sizes


def load_vm_sizes(compute_client, location: str) -> Dict[str, VmSize]:
    """
    VM size table for a location.

    Falls back to the resource SKU capability listing when the size API
    fails; returns an empty table if both fail.
    """
    try:
        return _sizes_from_size_list(compute_client, location)
    except Exception as e:
        logger.warning(f"VM size list unavailable for {location}, trying resource SKUs: {e}")

    try:
        return _sizes_from_resource_skus(compute_client, location)
    except Exception as e:
        logger.warning(f"Resource SKU list unavailable for {location}: {e}")
        return {}


def get_vm_size(
    compute_client,
    location: Optional[str],
    vm_size: Optional[str],
    size_cache: RunCache
) -> Optional[VmSize]:
    """Cores and memory for a VM size, loading each location once per run."""
    if not location or not vm_size:
        return None
    key = location.lower()
    sizes = size_cache.get_or_load(key, lambda: load_vm_sizes(compute_client, location))
    return sizes.get(vm_size.lower())


@dataclass
class DiskLookup:
    """Managed disk resolved from a VM disk reference, or why it is missing."""
    disk: Any = None
    reason: Optional[str] = None


def _fetch_disk(compute_client, disk_id: str) -> DiskLookup:
    try:
        parsed = parse_resource_id(disk_id)
    except ResourceIdError as e:
        logger.warning(f"Cannot resolve disk: {e}")
        return DiskLookup(reason=DISK_INVALID_ID)

    try:
        return DiskLookup(disk=compute_client.disks.get(parsed.resource_group, parsed.name))
    except ResourceNotFoundError:
        logger.debug(f"Disk {parsed.name} not found in {parsed.resource_group}")
        return DiskLookup(reason=DISK_NOT_FOUND)
    except Exception as e:
        logger.warning(f"Failed to look up disk {parsed.name}: {e}")
        return DiskLookup(reason=DISK_LOOKUP_FAILED)


def resolve_disk(compute_client, disk_ref, disk_cache: RunCache) -> DiskLookup:
    """
    Resolve a VM OS/data disk reference to its managed disk.

    Unmanaged (VHD) disks have no managed disk id and resolve to nothing.
    """
    managed_disk = getattr(disk_ref, 'managed_disk', None)
    disk_id = getattr(managed_disk, 'id', None) if managed_disk else None
    if not disk_id:
        return DiskLookup(reason=DISK_UNMANAGED)
    return disk_cache.get_or_load(disk_id.lower(), lambda: _fetch_disk(compute_client, disk_id))
