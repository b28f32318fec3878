"""
Data models for the Azure capacity inventory collectors.
"""
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from .resource_id import resource_group_of


def column(name: str, default: Any = None) -> Any:
    """Dataclass field mapped to a CSV column name."""
    return field(default=default, metadata={'column': name})


@dataclass(frozen=True)
class ResourceRef:
    """Identity of an enumerated Azure resource."""
    resource_id: str
    subscription_name: str
    resource_group: str
    location: Optional[str]
    kind: str

    @classmethod
    def from_resource(cls, resource, subscription_name: str, kind: str) -> 'ResourceRef':
        """Build from any Azure SDK model with ``id`` and ``location``."""
        return cls(
            resource_id=resource.id,
            subscription_name=subscription_name,
            resource_group=resource_group_of(resource.id) or '',
            location=getattr(resource, 'location', None),
            kind=kind,
        )


@dataclass(frozen=True)
class MetricResult:
    """
    Latest value of a metric, or the reason it is absent.

    ``reason`` is one of the module constants in ``azinv.metrics`` and is
    only set when ``value`` is None.
    """
    value: Optional[float] = None
    reason: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.value is not None


@dataclass
class InventoryRow:
    """
    Base class for flat report rows.

    Subclasses declare their columns with ``column()``; field order is the
    CSV column order.
    """

    @classmethod
    def columns(cls) -> List[str]:
        """CSV column names in output order."""
        return [f.metadata['column'] for f in fields(cls)]

    def to_row(self) -> Dict[str, Any]:
        """Ordered column -> value mapping for CSV output."""
        return {f.metadata['column']: getattr(self, f.name) for f in fields(self)}


@dataclass
class SqlInventoryRow(InventoryRow):
    """One elastic pool, database, managed instance (database) or SQL VM."""
    subscription_name: str = column('SubscriptionName', '')
    resource_group: str = column('ResourceGroup', '')
    sql_type: str = column('SqlType', '')
    server_name: Optional[str] = column('ServerName')
    resource_name: Optional[str] = column('ResourceName')
    location: Optional[str] = column('Location')
    edition: Optional[str] = column('Edition')
    service_tier: Optional[str] = column('ServiceTier')
    capacity: Optional[int] = column('Capacity')
    family: Optional[str] = column('Family')
    max_size_gb: Optional[float] = column('MaxSizeGB')
    storage_used_gb: Optional[float] = column('StorageUsedGB')
    storage_allocated_gb: Optional[float] = column('StorageAllocatedGB')
    license_type: Optional[str] = column('LicenseType')
    zone_redundant: Optional[bool] = column('ZoneRedundant')
    status: Optional[str] = column('Status')
    elastic_pool_name: Optional[str] = column('ElasticPoolName')
    vm_resource_id: Optional[str] = column('VmResourceId')


@dataclass
class StorageCapacityRow(InventoryRow):
    """Capacity and object counts of one storage account."""
    subscription_name: str = column('SubscriptionName', '')
    storage_account: str = column('StorageAccount', '')
    resource_group: str = column('ResourceGroup', '')
    location: Optional[str] = column('Location')
    used_capacity_gib: Optional[float] = column('UsedCapacityGiB')
    blob_capacity_gib: Optional[float] = column('BlobCapacityGiB')
    blob_provisioned_gib: Optional[float] = column('BlobProvisionedGiB')
    blob_unconsumed_gib: Optional[float] = column('BlobUnconsumedGiB')
    file_capacity_gib: Optional[float] = column('FileCapacityGiB')
    file_provisioned_gib: Optional[float] = column('FileProvisionedGiB')
    file_unconsumed_gib: Optional[float] = column('FileUnconsumedGiB')
    queue_capacity_gib: Optional[float] = column('QueueCapacityGiB')
    table_capacity_gib: Optional[float] = column('TableCapacityGiB')
    blob_count: Optional[int] = column('BlobCount')
    container_count: Optional[int] = column('ContainerCount')
    file_count: Optional[int] = column('FileCount')
    file_share_count: Optional[int] = column('FileShareCount')
    queue_count: Optional[int] = column('QueueCount')
    queue_message_count: Optional[int] = column('QueueMessageCount')
    table_count: Optional[int] = column('TableCount')
    table_entity_count: Optional[int] = column('TableEntityCount')


@dataclass
class VmSummaryRow(InventoryRow):
    """One virtual machine."""
    subscription_name: str = column('SubscriptionName', '')
    subscription_id: str = column('SubscriptionId', '')
    resource_group: str = column('ResourceGroup', '')
    vm_name: str = column('VMName', '')
    location: Optional[str] = column('Location')
    vm_size_sku: Optional[str] = column('VmSizeSku')
    vcpus: Optional[int] = column('vCPUs')
    ram_gib: Optional[float] = column('RAMGiB')
    power_state: Optional[str] = column('PowerState')
    os_type: Optional[str] = column('OsType')
    os_disk_name: Optional[str] = column('OsDiskName')
    data_disk_count: int = column('DataDiskCount', 0)


@dataclass
class VmDiskRow(VmSummaryRow):
    """One OS or data disk attached to a virtual machine."""
    disk_role: str = column('DiskRole', '')
    lun: Optional[int] = column('Lun')
    caching: Optional[str] = column('Caching')
    write_accelerator: Optional[bool] = column('WriteAccelerator')
    disk_name: Optional[str] = column('DiskName')
    disk_id: Optional[str] = column('DiskId')
    disk_sku: Optional[str] = column('DiskSku')
    disk_tier: Optional[str] = column('DiskTier')
    encryption_type: Optional[str] = column('EncryptionType')
    provisioned_gib: Optional[float] = column('ProvisionedGiB')
    # No data-plane metric exposes consumed space inside a managed disk
    consumed_gib: Optional[float] = column('ConsumedGiB')


@dataclass
class VmSize:
    """Core count and memory of a VM size."""
    cores: Optional[int] = None
    memory_mb: Optional[int] = None
