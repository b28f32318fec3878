"""
Azure capacity inventory shared library.
"""
from . import constants
from .cache import RunCache
from .metrics import MetricClient, get_monitor_client
from .models import (
    InventoryRow,
    MetricResult,
    ResourceRef,
    SqlInventoryRow,
    StorageCapacityRow,
    VmDiskRow,
    VmSize,
    VmSummaryRow,
)
from .resource_id import ResourceId, ResourceIdError, parse_resource_id
from .utils import (
    AuthError,
    ProgressTracker,
    bytes_to_gib,
    is_auth_error,
    mb_to_gib,
    setup_logging,
    unconsumed,
    write_csv,
)

__all__ = [
    'constants',
    # Models
    'InventoryRow',
    'MetricResult',
    'ResourceRef',
    'SqlInventoryRow',
    'StorageCapacityRow',
    'VmDiskRow',
    'VmSize',
    'VmSummaryRow',
    # Metrics
    'MetricClient',
    'get_monitor_client',
    # Resource ids
    'ResourceId',
    'ResourceIdError',
    'parse_resource_id',
    # Caches
    'RunCache',
    # Utils
    'AuthError',
    'ProgressTracker',
    'bytes_to_gib',
    'is_auth_error',
    'mb_to_gib',
    'setup_logging',
    'unconsumed',
    'write_csv',
]
