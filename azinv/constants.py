"""
Constants for the Azure capacity inventory collectors.

This module defines all magic strings and numbers used across the codebase
to prevent typos, ensure consistency, and make maintenance easier.
"""

# =============================================================================
# Byte/Size Conversion Constants
# =============================================================================

BYTES_PER_KB = 1024
BYTES_PER_MB = 1024 ** 2
BYTES_PER_GIB = 1024 ** 3
MB_PER_GB = 1024

GIB_DECIMALS = 2

# =============================================================================
# Default Configuration Values
# =============================================================================

DEFAULT_LOOKBACK_HOURS = 48
DEFAULT_OUTPUT_DIR = '.'
DEFAULT_LOG_LEVEL = 'INFO'

# Azure Monitor request shape
METRIC_INTERVAL = 'PT1H'
METRIC_AGGREGATION = 'Average'

# =============================================================================
# System Databases
# =============================================================================

SQL_SERVER_SYSTEM_DATABASES = frozenset({'master'})
MANAGED_INSTANCE_SYSTEM_DATABASES = frozenset({'master', 'msdb', 'model', 'tempdb'})

# =============================================================================
# Resource Types
# =============================================================================

STORAGE_ACCOUNT_RESOURCE_TYPE = 'Microsoft.Storage/storageAccounts'
VIRTUAL_MACHINE_RESOURCE_TYPE = 'Microsoft.Compute/virtualMachines'
VIRTUAL_MACHINE_SKU_RESOURCE_TYPE = 'virtualMachines'

# =============================================================================
# SQL Row Kinds
# =============================================================================

SQL_TYPE_ELASTIC_POOL = 'Elastic Pool'
SQL_TYPE_DATABASE = 'Azure SQL Database'
SQL_TYPE_MANAGED_INSTANCE = 'SQL Managed Instance'
SQL_TYPE_MANAGED_INSTANCE_DATABASE = 'SQL Managed Instance Database'
SQL_TYPE_SQL_VM = 'SQL Server on Azure VM'

# =============================================================================
# Disk Roles
# =============================================================================

DISK_ROLE_OS = 'OS'
DISK_ROLE_DATA = 'Data'

# =============================================================================
# Azure Monitor Metric Names
# =============================================================================

# SQL elastic pools (bytes)
METRIC_POOL_STORAGE_USED = 'storage_used'
METRIC_POOL_ALLOCATED = 'allocated_data_storage'

# SQL databases (bytes)
METRIC_DB_STORAGE = 'storage'
METRIC_DB_ALLOCATED = 'allocated_data_storage'

# SQL managed instances (MB)
METRIC_MI_STORAGE_USED_MB = 'storage_space_used_mb'
METRIC_MI_RESERVED_MB = 'reserved_storage_mb'

# Storage accounts (bytes unless a count)
METRIC_USED_CAPACITY = 'UsedCapacity'
METRIC_BLOB_CAPACITY = 'BlobCapacity'
METRIC_BLOB_PROVISIONED = 'BlobProvisionedSize'
METRIC_BLOB_COUNT = 'BlobCount'
METRIC_CONTAINER_COUNT = 'ContainerCount'
METRIC_FILE_CAPACITY = 'FileCapacity'
METRIC_FILE_SHARE_QUOTA = 'FileShareQuota'
METRIC_FILE_COUNT = 'FileCount'
METRIC_FILE_SHARE_COUNT = 'FileShareCount'
METRIC_QUEUE_CAPACITY = 'QueueCapacity'
METRIC_QUEUE_COUNT = 'QueueCount'
METRIC_QUEUE_MESSAGE_COUNT = 'QueueMessageCount'
METRIC_TABLE_CAPACITY = 'TableCapacity'
METRIC_TABLE_COUNT = 'TableCount'
METRIC_TABLE_ENTITY_COUNT = 'TableEntityCount'

# Storage sub-service resource id suffixes
BLOB_SERVICE_SUFFIX = '/blobServices/default'
FILE_SERVICE_SUFFIX = '/fileServices/default'
QUEUE_SERVICE_SUFFIX = '/queueServices/default'
TABLE_SERVICE_SUFFIX = '/tableServices/default'

# =============================================================================
# Output Files
# =============================================================================

SQL_REPORT_FILE = 'azure-sql-inventory.csv'
STORAGE_REPORT_FILE = 'storage-capacity-report.csv'
VM_SUMMARY_FILE = 'vm-summary.csv'
VM_DISKS_FILE = 'vm-disks.csv'

# =============================================================================
# Report Names
# =============================================================================

REPORT_SQL = 'sql'
REPORT_STORAGE = 'storage'
REPORT_VM = 'vm'
ALL_REPORTS = (REPORT_SQL, REPORT_STORAGE, REPORT_VM)
