"""
Tests for the storage account report using unittest.mock.
"""
import csv
import os
import sys
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import storage_inventory
from azinv.metrics import MetricClient
from storage_inventory import build_storage_row, collect_subscription, fetch_account_metrics

GIB = 1024 ** 3


def create_mock_storage_account(name, resource_group="rg-data", location="eastus"):
    account = Mock()
    account.id = (
        f"/subscriptions/sub123/resourceGroups/{resource_group}/providers/"
        f"Microsoft.Storage/storageAccounts/{name}"
    )
    account.name = name
    account.location = location
    return account


def make_monitor(values_by_uri_suffix):
    """
    Monitor client answering from {(resource suffix, metric name): value}.

    The resource suffix is '' for the account itself or e.g. '/blobServices/default'.
    """
    def list_metrics(**kwargs):
        uri = kwargs['resource_uri']
        suffix = ''
        for candidate in ('/blobServices/default', '/fileServices/default',
                          '/queueServices/default', '/tableServices/default'):
            if uri.endswith(candidate):
                suffix = candidate
        average = values_by_uri_suffix.get((suffix, kwargs['metricnames']))
        response = Mock()
        if average is None:
            response.value = []
            return response
        point = Mock(average=average, time_stamp=datetime(2026, 10, 1, tzinfo=timezone.utc))
        response.value = [Mock(timeseries=[Mock(data=[point])])]
        return response

    monitor = Mock()
    monitor.metrics.list.side_effect = list_metrics
    return monitor


@pytest.fixture
def populated_monitor():
    return make_monitor({
        ('', 'UsedCapacity'): 150 * GIB,
        ('/blobServices/default', 'BlobCapacity'): 100 * GIB,
        ('/blobServices/default', 'BlobProvisionedSize'): 120 * GIB,
        ('/blobServices/default', 'BlobCount'): 4200.0,
        ('/blobServices/default', 'ContainerCount'): 3.0,
        ('/fileServices/default', 'FileCapacity'): 60 * GIB,
        ('/fileServices/default', 'FileShareQuota'): 50 * GIB,
        ('/fileServices/default', 'FileShareCount'): 2.0,
        ('/queueServices/default', 'QueueCapacity'): 0.0,
        ('/tableServices/default', 'TableEntityCount'): 17.4,
    })


class TestFetchAccountMetrics:
    """Tests for fetch_account_metrics."""

    def test_queries_each_service_namespace(self, populated_monitor):
        account = create_mock_storage_account("acct1")
        values = fetch_account_metrics(MetricClient(populated_monitor), account.id)

        uris = {c.kwargs['resource_uri'] for c in populated_monitor.metrics.list.call_args_list}
        assert uris == {
            account.id,
            f"{account.id}/blobServices/default",
            f"{account.id}/fileServices/default",
            f"{account.id}/queueServices/default",
            f"{account.id}/tableServices/default",
        }
        assert values['UsedCapacity'] == 150 * GIB
        assert values['TableCount'] is None


class TestBuildStorageRow:
    """Tests for build_storage_row."""

    def test_capacity_and_counts(self, populated_monitor):
        row = build_storage_row(create_mock_storage_account("acct1"), "Production", MetricClient(populated_monitor))

        assert row.subscription_name == "Production"
        assert row.storage_account == "acct1"
        assert row.resource_group == "rg-data"
        assert row.location == "eastus"
        assert row.used_capacity_gib == 150.0
        assert row.blob_capacity_gib == 100.0
        assert row.blob_provisioned_gib == 120.0
        assert row.blob_unconsumed_gib == 20.0
        assert row.blob_count == 4200
        assert row.container_count == 3
        assert row.queue_capacity_gib == 0.0
        assert row.table_capacity_gib is None
        assert row.table_entity_count == 17

    def test_unconsumed_floored_at_zero(self, populated_monitor):
        """File capacity above quota reports zero unconsumed."""
        row = build_storage_row(create_mock_storage_account("acct1"), "Production", MetricClient(populated_monitor))

        assert row.file_capacity_gib == 60.0
        assert row.file_provisioned_gib == 50.0
        assert row.file_unconsumed_gib == 0.0

    def test_no_metrics(self):
        row = build_storage_row(create_mock_storage_account("empty"), "Production", MetricClient(make_monitor({})))

        assert row.used_capacity_gib is None
        assert row.blob_unconsumed_gib is None
        assert row.file_unconsumed_gib is None
        assert row.blob_count is None


@patch('storage_inventory.get_monitor_client')
@patch('storage_inventory.ResourceManagementClient')
class TestCollect:
    """Tests for collect_subscription and run."""

    def test_collect_subscription(self, mock_resource_class, mock_monitor):
        mock_monitor.return_value = make_monitor({('', 'UsedCapacity'): 2 * GIB})
        mock_resource_class.return_value.resources.list.return_value = [
            create_mock_storage_account("acct1"),
            create_mock_storage_account("acct2"),
        ]

        rows = collect_subscription(Mock(), {'id': "sub123", 'name': "Production"}, 48)

        assert [r.storage_account for r in rows] == ["acct1", "acct2"]
        assert rows[0].used_capacity_gib == 2.0

    def test_listing_failure_yields_no_rows(self, mock_resource_class, mock_monitor):
        mock_resource_class.return_value.resources.list.side_effect = Exception("AuthorizationFailed")

        rows = collect_subscription(Mock(), {'id': "sub123", 'name': "Production"}, 48)

        assert rows == []

    def test_run_writes_sorted_csv(self, mock_resource_class, mock_monitor, tmp_path):
        mock_monitor.return_value = make_monitor({})
        mock_resource_class.return_value.resources.list.return_value = [
            create_mock_storage_account("zeta"),
            create_mock_storage_account("Alpha"),
        ]

        rows = storage_inventory.run(
            Mock(),
            [{'id': "sub123", 'name': "Production", 'state': "Enabled"}],
            {'output': str(tmp_path), 'lookback_hours': 48},
            show_table=False,
        )

        assert [r.storage_account for r in rows] == ["Alpha", "zeta"]
        with open(tmp_path / "storage-capacity-report.csv", newline='') as f:
            reader = csv.reader(f)
            header = next(reader)
            body = list(reader)
        assert header[:2] == ["SubscriptionName", "StorageAccount"]
        assert len(body) == 2

    def test_run_empty_writes_header(self, mock_resource_class, mock_monitor, tmp_path):
        mock_resource_class.return_value.resources.list.return_value = []

        storage_inventory.run(
            Mock(),
            [{'id': "sub123", 'name': "Production", 'state': "Enabled"}],
            {'output': str(tmp_path), 'lookback_hours': 48},
            show_table=False,
        )

        with open(tmp_path / "storage-capacity-report.csv") as f:
            assert len(f.read().splitlines()) == 1
