"""
Tests for azinv/metrics.py Azure Monitor lookups.

Covers:
- latest point selection across timeseries
- points without an average are skipped
- reasons for absent values (no data, not found, permission, error)
- latest_many per-metric isolation
"""
import os
import sys
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError, ResourceNotFoundError

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from azinv.metrics import ERROR, NO_DATA, NOT_FOUND, PERMISSION_DENIED, MetricClient

RESOURCE_ID = "/subscriptions/sub123/resourceGroups/rg-sql/providers/Microsoft.Sql/servers/sql01/databases/db1"


def make_point(hour, average):
    point = Mock()
    point.time_stamp = datetime(2026, 10, 1, hour, 0, tzinfo=timezone.utc)
    point.average = average
    return point


def make_response(*series):
    """Metrics response with one metric holding the given timeseries point lists."""
    metric = Mock()
    metric.timeseries = []
    for points in series:
        ts = Mock()
        ts.data = list(points)
        metric.timeseries.append(ts)
    response = Mock()
    response.value = [metric]
    return response


@pytest.fixture
def monitor_client():
    return Mock()


class TestLatest:
    """Tests for MetricClient.latest."""

    def test_picks_most_recent_point(self, monitor_client):
        monitor_client.metrics.list.return_value = make_response(
            [make_point(1, 1.0), make_point(2, 2.0), make_point(3, 3.0)]
        )
        result = MetricClient(monitor_client).latest(RESOURCE_ID, "storage")

        assert result.present
        assert result.value == 3.0
        assert result.reason is None

    def test_skips_points_without_average(self, monitor_client):
        """A newer point with no average does not hide an older defined one."""
        monitor_client.metrics.list.return_value = make_response(
            [make_point(1, 1.0), make_point(3, 3.0), make_point(4, None)]
        )
        assert MetricClient(monitor_client).latest_average(RESOURCE_ID, "storage") == 3.0

    def test_latest_across_timeseries(self, monitor_client):
        monitor_client.metrics.list.return_value = make_response(
            [make_point(5, 50.0)],
            [make_point(2, 20.0)],
        )
        assert MetricClient(monitor_client).latest_average(RESOURCE_ID, "storage") == 50.0

    def test_no_points(self, monitor_client):
        monitor_client.metrics.list.return_value = make_response([])
        result = MetricClient(monitor_client).latest(RESOURCE_ID, "storage")

        assert result.value is None
        assert result.reason == NO_DATA

    def test_only_undefined_points(self, monitor_client):
        monitor_client.metrics.list.return_value = make_response([make_point(1, None)])
        assert MetricClient(monitor_client).latest(RESOURCE_ID, "storage").reason == NO_DATA

    def test_request_shape(self, monitor_client):
        monitor_client.metrics.list.return_value = make_response([])
        MetricClient(monitor_client, lookback_hours=72).latest(RESOURCE_ID, "allocated_data_storage")

        kwargs = monitor_client.metrics.list.call_args.kwargs
        assert kwargs['resource_uri'] == RESOURCE_ID
        assert kwargs['metricnames'] == "allocated_data_storage"
        assert kwargs['interval'] == "PT1H"
        assert kwargs['aggregation'] == "Average"

        start, end = kwargs['timespan'].split('/')
        delta = datetime.fromisoformat(end) - datetime.fromisoformat(start)
        assert delta.total_seconds() == 72 * 3600

    def test_lookback_override(self, monitor_client):
        monitor_client.metrics.list.return_value = make_response([])
        MetricClient(monitor_client, lookback_hours=48).latest(RESOURCE_ID, "storage", lookback_hours=6)

        start, end = monitor_client.metrics.list.call_args.kwargs['timespan'].split('/')
        delta = datetime.fromisoformat(end) - datetime.fromisoformat(start)
        assert delta.total_seconds() == 6 * 3600


class TestLatestFailures:
    """Failures are absorbed into an absent value with a reason."""

    def test_not_found(self, monitor_client):
        monitor_client.metrics.list.side_effect = ResourceNotFoundError("gone")
        result = MetricClient(monitor_client).latest(RESOURCE_ID, "storage")

        assert result.value is None
        assert result.reason == NOT_FOUND

    def test_permission_denied(self, monitor_client):
        monitor_client.metrics.list.side_effect = ClientAuthenticationError("no token")
        assert MetricClient(monitor_client).latest(RESOURCE_ID, "storage").reason == PERMISSION_DENIED

    def test_forbidden_status(self, monitor_client):
        exc = HttpResponseError("Forbidden")
        exc.status_code = 403
        monitor_client.metrics.list.side_effect = exc
        assert MetricClient(monitor_client).latest(RESOURCE_ID, "storage").reason == PERMISSION_DENIED

    def test_unsupported_metric(self, monitor_client):
        monitor_client.metrics.list.side_effect = HttpResponseError("Failed to find metric configuration")
        result = MetricClient(monitor_client).latest(RESOURCE_ID, "bogus")

        assert result.value is None
        assert result.reason == ERROR

    def test_transport_error(self, monitor_client):
        monitor_client.metrics.list.side_effect = ConnectionError("reset")
        assert MetricClient(monitor_client).latest_average(RESOURCE_ID, "storage") is None


class TestLatestMany:
    """Tests for MetricClient.latest_many."""

    def test_one_failure_does_not_hide_others(self, monitor_client):
        def list_metrics(**kwargs):
            if kwargs['metricnames'] == "BlobProvisionedSize":
                raise HttpResponseError("Failed to find metric configuration")
            return make_response([make_point(1, 1024.0)])

        monitor_client.metrics.list.side_effect = list_metrics
        values = MetricClient(monitor_client).latest_many(
            RESOURCE_ID, ["BlobCapacity", "BlobProvisionedSize", "BlobCount"]
        )

        assert values == {"BlobCapacity": 1024.0, "BlobProvisionedSize": None, "BlobCount": 1024.0}
        assert monitor_client.metrics.list.call_count == 3
