"""
Latest-value lookups against Azure Monitor platform metrics.

Every capacity column in the reports is the most recent hourly average of
one metric inside a lookback window. Anything that prevents reading it
(unsupported metric, missing RBAC, no recent data, transport failure)
collapses to an absent value so bulk enumeration is never interrupted.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.monitor import MonitorManagementClient

from .constants import DEFAULT_LOOKBACK_HOURS, METRIC_AGGREGATION, METRIC_INTERVAL
from .models import MetricResult
from .utils import is_auth_error

logger = logging.getLogger(__name__)

# MetricResult.reason values
NO_DATA = 'no_data'
NOT_FOUND = 'not_found'
PERMISSION_DENIED = 'permission_denied'
ERROR = 'error'


def get_monitor_client(credential, subscription_id: str) -> MonitorManagementClient:
    """Get Azure Monitor client."""
    return MonitorManagementClient(credential, subscription_id)


def _classify_failure(exc: Exception) -> str:
    if isinstance(exc, ResourceNotFoundError):
        return NOT_FOUND
    if is_auth_error(exc):
        return PERMISSION_DENIED
    return ERROR


class MetricClient:
    """
    Reads the most recent hourly average of a metric for a resource.

    Args:
        monitor_client: azure-mgmt-monitor MonitorManagementClient
        lookback_hours: default width of the search window
    """

    def __init__(self, monitor_client, lookback_hours: int = DEFAULT_LOOKBACK_HOURS):
        self.monitor_client = monitor_client
        self.lookback_hours = lookback_hours

    def latest(
        self,
        resource_id: str,
        metric_name: str,
        lookback_hours: Optional[int] = None
    ) -> MetricResult:
        """Most recent defined average inside the window, with a reason when absent."""
        hours = lookback_hours if lookback_hours is not None else self.lookback_hours
        end_time = datetime.now(timezone.utc)
        start_time = end_time - timedelta(hours=hours)
        timespan = f"{start_time.isoformat()}/{end_time.isoformat()}"

        try:
            response = self.monitor_client.metrics.list(
                resource_uri=resource_id,
                timespan=timespan,
                interval=METRIC_INTERVAL,
                metricnames=metric_name,
                aggregation=METRIC_AGGREGATION
            )

            latest_point = None
            for metric in response.value or []:
                for timeseries in metric.timeseries or []:
                    for data in timeseries.data or []:
                        if data.average is None or data.time_stamp is None:
                            continue
                        if latest_point is None or data.time_stamp > latest_point.time_stamp:
                            latest_point = data
        except Exception as e:
            reason = _classify_failure(e)
            logger.debug(f"Metric {metric_name} unavailable for {resource_id} ({reason}): {e}")
            return MetricResult(reason=reason)

        if latest_point is None:
            return MetricResult(reason=NO_DATA)
        return MetricResult(value=float(latest_point.average))

    def latest_average(
        self,
        resource_id: str,
        metric_name: str,
        lookback_hours: Optional[int] = None
    ) -> Optional[float]:
        """Latest hourly average value, or None."""
        return self.latest(resource_id, metric_name, lookback_hours).value

    def latest_many(self, resource_id: str, metric_names: Iterable[str]) -> Dict[str, Optional[float]]:
        """
        Latest value for several metrics of one resource.

        Each metric is requested separately so one unsupported name does not
        fail the others.
        """
        return {name: self.latest_average(resource_id, name) for name in metric_names}
