import logging
import time
from typing import List, Tuple, Dict, Any, Optional

import requests

from concurrency import Deadline
from config import MIMIR_API_URL, MIMIR_NAMESPACE, METRICS_TIMEOUT_SECONDS
from normalize.series import merge_series, parse_duration

logger = logging.getLogger(__name__)


class PrometheusError(Exception):
    pass


class MetricsUnavailable(PrometheusError):
    """No usage data could be fetched for a tenant/window"""
    pass


# Per-tenant PromQL. {tenant} is the Mimir tenant (X-Scope-OrgID); {namespace}
# is the Mimir namespace. cpu_usage, memory_utilization, storage_usage and
# error_rate are percentages; memory_bytes is the tenant's ingester memory in
# bytes. Ingester CPU, memory utilization and storage are shared by all tenants.
TENANT_METRIC_QUERIES: Dict[str, str] = {
    "ingestion_rate": 'sum(rate(cortex_distributor_received_samples_total{{user="{tenant}"}}[5m]))',
    "active_series": 'sum(cortex_ingester_active_series{{user="{tenant}"}})',
    "rejected_samples": 'sum(rate(cortex_discarded_samples_total{{user="{tenant}"}}[5m]))',
    "limits_reached": 'sum(increase(cortex_discarded_samples_total{{user="{tenant}",reason=~".*limit.*"}}[5m]))',
    "memory_bytes": 'sum(cortex_ingester_memory_usage_bytes{{user="{tenant}"}})',
    "memory_utilization": (
        '100 * sum(container_memory_working_set_bytes{{namespace="{namespace}",container="ingester"}})'
        ' / sum(kube_pod_container_resource_limits{{namespace="{namespace}",container="ingester",resource="memory"}})'
    ),
    "cpu_usage": (
        '100 * sum(rate(container_cpu_usage_seconds_total{{namespace="{namespace}",container="ingester"}}[5m]))'
        ' / sum(kube_pod_container_resource_limits{{namespace="{namespace}",container="ingester",resource="cpu"}})'
    ),
    "storage_usage": (
        '100 * sum(kubelet_volume_stats_used_bytes{{namespace="{namespace}"}})'
        ' / sum(kubelet_volume_stats_capacity_bytes{{namespace="{namespace}"}})'
    ),
    "queue_depth": 'sum(cortex_query_scheduler_queue_length{{user="{tenant}"}})',
    "error_rate": (
        '100 * sum(rate(cortex_discarded_samples_total{{user="{tenant}"}}[5m]))'
        ' / sum(rate(cortex_distributor_received_samples_total{{user="{tenant}"}}[5m]))'
    ),
}

# Query resolution per trailing window
WINDOW_STEPS: Dict[str, str] = {
    "24h": "5m",
    "48h": "5m",
    "7d": "15m",
    "30d": "1h",
    "60d": "2h",
    "90d": "3h",
}


def _now() -> float:
    return time.time()


def _step_for_window(window: str) -> str:
    if window in WINDOW_STEPS:
        return WINDOW_STEPS[window]
    seconds = parse_duration(window) or 0
    # keep range queries under ~1000 points
    return f"{max(60, int(seconds / 1000))}s"


def _escape_label(value: str) -> str:
    return value.replace('\\', '\\\\').replace('"', '\\"')


def query_range(
    promql: str,
    start_ts: Optional[float] = None,
    end_ts: Optional[float] = None,
    step: str = "15s",
    tenant: Optional[str] = None,
    base_url: str = MIMIR_API_URL,
    timeout: float = METRICS_TIMEOUT_SECONDS,
) -> Dict[str, Any]:
    """
    Query Mimir's Prometheus `/api/v1/query_range` and return parsed JSON result.
    Returns the raw JSON payload as a dict. Caller is responsible for deterministic parsing.
    When `tenant` is set the request is scoped with the X-Scope-OrgID header.
    """
    if end_ts is None:
        end_ts = _now()
    if start_ts is None:
        start_ts = end_ts - 3600

    params = {
        "query": promql,
        "start": str(start_ts),
        "end": str(end_ts),
        "step": step,
    }
    headers = {"X-Scope-OrgID": tenant} if tenant else {}
    url = f"{base_url.rstrip('/')}/api/v1/query_range"
    try:
        r = requests.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        raise PrometheusError(f"request failed: {e}")
    if r.status_code != 200:
        raise PrometheusError(f"prometheus returned status {r.status_code}: {r.text}")
    try:
        data = r.json()
    except ValueError as e:
        raise PrometheusError(f"invalid JSON from prometheus: {e}")
    if data.get("status") != "success":
        raise PrometheusError(f"prometheus error: {data}")
    return data


def parse_matrix_values(matrix: Dict[str, Any]) -> List[Tuple[float, float]]:
    """
    Parse a Prometheus matrix result (single timeseries) into list of (timestamp, value).
    Expects `matrix` to be one element of `data['result']` as returned from query_range.
    """
    values = matrix.get("values") or []
    parsed: List[Tuple[float, float]] = []
    for pair in values:
        try:
            ts_str, val_str = pair
            ts = float(ts_str)
            val = float(val_str)
        except (TypeError, ValueError):
            continue
        if val != val:  # NaN
            continue
        parsed.append((ts, val))
    return parsed


class MimirMetricsClient:
    """Tenant usage queries against Mimir

    Args:
        base_url: Prometheus-compatible API root (e.g. http://query-frontend/prometheus)
        namespace: Mimir namespace, substituted into namespace-scoped queries
        timeout: Default per-request timeout in seconds
        queries: Metric name -> PromQL template override
    """

    def __init__(
        self,
        base_url: str = MIMIR_API_URL,
        namespace: str = MIMIR_NAMESPACE,
        timeout: int = METRICS_TIMEOUT_SECONDS,
        queries: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url
        self.namespace = namespace
        self.timeout = timeout
        self.queries = dict(queries or TENANT_METRIC_QUERIES)

    def _query_metric(
        self,
        metric: str,
        tenant: str,
        window: str,
        deadline: Optional[Deadline],
    ) -> List[Tuple[float, float]]:
        seconds = parse_duration(window)
        if seconds is None:
            raise PrometheusError(f"invalid window: {window}")
        promql = self.queries[metric].format(
            tenant=_escape_label(tenant), namespace=_escape_label(self.namespace)
        )
        timeout = deadline.timeout_for(self.timeout) if deadline is not None else self.timeout
        end = _now()
        data = query_range(
            promql,
            start_ts=end - seconds,
            end_ts=end,
            step=_step_for_window(window),
            tenant=tenant,
            base_url=self.base_url,
            timeout=timeout,
        )
        results = data.get("data", {}).get("result", [])
        return merge_series([parse_matrix_values(res) for res in results])

    def get_tenant_series(
        self,
        tenant: str,
        window: str,
        deadline: Optional[Deadline] = None,
        metrics: Optional[List[str]] = None,
    ) -> Dict[str, List[Tuple[float, float]]]:
        """
        Returns a dict mapping metric name -> list of (timestamp, value) samples
        for the trailing `window` (e.g. "7d").

        Metrics whose query fails are left out and logged.

        Raises:
            MetricsUnavailable: Every metric query failed
        """
        names = metrics or list(self.queries)
        series: Dict[str, List[Tuple[float, float]]] = {}
        failures = 0
        for metric in names:
            try:
                series[metric] = self._query_metric(metric, tenant, window, deadline)
            except PrometheusError as e:
                failures += 1
                logger.warning(f"Failed to query {metric} for {tenant} over {window}: {e}")
        if names and failures == len(names):
            raise MetricsUnavailable(f"no metrics available for tenant {tenant} over {window}")
        return series

    def get_peak_values(
        self,
        tenant: str,
        window: str,
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, float]:
        """Maximum observed value per metric over the trailing window"""
        peaks: Dict[str, float] = {}
        for metric, samples in self.get_tenant_series(tenant, window, deadline).items():
            peaks[metric] = max((v for _, v in samples), default=0.0)
        return peaks
